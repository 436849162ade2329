"""Shared fixtures for watcher tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

import db


@pytest.fixture()
def db_path(tmp_path, monkeypatch) -> str:
    """Fresh SQLite database that every get_connection() call uses."""
    path = str(tmp_path / "watcher.db")
    monkeypatch.setattr(db, "DB_PATH", path)
    db.init_db()
    return path


@pytest.fixture()
def conn(db_path):
    connection = db.get_connection()
    yield connection
    connection.close()


def make_context(bot_data: dict | None = None) -> MagicMock:
    context = MagicMock()
    context.bot_data = bot_data if bot_data is not None else {}
    context.bot.send_message = AsyncMock()
    return context


def make_message_update(chat_id: int, text: str, message_id: int = 1) -> MagicMock:
    update = MagicMock()
    update.effective_chat.id = chat_id
    update.effective_message.text = text
    update.effective_message.message_id = message_id
    update.effective_message.reply_text = AsyncMock()
    return update


def make_callback_update(chat_id: int, data: str) -> MagicMock:
    update = MagicMock()
    update.effective_chat.id = chat_id
    update.callback_query.data = data
    update.callback_query.answer = AsyncMock()
    update.callback_query.edit_message_text = AsyncMock()
    return update


SAMPLE_HTML = """\
<!DOCTYPE html>
<html>
<head><title>Shop</title></head>
<body>
    <h1 class="title">Кофемолка Ручная</h1>
    <div class="buy">
        <span class="price">1 299,50 ₽</span>
        <div class="stock" data-qty="7">В наличии: 7 шт.</div>
    </div>
</body>
</html>
"""
