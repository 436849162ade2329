#!/usr/bin/env python3
"""Telegram bot that watches item prices for its chats.

Send it a link to start tracking the item; /list shows what is tracked.
Items are re-fetched on a job-queue timer and chats are told when a price
drops or the item disappears. The admin chat adds extraction rules with /db.

Run:
    python telegram_bot.py
"""

import asyncio
import logging
import re

from dotenv import load_dotenv
load_dotenv()

from telegram import BotCommand, InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.constants import InlineKeyboardButtonLimit
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from config import ADMIN_CHAT_ID, REFRESH_INTERVAL_MINUTES, TELEGRAM_BOT_TOKEN
from db import get_all_scripts, get_chat, get_connection, init_db, save_chat, save_script
from detector import format_price
from extraction import ScriptNotFound, fetch_item
from models import Chat, ChatData, Item, ItemNotFound
from scheduler import chat_lock, refresh_job
from wizard import DbWizard

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

URL_RE = re.compile(r"(http|https)://[a-zA-Z0-9\-.]+\.[a-zA-Z]{2,}(/\S*)?")

CB_LIST = "list"
CB_OPEN = "open#"
CB_DEL = "del#"

# Edits of earlier messages are not new input
TEXT_MESSAGES = filters.TEXT & filters.UpdateType.MESSAGE

LIST_HEADER = "Вот за чем я слежу:"
EMPTY_LIST = "Пока список пуст. Попробуй отправить мне ссылку."


def extract_url(text: str) -> str:
    """First http(s) link in ``text``, or '' when there is none."""
    match = URL_RE.search(text or "")
    return match.group(0) if match else ""


def _is_admin(chat_id: int) -> bool:
    return bool(ADMIN_CHAT_ID) and chat_id == ADMIN_CHAT_ID


def _get_fetch(context: ContextTypes.DEFAULT_TYPE):
    return context.bot_data.get("fetch", fetch_item)


def _get_wizard(context: ContextTypes.DEFAULT_TYPE, chat_id: int) -> DbWizard:
    wizards = context.bot_data.setdefault("db_wizards", {})
    if chat_id not in wizards:
        wizards[chat_id] = DbWizard()
    return wizards[chat_id]


def _load_chat(chat_id: int) -> Chat | None:
    conn = get_connection()
    try:
        return get_chat(conn, chat_id)
    finally:
        conn.close()


# ──────────────────────────────────────────────
# Keyboards
# ──────────────────────────────────────────────

def _fits_callback(data: str) -> bool:
    return len(data.encode("utf-8")) <= InlineKeyboardButtonLimit.MAX_CALLBACK_DATA


def _item_button(item: Item) -> InlineKeyboardButton | None:
    data = f"{CB_OPEN}{item.url}"
    if not _fits_callback(data):
        # Telegram rejects the whole keyboard over one oversized button
        logger.warning(f"Skipping list button, URL too long for callback data: {item.url}")
        return None
    return InlineKeyboardButton(
        f"{item.name[:25]} - {format_price(item.price)}",
        callback_data=data,
    )


def _build_list_view(chat: Chat | None) -> tuple[str, InlineKeyboardMarkup | None]:
    """List message text and keyboard for a chat's wishlist.

    Items whose URL does not fit in callback data get no button.
    """
    if chat is None or not chat.data.wish_list:
        return EMPTY_LIST, None
    buttons = [_item_button(item) for item in chat.data.wish_list.items.values()]
    rows = [[button] for button in buttons if button is not None]
    if not rows:
        return EMPTY_LIST, None
    return LIST_HEADER, InlineKeyboardMarkup(rows)


def _build_item_keyboard(item: Item) -> InlineKeyboardMarkup:
    top = [InlineKeyboardButton("🌐", url=item.url)]
    if _fits_callback(f"{CB_DEL}{item.url}"):
        top.append(InlineKeyboardButton("❌", callback_data=f"{CB_DEL}{item.url}"))
    return InlineKeyboardMarkup([
        top,
        [InlineKeyboardButton("<< назад", callback_data=CB_LIST)],
    ])


def _format_item(item: Item) -> str:
    return (
        f"{item.name}\n"
        f"Цена: {format_price(item.price)}\n"
        f"Кол-во: {item.quantity}\n"
        f"{item.url}"
    )


# ──────────────────────────────────────────────
# Item flow
# ──────────────────────────────────────────────

async def follow(update: Update, context: ContextTypes.DEFAULT_TYPE, url: str) -> None:
    """Fetch ``url`` and add the item to the chat's wishlist."""
    # TODO: queue failed follows and retry them instead of giving up
    logger.info(f"URL to follow [{url}]")
    message = update.effective_message
    chat_id = update.effective_chat.id

    try:
        item = await asyncio.to_thread(_get_fetch(context), url)
    except ScriptNotFound as e:
        await message.reply_text(f"Извините... Пока не умею следить за такими ссылками: {e}")
        return
    except Exception:
        logger.exception(f"Failed to follow {url}")
        await message.reply_text("Извините... Что-то пошло не так =(")
        return

    async with chat_lock(context.bot_data, chat_id):
        conn = get_connection()
        try:
            chat = get_chat(conn, chat_id) or Chat(chat_id=chat_id, data=ChatData())
            chat.data = chat.data.with_item(item)
            save_chat(conn, chat)
        finally:
            conn.close()

    await message.reply_text(
        f"ОК! Буду следить.\nСейчас \"{item.name}\" стоит:\n{format_price(item.price)}",
        do_quote=True,
        reply_markup=InlineKeyboardMarkup([[InlineKeyboardButton("Список", callback_data=CB_LIST)]]),
    )


async def send_list(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /list — show tracked items as buttons."""
    text, keyboard = _build_list_view(_load_chat(update.effective_chat.id))
    await update.effective_message.reply_text(text, reply_markup=keyboard)


async def _edit_list(update: Update) -> None:
    text, keyboard = _build_list_view(_load_chat(update.effective_chat.id))
    await update.callback_query.edit_message_text(text, reply_markup=keyboard)


async def open_item(update: Update, context: ContextTypes.DEFAULT_TYPE, url: str) -> None:
    """Show one item in place of the list.

    The button may be stale: a missing item raises ItemNotFound.
    """
    chat_id = update.effective_chat.id
    chat = _load_chat(chat_id)
    item = chat.data.wish_list.get(url) if chat and chat.data.wish_list else None
    if item is None:
        raise ItemNotFound(f"Chat {chat_id} has no item {url}")

    await update.callback_query.edit_message_text(
        _format_item(item),
        reply_markup=_build_item_keyboard(item),
    )


async def delete_item(update: Update, context: ContextTypes.DEFAULT_TYPE, url: str) -> None:
    chat_id = update.effective_chat.id
    async with chat_lock(context.bot_data, chat_id):
        conn = get_connection()
        try:
            chat = get_chat(conn, chat_id)
            if chat is not None:
                chat.data = chat.data.without_item(url)
                save_chat(conn, chat)
        finally:
            conn.close()
    logger.info(f"Chat {chat_id} stopped following {url}")
    await _edit_list(update)


# ──────────────────────────────────────────────
# Script wizard (admin only)
# ──────────────────────────────────────────────

async def start_db_wizard(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /db — list stored rules and ask for a new pattern."""
    wizard = _get_wizard(context, update.effective_chat.id)
    wizard.reset()

    conn = get_connection()
    try:
        scripts = get_all_scripts(conn)
    finally:
        conn.close()

    parts = [str(s) for s in scripts]
    parts.append(wizard.next("").prompt)
    await update.effective_message.reply_text("\n\n".join(parts))


async def continue_db_wizard(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    wizard = _get_wizard(context, update.effective_chat.id)
    message = update.effective_message

    if not wizard.finished():
        await message.reply_text(wizard.next(message.text).prompt)
        return

    script = wizard.to_script()
    conn = get_connection()
    try:
        save_script(conn, script)
    finally:
        conn.close()
    wizard.reset()
    logger.info(f"Saved script {script.id} for pattern {script.pattern!r}")
    await message.reply_text("committed")


# ──────────────────────────────────────────────
# Dispatch
# ──────────────────────────────────────────────

async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start and /help."""
    await update.effective_message.reply_text(
        "Привет! Пришли мне ссылку на товар, и я буду следить за его ценой.\n\n"
        "Напишу, когда цена упадёт или товар пропадёт.\n"
        "/list — за чем я слежу"
    )


async def on_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Route a text message: link, /list, admin wizard, help, or nothing."""
    message = update.effective_message
    if message is None or not message.text:
        return
    text = message.text
    chat_id = update.effective_chat.id

    url = extract_url(text)
    if url:
        await follow(update, context, url)
    elif text.startswith("/list"):
        await send_list(update, context)
    elif _is_admin(chat_id) and text.startswith("/db"):
        await start_db_wizard(update, context)
    elif _is_admin(chat_id) and _get_wizard(context, chat_id).in_progress():
        await continue_db_wizard(update, context)
    elif text.startswith("/start") or text.startswith("/help"):
        await cmd_help(update, context)


async def on_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Route an inline button press by its callback data."""
    query = update.callback_query
    await query.answer()

    data = query.data or ""
    if data == CB_LIST:
        await _edit_list(update)
    elif data.startswith(CB_OPEN):
        await open_item(update, context, data[len(CB_OPEN):])
    elif data.startswith(CB_DEL):
        await delete_item(update, context, data[len(CB_DEL):])


async def on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error(f"Update {update} caused error: {context.error}", exc_info=context.error)


# ──────────────────────────────────────────────
# Main
# ──────────────────────────────────────────────

def main():
    if not TELEGRAM_BOT_TOKEN:
        print("ERROR: TELEGRAM_BOT_TOKEN not set in .env")
        return

    init_db()

    async def post_init(application: Application) -> None:
        await application.bot.set_my_commands([
            BotCommand("list", "За чем я слежу"),
            BotCommand("help", "Как мной пользоваться"),
        ])

    app = Application.builder().token(TELEGRAM_BOT_TOKEN).post_init(post_init).build()
    app.bot_data["fetch"] = fetch_item

    app.add_handler(CallbackQueryHandler(on_callback))
    app.add_handler(MessageHandler(TEXT_MESSAGES, on_message))
    app.add_error_handler(on_error)

    app.job_queue.run_repeating(
        refresh_job,
        interval=REFRESH_INTERVAL_MINUTES * 60,
        first=10,
        name="wishlist_refresh",
    )

    logger.info(f"Watcher bot starting... (refreshing every {REFRESH_INTERVAL_MINUTES} min)")
    app.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
