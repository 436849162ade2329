"""Periodic re-fetch of every tracked item, run on the bot's job queue."""

import asyncio
import logging
from typing import Callable

from telegram.error import Forbidden
from telegram.ext import ContextTypes

from db import get_all_chats, get_chat, get_connection, save_chat
from detector import Notification, decide
from extraction import fetch_item
from models import DEFAULT_NAME, Item, WishList

logger = logging.getLogger(__name__)

Fetch = Callable[[str], Item]


def chat_lock(bot_data: dict, chat_id: int) -> asyncio.Lock:
    """Lock serializing writes to one chat's record."""
    locks = bot_data.setdefault("chat_locks", {})
    if chat_id not in locks:
        locks[chat_id] = asyncio.Lock()
    return locks[chat_id]


def refresh_wishlist(wish_list: WishList, fetch: Fetch) -> list[tuple[Item, Item]]:
    """Re-fetch every item. Returns (before, after) pairs for items that fetched.

    A failing item is logged and left out; the rest carry on.
    """
    pairs = []
    for item in wish_list.items.values():
        try:
            fresh = fetch(item.url)
        except Exception as e:
            logger.warning(f"  Failed to refresh {item.url}: {e}")
            continue
        if fresh.name == DEFAULT_NAME:
            # page lost its name element; keep the one we know
            fresh = fresh.model_copy(update={"name": item.name})
        pairs.append((item, fresh))
    return pairs


async def refresh_chat(chat_id: int, fetch: Fetch, lock: asyncio.Lock) -> list[Notification]:
    """Refresh one chat's wishlist, persist it, and return the messages to send.

    Fetching happens outside the lock. The merge re-reads the chat so items
    removed meanwhile stay removed and items added meanwhile are kept.
    """
    conn = get_connection()
    try:
        chat = get_chat(conn, chat_id)
    finally:
        conn.close()
    if chat is None or not chat.data.wish_list:
        return []

    pairs = await asyncio.to_thread(refresh_wishlist, chat.data.wish_list, fetch)

    applied = []
    async with lock:
        conn = get_connection()
        try:
            current = get_chat(conn, chat_id)
            if current is None:
                return []
            wish_list = current.data.wish_list or WishList()
            for old, new in pairs:
                if wish_list.get(old.url) is None:
                    continue
                wish_list = wish_list.with_item(new)
                applied.append((old, new))
            current.data = current.data.model_copy(update={"wish_list": wish_list})
            save_chat(conn, current)
        finally:
            conn.close()

    notifications = []
    for old, new in applied:
        notification = decide(old.price, new.price, new.name)
        if notification:
            notifications.append(notification)
    return notifications


async def _send_notification(bot, chat_id: int, notification: Notification) -> bool:
    try:
        await bot.send_message(chat_id=chat_id, text=notification.text)
        return True
    except Forbidden:
        logger.warning(f"Chat {chat_id} blocked the bot, skipping notification")
    except Exception as e:
        logger.warning(f"Failed to notify {chat_id}: {e}")
    return False


async def refresh_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Job function called by the job queue every refresh interval."""
    fetch = context.bot_data.get("fetch", fetch_item)
    logger.info("=== Refresh cycle starting ===")
    try:
        conn = get_connection()
        try:
            chats = get_all_chats(conn)
        finally:
            conn.close()

        sent = 0
        for chat in chats:
            try:
                notifications = await refresh_chat(
                    chat.chat_id, fetch, chat_lock(context.bot_data, chat.chat_id)
                )
            except Exception:
                logger.exception(f"Failed to refresh chat {chat.chat_id}")
                continue
            for notification in notifications:
                if await _send_notification(context.bot, chat.chat_id, notification):
                    sent += 1

        logger.info(f"=== Refresh cycle done. {len(chats)} chats, {sent} notifications ===")
    except Exception:
        logger.exception("Refresh cycle failed")
