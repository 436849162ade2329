"""Fetch item pages and turn them into Items using the stored scripts."""

import logging
from typing import Optional

import requests
from bs4 import BeautifulSoup

from config import REQUEST_TIMEOUT, USER_AGENT
from db import get_all_scripts, get_connection
from extraction.scripts import apply_script, find_script
from models import Item, Script

logger = logging.getLogger(__name__)

_session: Optional[requests.Session] = None


def _get_session() -> requests.Session:
    global _session
    if _session is None:
        _session = requests.Session()
        _session.headers.update({
            "User-Agent": USER_AGENT,
            "Accept-Language": "ru-RU,ru;q=0.9,en-US;q=0.8,en;q=0.7",
        })
    return _session


def fetch_page(url: str) -> BeautifulSoup:
    """GET ``url`` and parse it. HTTP and network errors propagate."""
    resp = _get_session().get(url, timeout=REQUEST_TIMEOUT)
    resp.raise_for_status()
    resp.encoding = resp.apparent_encoding or "utf-8"
    return BeautifulSoup(resp.text, "lxml")


def fetch_item(url: str, scripts: Optional[list[Script]] = None) -> Item:
    """Fetch ``url`` and extract an Item with the first matching script.

    Raises ScriptNotFound when no script pattern matches the URL. The
    returned Item always carries ``url`` unchanged.
    """
    if scripts is None:
        conn = get_connection()
        try:
            scripts = get_all_scripts(conn)
        finally:
            conn.close()

    script = find_script(scripts, url)
    soup = fetch_page(url)
    item = apply_script(script.script, url, soup)
    logger.info(f"Fetched {url}: {item.name} = {item.price} (qty {item.quantity})")
    return item
