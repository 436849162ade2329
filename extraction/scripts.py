"""Extraction scripts: URL pattern matching and CSS-selector based parsing.

A script is plain text, one field per line::

    # comments and blank lines are ignored
    name: h1.product-title
    price: span.price
    quantity: div.stock @data-qty

``@attr`` reads an attribute instead of the element text. Fields that are
missing from the script or from the page keep the Item defaults, so a page
without a price reads as price 0.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

from bs4 import BeautifulSoup

from models import Item, Script

logger = logging.getLogger(__name__)

FIELDS = ("name", "price", "quantity")

_LINE_RE = re.compile(r"^(?P<field>\w+)\s*:\s*(?P<css>.+?)(?:\s+@(?P<attr>[\w\-:]+))?\s*$")
_NUMBER_RE = re.compile(r"\d[\d\s.,]*")
_INT_RE = re.compile(r"\d+")


class ScriptNotFound(Exception):
    """No stored script pattern matches the URL."""


class ScriptError(ValueError):
    """Script text could not be parsed."""


@dataclass
class Selector:
    css: str
    attr: Optional[str] = None


def parse_script(text: str) -> dict[str, Selector]:
    selectors: dict[str, Selector] = {}
    for lineno, raw in enumerate(text.splitlines(), 1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        match = _LINE_RE.match(line)
        if not match:
            raise ScriptError(f"line {lineno}: expected 'field: selector', got {line!r}")
        name = match.group("field").lower()
        if name not in FIELDS:
            raise ScriptError(f"line {lineno}: unknown field {name!r}")
        selectors[name] = Selector(match.group("css"), match.group("attr"))
    return selectors


def find_script(scripts: list[Script], url: str) -> Script:
    """First script whose pattern is found in ``url``."""
    for script in scripts:
        try:
            if re.search(script.pattern, url):
                return script
        except re.error as e:
            logger.warning(f"Skipping script {script.id} with bad pattern {script.pattern!r}: {e}")
    raise ScriptNotFound(url)


def extract_price(text: str) -> Decimal:
    """Parse price text like '1 299,50 ₽' or '$1,299.50' → Decimal('1299.50')."""
    if not text:
        return Decimal(0)
    match = _NUMBER_RE.search(text.replace("\xa0", " "))
    if not match:
        return Decimal(0)
    number = re.sub(r"\s", "", match.group()).rstrip(".,")
    if "," in number and "." in number:
        # Whichever separator comes last is the decimal one
        if number.rfind(",") > number.rfind("."):
            number = number.replace(".", "").replace(",", ".")
        else:
            number = number.replace(",", "")
    elif "," in number:
        head, _, tail = number.rpartition(",")
        if len(tail) <= 2 and "," not in head:
            number = f"{head}.{tail}"
        else:
            number = number.replace(",", "")
    elif number.count(".") > 1:
        number = number.replace(".", "")
    try:
        return Decimal(number)
    except InvalidOperation:
        return Decimal(0)


def extract_quantity(text: str) -> int:
    match = _INT_RE.search(text or "")
    return int(match.group()) if match else 0


def _select_value(soup: BeautifulSoup, selector: Selector) -> Optional[str]:
    el = soup.select_one(selector.css)
    if el is None:
        return None
    if selector.attr:
        value = el.get(selector.attr)
        return str(value).strip() if value is not None else None
    return el.get_text(" ", strip=True)


def apply_script(text: str, url: str, soup: BeautifulSoup) -> Item:
    """Run script ``text`` against a parsed page and build the Item for ``url``."""
    selectors = parse_script(text)
    fields: dict = {}

    if "name" in selectors:
        name = _select_value(soup, selectors["name"])
        if name:
            fields["name"] = name
    if "price" in selectors:
        fields["price"] = extract_price(_select_value(soup, selectors["price"]) or "")
    if "quantity" in selectors:
        fields["quantity"] = extract_quantity(_select_value(soup, selectors["quantity"]) or "")

    return Item(url=url, **fields)
