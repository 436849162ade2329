"""Tests for extraction package."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import requests
from bs4 import BeautifulSoup

from db import get_connection, save_script
from extraction.page_fetcher import fetch_item
from extraction.scripts import (
    ScriptError,
    ScriptNotFound,
    apply_script,
    extract_price,
    extract_quantity,
    find_script,
    parse_script,
)
from models import Script

from .conftest import SAMPLE_HTML

SCRIPT = """\
# sample shop
name: h1.title
price: span.price
quantity: div.stock @data-qty
"""


class TestParseScript:
    def test_fields_and_attr(self):
        selectors = parse_script(SCRIPT)
        assert selectors["name"].css == "h1.title"
        assert selectors["name"].attr is None
        assert selectors["quantity"].css == "div.stock"
        assert selectors["quantity"].attr == "data-qty"

    def test_attribute_selector(self):
        selectors = parse_script('price: meta[itemprop="price"] @content')
        assert selectors["price"].css == 'meta[itemprop="price"]'
        assert selectors["price"].attr == "content"

    def test_unknown_field(self):
        with pytest.raises(ScriptError):
            parse_script("color: .c")

    def test_missing_colon(self):
        with pytest.raises(ScriptError):
            parse_script("just a selector")


class TestFindScript:
    def test_first_match_wins(self):
        scripts = [
            Script(pattern=r"other\.example", script="a", id=1),
            Script(pattern=r"shop\.example", script="b", id=2),
            Script(pattern=r"shop", script="c", id=3),
        ]
        assert find_script(scripts, "https://shop.example/x").id == 2

    def test_no_match_raises(self):
        with pytest.raises(ScriptNotFound):
            find_script([Script(pattern="nope", script="")], "https://shop.example/x")

    def test_bad_pattern_is_skipped(self):
        scripts = [Script(pattern="(", script="a", id=1), Script(pattern="shop", script="b", id=2)]
        assert find_script(scripts, "https://shop.example/x").id == 2


class TestExtractPrice:
    def test_space_thousands_comma_decimal(self):
        assert extract_price("1 299,50 ₽") == Decimal("1299.50")

    def test_comma_thousands_dot_decimal(self):
        assert extract_price("$1,299.50") == Decimal("1299.50")

    def test_comma_thousands_only(self):
        assert extract_price("1,299") == Decimal("1299")

    def test_dot_thousands(self):
        assert extract_price("1.299.000 €") == Decimal("1299000")

    def test_nbsp(self):
        assert extract_price("12\xa0500 руб.") == Decimal("12500")

    def test_no_digits(self):
        assert extract_price("нет в наличии") == 0
        assert extract_price("") == 0


class TestExtractQuantity:
    def test_first_integer(self):
        assert extract_quantity("В наличии: 7 шт.") == 7

    def test_none(self):
        assert extract_quantity("много") == 0


class TestApplyScript:
    def test_full_page(self):
        soup = BeautifulSoup(SAMPLE_HTML, "lxml")
        item = apply_script(SCRIPT, "https://shop.example/x", soup)
        assert item.url == "https://shop.example/x"
        assert item.name == "Кофемолка Ручная"
        assert item.price == Decimal("1299.50")
        assert item.quantity == 7

    def test_missing_elements_keep_defaults(self):
        soup = BeautifulSoup("<html><body><p>sold out</p></body></html>", "lxml")
        item = apply_script(SCRIPT, "https://shop.example/x", soup)
        assert item.name == "noname"
        assert item.price == 0
        assert item.quantity == 0


class TestFetchItem:
    def _session(self, html: str = SAMPLE_HTML) -> MagicMock:
        resp = MagicMock()
        resp.text = html
        resp.apparent_encoding = "utf-8"
        session = MagicMock()
        session.get.return_value = resp
        return session

    def test_uses_stored_scripts(self, db_path):
        conn = get_connection()
        save_script(conn, Script(pattern=r"shop\.example", script=SCRIPT))
        conn.close()

        session = self._session()
        with patch("extraction.page_fetcher._get_session", return_value=session):
            item = fetch_item("https://shop.example/x")

        assert item.name == "Кофемолка Ручная"
        assert item.price == Decimal("1299.50")
        session.get.assert_called_once()
        assert session.get.call_args.args[0] == "https://shop.example/x"

    def test_no_script_does_not_fetch(self):
        session = self._session()
        with patch("extraction.page_fetcher._get_session", return_value=session):
            with pytest.raises(ScriptNotFound):
                fetch_item("https://unknown.example/x", scripts=[])
        session.get.assert_not_called()

    def test_http_error_propagates(self):
        session = self._session()
        session.get.return_value.raise_for_status.side_effect = requests.HTTPError("404")
        scripts = [Script(pattern="shop", script=SCRIPT)]
        with patch("extraction.page_fetcher._get_session", return_value=session):
            with pytest.raises(requests.HTTPError):
                fetch_item("https://shop.example/x", scripts=scripts)
