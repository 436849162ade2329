"""Tests for check_url module."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import patch

from bs4 import BeautifulSoup

from check_url import main
from extraction import ScriptNotFound
from models import Item

from .conftest import SAMPLE_HTML


class TestCheckUrl:
    def test_stored_rules(self, db_path, capsys):
        item = Item(url="https://shop.example/x", name="X", price=Decimal("12.5"), quantity=1)
        with patch("check_url.fetch_item", return_value=item) as fetch:
            assert main(["https://shop.example/x"]) == 0
        fetch.assert_called_once_with("https://shop.example/x")
        out = capsys.readouterr().out
        assert "X" in out
        assert "12.5" in out

    def test_no_rule(self, db_path):
        with patch("check_url.fetch_item", side_effect=ScriptNotFound("u")):
            assert main(["https://shop.example/x"]) == 1

    def test_script_file(self, tmp_path, capsys):
        script = tmp_path / "draft.txt"
        script.write_text("name: h1.title\nprice: span.price\n", encoding="utf-8")
        soup = BeautifulSoup(SAMPLE_HTML, "lxml")
        with patch("check_url.fetch_page", return_value=soup):
            assert main(["https://shop.example/x", "--script", str(script)]) == 0
        assert "1299.50" in capsys.readouterr().out

    def test_bad_script_file(self, tmp_path):
        script = tmp_path / "draft.txt"
        script.write_text("colour: .c\n", encoding="utf-8")
        soup = BeautifulSoup(SAMPLE_HTML, "lxml")
        with patch("check_url.fetch_page", return_value=soup):
            assert main(["https://shop.example/x", "--script", str(script)]) == 1
