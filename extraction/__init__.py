"""Turning item URLs into Items with admin-defined extraction scripts."""

from extraction.page_fetcher import fetch_item
from extraction.scripts import ScriptError, ScriptNotFound

__all__ = ["fetch_item", "ScriptError", "ScriptNotFound"]
