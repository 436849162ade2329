#!/usr/bin/env python3
"""Try extraction scripts against a URL without touching any chat.

Handy before adding a rule with /db:
    python check_url.py https://shop.example/item/42
    python check_url.py https://shop.example/item/42 --script draft.txt
"""

import argparse
import logging
import sys

from dotenv import load_dotenv
load_dotenv()

from db import init_db
from extraction import ScriptError, ScriptNotFound, fetch_item
from extraction.page_fetcher import fetch_page
from extraction.scripts import apply_script

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Check what the watcher extracts from a URL")
    parser.add_argument("url", help="Item page URL")
    parser.add_argument(
        "--script", type=str, help="Use the script in this file instead of the stored rules"
    )
    args = parser.parse_args(argv)

    try:
        if args.script:
            with open(args.script, encoding="utf-8") as f:
                script_text = f.read()
            item = apply_script(script_text, args.url, fetch_page(args.url))
        else:
            init_db()
            item = fetch_item(args.url)
    except ScriptNotFound:
        logger.error(f"No stored script matches {args.url}")
        return 1
    except ScriptError as e:
        logger.error(f"Bad script: {e}")
        return 1

    print(f"name:     {item.name}")
    print(f"price:    {item.price}")
    print(f"quantity: {item.quantity}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
