"""Decides which price changes are worth a message."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


def format_price(price: Decimal) -> str:
    return f"{price:,}"


@dataclass
class Notification:
    change_type: str  # 'price' | 'gone'
    item_name: str
    old_price: Decimal
    new_price: Decimal

    @property
    def text(self) -> str:
        if self.change_type == "gone":
            return f"Всё, \"{self.item_name}\" больше нет в продаже. Надо было брать раньше..."
        return (
            f"Цена упала!\n"
            f"Сейчас \"{self.item_name}\" стоит:\n"
            f"{format_price(self.new_price)}"
        )


def decide(old_price: Decimal, new_price: Decimal, item_name: str) -> Optional[Notification]:
    """Compare the price before and after a refresh.

    A price that falls to 0 from a known value means the item disappeared.
    An item with no previous price (0) never triggers a message.
    """
    if old_price != 0 and new_price == 0:
        return Notification("gone", item_name, old_price, new_price)
    if new_price < old_price:
        return Notification("price", item_name, old_price, new_price)
    return None
