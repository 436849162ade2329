"""Data models for the wishlist watcher."""

import json
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

DEFAULT_NAME = "noname"


class ChatDataError(ValueError):
    """Stored chat data could not be decoded."""


class ItemNotFound(LookupError):
    """A callback referenced an item that is no longer in the wishlist."""


class Item(BaseModel):
    """A tracked product. Two items are the same item when their URLs match."""

    model_config = ConfigDict(frozen=True)

    url: str
    name: str = DEFAULT_NAME
    price: Decimal = Decimal(0)
    quantity: int = 0

    @field_validator("price", mode="before")
    @classmethod
    def _price_from_float(cls, value):
        # 80.5 must come back as Decimal("80.5"), not the binary expansion
        if isinstance(value, float):
            return Decimal(str(value))
        return value

    @field_serializer("price", when_used="json")
    def _price_as_number(self, price: Decimal) -> int | float:
        return int(price) if price == price.to_integral_value() else float(price)

    def __eq__(self, other):
        if not isinstance(other, Item):
            return NotImplemented
        return self.url == other.url

    def __hash__(self):
        return hash(self.url)


class WishList(BaseModel):
    """Tracked items of one chat, keyed by URL in insertion order."""

    model_config = ConfigDict(frozen=True)

    items: dict[str, Item] = Field(default_factory=dict)

    @field_validator("items", mode="before")
    @classmethod
    def _key_by_url(cls, value):
        if isinstance(value, dict):
            return value
        by_url: dict[str, Item] = {}
        for item in value:
            if not isinstance(item, Item):
                item = Item.model_validate(item)
            by_url[item.url] = item
        return by_url

    @field_serializer("items")
    def _items_as_list(self, items: dict[str, Item]) -> list[Item]:
        return list(items.values())

    def get(self, url: str) -> Optional[Item]:
        return self.items.get(url)

    def with_item(self, item: Item) -> "WishList":
        """Return a copy holding ``item``, replacing any item with the same URL."""
        items = dict(self.items)
        items[item.url] = item
        return WishList(items=items)

    def without(self, url: str) -> "WishList":
        items = {u: i for u, i in self.items.items() if u != url}
        return WishList(items=items)

    def __len__(self) -> int:
        return len(self.items)


class ChatData(BaseModel):
    """Per-chat state stored as a JSON document in the chats table."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    wish_list: Optional[WishList] = Field(default=None, alias="wishList")

    def with_item(self, item: Item) -> "ChatData":
        wish_list = self.wish_list or WishList()
        return self.model_copy(update={"wish_list": wish_list.with_item(item)})

    def without_item(self, url: str) -> "ChatData":
        if self.wish_list is None:
            return self
        return self.model_copy(update={"wish_list": self.wish_list.without(url)})

    def to_db(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_db(cls, raw: Optional[str]) -> "ChatData":
        """Decode a stored document.

        Older rows hold the document wrapped in a JSON string literal
        (encoded twice); those are unwrapped before parsing.
        """
        if not raw:
            return cls()
        try:
            text = raw.strip()
            if text.startswith('"'):
                text = json.loads(text)
            return cls.model_validate_json(text)
        except ValueError as e:
            raise ChatDataError(f"Malformed chat data: {e}") from e


@dataclass
class Chat:
    chat_id: int
    data: ChatData = field(default_factory=ChatData)
    id: Optional[int] = None


@dataclass
class Script:
    pattern: str  # regex searched in the item URL
    script: str  # extraction script, see extraction.scripts
    id: Optional[int] = None

    def __str__(self) -> str:
        return f"{self.pattern}\n{self.script}"
