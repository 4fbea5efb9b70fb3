"""
Menu item models for the Menu Crawler.
These models are the contract between the extraction engine and its
callers (HTTP API, CLI, SQL export, image storage).
"""
from typing import Iterable, List, NamedTuple, Optional, Union
from enum import Enum
from pydantic import BaseModel, Field


class SourcePlatform(str, Enum):
    """Platform a menu page was recognised as."""
    GENERIC = "generic"
    GRABFOOD = "grabfood"
    SHOPEEFOOD = "shopeefood"


class DedupKey(NamedTuple):
    """
    Identity of a menu entry: lowercase trimmed name plus numeric price.

    Exact match only. Trivial name variants ("Tea" / "Tea.") are
    separate entries.
    """
    name: str
    price: float

    @classmethod
    def of(cls, name: str, price: float) -> "DedupKey":
        return cls((name or "").strip().lower(), float(price))


class ExtractedItem(BaseModel):
    """One menu entry recovered from a page."""
    name: str
    price: Union[int, float]
    description: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[str] = None

    # Set by the image storage step
    local_image: Optional[str] = None
    storage_path: Optional[str] = None

    @property
    def dedup_key(self) -> DedupKey:
        return DedupKey.of(self.name, self.price)

    def to_row(self) -> dict:
        """Plain dict in the crawl payload shape (optional keys dropped when unset)."""
        row = {
            "name": self.name,
            "price": self.price,
            "description": self.description,
            "image_url": self.image_url,
            "category": self.category,
        }
        if self.local_image:
            row["local_image"] = self.local_image
        if self.storage_path:
            row["storage_path"] = self.storage_path
        return row


class ExistingItem(BaseModel):
    """An item the caller already holds, used for dedup and image backfill."""
    name: str
    price: Union[int, float]
    image_url: Optional[str] = None

    @property
    def dedup_key(self) -> DedupKey:
        return DedupKey.of(self.name, self.price)


class ImageBackfill(BaseModel):
    """Existing item whose image can be replaced by a freshly extracted one."""
    name: str
    price: Union[int, float]
    image_url: str


class ImgTag(BaseModel):
    """An <img> tag reduced to its alt text and best source URL."""
    alt: str = ""
    src: str


class ExtractionResult(BaseModel):
    """
    Outcome of one extraction call.

    `items` are ready to insert; `skipped_count` counts items that
    matched an existing dedup key. When `error_code` is set the call
    failed and `items` is empty.
    """
    page_url: str
    source: SourcePlatform = SourcePlatform.GENERIC
    items: List[ExtractedItem] = Field(default_factory=list)
    skipped_count: int = 0
    backfill: List[ImageBackfill] = Field(default_factory=list)
    error: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_code is None

    @property
    def with_images(self) -> int:
        return sum(1 for item in self.items if item.image_url)


def keys_of(existing: Iterable) -> set:
    """
    Build a set of DedupKeys from existing items, (name, price) pairs
    or DedupKeys.
    """
    keys = set()
    for entry in existing or ():
        if isinstance(entry, (ExistingItem, ExtractedItem)):
            keys.add(entry.dedup_key)
        else:
            name, price = entry
            keys.add(DedupKey.of(name, price))
    return keys
