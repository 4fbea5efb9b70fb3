"""
Normalization and deduplication of candidate menu items.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from app.config import config
from app.extraction.image_fallback import resolve_url
from app.models.menu import DedupKey, ExistingItem, ExtractedItem, ImageBackfill
from app.utils.logger import LayerLogger


STORAGE_PATH_MARKER = "/storage/v1/object/public/"


def is_storage_url(url: Optional[str]) -> bool:
    """True if the image is already re-hosted on our object storage."""
    return bool(url) and STORAGE_PATH_MARKER in url


@dataclass
class NormalizedBatch:
    """Output of one normalization pass."""
    items: List[ExtractedItem] = field(default_factory=list)
    skipped_count: int = 0
    filtered_count: int = 0  # candidates that passed the sanity filter
    backfill: List[ImageBackfill] = field(default_factory=list)


class Normalizer:
    """
    Filters, truncates, resolves and deduplicates candidate items.

    Steps, in order:
    1. keep items with price > 0 and a non-empty name of at most
       `max_name_length` characters
    2. truncate to `max_items` in discovery order
    3. resolve image URLs against the page URL
    4. drop repeated DedupKeys within the batch (first one wins)
    5. drop items whose DedupKey already exists, counting them as skipped
       and collecting image backfills for existing items
    """

    def __init__(
        self,
        max_items: Optional[int] = None,
        max_name_length: Optional[int] = None,
    ):
        self.max_items = max_items if max_items is not None else config.MAX_ITEMS
        self.max_name_length = (
            max_name_length if max_name_length is not None else config.MAX_NAME_LENGTH
        )
        self.logger = LayerLogger("normalizer")

    def accept(self, item: ExtractedItem) -> bool:
        name = (item.name or "").strip()
        return bool(name) and len(item.name) <= self.max_name_length and item.price > 0

    def normalize(
        self,
        candidates: Sequence[ExtractedItem],
        page_url: str,
        existing_keys: Optional[Iterable[DedupKey]] = None,
        existing_items: Optional[Iterable[ExistingItem]] = None,
    ) -> NormalizedBatch:
        accepted = [item for item in candidates if self.accept(item)]
        filtered_count = len(accepted)
        accepted = accepted[: self.max_items]

        for item in accepted:
            if item.image_url:
                item.image_url = resolve_url(item.image_url, page_url)

        unique: List[ExtractedItem] = []
        seen = set()
        for item in accepted:
            key = item.dedup_key
            if key in seen:
                continue
            seen.add(key)
            unique.append(item)

        existing_by_key: Dict[DedupKey, ExistingItem] = {}
        for existing in existing_items or ():
            existing_by_key.setdefault(existing.dedup_key, existing)
        known = set(existing_keys or ()) | set(existing_by_key)

        batch = NormalizedBatch(filtered_count=filtered_count)
        for item in unique:
            key = item.dedup_key
            if key not in known:
                batch.items.append(item)
                continue

            batch.skipped_count += 1
            existing = existing_by_key.get(key)
            if existing is not None and item.image_url and not is_storage_url(existing.image_url):
                if existing.image_url != item.image_url:
                    batch.backfill.append(ImageBackfill(
                        name=existing.name,
                        price=existing.price,
                        image_url=item.image_url,
                    ))

        self.logger.log_action(
            "normalize",
            "completed",
            candidates=len(candidates),
            passed_filter=filtered_count,
            truncated_to=len(accepted),
            unique=len(unique),
            to_insert=len(batch.items),
            skipped=batch.skipped_count,
            backfill=len(batch.backfill),
        )
        return batch
