"""
SQL Generator for the Menu Crawler.
Turns extracted menu items into an idempotent SQL import script for the
drinks table.
"""
from typing import Any, List, Optional, Sequence, Union

from app.extraction.normalizer import STORAGE_PATH_MARKER
from app.models.menu import ExtractedItem
from app.utils.logger import LayerLogger


def sql_literal(value: Any) -> str:
    """
    Quote a value as a SQL string literal.

    None becomes NULL; single quotes are doubled.
    """
    if value is None:
        return "NULL"
    return "'" + str(value).replace("'", "''") + "'"


def sql_number(value: Union[int, float]) -> str:
    """Render a price without a trailing .0 for whole numbers."""
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def _field(item: Union[ExtractedItem, dict], name: str) -> Optional[Any]:
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


class SQLGenerator:
    """
    Generates INSERT / UPDATE statements for `public.drinks`.

    Inserts are guarded by NOT EXISTS on (event_id, lower(trim(name)),
    price), so re-running a script never duplicates a menu entry.
    """

    TABLE = "public.drinks"

    def __init__(self):
        self.logger = LayerLogger("sql_generator")

    def generate_inserts(
        self,
        event_id: str,
        items: Sequence[Union[ExtractedItem, dict]],
        source_url: Optional[str],
    ) -> str:
        ev = sql_literal(event_id)
        src = sql_literal(source_url)

        lines: List[str] = ["-- Insert crawled drinks", "BEGIN;"]
        for item in items:
            name = sql_literal(_field(item, "name"))
            price = sql_number(_field(item, "price"))
            category = sql_literal(_field(item, "category") or None)
            description = sql_literal(_field(item, "description") or None)
            image_url = sql_literal(_field(item, "image_url") or None)
            lines.append(
                f"INSERT INTO {self.TABLE} (event_id, name, price, category, description, image_url, source_url, is_available)"
                f" SELECT {ev}, {name}, {price}, {category}, {description}, {image_url}, {src}, true"
                f" WHERE NOT EXISTS (SELECT 1 FROM {self.TABLE} d WHERE d.event_id = {ev}"
                f" AND lower(trim(d.name)) = lower(trim({name})) AND d.price = {price});"
            )
        lines.append("COMMIT;")

        self.logger.log_action("generate_inserts", "completed", event_id=event_id, statements=len(items))
        return "\n".join(lines) + "\n"

    def generate_image_updates(
        self,
        event_id: str,
        items: Sequence[Union[ExtractedItem, dict]],
    ) -> str:
        """
        UPDATE statements pointing existing rows at the items' images,
        for rows whose image is missing or not yet on storage.
        """
        ev = sql_literal(event_id)

        lines: List[str] = ["-- Update existing rows with Storage image URLs", "BEGIN;"]
        count = 0
        for item in items:
            image = _field(item, "image_url")
            if not image:
                continue
            name = sql_literal(_field(item, "name"))
            price = sql_number(_field(item, "price"))
            lines.append(
                f"UPDATE {self.TABLE} SET image_url = {sql_literal(image)}"
                f" WHERE event_id = {ev} AND lower(trim(name)) = lower(trim({name})) AND price = {price}"
                f" AND (image_url IS NULL OR image_url NOT LIKE '%{STORAGE_PATH_MARKER}%');"
            )
            count += 1
        lines.append("COMMIT;")

        self.logger.log_action("generate_image_updates", "completed", event_id=event_id, statements=count)
        return "\n".join(lines) + "\n"

    def generate(
        self,
        event_id: str,
        items: Sequence[Union[ExtractedItem, dict]],
        source_url: Optional[str],
        include_image_updates: bool = False,
    ) -> str:
        """Full import script; image updates, when requested, come first."""
        sql = self.generate_inserts(event_id, items, source_url)
        if include_image_updates:
            sql = self.generate_image_updates(event_id, items) + sql
        return sql
