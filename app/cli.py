"""
Command line menu crawler.

Fetches a menu page, extracts its items and writes a JSON payload
and/or an SQL import script. Can also reload a previous JSON payload to
regenerate SQL.
"""
import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import click

from app.adapters.image_storage import ImageStorage
from app.adapters.page_fetcher import PageFetcher, PageFetchError
from app.config import config
from app.extraction.errors import ExtractionError
from app.extraction.normalizer import Normalizer
from app.extraction.pipeline import MenuExtractor
from app.extraction.strategies import host_of
from app.generators.sql_generator import SQLGenerator
from app.models.menu import ExtractedItem


def clamp_limit(limit: Optional[int]) -> int:
    """Item limit bounded to 1..1000, default MAX_ITEMS."""
    if not limit:
        return config.MAX_ITEMS
    return max(1, min(1000, limit))


def build_payload(url: str, host: str, items: List[ExtractedItem]) -> dict:
    return {
        "meta": {
            "source_url": url,
            "host": host,
            "crawled_at": datetime.now(timezone.utc).isoformat(),
            "count": len(items),
        },
        "items": [item.to_row() for item in items],
    }


def load_payload(path: str):
    """Read a crawl payload, returning (source_url, host, items)."""
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    meta = payload.get("meta") or {}
    rows = payload.get("items")
    if not isinstance(rows, list) or not rows:
        raise click.ClickException("No items in JSON")
    items = [ExtractedItem.model_validate(row) for row in rows]
    url = meta.get("source_url") or ""
    host = meta.get("host") or host_of(url)
    return url, host, items


def crawl(url: str, limit: int) -> List[ExtractedItem]:
    """Fetch and extract one page."""
    try:
        html = asyncio.run(PageFetcher().fetch(url))
    except PageFetchError as e:
        raise click.ClickException(e.message)

    extractor = MenuExtractor(normalizer=Normalizer(max_items=limit))
    try:
        result = extractor.extract(html, url)
    except ExtractionError as e:
        raise click.ClickException(e.message)
    return result.items


@click.command()
@click.option("--url", help="Menu page URL to crawl.")
@click.option("--from-json", "from_json", type=click.Path(exists=True, dir_okay=False),
              help="Reuse a previous crawl payload instead of fetching.")
@click.option("--out", default="crawl.json", show_default=True, help="JSON output path.")
@click.option("--format", "fmt", type=click.Choice(["json", "sql", "both"]), default="json", show_default=True)
@click.option("--event-id", help="Event id for SQL inserts.")
@click.option("--sql-out", type=click.Path(dir_okay=False), help="Write SQL here instead of stdout.")
@click.option("--limit", type=int, default=None, help="Maximum items (1-1000).")
@click.option("--download-images", is_flag=True, help="Save item images locally.")
@click.option("--images-dir", default="crawl_images", show_default=True)
@click.option("--storage-upload", is_flag=True, help="Re-host images on Supabase Storage.")
@click.option("--supabase-url", help="Overrides SUPABASE_URL.")
@click.option("--supabase-key", help="Overrides SUPABASE_SERVICE_ROLE_KEY.")
@click.option("--storage-bucket", default=None, help="Storage bucket (default STORAGE_BUCKET).")
def cli(url, from_json, out, fmt, event_id, sql_out, limit, download_images, images_dir,
        storage_upload, supabase_url, supabase_key, storage_bucket):
    """Crawl a food delivery menu page (GrabFood, ShopeeFood or generic Next.js)."""
    if not url and not from_json:
        raise click.UsageError("Provide --url or --from-json")

    limit = clamp_limit(limit)

    if from_json:
        payload_url, host, items = load_payload(from_json)
        url = url or payload_url
    else:
        click.echo(f"Fetching: {url}", err=True)
        items = crawl(url, limit)
        host = host_of(url)

    if download_images:
        click.echo(f"Downloading images to: {images_dir}", err=True)
        asyncio.run(ImageStorage().download_all(items, images_dir, referer=url))

    if storage_upload:
        storage = ImageStorage(
            supabase_url=supabase_url,
            service_key=supabase_key,
            bucket=storage_bucket,
        )
        if not storage.is_configured():
            raise click.ClickException(
                "Missing Supabase credentials for --storage-upload. Provide --supabase-url/--supabase-key "
                "or set SUPABASE_URL/NEXT_PUBLIC_SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY."
            )
        click.echo(f"Uploading images to Supabase Storage bucket: {storage.bucket}", err=True)
        asyncio.run(storage.upload_all(items, folder=event_id or "misc", referer=url))

    if not from_json and fmt in ("json", "both"):
        payload = build_payload(url, host, items)
        Path(out).write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        click.echo(f"Wrote JSON: {out}", err=True)

    if fmt in ("sql", "both"):
        if event_id:
            sql = SQLGenerator().generate(event_id, items, url, include_image_updates=storage_upload)
            if sql_out:
                Path(sql_out).write_text(sql, encoding="utf-8")
                click.echo(f"Wrote SQL: {sql_out}", err=True)
            else:
                click.echo(sql, nl=False)
        else:
            click.echo("Note: --event-id is required to generate SQL inserts.", err=True)

    with_images = sum(1 for item in items if item.image_url)
    click.echo(f"Items: {len(items)} (with images: {with_images})", err=True)


if __name__ == "__main__":
    cli()
