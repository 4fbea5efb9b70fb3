"""Adapters package initialization."""
from app.adapters.page_fetcher import PageFetcher, PageFetchError
from app.adapters.image_storage import ImageStorage

__all__ = ["PageFetcher", "PageFetchError", "ImageStorage"]
