"""Extraction package initialization."""
from app.extraction.errors import ExtractionError, NoEmbeddedData, NoItemsDetected, ImageFetchFailed
from app.extraction.pipeline import MenuExtractor
from app.extraction.strategies import (
    ExtractionStrategy,
    GenericStrategy,
    GrabFoodStrategy,
    ShopeeFoodStrategy,
    StrategyRegistry,
    default_registry,
)

__all__ = [
    "ExtractionError",
    "NoEmbeddedData",
    "NoItemsDetected",
    "ImageFetchFailed",
    "MenuExtractor",
    "ExtractionStrategy",
    "GenericStrategy",
    "GrabFoodStrategy",
    "ShopeeFoodStrategy",
    "StrategyRegistry",
    "default_registry",
]
