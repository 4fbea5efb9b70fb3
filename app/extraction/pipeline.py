"""
Menu extraction pipeline.

HTML -> embedded payload -> strategy candidates -> image fallback ->
normalization/dedup -> ExtractionResult.
"""
from typing import Iterable, Optional

from app.extraction.blob_locator import locate_page_data
from app.extraction.errors import ExtractionError, NoItemsDetected
from app.extraction.image_fallback import fill_missing_images
from app.extraction.normalizer import Normalizer
from app.extraction.strategies import StrategyRegistry, default_registry
from app.models.menu import ExistingItem, ExtractionResult, keys_of
from app.utils.logger import LayerLogger


class MenuExtractor:
    """
    Recovers menu items from a food delivery page.

    Synchronous and stateless between calls: one instance can serve any
    number of pages.
    """

    def __init__(
        self,
        registry: Optional[StrategyRegistry] = None,
        normalizer: Optional[Normalizer] = None,
    ):
        self.registry = registry or default_registry()
        self.normalizer = normalizer or Normalizer()
        self.logger = LayerLogger("menu_extractor")

    def extract(
        self,
        html: str,
        page_url: str,
        existing_keys: Optional[Iterable] = None,
        existing_items: Optional[Iterable[ExistingItem]] = None,
    ) -> ExtractionResult:
        """
        Extract menu items from `html` fetched from `page_url`.

        Args:
            html: Full HTML document text
            page_url: Absolute URL of the page (strategy selection and
                relative URL base)
            existing_keys: (name, price) pairs already stored
            existing_items: Stored items, enabling image backfill

        Raises:
            NoEmbeddedData: No parsable embedded payload on the page
            NoItemsDetected: No candidate survived the sanity filter
        """
        self.logger.log_action("extract_menu", "started", url=page_url)

        tree = locate_page_data(html)
        strategy = self.registry.select(page_url)
        candidates = strategy.extract_candidates(tree)

        without_image = sum(1 for item in candidates if not item.image_url)
        if without_image:
            self.logger.log_fallback(
                from_source="embedded_data",
                to_source="img_tags",
                reason="items_without_image",
                url=page_url,
                items=without_image,
            )
            fill_missing_images(html, page_url, candidates)

        existing_items = list(existing_items or ())
        batch = self.normalizer.normalize(
            candidates,
            page_url,
            existing_keys=keys_of(existing_keys),
            existing_items=existing_items,
        )

        if batch.filtered_count == 0:
            self.logger.log_decision(
                decision="no_items_detected",
                reason="no_candidate_passed_filter",
                url=page_url,
                candidates=len(candidates),
                source=strategy.platform.value,
            )
            raise NoItemsDetected(candidates=len(candidates))

        result = ExtractionResult(
            page_url=page_url,
            source=strategy.platform,
            items=batch.items,
            skipped_count=batch.skipped_count,
            backfill=batch.backfill,
        )

        self.logger.log_extraction_summary(
            source=strategy.platform.value,
            accepted=len(result.items),
            skipped=result.skipped_count,
            with_images=result.with_images,
            url=page_url,
        )
        return result

    def try_extract(
        self,
        html: str,
        page_url: str,
        existing_keys: Optional[Iterable] = None,
        existing_items: Optional[Iterable[ExistingItem]] = None,
    ) -> ExtractionResult:
        """Like `extract`, but reports terminal failures on the result."""
        try:
            return self.extract(html, page_url, existing_keys, existing_items)
        except ExtractionError as e:
            self.logger.log_error(e.message, error_type=e.code, url=page_url)
            return ExtractionResult(
                page_url=page_url,
                error=e.message,
                error_code=e.code,
            )
