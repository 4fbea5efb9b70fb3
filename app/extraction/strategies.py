"""
Source strategies for menu extraction.

A strategy turns a parsed page payload into candidate menu items. All
strategies share the same tree walk and field heuristics; they differ
in what disqualifies a node (sold out, inactive) and in how a category
name is read from an ancestor.

The StrategyRegistry picks a strategy from the page host. New platforms
are added by registering another strategy; the walker is untouched.
"""
from typing import Any, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from app.config import config
from app.extraction import heuristics
from app.extraction.tree_walker import TraversalNode, iter_objects
from app.models.menu import ExtractedItem, SourcePlatform
from app.utils.logger import LayerLogger


class ExtractionStrategy:
    """
    Generic strategy: any object with a name and a price is a candidate.

    Subclasses override `host_markers`, `is_unavailable` and
    `category_name`.
    """
    platform: SourcePlatform = SourcePlatform.GENERIC
    host_markers: Tuple[str, ...] = ()

    def __init__(self, minor_unit_threshold: Optional[float] = None):
        self.minor_unit_threshold = (
            minor_unit_threshold
            if minor_unit_threshold is not None
            else config.MINOR_UNIT_THRESHOLD
        )

    def matches(self, host: str) -> bool:
        host = (host or "").lower()
        return any(marker in host for marker in self.host_markers)

    def is_unavailable(self, node: dict) -> bool:
        return False

    def category_name(self, ancestor: dict) -> Optional[str]:
        return heuristics.extract_name(ancestor)

    def build_item(self, entry: TraversalNode) -> Optional[ExtractedItem]:
        """Candidate item for one object node, or None if it does not qualify."""
        node = entry.node
        name = heuristics.extract_name(node)
        if not name:
            return None

        price = heuristics.extract_price(node, self.minor_unit_threshold)
        if price is None:
            return None

        if self.is_unavailable(node):
            return None

        return ExtractedItem(
            name=name,
            price=price,
            description=heuristics.extract_description(node),
            image_url=heuristics.extract_image(node),
            category=heuristics.infer_category(entry.ancestors, name, self.category_name),
        )

    def extract_candidates(self, tree: Any) -> List[ExtractedItem]:
        """All candidate items in discovery (pre-order) order."""
        candidates = []
        for entry in iter_objects(tree):
            item = self.build_item(entry)
            if item is not None:
                candidates.append(item)
        return candidates


class GenericStrategy(ExtractionStrategy):
    """Fallback for any host: no availability filtering."""


class GrabFoodStrategy(ExtractionStrategy):
    """GrabFood merchant pages (food.grab.com, www.grab.com)."""
    platform = SourcePlatform.GRABFOOD
    host_markers = ("grab.com",)

    def is_unavailable(self, node: dict) -> bool:
        return heuristics.grabfood_unavailable(node)

    def category_name(self, ancestor: dict) -> Optional[str]:
        return heuristics.platform_category_name(ancestor)


class ShopeeFoodStrategy(ExtractionStrategy):
    """ShopeeFood, formerly Foody (shopeefood.vn, foody.vn)."""
    platform = SourcePlatform.SHOPEEFOOD
    host_markers = ("shopeefood", "foody.vn")

    def is_unavailable(self, node: dict) -> bool:
        return heuristics.shopeefood_unavailable(node)

    def category_name(self, ancestor: dict) -> Optional[str]:
        return heuristics.platform_category_name(ancestor)


def host_of(page_url: str) -> str:
    """Lowercased host (with port) of `page_url`, or "" if unparsable."""
    try:
        return (urlparse(page_url or "").netloc or "").lower()
    except ValueError:
        return ""


class StrategyRegistry:
    """
    Ordered host-predicate -> strategy registry.

    The first strategy whose `matches(host)` is true wins; the default
    strategy is used when none match.
    """

    def __init__(
        self,
        strategies: Optional[Sequence[ExtractionStrategy]] = None,
        default: Optional[ExtractionStrategy] = None,
    ):
        self.strategies: List[ExtractionStrategy] = list(strategies or [])
        self.default = default or GenericStrategy()
        self.logger = LayerLogger("strategy_selector")

    def register(self, strategy: ExtractionStrategy, first: bool = False) -> None:
        if first:
            self.strategies.insert(0, strategy)
        else:
            self.strategies.append(strategy)

    def select(self, page_url: str) -> ExtractionStrategy:
        host = host_of(page_url)
        for strategy in self.strategies:
            if strategy.matches(host):
                self.logger.log_decision(
                    decision=f"use_{strategy.platform.value}_strategy",
                    reason="host_marker_matched",
                    url=page_url,
                    host=host,
                )
                return strategy

        self.logger.log_decision(
            decision=f"use_{self.default.platform.value}_strategy",
            reason="no_platform_marker",
            url=page_url,
            host=host,
        )
        return self.default


def default_registry(minor_unit_threshold: Optional[float] = None) -> StrategyRegistry:
    return StrategyRegistry(
        strategies=[
            GrabFoodStrategy(minor_unit_threshold),
            ShopeeFoodStrategy(minor_unit_threshold),
        ],
        default=GenericStrategy(minor_unit_threshold),
    )
