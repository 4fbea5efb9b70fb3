"""
Field heuristics for menu item extraction.

Every field is recovered by an ordered list of small extractor
functions, tried in sequence until one returns a value. None means
"not present here"; no extractor raises on unexpected shapes.

JSON values seen here are only ever dict, list, str, int/float, bool or
None, so each extractor checks the variant it expects with isinstance.
"""
import math
import re
from functools import partial
from typing import Any, Callable, Iterable, Optional, Sequence

from app.config import config


Extractor = Callable[[dict], Any]

NAME_FIELDS = ("name", "itemName", "title", "displayName")

DIRECT_PRICE_FIELDS = ("price", "unitPrice", "basePrice")
MINOR_UNIT_PRICE_FIELDS = ("priceInMinorUnit", "amountInMinor", "valueInMinor")
NESTED_PRICE_FIELDS = ("value", "amount", "base")
DISPLAY_PRICE_FIELDS = ("displayPrice", "priceText", "formattedPrice")

DIRECT_IMAGE_FIELDS = (
    "imageUrl", "imageURL", "imgUrl", "imgURL", "photoUrl", "photoURL",
    "photoHref", "image", "thumbnailUrl", "thumbUrl", "mediumUrl", "largeUrl",
    "portraitImageUrl", "landscapeImageUrl",
)
IMAGE_OBJECT_URL_FIELDS = (
    "url", "src", "imageUrl", "thumbUrl", "thumbnailUrl", "mediumUrl", "largeUrl",
)
NESTED_IMAGE_FIELDS = ("imageObject", "imageObj", "photo", "picture")

IMAGE_KEY_PATTERN = re.compile(r"image|img|photo|thumb|thumbnail|picture", re.IGNORECASE)
HTTP_URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)
IMAGE_EXTENSION_PATTERN = re.compile(r"\.(png|webp|jpg|jpeg|gif)(\?|#|$)", re.IGNORECASE)

CATEGORY_FALLBACK_FIELDS = ("categoryName", "nameCategory", "title")


# =========================================================================
# SHARED HELPERS
# =========================================================================

def first_match(extractors: Iterable[Extractor], node: dict) -> Any:
    """Return the first non-None result of `extractors` applied to `node`."""
    for extractor in extractors:
        value = extractor(node)
        if value is not None:
            return value
    return None


def as_number(value: Any) -> Optional[float]:
    """
    Finite int/float, excluding booleans.

    JSON integers are unbounded; one too large for a float is no price.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        if not math.isfinite(value):
            return None
    except OverflowError:
        return None
    return value


def as_text(value: Any) -> Optional[str]:
    """Non-empty string, unchanged."""
    if isinstance(value, str) and value:
        return value
    return None


# =========================================================================
# NAME
# =========================================================================

def extract_name(node: Any) -> Optional[str]:
    """First candidate name field holding a string longer than one character."""
    if not isinstance(node, dict):
        return None
    for field in NAME_FIELDS:
        value = node.get(field)
        if isinstance(value, str) and len(value.strip()) > 1:
            return value.strip()
    return None


def extract_description(node: dict) -> Optional[str]:
    value = node.get("description")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


# =========================================================================
# PRICE
# =========================================================================

def direct_price(node: dict) -> Optional[float]:
    for field in DIRECT_PRICE_FIELDS:
        number = as_number(node.get(field))
        if number is not None:
            return number
    return None


def minor_unit_price(node: dict, threshold: float = None) -> Optional[float]:
    """
    Price stored in minor units.

    There is no currency signal in the payload: values at or above
    `threshold` are taken as whole units of a currency without a minor
    unit (VND), anything below as cents of a two-decimal currency.
    """
    if threshold is None:
        threshold = config.MINOR_UNIT_THRESHOLD
    for field in MINOR_UNIT_PRICE_FIELDS:
        number = as_number(node.get(field))
        if number is not None:
            return number if number >= threshold else number / 100
    return None


def nested_price(node: dict) -> Optional[float]:
    price = node.get("price")
    if not isinstance(price, dict):
        return None
    for field in NESTED_PRICE_FIELDS:
        number = as_number(price.get(field))
        if number is not None:
            return number
    return None


def display_price(node: dict) -> Optional[int]:
    """Digits of a formatted price string ("45.000 ₫" -> 45000)."""
    for field in DISPLAY_PRICE_FIELDS:
        value = node.get(field)
        if not isinstance(value, str):
            continue
        digits = re.sub(r"[^0-9]", "", value)
        if not digits:
            continue
        try:
            number = as_number(int(digits))
        except ValueError:  # beyond the interpreter's int digit limit
            number = None
        if number is not None:
            return number
    return None


def price_extractors(minor_unit_threshold: float = None) -> Sequence[Extractor]:
    """Price extractors in priority order."""
    return (
        direct_price,
        partial(minor_unit_price, threshold=minor_unit_threshold),
        nested_price,
        display_price,
    )


def extract_price(node: Any, minor_unit_threshold: float = None) -> Optional[float]:
    """Price in major units, or None when the node carries no price."""
    if not isinstance(node, dict):
        return None
    return first_match(price_extractors(minor_unit_threshold), node)


# =========================================================================
# IMAGE
# =========================================================================

def image_from_value(value: Any) -> Optional[str]:
    """A non-empty string, or the first URL-like field of an image object."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        for field in IMAGE_OBJECT_URL_FIELDS:
            url = as_text(value.get(field))
            if url:
                return url
    return None


def direct_image(node: dict) -> Optional[str]:
    for field in DIRECT_IMAGE_FIELDS:
        url = image_from_value(node.get(field))
        if url:
            return url
    return None


def images_array(node: dict) -> Optional[str]:
    images = node.get("images")
    if not isinstance(images, list):
        return None
    for entry in images:
        url = image_from_value(entry)
        if url:
            return url
    return None


def photos_array(node: dict) -> Optional[str]:
    photos = node.get("photos")
    if not isinstance(photos, list):
        return None
    for entry in photos:
        url = image_from_value(entry)
        if url:
            return url
    return None


def nested_image(node: dict) -> Optional[str]:
    for field in NESTED_IMAGE_FIELDS:
        url = image_from_value(node.get(field))
        if url:
            return url
    return None


def looks_like_image_path(value: str) -> bool:
    return bool(
        HTTP_URL_PATTERN.match(value)
        or value.startswith("/")
        or IMAGE_EXTENSION_PATTERN.search(value)
    )


def image_like_key(node: dict) -> Optional[str]:
    """
    Last resort: any key that looks image related, or any string value
    that is an absolute URL ending in an image extension.

    A string under an image-looking key must itself look like a path or
    URL: keys such as `imageAlt` or `photoId` carry captions and ids.
    """
    for key, value in node.items():
        if IMAGE_KEY_PATTERN.search(key):
            if isinstance(value, dict):
                url = image_from_value(value)
                if url:
                    return url
            if isinstance(value, str) and looks_like_image_path(value):
                return value
        if (
            isinstance(value, str)
            and HTTP_URL_PATTERN.match(value)
            and IMAGE_EXTENSION_PATTERN.search(value)
        ):
            return value
    return None


IMAGE_EXTRACTORS: Sequence[Extractor] = (
    direct_image,
    images_array,
    photos_array,
    nested_image,
    image_like_key,
)


def extract_image(node: Any) -> Optional[str]:
    if not isinstance(node, dict):
        return None
    return first_match(IMAGE_EXTRACTORS, node)


# =========================================================================
# AVAILABILITY
# =========================================================================

def grabfood_unavailable(node: dict) -> bool:
    return (
        node.get("isSoldOut") is True
        or node.get("available") is False
        or node.get("status") == "UNAVAILABLE"
    )


def shopeefood_unavailable(node: dict) -> bool:
    return (
        node.get("isSoldOut") is True
        or node.get("soldOut") is True
        or node.get("available") is False
        or node.get("isAvailable") is False
        or node.get("is_active") is False
    )


# =========================================================================
# CATEGORY
# =========================================================================

def platform_category_name(ancestor: dict) -> Optional[str]:
    """Name of an ancestor, also accepting category-specific fields."""
    name = extract_name(ancestor)
    if name:
        return name
    for field in CATEGORY_FALLBACK_FIELDS:
        value = as_text(ancestor.get(field))
        if value:
            return value
    return None


def infer_category(
    ancestors: Sequence[dict],
    own_name: str,
    namer: Callable[[dict], Optional[str]] = extract_name,
) -> Optional[str]:
    """Nearest ancestor whose name differs from the item's own name."""
    for ancestor in reversed(ancestors):
        name = namer(ancestor)
        if name and name != own_name:
            return name
    return None
