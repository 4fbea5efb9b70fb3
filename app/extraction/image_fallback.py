"""
Image fallback resolution from raw <img> tags.

When the structured payload yields no image for an item, the rendered
HTML often still carries one whose alt text is the item name.
"""
from typing import List, Optional, Sequence
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from app.models.menu import ExtractedItem, ImgTag
from app.utils.logger import LayerLogger


logger = LayerLogger("image_fallback")


def resolve_url(url: Optional[str], base: Optional[str]) -> Optional[str]:
    """
    Resolve `url` against `base`.

    Returns `url` unchanged when it cannot be resolved (malformed URL or
    a base that is not absolute).
    """
    if not url:
        return url
    try:
        parsed_base = urlparse(base or "")
        if not (parsed_base.scheme and parsed_base.netloc):
            return url
        return urljoin(base, url)
    except ValueError:
        return url


def _last_srcset_candidate(srcset: str) -> Optional[str]:
    """Last URL of a srcset list, conventionally the largest variant."""
    candidates = [part.strip().split(" ")[0] for part in srcset.split(",")]
    candidates = [c for c in candidates if c]
    return candidates[-1] if candidates else None


def extract_img_tags(html: str) -> List[ImgTag]:
    """
    Every <img> with a usable source, in document order.

    Source preference: src, data-src, then the last srcset/data-srcset
    candidate.
    """
    if not html:
        return []

    soup = BeautifulSoup(html, "lxml")
    tags = []
    for img in soup.find_all("img"):
        src = img.get("src") or img.get("data-src")
        if not src:
            srcset = img.get("srcset") or img.get("data-srcset")
            if srcset:
                src = _last_srcset_candidate(srcset)
        if src:
            tags.append(ImgTag(alt=img.get("alt") or "", src=src))
    return tags


def match_image(name: str, tags: Sequence[ImgTag]) -> Optional[ImgTag]:
    """First tag whose alt text contains the name, or is contained by it."""
    needle = (name or "").strip().lower()
    if not needle:
        return None
    for tag in tags:
        alt = tag.alt.strip().lower()
        if not alt:
            continue
        if needle in alt or alt in needle:
            return tag
    return None


def fill_missing_images(
    html: str,
    page_url: str,
    items: Sequence[ExtractedItem],
    tags: Optional[Sequence[ImgTag]] = None,
) -> int:
    """
    Give image-less items an image matched from the page's <img> tags.

    Items that already have an image are never touched. Returns the
    number of items filled.
    """
    missing = [item for item in items if not item.image_url]
    if not missing:
        return 0

    if tags is None:
        tags = extract_img_tags(html)
    if not tags:
        logger.log_decision(
            decision="skip_image_fallback",
            reason="no_img_tags",
            url=page_url,
        )
        return 0

    filled = 0
    for item in missing:
        tag = match_image(item.name, tags)
        if tag is not None:
            item.image_url = resolve_url(tag.src, page_url)
            filled += 1

    logger.log_action(
        "image_fallback",
        "completed",
        url=page_url,
        missing=len(missing),
        filled=filled,
        img_tags=len(tags),
    )
    return filled
