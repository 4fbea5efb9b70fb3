"""
Locates the server-rendered JSON payload embedded in a page.

Next.js pages (GrabFood, ShopeeFood and most food ordering storefronts)
serialize their page props into
<script id="__NEXT_DATA__" type="application/json">...</script>.
"""
import json
from typing import Any

from bs4 import BeautifulSoup

from app.extraction.errors import NoEmbeddedData
from app.utils.logger import LayerLogger


NEXT_DATA_ID = "__NEXT_DATA__"
NEXT_DATA_TYPE = "application/json"

logger = LayerLogger("blob_locator")


def locate_page_data(html: str) -> Any:
    """
    Find and parse the embedded data blob.

    Args:
        html: Full HTML document text

    Returns:
        The parsed JSON value (usually a dict)

    Raises:
        NoEmbeddedData: marker missing, empty, or not valid JSON
    """
    if not html:
        raise NoEmbeddedData(reason="empty_html")

    soup = BeautifulSoup(html, "lxml")
    script = soup.find("script", id=NEXT_DATA_ID, type=NEXT_DATA_TYPE)

    if script is None:
        logger.log_decision(
            decision="no_embedded_data",
            reason="marker_not_found",
            marker=NEXT_DATA_ID,
        )
        raise NoEmbeddedData(reason="marker_not_found")

    text = script.string if script.string is not None else script.get_text()
    if not text or not text.strip():
        raise NoEmbeddedData(reason="empty_payload")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.log_error(
            f"Embedded payload is not valid JSON: {e.msg}",
            error_type="json_decode_error",
            position=e.pos,
        )
        raise NoEmbeddedData(reason="invalid_json") from e

    logger.log_action(
        "locate_page_data",
        "completed",
        payload_chars=len(text),
    )
    return data
