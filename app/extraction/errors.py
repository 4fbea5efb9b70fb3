"""
Errors raised by the menu extraction engine.

Only NoEmbeddedData and NoItemsDetected end an extraction call. Their
`message` is shown to the end user as-is.
"""


class ExtractionError(Exception):
    """Base class for terminal extraction failures."""
    code = "extraction_error"
    message = "Extraction failed"

    def __init__(self, message: str = None, **context):
        self.message = message or self.message
        self.context = context
        super().__init__(self.message)


class NoEmbeddedData(ExtractionError):
    """The page has no parsable embedded JSON payload."""
    code = "no_embedded_data"
    message = "Could not locate embedded data on page"


class NoItemsDetected(ExtractionError):
    """The payload parsed but no candidate survived normalization."""
    code = "no_items_detected"
    message = "No menu items detected"


class ImageFetchFailed(Exception):
    """A single image could not be fetched. Never fatal to a batch."""

    def __init__(self, url: str, reason: str, status_code: int = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Image fetch failed for {url}: {reason}")
