"""
Page fetcher adapter for the Menu Crawler.
Downloads the server-rendered HTML of a menu page.
"""
from typing import Optional

import httpx

from app.config import config
from app.utils.logger import LayerLogger


class PageFetchError(Exception):
    """The page could not be downloaded."""

    def __init__(self, url: str, status_code: Optional[int] = None, reason: str = ""):
        self.url = url
        self.status_code = status_code
        self.reason = reason
        if status_code is not None:
            message = f"Fetch failed: {status_code}"
        else:
            message = f"Fetch failed: {reason or 'network error'}"
        self.message = message
        super().__init__(message)


class PageFetcher:
    """
    Fetches menu pages with browser-like headers.

    Pass a `transport` to route requests elsewhere (tests use
    httpx.MockTransport).
    """

    def __init__(
        self,
        timeout: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self.transport = transport
        self.logger = LayerLogger("page_fetcher")

    def _get_headers(self) -> dict:
        """Get request headers mimicking a browser."""
        return {
            "User-Agent": config.USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }

    async def fetch(self, url: str) -> str:
        """
        Fetch the HTML of `url`.

        Raises:
            PageFetchError: non-2xx response or transport failure
        """
        self.logger.log_action("fetch_html", "started", url=url)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                response = await client.get(url, headers=self._get_headers())
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            self.logger.log_error(
                f"Failed to fetch URL: {str(e)}",
                error_type="http_error",
                url=url
            )
            raise PageFetchError(url, reason=str(e)) from e

        if not response.is_success:
            self.logger.log_error(
                f"Unexpected status {response.status_code}",
                error_type="http_status",
                url=url,
                status_code=response.status_code,
            )
            raise PageFetchError(url, status_code=response.status_code)

        html = response.text
        self.logger.log_action(
            "fetch_html",
            "completed",
            url=url,
            status_code=response.status_code,
            content_length=len(html)
        )
        return html
