"""
Menu Crawler - FastAPI Application
Main entry point with REST API endpoints.
"""
import re
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from app.config import config
from app.utils.logger import get_logger, set_trace_id
from app.adapters.page_fetcher import PageFetcher, PageFetchError
from app.extraction.errors import ExtractionError
from app.extraction.pipeline import MenuExtractor
from app.models.menu import ExistingItem, ExtractionResult, ImageBackfill


VERSION = "1.0.0"

# Initialize FastAPI app
app = FastAPI(
    title="Menu Crawler",
    description="Extracts menu items from food delivery pages for event ordering",
    version=VERSION,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services
page_fetcher = PageFetcher()
menu_extractor = MenuExtractor()

logger = get_logger("main")

HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)


# Request/Response models
class IngestRequest(BaseModel):
    """Request model for crawling a menu page into an event."""
    model_config = ConfigDict(populate_by_name=True)

    url: Optional[str] = None
    event_id: Optional[str] = Field(default=None, alias="eventId")
    existing_items: List[ExistingItem] = Field(default_factory=list)


class ExtractRequest(BaseModel):
    """Request model for extracting a menu from already fetched HTML."""
    url: str
    html: str
    existing_items: List[ExistingItem] = Field(default_factory=list)


class MenuResponse(BaseModel):
    """Response model for menu extraction."""
    ok: bool = True
    url: str
    event_id: Optional[str] = None
    source: str
    inserted: int
    skipped: int
    items: list
    backfill: List[ImageBackfill] = Field(default_factory=list)
    sample: list
    trace_id: str


def _to_response(result: ExtractionResult, trace_id: str, event_id: Optional[str] = None) -> MenuResponse:
    rows = [item.to_row() for item in result.items]
    if event_id:
        rows = [{"event_id": event_id, **row, "source_url": result.page_url, "is_available": True} for row in rows]
    return MenuResponse(
        url=result.page_url,
        event_id=event_id,
        source=result.source.value,
        inserted=len(rows),
        skipped=result.skipped_count,
        items=rows,
        backfill=result.backfill,
        sample=rows[:5],
        trace_id=trace_id,
    )


async def _extract(html: str, url: str, existing_items: List[ExistingItem]) -> ExtractionResult:
    try:
        return await run_in_threadpool(
            menu_extractor.extract,
            html,
            url,
            None,
            existing_items,
        )
    except ExtractionError as e:
        logger.warning("menu_extraction_failed", error=e.message, code=e.code, url=url)
        raise HTTPException(status_code=422, detail=e.message)


# API Routes
@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": VERSION}


@app.post("/api/crawl/ingest", response_model=MenuResponse)
async def crawl_ingest(request: IngestRequest):
    """
    Fetch a menu page and extract its items for an event.

    Returns the rows to insert; storing them is up to the caller.
    """
    trace_id = set_trace_id()

    if not request.url or not request.event_id:
        raise HTTPException(status_code=400, detail="Missing url or eventId")
    if not HTTP_URL.match(request.url):
        raise HTTPException(status_code=400, detail="Invalid URL")

    logger.info(
        "crawl_ingest_request",
        url=request.url,
        event_id=request.event_id,
        existing_items=len(request.existing_items),
        trace_id=trace_id
    )

    try:
        html = await page_fetcher.fetch(request.url)
    except PageFetchError as e:
        raise HTTPException(status_code=502, detail=e.message)

    try:
        result = await _extract(html, request.url, request.existing_items)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("crawl_ingest_error", error=str(e), url=request.url)
        raise HTTPException(status_code=500, detail=str(e) or "Unexpected error")

    return _to_response(result, trace_id, event_id=request.event_id)


@app.post("/api/crawl/extract", response_model=MenuResponse)
async def crawl_extract(request: ExtractRequest):
    """Extract menu items from caller-supplied HTML (no network access)."""
    trace_id = set_trace_id()

    if not HTTP_URL.match(request.url):
        raise HTTPException(status_code=400, detail="Invalid URL")

    logger.info("crawl_extract_request", url=request.url, html_length=len(request.html), trace_id=trace_id)

    try:
        result = await _extract(request.html, request.url, request.existing_items)
    except HTTPException:
        raise
    except Exception as e:
        logger.error("crawl_extract_error", error=str(e), url=request.url)
        raise HTTPException(status_code=500, detail=str(e) or "Unexpected error")

    return _to_response(result, trace_id)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
