"""
Image storage adapter for the Menu Crawler.

Fetches extracted item images and either saves them locally or
re-hosts them on Supabase Storage. Runs a bounded pool of workers so
the origin server is not flooded; one failing image never stops the
batch and the item simply keeps its original URL.
"""
import asyncio
import hashlib
import re
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence, Tuple

import httpx
from supabase import Client, StorageException, create_client

from app.config import config
from app.extraction.errors import ImageFetchFailed
from app.extraction.image_fallback import resolve_url
from app.extraction.normalizer import is_storage_url
from app.models.menu import ExtractedItem
from app.utils.logger import LayerLogger


HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)
URL_EXTENSION = re.compile(r"\.(png|webp|gif|jpe?g)(\?|#|$)")


def pick_extension(content_type: Optional[str], url: Optional[str] = None) -> str:
    """File extension from the content type, then the URL suffix, default jpg."""
    ct = (content_type or "").lower()
    if "png" in ct:
        return "png"
    if "webp" in ct:
        return "webp"
    if "gif" in ct:
        return "gif"
    if "jpeg" in ct or "jpg" in ct:
        return "jpg"
    if url:
        match = URL_EXTENSION.search(url.lower())
        if match:
            return "jpg" if match.group(1) == "jpeg" else match.group(1)
    return "jpg"


def already_exists(error: Exception) -> bool:
    """Storage reports an existing bucket or object as an error."""
    text = str(error).lower()
    return "already exists" in text or "duplicate" in text


class ImageStorage:
    """
    Bounded-concurrency image downloader / uploader.

    Each worker claims the next unclaimed item index; completion order
    is not guaranteed. No retries.

    Pass `storage_client` to use an existing supabase Client; otherwise
    one is created from the configured URL and service key on upload.
    """

    def __init__(
        self,
        supabase_url: Optional[str] = None,
        service_key: Optional[str] = None,
        bucket: Optional[str] = None,
        concurrency: Optional[int] = None,
        timeout: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        storage_client: Optional[Client] = None,
    ):
        self.supabase_url = (supabase_url or config.SUPABASE_URL or "").rstrip("/")
        self.service_key = service_key or config.SUPABASE_SERVICE_ROLE_KEY
        self.bucket = bucket or config.STORAGE_BUCKET
        self.concurrency = max(1, concurrency or config.IMAGE_CONCURRENCY)
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self.transport = transport
        self.storage_client = storage_client
        self.logger = LayerLogger("image_storage")

    def is_configured(self) -> bool:
        return self.storage_client is not None or bool(self.supabase_url and self.service_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self.transport,
        )

    def _storage(self) -> Client:
        if self.storage_client is None:
            self.storage_client = create_client(self.supabase_url, self.service_key)
        return self.storage_client

    # =========================================================================
    # WORKER POOL
    # =========================================================================

    async def _run_pool(
        self,
        items: Sequence[ExtractedItem],
        handle: Callable[[ExtractedItem], Awaitable[bool]],
    ) -> int:
        """Run `handle` over `items` with at most `concurrency` in flight."""
        next_index = 0
        done = 0

        async def worker():
            nonlocal next_index, done
            while next_index < len(items):
                index = next_index
                next_index += 1
                if await handle(items[index]):
                    done += 1

        workers = min(self.concurrency, len(items))
        await asyncio.gather(*(worker() for _ in range(workers)))
        return done

    async def fetch_image(
        self,
        client: httpx.AsyncClient,
        url: str,
        referer: Optional[str] = None,
    ) -> Tuple[bytes, Optional[str]]:
        """
        Fetch image bytes and content type.

        Raises:
            ImageFetchFailed: transport error or non-2xx response
        """
        headers = {
            "User-Agent": config.USER_AGENT,
            "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
        }
        if referer:
            headers["Referer"] = referer

        try:
            response = await client.get(url, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ImageFetchFailed(url, reason=str(e)) from e

        if not response.is_success:
            raise ImageFetchFailed(url, reason="bad_status", status_code=response.status_code)

        return response.content, response.headers.get("content-type")

    # =========================================================================
    # LOCAL DOWNLOAD
    # =========================================================================

    async def download_all(
        self,
        items: Sequence[ExtractedItem],
        dest_dir: str,
        referer: Optional[str] = None,
    ) -> int:
        """
        Save every item image under `dest_dir` as <sha1[:12]>.<ext>.

        Sets `local_image` on saved items. Returns the number saved.
        """
        target = Path(dest_dir)
        self.logger.log_action("download_images", "started", dest_dir=str(target), items=len(items))

        async with self._client() as client:

            async def handle(item: ExtractedItem) -> bool:
                if not item.image_url:
                    return False
                url = resolve_url(item.image_url, referer)
                try:
                    content, content_type = await self.fetch_image(client, url, referer)
                except ImageFetchFailed as e:
                    self.logger.log_image_transfer(url, "download", e.status_code, "failed", reason=e.reason)
                    return False

                digest = hashlib.sha1(content).hexdigest()[:12]
                file_path = target / f"{digest}.{pick_extension(content_type, url)}"
                try:
                    target.mkdir(parents=True, exist_ok=True)
                    file_path.write_bytes(content)
                except OSError as e:
                    self.logger.log_image_transfer(url, "save", 200, "failed", reason=str(e), path=str(file_path))
                    return False

                item.local_image = str(file_path)
                self.logger.log_image_transfer(url, "download", 200, "saved", path=str(file_path))
                return True

            saved = await self._run_pool(items, handle)

        self.logger.log_action("download_images", "completed", saved=saved)
        return saved

    # =========================================================================
    # STORAGE UPLOAD
    # =========================================================================

    async def ensure_bucket(self, storage: Client) -> None:
        """Create the public bucket; an existing bucket is fine."""
        try:
            await asyncio.to_thread(storage.storage.create_bucket, self.bucket, options={"public": True})
        except (StorageException, httpx.HTTPError) as e:
            if not already_exists(e):
                self.logger.log_error(
                    f"Bucket ensure error (continuing): {e}",
                    error_type="bucket_error",
                    bucket=self.bucket,
                )

    async def upload_all(
        self,
        items: Sequence[ExtractedItem],
        folder: Optional[str] = None,
        referer: Optional[str] = None,
    ) -> int:
        """
        Re-host item images as <folder>/<sha1>.<ext> in the bucket.

        Rewrites `image_url` to the public URL and records
        `storage_path`. Items without an http(s) image, or whose image
        is already on storage, are left alone. Returns the number
        uploaded.
        """
        if not self.is_configured():
            raise RuntimeError(
                "Missing storage credentials: " + ", ".join(config.get_missing_storage_vars())
            )

        folder = folder or "misc"
        self.logger.log_action("upload_images", "started", bucket=self.bucket, folder=folder, items=len(items))

        storage = self._storage()
        await self.ensure_bucket(storage)
        bucket = storage.storage.from_(self.bucket)

        async with self._client() as client:

            async def handle(item: ExtractedItem) -> bool:
                src = item.image_url
                if not src or not HTTP_URL.match(src) or is_storage_url(src):
                    return False
                try:
                    content, content_type = await self.fetch_image(client, src, referer)
                except ImageFetchFailed as e:
                    self.logger.log_image_transfer(src, "fetch", e.status_code, "failed", reason=e.reason)
                    return False

                path_key = f"{folder}/{hashlib.sha1(content).hexdigest()}.{pick_extension(content_type, src)}"
                file_options = {"upsert": "false"}
                if content_type:
                    file_options["content-type"] = content_type
                try:
                    await asyncio.to_thread(bucket.upload, path_key, content, file_options)
                except (StorageException, httpx.HTTPError) as e:
                    if not already_exists(e):
                        self.logger.log_image_transfer(src, "upload", None, "failed", reason=str(e))
                        return False

                # some client versions append an empty query string
                item.image_url = bucket.get_public_url(path_key).rstrip("?")
                item.storage_path = path_key
                self.logger.log_image_transfer(src, "upload", 200, "uploaded", path=path_key)
                return True

            uploaded = await self._run_pool(items, handle)

        self.logger.log_action("upload_images", "completed", uploaded=uploaded)
        return uploaded
