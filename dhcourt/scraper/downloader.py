import asyncio
import re
from typing import Any, Callable, Dict, Optional

import aiohttp

from dhcourt.config.settings import Config
from dhcourt.scraper.errors import (
    DocumentNotFoundError,
    DownloadError,
    DownloadForbiddenError,
    DownloadNetworkError,
    DownloadServerError,
    DownloadSizeExceededError,
    DownloadTimeoutError,
    PDFFormatError,
)
from dhcourt.scraper.models import DocumentPayload, DocumentRef, DownloadOutcome
from dhcourt.utils.logger import get_logger
from dhcourt.utils.retry import RetryPolicy, exponential_backoff

logger = get_logger(__name__)

PDF_MAGIC = b"%PDF-"
PDF_TRAILER = b"%%EOF"
MIN_PDF_SIZE = 100
TRAILER_WINDOW = 1024

DEFAULT_HEADERS = {
    "Accept": "application/pdf,application/octet-stream,*/*",
    "Accept-Language": "en-US,en;q=0.9",
}


def validate_pdf(buffer: Optional[bytes]) -> bool:
    """Check that ``buffer`` is a complete PDF.

    Raises:
        PDFFormatError: empty, too small, wrong header or missing trailer.
    """
    if not buffer:
        raise PDFFormatError("Empty file received")
    if len(buffer) < MIN_PDF_SIZE:
        raise PDFFormatError("File too small to be a valid PDF")
    if not buffer[:8].startswith(PDF_MAGIC):
        raise PDFFormatError("Invalid PDF format - File is not a valid PDF document")
    if PDF_TRAILER not in buffer[-TRAILER_WINDOW:]:
        raise PDFFormatError("Corrupted PDF - File appears to be incomplete")
    return True


def pdf_filename(title: str) -> str:
    """Attachment filename derived from a document title."""
    stem = re.sub(r"\s+", "_", re.sub(r"[^a-zA-Z0-9\s]", "_", title or "").strip())
    return f"{stem or 'document'}.pdf"


class DocumentDownloader:
    """Fetches court documents over plain HTTP, independent of any browser session."""

    def __init__(
        self,
        timeout: float = 30,
        max_size: int = 50 * 1024 * 1024,
        max_attempts: int = 3,
        chunk_size: int = 65536,
        user_agent: str = "Mozilla/5.0",
        sleep: Callable = asyncio.sleep,
    ):
        self.timeout = timeout
        self.max_size = max_size
        self.max_attempts = max_attempts
        self.chunk_size = chunk_size
        self.headers = dict(DEFAULT_HEADERS, **{"User-Agent": user_agent})
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: Config, **kwargs) -> "DocumentDownloader":
        return cls(
            timeout=config.download_timeout,
            max_size=config.download_max_size,
            max_attempts=config.download_max_attempts,
            chunk_size=config.chunk_size,
            user_agent=config.user_agent,
            **kwargs,
        )

    @staticmethod
    def _raise_for_status(status: int, url: str):
        if status == 404:
            raise DocumentNotFoundError(
                "File not found - The document may have been moved or deleted", url, status)
        if status == 403:
            raise DownloadForbiddenError(
                "Access denied - You may not have permission to download this file", url, status)
        if status >= 500:
            raise DownloadServerError(
                f"Server error - The download server is currently unavailable (HTTP {status})", url, status)
        if status >= 400:
            raise DownloadError(f"Download failed: HTTP {status}", url, status)

    async def download(self, url: str) -> bytes:
        """Fetch ``url`` once and return the validated PDF bytes."""
        logger.info(f"Starting PDF download from: {url}")
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout), headers=self.headers
            ) as session:
                async with session.get(url) as response:
                    self._raise_for_status(response.status, url)

                    declared = int(response.headers.get("Content-Length") or 0)
                    if declared > self.max_size:
                        raise DownloadSizeExceededError(
                            f"File exceeds maximum size of {self.max_size} bytes", url, response.status)

                    buffer = bytearray()
                    async for chunk in response.content.iter_chunked(self.chunk_size):
                        buffer.extend(chunk)
                        if len(buffer) > self.max_size:
                            raise DownloadSizeExceededError(
                                f"File exceeds maximum size of {self.max_size} bytes", url, response.status)
        except asyncio.TimeoutError as e:
            raise DownloadTimeoutError(
                "Download timeout - The file is taking too long to download", url) from e
        except aiohttp.ClientError as e:
            raise DownloadNetworkError(
                f"Network error - Unable to reach the download server: {e}", url) from e

        content = bytes(buffer)
        validate_pdf(content)
        logger.info(f"PDF download successful - Size: {len(content)} bytes")
        return content

    async def retry_download(self, url: str, max_attempts: Optional[int] = None) -> DownloadOutcome:
        """Download with ``2 ** attempt`` seconds between attempts; never raises DownloadError."""
        loop = asyncio.get_running_loop()
        start_time = loop.time()
        policy = RetryPolicy(
            max_attempts=max_attempts or self.max_attempts,
            backoff=exponential_backoff(2.0),
            retry_on=(DownloadError,),
            sleep=self._sleep,
            label=f"Download of {url}",
        )
        result = await policy.run(self.download, url)
        duration = loop.time() - start_time

        if result.ok:
            return DownloadOutcome(
                url=url,
                success=True,
                content=result.result,
                attempts=result.attempts,
                valid_pdf=True,
                duration=duration,
            )
        return DownloadOutcome(
            url=url,
            success=False,
            attempts=result.attempts,
            error=str(result.error),
            error_code=getattr(result.error, "code", None),
            last_error=result.error,
            duration=duration,
        )

    async def fetch_document(self, target: Any, max_attempts: Optional[int] = None) -> DocumentPayload:
        """Download a DocumentRef or URL for hand-off to a caller as an attachment.

        Raises:
            DownloadError: the last error once all attempts fail.
        """
        if isinstance(target, DocumentRef):
            url, title = target.download_url, target.title
        else:
            url = str(target)
            title = url.rstrip("/").rsplit("/", 1)[-1].rsplit(".", 1)[0]

        outcome = await self.retry_download(url, max_attempts)
        if not outcome.success:
            raise outcome.last_error
        # Re-check before hand-off
        validate_pdf(outcome.content)
        return DocumentPayload(content=outcome.content, filename=pdf_filename(title))

    async def file_info(self, url: str) -> Dict[str, Any]:
        """HEAD the document; reports availability instead of raising."""
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=min(self.timeout, 10)), headers=self.headers
            ) as session:
                async with session.head(url, allow_redirects=True) as response:
                    length = response.headers.get("Content-Length")
                    return {
                        "size": int(length) if length and length.isdigit() else 0,
                        "type": response.headers.get("Content-Type", "application/octet-stream"),
                        "last_modified": response.headers.get("Last-Modified"),
                        "available": response.status == 200,
                    }
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"File info request failed for {url}: {e}")
            return {
                "size": 0,
                "type": "unknown",
                "last_modified": None,
                "available": False,
                "error": str(e),
            }
