"""Error taxonomy for the case-status scraper.

Every error carries a stable ``code`` so failures can be reported and
compared without parsing messages. Browsing-stage errors abort a scrape and
are converted to a failed ScrapeResult by the orchestrator; download errors
are reported per document.
"""

from typing import Optional


class CourtScraperError(Exception):
    """Base class for all scraper failures."""

    code = "internal_error"


class ValidationError(CourtScraperError):
    """Search input rejected before any navigation."""

    code = "validation_error"


class NavigationError(CourtScraperError):
    """Site unreachable after all navigation attempts."""

    code = "navigation_error"

    def __init__(self, message: str, last_error: Optional[BaseException] = None, attempts: int = 0):
        super().__init__(message)
        self.last_error = last_error
        self.attempts = attempts


class FormFillError(CourtScraperError):
    """No candidate element located for a form field."""

    code = "form_fill_error"


class CaptchaError(CourtScraperError):
    code = "captcha_error"

    def __init__(self, message: str, challenge=None):
        super().__init__(message)
        self.challenge = challenge


class CaptchaUnresolvedError(CaptchaError):
    code = "captcha_unresolved"


class CaptchaFormatError(CaptchaError):
    code = "captcha_invalid_format"


class CaptchaProviderError(CaptchaError):
    code = "captcha_provider_failure"


class CaptchaTimeoutError(CaptchaError):
    code = "captcha_timeout"


class SiteReportedError(CourtScraperError):
    """The site explicitly reported no record or invalid input."""

    code = "site_reported"


class ScrapeTimeoutError(CourtScraperError):
    """A pipeline stage exceeded its time budget."""

    code = "stage_timeout"

    def __init__(self, stage: str, timeout: float):
        super().__init__(f"Timed out after {timeout:g}s during {stage}")
        self.stage = stage
        self.timeout = timeout


class ExtractionError(CourtScraperError):
    """Declared for completeness; extraction degrades to empty fields instead."""

    code = "extraction_error"


class DownloadError(CourtScraperError):
    code = "download_error"

    def __init__(self, message: str, url: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status = status


class DownloadTimeoutError(DownloadError):
    code = "download_timeout"


class DocumentNotFoundError(DownloadError):
    code = "http_404_not_found"


class DownloadForbiddenError(DownloadError):
    code = "http_403_forbidden"


class DownloadServerError(DownloadError):
    code = "http_5xx"


class DownloadNetworkError(DownloadError):
    code = "network_error"


class PDFFormatError(DownloadError):
    code = "malformed_pdf"


class DownloadSizeExceededError(DownloadError):
    code = "size_exceeded"
