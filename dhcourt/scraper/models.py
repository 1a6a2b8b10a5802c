"""Data models for the Delhi High Court case-status scraper."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from dhcourt.scraper.errors import ValidationError

CASE_TYPES = (
    "Civil",
    "Criminal",
    "Writ Petition",
    "Company Petition",
    "Arbitration Petition",
    "Execution Petition",
    "Contempt Petition",
    "Miscellaneous",
)

MIN_FILING_YEAR = 2000
CASE_NUMBER_MAX_LENGTH = 50
CASE_NUMBER_PATTERN = re.compile(r"^[A-Za-z0-9/\-\s()]+$")
CAPTCHA_PATTERN = re.compile(r"^[A-Za-z0-9]+$")


def validate_captcha_response(response: Any) -> bool:
    """Return True if ``response`` looks like a typed CAPTCHA answer (3-10 alphanumerics)."""
    if not response or not isinstance(response, str):
        return False
    trimmed = response.strip()
    if len(trimmed) < 3 or len(trimmed) > 10:
        return False
    return bool(CAPTCHA_PATTERN.match(trimmed))


@dataclass(frozen=True)
class SearchQuery:
    """Immutable input to one scrape."""
    case_type: str
    case_number: str
    filing_year: int
    captcha_response: Optional[str] = None

    def validate(self, now: Optional[datetime] = None) -> "SearchQuery":
        """Raise ValidationError if any field is out of bounds; return self otherwise."""
        max_year = (now or datetime.now()).year
        if self.case_type not in CASE_TYPES:
            raise ValidationError(
                f"Invalid case type '{self.case_type}'. Expected one of: {', '.join(CASE_TYPES)}"
            )
        number = self.case_number.strip() if isinstance(self.case_number, str) else ""
        if not number or len(number) > CASE_NUMBER_MAX_LENGTH:
            raise ValidationError(
                f"Case number must be between 1 and {CASE_NUMBER_MAX_LENGTH} characters"
            )
        if not CASE_NUMBER_PATTERN.match(number):
            raise ValidationError(f"Case number contains invalid characters: {self.case_number!r}")
        if isinstance(self.filing_year, bool) or not isinstance(self.filing_year, int):
            raise ValidationError("Filing year must be an integer")
        if not MIN_FILING_YEAR <= self.filing_year <= max_year:
            raise ValidationError(
                f"Filing year must be between {MIN_FILING_YEAR} and {max_year}"
            )
        if self.captcha_response is not None and not validate_captcha_response(self.captcha_response):
            raise ValidationError("CAPTCHA response must be 3-10 alphanumeric characters")
        return self


@dataclass
class DocumentRef:
    """A document linked from a case page. Missing data is an empty string, never None."""
    id: str
    title: str = ""
    download_url: str = ""
    type: str = "Document"
    size: str = ""
    date: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "title": self.title,
            "downloadUrl": self.download_url,
            "type": self.type,
            "size": self.size,
            "date": self.date,
        }


@dataclass
class CaseRecord:
    parties_names: str = ""
    filing_date: str = ""
    next_hearing_date: str = ""
    case_status: str = ""
    judge: str = ""
    court_number: str = ""
    documents: List[DocumentRef] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "partiesNames": self.parties_names,
            "filingDate": self.filing_date,
            "nextHearingDate": self.next_hearing_date,
            "caseStatus": self.case_status,
            "judge": self.judge,
            "courtNumber": self.court_number,
            "documents": [doc.to_dict() for doc in self.documents],
        }


class ScrapeStage(str, Enum):
    """Stages of one scrape; EXTRACTED, FAILED and CAPTCHA_PENDING are terminal."""
    INIT = "init"
    NAVIGATED = "navigated"
    FORM_FILLED = "form_filled"
    CAPTCHA_RESOLVED = "captcha_resolved"
    SUBMITTED = "submitted"
    ERROR_CHECKED = "error_checked"
    EXTRACTED = "extracted"
    FAILED = "failed"
    CAPTCHA_PENDING = "captcha_pending"


@dataclass
class ScrapeResult:
    """Outcome of one scrape. Exactly one of ``data`` and ``error`` is set."""
    success: bool
    data: Optional[CaseRecord] = None
    error: Optional[str] = None
    requires_captcha: bool = False
    captcha_image: Optional[str] = None
    stage: ScrapeStage = ScrapeStage.INIT

    def __post_init__(self):
        if self.success and (self.data is None or self.error is not None):
            raise ValueError("A successful ScrapeResult carries a CaseRecord and no error")
        if not self.success and (self.data is not None or not self.error):
            raise ValueError("A failed ScrapeResult carries an error message and no CaseRecord")

    @classmethod
    def ok(cls, record: CaseRecord) -> "ScrapeResult":
        return cls(success=True, data=record, stage=ScrapeStage.EXTRACTED)

    @classmethod
    def fail(
        cls,
        error: str,
        stage: ScrapeStage = ScrapeStage.FAILED,
        requires_captcha: bool = False,
        captcha_image: Optional[str] = None,
    ) -> "ScrapeResult":
        return cls(
            success=False,
            error=error,
            requires_captcha=requires_captcha,
            captcha_image=captcha_image,
            stage=stage,
        )

    def to_dict(self) -> Dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data.to_dict()}
        result: Dict[str, Any] = {"success": False, "error": self.error}
        if self.requires_captcha:
            result["requiresCaptcha"] = True
        if self.captcha_image:
            result["captchaImage"] = self.captcha_image
        return result


class CaptchaState(str, Enum):
    NONE = "none"
    AWAITING_RESPONSE = "awaiting_response"
    SUBMITTED_EXTERNAL = "submitted_external"
    POLLING = "polling"
    SOLVED = "solved"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass
class CaptchaChallenge:
    """Transient state of one CAPTCHA resolution; never persisted."""
    image_data: str = ""
    ticket_id: Optional[str] = None
    state: CaptchaState = CaptchaState.NONE
    resolved_text: Optional[str] = None
    error: Optional[str] = None
    polls: int = 0

    @property
    def image_data_url(self) -> str:
        return f"data:image/png;base64,{self.image_data}" if self.image_data else ""


@dataclass
class DownloadOutcome:
    """Result of a (possibly retried) document download."""
    url: str
    success: bool
    content: bytes = b""
    attempts: int = 0
    error: Optional[str] = None
    error_code: Optional[str] = None
    valid_pdf: bool = False
    duration: float = 0.0
    last_error: Optional[BaseException] = field(default=None, repr=False, compare=False)

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class DocumentPayload:
    """Bytes handed to the caller of the document download entry point."""
    content: bytes
    filename: str
    content_type: str = "application/pdf"

    @property
    def content_disposition(self) -> str:
        return f'attachment; filename="{self.filename}"'
