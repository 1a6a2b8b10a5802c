"""Extraction of case data from rendered case-status pages.

Nothing here raises: markup drift degrades to empty fields, and a site-reported
error is returned as a message.
"""

import hashlib
import re
from datetime import date
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from dhcourt.scraper.models import CaseRecord, DocumentRef
from dhcourt.utils.logger import get_logger

logger = get_logger(__name__)

DATE_PATTERN = re.compile(r"\b(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{4})\b")
SIZE_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(KB|MB|GB)\b", re.IGNORECASE)
WHITESPACE = re.compile(r"\s+")

PostProcess = Callable[[str], Optional[str]]
FieldRule = Tuple[str, PostProcess]


def _normalize(text: str) -> str:
    return WHITESPACE.sub(" ", text or "").strip()


LABEL_SEPARATORS = ":.-"


def value_of(*labels: str) -> PostProcess:
    """Accept cell text unless it is only a label.

    Text starting with one of ``labels`` (optionally followed by "(s)") is kept
    only when a separator follows, as in "Status: Disposed" or "Court No. 12".
    """
    lowered_labels = sorted((label.lower() for label in labels), key=len, reverse=True)

    def process(text: str) -> Optional[str]:
        value = _normalize(text)
        lowered = value.lower()
        for label in lowered_labels:
            if not lowered.startswith(label) or value[len(label):len(label) + 1].isalnum():
                continue
            remainder = value[len(label):].strip()
            if remainder.lower().startswith("(s)"):
                remainder = remainder[3:].strip()
            if not remainder or remainder[0] not in LABEL_SEPARATORS:
                return None
            value = remainder.lstrip(LABEL_SEPARATORS + " ")
            break
        return value or None

    return process


def date_in(text: str) -> Optional[str]:
    match = DATE_PATTERN.search(text or "")
    return match.group(1) if match else None


PARTY_LABELS = (
    "petitioner", "petitioners", "plaintiff", "plaintiffs", "appellant", "appellants",
    "respondent", "respondents", "defendant", "defendants", "parties", "party name", "parties name",
)

FIELD_RULES: Dict[str, List[FieldRule]] = {
    "parties_names": [
        ('td:-soup-contains("Petitioner") + td', value_of(*PARTY_LABELS)),
        ('tr:-soup-contains("Petitioner") + tr td', value_of(*PARTY_LABELS)),
        ('tr:-soup-contains("Plaintiff") + tr td', value_of(*PARTY_LABELS)),
        ('tr:-soup-contains("Appellant") + tr td', value_of(*PARTY_LABELS)),
        ('td:-soup-contains("Parties") + td', value_of(*PARTY_LABELS)),
        (".case-parties", value_of(*PARTY_LABELS)),
        ("#parties", value_of(*PARTY_LABELS)),
        ("[class*='parties']", value_of(*PARTY_LABELS)),
    ],
    "filing_date": [
        ('td:-soup-contains("Filing Date") + td', date_in),
        ('td:-soup-contains("Date of Filing") + td', date_in),
        ('td:-soup-contains("Filing Date")', date_in),
        ("[class*='filing']", date_in),
        ("[id*='filing']", date_in),
    ],
    "next_hearing_date": [
        ('td:-soup-contains("Next Date") + td', date_in),
        ('td:-soup-contains("Hearing Date") + td', date_in),
        ('td:-soup-contains("Next Date")', date_in),
        ("[class*='hearing']", date_in),
        ("[id*='hearing']", date_in),
    ],
    "case_status": [
        ('td:-soup-contains("Case Status") + td', value_of("case status", "status")),
        ('td:-soup-contains("Status") + td', value_of("case status", "status")),
        (".case-status", value_of("case status", "status")),
        ("#status", value_of("case status", "status")),
    ],
    "judge": [
        ('td:-soup-contains("Judge") + td', value_of("judge", "coram", "bench")),
        ('td:-soup-contains("Coram") + td', value_of("judge", "coram", "bench")),
        (".judge-name", value_of("judge", "coram", "bench")),
        ("#judge", value_of("judge", "coram", "bench")),
        ("td:-soup-contains(\"Hon'ble\")", value_of("judge", "coram", "bench")),
    ],
    "court_number": [
        ('td:-soup-contains("Court No") + td', value_of("court no", "court number")),
        ('td:-soup-contains("Court Number") + td', value_of("court no", "court number")),
        (".court-number", value_of("court no", "court number")),
        ("#court_number", value_of("court no", "court number")),
    ],
}

ERROR_SELECTORS = [
    ".error",
    ".alert-danger",
    "#error",
    "[class*='error']",
    "font[color='red']",
    "span[style*='color:red']",
    "span[style*='color: red']",
]

ERROR_PHRASES = (
    "no record",
    "not found",
    "no case found",
    "no data found",
    "no matching case",
)

NO_RECORD_MESSAGE = "No case found with the provided details"

DOCUMENT_SELECTORS = [
    "a[href*='.pdf']",
    "a[href*='download']",
    'a:-soup-contains("Order")',
    'a:-soup-contains("Judgment")',
    'a:-soup-contains("Notice")',
    "a[title*='PDF']",
    "a[title*='Download']",
    "a.document-link",
    "a.pdf-link",
]

IGNORED_HREF_PREFIXES = ("#", "javascript:", "mailto:")


def first_match(soup: BeautifulSoup, rules: Sequence[FieldRule]) -> str:
    """Return the first post-processed non-empty value produced by ``rules``, or ''."""
    for selector, post_process in rules:
        try:
            elements = soup.select(selector)
        except Exception as e:
            logger.debug(f"Selector {selector} failed: {e}")
            continue
        for element in elements:
            value = post_process(element.get_text(" ", strip=True))
            if value:
                return value
    return ""


class ResultExtractor:
    """Turns a results page into either a site-reported error or a CaseRecord."""

    def __init__(self, base_url: str, today: Callable[[], date] = date.today):
        self.base_url = base_url
        self._today = today

    @staticmethod
    def _soup(html: str) -> BeautifulSoup:
        soup = BeautifulSoup(html or "", "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        return soup

    def check_for_errors(self, html: str) -> Optional[str]:
        """Return the site's error or no-record message, or None if the page looks like a result."""
        try:
            soup = self._soup(html)
            for selector in ERROR_SELECTORS:
                for element in soup.select(selector):
                    text = _normalize(element.get_text(" ", strip=True))
                    if text:
                        logger.info(f"Site reported error via {selector}: {text}")
                        return text

            page_text = soup.get_text(" ").lower()
            for phrase in ERROR_PHRASES:
                if phrase in page_text:
                    logger.info(f"Page contains failure phrase: {phrase!r}")
                    return NO_RECORD_MESSAGE
        except Exception as e:
            logger.error(f"Error checking for errors: {e}", exc_info=True)
        return None

    def extract(self, html: str, page_url: Optional[str] = None) -> CaseRecord:
        record = CaseRecord()
        try:
            soup = self._soup(html)
            for field_name, rules in FIELD_RULES.items():
                setattr(record, field_name, first_match(soup, rules))
            record.documents = self.extract_documents(soup, page_url or self.base_url)
        except Exception as e:
            logger.error(f"Error extracting case data: {e}", exc_info=True)
        missing = [name for name in FIELD_RULES if not getattr(record, name)]
        if missing:
            logger.warning(f"Fields not found on results page: {', '.join(missing)}")
        logger.info(f"Extracted case record with {len(record.documents)} document(s)")
        return record

    def extract_documents(self, soup: BeautifulSoup, page_url: str) -> List[DocumentRef]:
        matched = set()
        for selector in DOCUMENT_SELECTORS:
            try:
                matched.update(id(a) for a in soup.select(selector))
            except Exception as e:
                logger.debug(f"Document selector {selector} failed: {e}")

        documents: List[DocumentRef] = []
        seen_urls = set()
        for anchor in soup.find_all("a", href=True):
            if id(anchor) not in matched:
                continue
            href = anchor["href"].strip()
            if not href or href.lower().startswith(IGNORED_HREF_PREFIXES):
                continue
            download_url = urljoin(page_url, href)
            if download_url in seen_urls:
                continue
            seen_urls.add(download_url)
            documents.append(self._document_ref(anchor, download_url, len(documents) + 1))
        return documents

    def _document_ref(self, anchor, download_url: str, position: int) -> DocumentRef:
        text = _normalize(anchor.get_text(" ", strip=True))
        title_attr = _normalize(anchor.get("title", ""))
        title = text or title_attr or f"Document {position}"

        size_match = SIZE_PATTERN.search(f"{text} {title_attr}")
        size = f"{size_match.group(1)} {size_match.group(2).upper()}" if size_match else ""

        return DocumentRef(
            id=f"doc_{hashlib.sha1(download_url.encode('utf-8')).hexdigest()[:12]}",
            title=title,
            download_url=download_url,
            type="PDF" if ".pdf" in download_url.lower() else "Document",
            size=size,
            date=date_in(title) or self._today().strftime("%d/%m/%Y"),
        )
