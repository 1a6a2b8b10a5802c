from datetime import datetime

import pytest

from dhcourt.scraper.errors import ValidationError
from dhcourt.scraper.models import (
    CASE_TYPES,
    CaptchaChallenge,
    CaseRecord,
    DocumentPayload,
    DocumentRef,
    ScrapeResult,
    ScrapeStage,
    SearchQuery,
    validate_captcha_response,
)

NOW = datetime(2025, 6, 1)


@pytest.mark.parametrize(
    "response, expected",
    [
        ("ABC123", True),
        ("  abc  ", True),
        ("AB", False),
        ("ABCDEFGHIJK", False),
        ("AB@12", False),
        (None, False),
        ("", False),
        (12345, False),
    ],
)
def test_validate_captcha_response(response, expected):
    assert validate_captcha_response(response) is expected


def test_valid_query_returns_itself():
    query = SearchQuery("Civil", "CS(OS) 123/2023", 2023)
    assert query.validate(now=NOW) is query


def test_case_types_are_the_court_listing():
    assert "Writ Petition" in CASE_TYPES
    assert len(CASE_TYPES) == 8


@pytest.mark.parametrize(
    "query, message",
    [
        (SearchQuery("Tax", "1/2023", 2023), "Invalid case type"),
        (SearchQuery("Civil", "   ", 2023), "between 1 and 50"),
        (SearchQuery("Civil", "1" * 51, 2023), "between 1 and 50"),
        (SearchQuery("Civil", "12;DROP", 2023), "invalid characters"),
        (SearchQuery("Civil", "1/2023", 1999), "Filing year"),
        (SearchQuery("Civil", "1/2023", 2026), "Filing year"),
        (SearchQuery("Civil", "1/2023", "2023"), "integer"),
        (SearchQuery("Civil", "1/2023", 2023, captcha_response="a!"), "CAPTCHA"),
    ],
)
def test_invalid_query_rejected(query, message):
    with pytest.raises(ValidationError, match=message):
        query.validate(now=NOW)


def test_search_query_is_immutable():
    query = SearchQuery("Civil", "1/2023", 2023)
    with pytest.raises(AttributeError):
        query.case_number = "2/2023"


def test_case_record_defaults_are_empty_strings():
    record = CaseRecord()
    data = record.to_dict()
    assert data == {
        "partiesNames": "",
        "filingDate": "",
        "nextHearingDate": "",
        "caseStatus": "",
        "judge": "",
        "courtNumber": "",
        "documents": [],
    }


def test_successful_result_serializes_camel_case():
    doc = DocumentRef(id="doc_1", title="Order", download_url="https://x/doc.pdf", type="PDF")
    result = ScrapeResult.ok(CaseRecord(parties_names="X vs Y", documents=[doc]))

    data = result.to_dict()
    assert data["success"] is True
    assert data["data"]["partiesNames"] == "X vs Y"
    assert data["data"]["documents"][0]["downloadUrl"] == "https://x/doc.pdf"
    assert data["data"]["documents"][0]["size"] == ""
    assert "error" not in data
    assert result.stage == ScrapeStage.EXTRACTED


def test_failed_result_carries_captcha_fields_only_when_set():
    plain = ScrapeResult.fail("boom").to_dict()
    assert plain == {"success": False, "error": "boom"}

    pending = ScrapeResult.fail(
        "CAPTCHA verification required",
        stage=ScrapeStage.CAPTCHA_PENDING,
        requires_captcha=True,
        captcha_image="data:image/png;base64,AAAA",
    ).to_dict()
    assert pending["requiresCaptcha"] is True
    assert pending["captchaImage"].startswith("data:image/png;base64,")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"success": True},
        {"success": True, "data": CaseRecord(), "error": "both"},
        {"success": False},
        {"success": False, "data": CaseRecord(), "error": "both"},
    ],
)
def test_ambiguous_result_rejected(kwargs):
    with pytest.raises(ValueError):
        ScrapeResult(**kwargs)


def test_captcha_image_data_url():
    assert CaptchaChallenge().image_data_url == ""
    assert CaptchaChallenge(image_data="QUJD").image_data_url == "data:image/png;base64,QUJD"


def test_document_payload_content_disposition():
    payload = DocumentPayload(content=b"%PDF-", filename="Order_dated.pdf")
    assert payload.content_type == "application/pdf"
    assert payload.content_disposition == 'attachment; filename="Order_dated.pdf"'
