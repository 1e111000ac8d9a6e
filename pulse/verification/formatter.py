"""Shapes verification reports into the public JSON contract."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import quote

from pulse.verification.models import FOUND, SourceOutcome, VerificationReport

TLV_OPEN_DATA_URL = "https://data.tel-aviv.gov.il"
COMPANIES_REGISTRY_URL = "https://www.gov.il/he/service/company_extract"


def isoformat(value: datetime) -> str:
    """UTC ISO 8601 with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _details(outcome: SourceOutcome) -> Optional[Dict[str, Optional[str]]]:
    if outcome.kind != FOUND or outcome.record is None:
        return None
    record = outcome.record
    return {
        "business_name": record.get("name"),
        "address": record.get("address"),
        "status": record.get("status"),
        "license_expiry": record.get("expiry"),
    }


def format_source(outcome: SourceOutcome) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "source_name": outcome.source,
        "status": outcome.status,
        "verification_url": outcome.verification_url,
        "last_checked": isoformat(outcome.checked_at),
    }
    details = _details(outcome)
    if details is not None:
        entry["details"] = details
    return entry


def independent_checks(business_id: str) -> Dict[str, Dict[str, str]]:
    return {
        "municipality": {
            "url": f"{TLV_OPEN_DATA_URL}/verify/{quote(business_id, safe='')}",
            "instructions": "Visit Tel Aviv Open Data Portal and search for this license number",
        },
        "companies_registry": {
            "url": COMPANIES_REGISTRY_URL,
            "instructions": "Search by company ID (ח.פ) on the Israeli government website",
        },
        "google_maps": {
            "instructions": "Search business name on Google Maps to verify location",
        },
    }


def format_report(report: VerificationReport) -> Dict[str, Any]:
    return {
        "business_id": report.business_id,
        "verified": report.verified,
        "verification_date": isoformat(report.generated_at),
        "data_quality_score": report.quality_score,
        "sources": [format_source(outcome) for outcome in report.outcomes],
        "verification_criteria": {
            "minimum_score": report.threshold,
            "required_sources": list(report.required_sources),
            "optional_sources": list(report.optional_sources),
        },
        "how_to_verify_independently": independent_checks(report.business_id),
        "report_issue": {
            "url": f"/report-issue?business_id={quote(report.business_id, safe='')}",
            "method": "POST",
            "note": "If you find incorrect information, please report it so we can investigate",
        },
    }


def format_error(business_id: Any, message: str, error: str = "Verification failed") -> Dict[str, Any]:
    return {
        "business_id": business_id,
        "verified": False,
        "error": error,
        "message": message,
        "how_to_verify_manually": {
            "tel_aviv_open_data": TLV_OPEN_DATA_URL,
            "companies_registry": COMPANIES_REGISTRY_URL,
        },
    }
