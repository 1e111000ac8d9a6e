"""Tel Aviv municipality business licence registry (open data portal)."""

from typing import Any, Mapping, Optional
from urllib.parse import quote

from pulse.sources.base import CkanDatastoreAdapter

ACTIVE = "active"
EXPIRED = "expired"
SUSPENDED = "suspended"


def map_license_status(status: Optional[str]) -> str:
    lowered = (status or "").lower()
    if "inactive" in lowered or "לא פעיל" in lowered:
        return SUSPENDED
    if "פעיל" in lowered or ACTIVE in lowered:
        return ACTIVE
    if "פקע" in lowered or EXPIRED in lowered:
        return EXPIRED
    return SUSPENDED


class MunicipalityAdapter(CkanDatastoreAdapter):
    name = "tel_aviv_municipality"
    matched_status = "verified_active"
    unmatched_status = "licence_not_active"
    id_field = "_id"
    FIELD_ALIASES = {
        "name": ("שם_עסק", "business_name", "business_name_en"),
        "address": ("כתובת", "address", "רחוב", "street"),
        "status": ("סטטוס", "status"),
        "expiry": ("תאריך_פקיעה", "expiry_date"),
    }

    def normalize(self, raw: Mapping[str, Any]):
        record = super().normalize(raw)
        if record["status"] is not None:
            record["status"] = map_license_status(record["status"])
        return record

    def matches(self, record, hint) -> bool:
        return record.get("status") == ACTIVE

    def verification_url(self, business_id, record) -> str:
        return f"https://data.tel-aviv.gov.il/verify/{quote(business_id, safe='')}"
