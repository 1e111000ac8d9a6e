"""Israeli companies registry, published as a CKAN resource on data.gov.il."""

from pulse.sources.base import CkanDatastoreAdapter

_ACTIVE_STATUSES = {"פעילה", "פעיל", "active"}


class CompaniesRegistryAdapter(CkanDatastoreAdapter):
    name = "israeli_companies_registry"
    matched_status = "verified_registered"
    unmatched_status = "registered_not_active"
    id_field = "מספר חברה"
    FIELD_ALIASES = {
        "name": ("שם חברה", "company_name", "שם באנגלית", "company_name_en"),
        "address": ("כתובת", "address", "שם רחוב", "street"),
        "status": ("סטטוס חברה", "status", "company_status"),
        "expiry": ("תאריך פקיעה", "expiry_date"),
    }

    def matches(self, record, hint) -> bool:
        return (record.get("status") or "").strip().lower() in _ACTIVE_STATUSES

    def verification_url(self, business_id, record) -> str:
        return "https://www.gov.il/he/service/company_extract"
