"""Location check against Google Places."""

import re
from typing import Any, FrozenSet, Mapping, Optional
from urllib.parse import quote_plus

import requests

from pulse.core.errors import AdapterParseError, AdapterTransportError, NotFoundError
from pulse.sources.base import SourceAdapter
from pulse.vendors import google_places

DEFAULT_CITY = "Tel Aviv"
NAME_OVERLAP = 0.5

_TOKEN_RE = re.compile(r"\w+")


def name_tokens(value: Any) -> FrozenSet[str]:
    if not value:
        return frozenset()
    return frozenset(token for token in _TOKEN_RE.findall(str(value).lower()) if len(token) > 1)


def names_match(expected: Any, found: Any) -> bool:
    """Token overlap measured against the shorter of the two names."""
    wanted, got = name_tokens(expected), name_tokens(found)
    if not wanted or not got:
        return False
    return len(wanted & got) / min(len(wanted), len(got)) >= NAME_OVERLAP


def build_query(business_id: str, hint: Optional[Mapping[str, Any]]) -> str:
    if not hint:
        return f"{business_id} {DEFAULT_CITY}"
    parts = [hint.get("name"), hint.get("address")]
    query = ", ".join(str(part).strip() for part in parts if part and str(part).strip())
    if not query:
        return f"{business_id} {DEFAULT_CITY}"
    city = hint.get("city") or DEFAULT_CITY
    if str(city).lower() not in query.lower():
        query = f"{query}, {city}"
    return query


class GooglePlacesAdapter(SourceAdapter):
    name = "google_places"
    matched_status = "location_verified"
    unmatched_status = "location_unconfirmed"
    FIELD_ALIASES = {
        "name": ("name",),
        "address": ("formatted_address", "vicinity"),
        "status": ("business_status",),
    }

    def __init__(self, api_key: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key

    def fetch(self, business_id, hint):
        if not self.api_key:
            raise AdapterTransportError("GOOGLE_API_KEY is not configured")

        query = build_query(business_id, hint)
        try:
            place = google_places.find_place(query, self.api_key, session=self.session, timeout=self.timeout)
        except requests.RequestException as exc:
            raise AdapterTransportError(f"request to {self.name} failed: {exc}") from exc
        except google_places.GooglePlacesError as exc:
            raise AdapterTransportError(f"{self.name} returned {exc}") from exc
        except ValueError as exc:
            raise AdapterParseError(f"{self.name} returned invalid JSON") from exc

        if place is None:
            raise NotFoundError(business_id)
        return place

    def matches(self, record, hint) -> bool:
        # Without a stored name any nearby hit could be a different business.
        if record.get("status") != "OPERATIONAL" or not hint:
            return False
        return names_match(hint.get("name"), record.get("name"))

    def verification_url(self, business_id, record) -> str:
        if record and record.get("name"):
            return f"https://maps.google.com/?q={quote_plus(record['name'])}"
        return "https://maps.google.com/"
