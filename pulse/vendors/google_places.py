"""Client utilities for the Google Places API."""

import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://maps.googleapis.com/maps/api/place"
_FIND_FIELDS = "place_id,name,formatted_address,business_status"


class GooglePlacesError(RuntimeError):
    """Raised when the Places API returns a non-successful response."""


def find_place(
    query: str,
    api_key: str,
    *,
    session: Optional[requests.Session] = None,
    timeout: float = 10,
) -> Optional[Dict[str, Any]]:
    """Return the best candidate for a free-text query, or None when there is none."""
    params = {"input": query, "inputtype": "textquery", "fields": _FIND_FIELDS, "key": api_key}
    response = (session or _SESSION).get(f"{_BASE_URL}/findplacefromtext/json", params=params, timeout=timeout)
    response.raise_for_status()
    payload = response.json()
    status = payload.get("status")
    if status == "ZERO_RESULTS":
        return None
    if status != "OK":
        logger.error("find_place failed: status=%s, error_message=%s", status, payload.get("error_message"))
        raise GooglePlacesError(payload.get("error_message") or status)
    candidates = payload.get("candidates") or []
    return candidates[0] if candidates else None
