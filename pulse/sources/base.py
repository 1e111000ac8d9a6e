"""Uniform wrapper around the external registries used for verification.

Each adapter owns an alias table mapping the canonical record fields
(``name``, ``address``, ``status``, ``expiry``) to the field names a source
actually returns, in priority order. Adding a source means adding a subclass
with its own table and a ``fetch`` implementation; ``lookup`` takes care of
turning every failure into a ``SourceOutcome``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from pulse.core.errors import AdapterError, AdapterParseError, AdapterTransportError, NotFoundError
from pulse.verification.models import SourceOutcome

logger = logging.getLogger(__name__)

USER_AGENT = "TLVBusinessPulse-Verifier/1.0 (+https://tlvpulse.com/transparency)"
CANONICAL_FIELDS = ("name", "address", "status", "expiry")


def build_session(max_retries: int = 2, backoff_factor: float = 0.5) -> requests.Session:
    """Session with bounded retries on transient 5xx responses."""
    session = requests.Session()
    retries = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=(500, 502, 503, 504),
        allowed_methods=("GET",),
        raise_on_status=False,
    )
    session.mount("http://", HTTPAdapter(max_retries=retries))
    session.mount("https://", HTTPAdapter(max_retries=retries))
    session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})
    return session


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


class SourceAdapter:
    """Base class for one external verification source."""

    name = "source"
    matched_status = "verified"
    unmatched_status = "found_unverified"
    FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {}

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        max_retries: int = 2,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = timeout
        self.session = session or build_session(max_retries)

    def fetch(self, business_id: str, hint: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
        """Return the raw upstream record or raise an adapter/not-found error."""
        raise NotImplementedError

    def matches(self, record: Mapping[str, Optional[str]], hint: Optional[Mapping[str, Any]]) -> bool:
        raise NotImplementedError

    def verification_url(self, business_id: str, record: Optional[Mapping[str, Optional[str]]]) -> Optional[str]:
        return None

    def normalize(self, raw: Mapping[str, Any]) -> Dict[str, Optional[str]]:
        record: Dict[str, Optional[str]] = {}
        for canonical in CANONICAL_FIELDS:
            record[canonical] = None
            for alias in self.FIELD_ALIASES.get(canonical, ()):
                value = _strip_or_none(raw.get(alias))
                if value:
                    record[canonical] = value
                    break
        return record

    def lookup(self, business_id: str, hint: Optional[Mapping[str, Any]] = None) -> SourceOutcome:
        """Query the source and always come back with a ``SourceOutcome``."""
        try:
            raw = self.fetch(business_id, hint)
            if not isinstance(raw, Mapping):
                raise AdapterParseError(f"{self.name} returned a {type(raw).__name__} record")
            record = self.normalize(raw)
            matched = bool(self.matches(record, hint))
        except NotFoundError:
            logger.info("%s has no record for %s", self.name, business_id)
            return SourceOutcome.not_found(self.name, verification_url=self.verification_url(business_id, None))
        except AdapterError as exc:
            logger.warning("%s lookup failed for %s: %s", self.name, business_id, exc)
            return SourceOutcome.error(self.name, str(exc))
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("%s returned an unexpected payload for %s: %s", self.name, business_id, exc)
            return SourceOutcome.error(self.name, f"unexpected response from {self.name}: {exc}")

        logger.debug("%s record for %s: matches=%s", self.name, business_id, matched)
        return SourceOutcome.found(
            self.name,
            record,
            matched,
            status=self.matched_status if matched else self.unmatched_status,
            verification_url=self.verification_url(business_id, record),
        )

    def _get_json(self, url: str, params: Mapping[str, Any]) -> Dict[str, Any]:
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise AdapterTransportError(f"request to {self.name} failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise AdapterTransportError(f"{self.name} returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise AdapterParseError(f"{self.name} returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise AdapterParseError(f"{self.name} returned a non-object JSON payload")
        return payload


class CkanDatastoreAdapter(SourceAdapter):
    """Lookup by exact key against a CKAN ``datastore_search`` resource."""

    id_field = "_id"

    def __init__(self, api_base: str, resource_id: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_base = api_base.rstrip("/")
        self.resource_id = resource_id

    def fetch(self, business_id: str, hint: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
        params = {
            "resource_id": self.resource_id,
            "filters": json.dumps({self.id_field: business_id}, ensure_ascii=False),
            "limit": 1,
        }
        payload = self._get_json(f"{self.api_base}/datastore_search", params)
        if payload.get("success") is False:
            error = payload.get("error") or {}
            message = error.get("message") if isinstance(error, dict) else error
            raise AdapterTransportError(f"{self.name} rejected the query: {message or 'unknown error'}")

        result = payload.get("result")
        if not isinstance(result, dict):
            raise AdapterParseError(f"{self.name} response is missing 'result'")
        records = result.get("records")
        if not isinstance(records, list):
            raise AdapterParseError(f"{self.name} response is missing 'result.records'")
        if not records:
            raise NotFoundError(business_id)
        return records[0]


@dataclass(frozen=True)
class SourceSpec:
    """A configured adapter together with its scoring role."""

    adapter: SourceAdapter
    required: bool = False
    weight: int = 30
    partial_weight: int = 0

    @property
    def name(self) -> str:
        return self.adapter.name


def source_names(sources: Sequence[SourceSpec], *, required: bool) -> Tuple[str, ...]:
    return tuple(spec.name for spec in sources if spec.required is required)
