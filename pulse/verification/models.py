"""Data models shared by the verification pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

FOUND = "found"
NOT_FOUND = "not_found"
ERROR = "error"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SourceOutcome:
    """Result of querying one source for one business identifier.

    ``record`` uses the canonical keys ``name``, ``address``, ``status`` and
    ``expiry``. It is only populated for ``found`` outcomes.
    """

    source: str
    kind: str
    status: str
    checked_at: datetime = field(default_factory=utcnow)
    record: Optional[Dict[str, Optional[str]]] = None
    matches: bool = False
    reason: Optional[str] = None
    verification_url: Optional[str] = None

    @classmethod
    def found(
        cls,
        source: str,
        record: Dict[str, Optional[str]],
        matches: bool,
        *,
        status: str,
        verification_url: Optional[str] = None,
    ) -> "SourceOutcome":
        return cls(
            source=source,
            kind=FOUND,
            status=status,
            record=dict(record),
            matches=matches,
            verification_url=verification_url,
        )

    @classmethod
    def not_found(cls, source: str, *, verification_url: Optional[str] = None) -> "SourceOutcome":
        return cls(source=source, kind=NOT_FOUND, status="not_found", verification_url=verification_url)

    @classmethod
    def error(cls, source: str, reason: str) -> "SourceOutcome":
        return cls(source=source, kind=ERROR, status="error", reason=reason)

    @property
    def is_match(self) -> bool:
        return self.kind == FOUND and self.matches


@dataclass(frozen=True)
class VerificationPolicy:
    """Immutable knobs handed to the aggregator."""

    threshold: int = 70
    timeout: float = 20.0


@dataclass(frozen=True)
class VerificationReport:
    business_id: str
    verified: bool
    quality_score: int
    outcomes: Tuple[SourceOutcome, ...]
    generated_at: datetime
    threshold: int
    required_sources: Tuple[str, ...] = ()
    optional_sources: Tuple[str, ...] = ()
    hint: Optional[Dict[str, Any]] = field(default=None, repr=False)
