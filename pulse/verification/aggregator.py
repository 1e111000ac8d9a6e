"""Fan-out over the configured sources and assembly of the verification report."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from pulse.core.config import Settings
from pulse.core.errors import RequestValidationError
from pulse.sources.base import SourceSpec, source_names
from pulse.sources.companies_registry import CompaniesRegistryAdapter
from pulse.sources.google_places import GooglePlacesAdapter
from pulse.sources.municipality import MunicipalityAdapter
from pulse.verification.models import SourceOutcome, VerificationPolicy, VerificationReport, utcnow
from pulse.verification.policy import score_outcomes

logger = logging.getLogger(__name__)

MAX_IDENTIFIER_LENGTH = 128

BusinessLookup = Callable[[str], Optional[Mapping[str, Any]]]
AuditSink = Callable[[VerificationReport], Any]


def validate_business_id(business_id: Any) -> str:
    if not isinstance(business_id, str):
        raise RequestValidationError("business id must be a string")
    cleaned = business_id.strip()
    if not cleaned:
        raise RequestValidationError("business id must not be empty")
    if len(cleaned) > MAX_IDENTIFIER_LENGTH:
        raise RequestValidationError(f"business id must be at most {MAX_IDENTIFIER_LENGTH} characters")
    if not cleaned.isprintable():
        raise RequestValidationError("business id contains control characters")
    return cleaned


def default_sources(settings: Settings) -> List[SourceSpec]:
    """Municipality licence is required; registry and Places corroborate."""
    # Every attempt of every retry has to fit inside the overall deadline.
    attempts = settings.source_max_retries + 1
    per_call = min(settings.source_timeout, settings.verify_timeout / attempts)
    http = {"timeout": per_call, "max_retries": settings.source_max_retries}
    return [
        SourceSpec(
            MunicipalityAdapter(settings.tlv_api_base, settings.tlv_resource_id, **http),
            required=True,
            weight=40,
            partial_weight=10,
        ),
        SourceSpec(
            CompaniesRegistryAdapter(settings.registry_api_base, settings.registry_resource_id, **http),
            weight=30,
            partial_weight=10,
        ),
        SourceSpec(GooglePlacesAdapter(settings.google_api_key, **http), weight=30, partial_weight=10),
    ]


class Aggregator:
    """Runs every configured source for one identifier and scores the results."""

    def __init__(
        self,
        sources: Sequence[SourceSpec],
        policy: Optional[VerificationPolicy] = None,
        *,
        store: Optional[BusinessLookup] = None,
        audit: Optional[AuditSink] = None,
    ) -> None:
        if not sources:
            raise ValueError("at least one source must be configured")
        self.sources: Tuple[SourceSpec, ...] = tuple(sources)
        self.policy = policy or VerificationPolicy()
        self._store = store
        self._audit = audit

    def verify(self, business_id: str) -> VerificationReport:
        business_id = validate_business_id(business_id)

        # Store faults are real outages and propagate to the caller.
        hint = self._store(business_id) if self._store else None
        if hint is None:
            logger.debug("No stored business for %s; querying sources without a hint", business_id)

        outcomes = self._collect(business_id, hint)
        score, verified = score_outcomes(outcomes, self.sources, self.policy.threshold)
        report = VerificationReport(
            business_id=business_id,
            verified=verified,
            quality_score=score,
            outcomes=outcomes,
            generated_at=utcnow(),
            threshold=self.policy.threshold,
            required_sources=source_names(self.sources, required=True),
            optional_sources=source_names(self.sources, required=False),
            hint=dict(hint) if hint else None,
        )
        logger.info(
            "Verification for %s: score=%d verified=%s sources=%s",
            business_id,
            score,
            verified,
            [outcome.status for outcome in outcomes],
        )
        self._record(report)
        return report

    def _collect(self, business_id: str, hint: Optional[Mapping[str, Any]]) -> Tuple[SourceOutcome, ...]:
        slots: List[Optional[SourceOutcome]] = [None] * len(self.sources)
        # One pool per request: a lookup still running past the deadline only
        # holds its own thread, never a worker another request needs.
        executor = ThreadPoolExecutor(max_workers=len(self.sources), thread_name_prefix="verify")
        try:
            futures: Dict[Future, int] = {
                executor.submit(spec.adapter.lookup, business_id, hint): index
                for index, spec in enumerate(self.sources)
            }
            try:
                for future in as_completed(futures, timeout=self.policy.timeout):
                    index = futures[future]
                    slots[index] = self._outcome_from(future, self.sources[index])
            except FuturesTimeoutError:
                logger.warning("Verification for %s hit the %.1fs deadline", business_id, self.policy.timeout)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        for index, slot in enumerate(slots):
            if slot is None:
                slots[index] = SourceOutcome.error(self.sources[index].name, "timed out")
        return tuple(slots)  # type: ignore[arg-type]

    @staticmethod
    def _outcome_from(future: Future, spec: SourceSpec) -> SourceOutcome:
        try:
            outcome = future.result()
        except Exception as exc:  # noqa: BLE001
            logger.exception("Source %s raised during lookup: %s", spec.name, exc)
            return SourceOutcome.error(spec.name, str(exc) or type(exc).__name__)
        if not isinstance(outcome, SourceOutcome):
            return SourceOutcome.error(spec.name, f"{spec.name} produced no outcome")
        return outcome

    def _record(self, report: VerificationReport) -> None:
        if self._audit is None:
            return
        try:
            self._audit(report)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to record verification for %s: %s", report.business_id, exc)


def build_aggregator(
    settings: Settings,
    *,
    store: Optional[BusinessLookup] = None,
    audit: Optional[AuditSink] = None,
) -> Aggregator:
    policy = VerificationPolicy(threshold=settings.verification_threshold, timeout=settings.verify_timeout)
    return Aggregator(default_sources(settings), policy, store=store, audit=audit)
