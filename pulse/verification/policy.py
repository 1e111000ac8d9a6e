"""Scoring rules that turn per-source outcomes into a quality score."""

from typing import Sequence, Tuple

from pulse.sources.base import SourceSpec
from pulse.verification.models import FOUND, SourceOutcome

DEFAULT_THRESHOLD = 70
MAX_SCORE = 100


def score_outcomes(
    outcomes: Sequence[SourceOutcome],
    sources: Sequence[SourceSpec],
    threshold: int = DEFAULT_THRESHOLD,
) -> Tuple[int, bool]:
    """Return ``(score, verified)`` for outcomes listed in source order.

    A matching record earns the source's full weight, a non-matching one its
    partial weight, anything else nothing. Every required source has to match
    for the business to be verified, whatever the score.
    """
    if len(outcomes) != len(sources):
        raise ValueError(f"expected {len(sources)} outcomes, got {len(outcomes)}")

    total = 0
    required_matched = True
    for spec, outcome in zip(sources, outcomes):
        if outcome.is_match:
            total += spec.weight
        elif outcome.kind == FOUND:
            total += min(spec.partial_weight, spec.weight)
        if spec.required and not outcome.is_match:
            required_matched = False

    score = max(0, min(MAX_SCORE, int(round(total))))
    return score, required_matched and score >= threshold
