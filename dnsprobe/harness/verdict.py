"""Verdicts: did observed caching match the intended TTL?

The classifier only looks at samples classified ``cache_hit`` or
``cache_miss``; the first sample (no baseline) and failures are left out of
the counts. Policy by intended TTL:

- None (no override): inconclusive, there is nothing to test against
- 0 (no caching): expected iff no hits
- forever, or at least the run duration: expected iff every sample hit
- finite and shorter than the run: expected iff at least one miss happens
  once the TTL has elapsed since the first query

A run that failed, or has no countable samples, is inconclusive.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

import numpy as np

from dnsprobe.matrix.result import RunResult
from dnsprobe.probe.loop import ProbeSample, SampleClass, classify_sample, is_near_threshold
from dnsprobe.snapshot import format_ttl

LOW_CONFIDENCE_FRACTION = 0.25


class VerdictStatus(str, Enum):
    """Outcome of comparing observed caching to the intended TTL."""

    EXPECTED = "expected"
    CONTRADICTED = "contradicted"
    INCONCLUSIVE = "inconclusive"


@dataclass
class Verdict:
    """Verdict for one run, computed on demand.

    Attributes:
        status: expected, contradicted or inconclusive
        hit_count: Samples classified cache_hit
        miss_count: Samples classified cache_miss
        failure_count: Failed samples (excluded from the total)
        total: hit_count + miss_count
        low_confidence: Many counted samples sat near the threshold
        median_ms: Median latency of counted samples
        p95_ms: 95th percentile latency of counted samples
        notes: Explanations
    """

    status: VerdictStatus
    hit_count: int = 0
    miss_count: int = 0
    failure_count: int = 0
    total: int = 0
    low_confidence: bool = False
    median_ms: float | None = None
    p95_ms: float | None = None
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "status": self.status.value,
            "hit_count": self.hit_count,
            "miss_count": self.miss_count,
            "failure_count": self.failure_count,
            "total": self.total,
            "low_confidence": self.low_confidence,
            "median_ms": self.median_ms,
            "p95_ms": self.p95_ms,
            "notes": self.notes,
        }


def _reclassify(samples: tuple[ProbeSample, ...], threshold_ms: float) -> list[ProbeSample]:
    out = []
    for s in samples:
        cls = classify_sample(s.iteration, s.success, s.query_ms, threshold_ms)
        near = (
            cls in (SampleClass.CACHE_HIT, SampleClass.CACHE_MISS)
            and is_near_threshold(s.query_ms, threshold_ms)
        )
        out.append(replace(s, classification=cls, near_threshold=near))
    return out


def classify(
    result: RunResult,
    intended_ttl: int | None,
    threshold_ms: float | None = None,
) -> Verdict:
    """Judge whether the run's caching matched ``intended_ttl``.

    Args:
        result: The captured run
        intended_ttl: TTL the run tried to apply (None for no override)
        threshold_ms: Re-classify samples against this latency threshold
            instead of trusting the classifications the child reported

    Deterministic and side-effect free; degenerate input yields
    INCONCLUSIVE rather than an exception.
    """
    samples = list(result.samples)
    if threshold_ms is not None:
        samples = _reclassify(result.samples, threshold_ms)
    counted = [
        s for s in samples
        if s.classification in (SampleClass.CACHE_HIT, SampleClass.CACHE_MISS)
    ]
    hits = sum(1 for s in counted if s.classification == SampleClass.CACHE_HIT)
    misses = len(counted) - hits
    failures = sum(1 for s in samples if s.classification == SampleClass.FAILURE)
    total = len(counted)

    verdict = Verdict(
        status=VerdictStatus.INCONCLUSIVE,
        hit_count=hits,
        miss_count=misses,
        failure_count=failures,
        total=total,
    )

    if counted:
        latencies = np.array([s.query_ms for s in counted], dtype=float)
        verdict.median_ms = float(np.median(latencies))
        verdict.p95_ms = float(np.percentile(latencies, 95))
        near = sum(1 for s in counted if s.near_threshold)
        if near / total >= LOW_CONFIDENCE_FRACTION:
            verdict.low_confidence = True
            verdict.notes.append(
                f"{near}/{total} samples within a factor of two of the threshold "
                f"(median {verdict.median_ms:.2f}ms); classification confidence is low"
            )

    if not result.succeeded:
        verdict.notes.append(f"Run {result.status.value}: {result.error or 'no details'}")
        return verdict
    if total == 0:
        verdict.notes.append("No countable samples (run too short or every lookup failed)")
        return verdict
    if intended_ttl is None:
        verdict.notes.append("No intended TTL; nothing to test against")
        return verdict

    if intended_ttl == 0:
        ok = hits == 0
        verdict.notes.append(
            "No caching intended: " + ("no hits observed" if ok else f"{hits} cache hits observed")
        )
    elif intended_ttl < 0 or intended_ttl >= result.spec.duration:
        ok = hits == total
        verdict.notes.append(
            f"Caching for the whole run intended ({format_ttl(intended_ttl)}): "
            + ("every query hit" if ok else f"{misses} cache misses observed")
        )
    else:
        first_offset = samples[0].offset_s
        deadline = first_offset + intended_ttl
        late_misses = [
            s for s in counted
            if s.classification == SampleClass.CACHE_MISS and s.offset_s >= deadline
        ]
        ok = bool(late_misses)
        if ok:
            verdict.notes.append(
                f"Re-resolution observed at iteration {late_misses[0].iteration} "
                f"after the {intended_ttl}s TTL elapsed"
            )
        else:
            verdict.notes.append(f"No cache miss after the {intended_ttl}s TTL elapsed")

    verdict.status = VerdictStatus.EXPECTED if ok else VerdictStatus.CONTRADICTED
    return verdict
