"""Timed resolution loop that classifies each sample by latency.

Classification is a threshold heuristic: a cache hit is served from memory
and returns almost immediately, a miss pays a network round trip. Network
jitter, interpreter warm-up and scheduler noise all blur the line, so samples
close to the threshold are flagged ``near_threshold``.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterator, Protocol

from dnsprobe.errors import ResolutionError

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD_MS = 5.0


class SampleClass(str, Enum):
    """Classification of a single probe sample."""

    FIRST = "first"
    CACHE_HIT = "cache_hit"
    CACHE_MISS = "cache_miss"
    FAILURE = "failure"


class Resolver(Protocol):
    def resolve(self, host: str) -> tuple[str, ...]: ...


@dataclass(frozen=True)
class ProbeSample:
    """One resolution attempt.

    Attributes:
        iteration: 1-based sequence number within the run
        timestamp: Wall-clock time at query start (epoch milliseconds)
        offset_s: Seconds since the loop started, at query start
        query_ms: Latency of the resolution call
        classification: first, cache_hit, cache_miss or failure
        addresses: Resolved addresses (sorted), empty on failure
        error: Failure reason, None on success
        addresses_changed: Address set differs from the previous success
        near_threshold: Latency close enough to the threshold to be doubtful
    """

    iteration: int
    timestamp: int
    offset_s: float
    query_ms: float
    classification: SampleClass
    addresses: tuple[str, ...] = ()
    error: str | None = None
    addresses_changed: bool = False
    near_threshold: bool = False

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a RESULTS block entry."""
        data: dict[str, Any] = {
            "iteration": self.iteration,
            "timestamp": self.timestamp,
            "offset_s": round(self.offset_s, 3),
            "query_ms": round(self.query_ms, 3),
            "success": self.success,
            "classification": self.classification.value,
            "addresses_changed": self.addresses_changed,
            "near_threshold": self.near_threshold,
        }
        if self.success:
            data["addresses"] = list(self.addresses)
        else:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProbeSample":
        """Create from a RESULTS block entry."""
        return cls(
            iteration=data["iteration"],
            timestamp=data["timestamp"],
            offset_s=data.get("offset_s", 0.0),
            query_ms=data["query_ms"],
            classification=SampleClass(data["classification"]),
            addresses=tuple(data.get("addresses") or ()),
            error=data.get("error"),
            addresses_changed=data.get("addresses_changed", False),
            near_threshold=data.get("near_threshold", False),
        )


def classify_sample(
    iteration: int,
    success: bool,
    query_ms: float,
    threshold_ms: float = DEFAULT_THRESHOLD_MS,
) -> SampleClass:
    """Classify one sample.

    The first sample has no baseline and is always ``first``, even if it
    failed.
    """
    if iteration == 1:
        return SampleClass.FIRST
    if not success:
        return SampleClass.FAILURE
    if query_ms < threshold_ms:
        return SampleClass.CACHE_HIT
    return SampleClass.CACHE_MISS


def is_near_threshold(query_ms: float, threshold_ms: float) -> bool:
    return threshold_ms / 2 <= query_ms < threshold_ms * 2


class ProbeLoop:
    """Repeatedly resolve a name and emit classified samples.

    Usage:
        loop = ProbeLoop(resolver, threshold_ms=5.0)
        for sample in loop.run("example.com", interval=5, duration=120):
            ...

    A loop instance runs once; calling run() a second time raises.

    Boundary policy: a new tick starts while ``elapsed < duration``
    (exclusive, the default). With instantaneous lookups that yields
    floor(duration / interval) samples when duration is an exact multiple of
    interval and floor + 1 otherwise. With ``inclusive_end=True`` the check
    is ``elapsed <= duration`` and a tick landing exactly on the deadline is
    taken, so the count is always floor + 1.
    """

    def __init__(
        self,
        resolver: Resolver,
        threshold_ms: float = DEFAULT_THRESHOLD_MS,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] | None = None,
        inclusive_end: bool = False,
    ) -> None:
        if threshold_ms <= 0:
            raise ValueError(f"threshold_ms must be positive, got {threshold_ms}")
        self.resolver = resolver
        self.threshold_ms = threshold_ms
        self.inclusive_end = inclusive_end
        self._clock = clock
        self._wall_clock = wall_clock
        self._sleep = sleep
        self._started = False

    def run(
        self,
        target: str,
        interval: float,
        duration: float,
        cancel: threading.Event | None = None,
    ) -> Iterator[ProbeSample]:
        """Start the loop and return a lazy iterator of samples.

        Args:
            target: Hostname to resolve
            interval: Seconds to wait between ticks
            duration: Total wall-clock budget in seconds
            cancel: Optional event; when set the loop stops after the
                in-flight sample and keeps what it gathered

        Raises:
            RuntimeError: If this loop has already been run
            ValueError: If interval or duration is invalid
        """
        if self._started:
            raise RuntimeError("ProbeLoop is not restartable; create a new instance")
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        if duration < 0:
            raise ValueError(f"duration must be non-negative, got {duration}")
        self._started = True
        return self._iterate(target, interval, duration, cancel)

    def _within(self, elapsed: float, duration: float) -> bool:
        if self.inclusive_end:
            return elapsed <= duration
        return elapsed < duration

    def _wait(self, seconds: float, cancel: threading.Event | None) -> bool:
        """Suspend between ticks. Returns True if cancelled."""
        if self._sleep is None:
            if cancel is not None:
                return cancel.wait(seconds)
            time.sleep(seconds)
            return False
        self._sleep(seconds)
        return cancel is not None and cancel.is_set()

    def _iterate(
        self,
        target: str,
        interval: float,
        duration: float,
        cancel: threading.Event | None,
    ) -> Iterator[ProbeSample]:
        start = self._clock()
        iteration = 0
        last_addresses: tuple[str, ...] | None = None

        while self._within(self._clock() - start, duration):
            iteration += 1
            offset = self._clock() - start
            timestamp = int(self._wall_clock() * 1000)

            query_start = self._clock()
            addresses: tuple[str, ...] = ()
            error: str | None = None
            try:
                addresses = tuple(self.resolver.resolve(target))
            except ResolutionError as e:
                error = str(e) or "resolution failed"
            query_ms = (self._clock() - query_start) * 1000.0

            success = error is None
            classification = classify_sample(iteration, success, query_ms, self.threshold_ms)
            changed = (
                success
                and last_addresses is not None
                and addresses != last_addresses
            )
            if success:
                last_addresses = addresses

            sample = ProbeSample(
                iteration=iteration,
                timestamp=timestamp,
                offset_s=offset,
                query_ms=query_ms,
                classification=classification,
                addresses=addresses,
                error=error,
                addresses_changed=changed,
                near_threshold=(
                    success
                    and classification != SampleClass.FIRST
                    and is_near_threshold(query_ms, self.threshold_ms)
                ),
            )
            logger.debug(
                f"Iteration {iteration}: {classification.value} "
                f"({query_ms:.2f}ms){' [ADDRESSES CHANGED]' if changed else ''}"
            )
            yield sample

            if cancel is not None and cancel.is_set():
                logger.info(f"Probe cancelled after {iteration} samples")
                return
            # Skip the final wait when the next tick could not start anyway.
            if not self._within(self._clock() - start + interval, duration):
                return
            if self._wait(interval, cancel):
                logger.info(f"Probe cancelled after {iteration} samples")
                return
