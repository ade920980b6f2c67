"""Address resolution with a process-wide positive and negative cache.

CachingResolver reproduces the caching behaviour the probe observes from
the outside: on its first lookup it freezes a CachePolicy from the
ConfigurationContext (security property, then deprecated fallback, then
compiled default) and keeps it for its lifetime. Security properties set
after that first lookup are not picked up.
"""

from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass
from typing import Callable

from dnsprobe.context import ConfigurationContext
from dnsprobe.errors import ResolutionError
from dnsprobe.snapshot import FOREVER, ConfigSnapshot, ConfigSource, capture

logger = logging.getLogger(__name__)

Lookup = Callable[[str], list[str]]


def system_lookup(host: str) -> list[str]:
    """Resolve ``host`` with the platform resolver (getaddrinfo)."""
    infos = socket.getaddrinfo(host, None, proto=socket.IPPROTO_TCP)
    return sorted({info[4][0] for info in infos})


@dataclass(frozen=True)
class CachePolicy:
    """Frozen cache lifetimes (seconds; -1 = forever, 0 = no caching)."""

    ttl: int
    negative_ttl: int
    ttl_source: ConfigSource
    negative_ttl_source: ConfigSource

    @classmethod
    def from_snapshot(cls, snapshot: ConfigSnapshot) -> "CachePolicy":
        return cls(
            ttl=snapshot.effective_ttl,
            negative_ttl=snapshot.effective_negative_ttl,
            ttl_source=snapshot.effective_ttl_source,
            negative_ttl_source=snapshot.effective_negative_ttl_source,
        )

    @staticmethod
    def expiry(now: float, ttl: int) -> float | None:
        """Absolute expiry for an entry stored at ``now``. None means never."""
        if ttl == FOREVER:
            return None
        return now + ttl


@dataclass
class _CacheEntry:
    addresses: tuple[str, ...] | None
    error: str | None
    expires_at: float | None

    def valid(self, now: float) -> bool:
        return self.expires_at is None or now < self.expires_at


class CachingResolver:
    """Resolver whose caching is governed by a ConfigurationContext.

    Usage:
        resolver = CachingResolver(context)
        addresses = resolver.resolve("example.com")
    """

    def __init__(
        self,
        context: ConfigurationContext,
        lookup: Lookup | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.context = context
        self._lookup = lookup or system_lookup
        self._clock = clock
        self._policy: CachePolicy | None = None
        self._cache: dict[str, _CacheEntry] = {}

    @property
    def policy(self) -> CachePolicy | None:
        """Policy in force, or None before the first lookup."""
        return self._policy

    def _ensure_policy(self) -> CachePolicy:
        if self._policy is None:
            self._policy = CachePolicy.from_snapshot(capture(self.context, label="resolver"))
            self.context.mark_used()
            logger.debug(
                f"Cache policy frozen: ttl={self._policy.ttl} ({self._policy.ttl_source.value}), "
                f"negative_ttl={self._policy.negative_ttl} "
                f"({self._policy.negative_ttl_source.value})"
            )
        return self._policy

    def resolve(self, host: str) -> tuple[str, ...]:
        """Resolve ``host`` to a sorted tuple of addresses.

        Raises:
            ResolutionError: If the lookup fails or a cached failure is still valid.
        """
        policy = self._ensure_policy()
        now = self._clock()

        entry = self._cache.get(host)
        if entry is not None:
            if entry.valid(now):
                if entry.error is not None:
                    raise ResolutionError(entry.error)
                return entry.addresses  # type: ignore[return-value]
            del self._cache[host]

        try:
            addresses = tuple(sorted(self._lookup(host)))
        # getaddrinfo raises UnicodeError (a ValueError) for hostnames that fail IDNA encoding
        except (OSError, ValueError) as e:
            message = f"{host}: {e}"
            self._store(host, None, message, policy.negative_ttl)
            raise ResolutionError(message) from e

        if not addresses:
            message = f"{host}: no addresses returned"
            self._store(host, None, message, policy.negative_ttl)
            raise ResolutionError(message)

        self._store(host, addresses, None, policy.ttl)
        return addresses

    def _store(
        self,
        host: str,
        addresses: tuple[str, ...] | None,
        error: str | None,
        ttl: int,
    ) -> None:
        if ttl == 0:
            return
        self._cache[host] = _CacheEntry(
            addresses=addresses,
            error=error,
            expires_at=CachePolicy.expiry(self._clock(), ttl),
        )
