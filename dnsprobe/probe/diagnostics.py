"""Optional inspection of the cache policy a resolver is really using.

This is a debugging aid, not part of the measurement. Resolvers that do not
expose their policy (or runtimes where the probe cannot look inside) report
``available: False`` and the run carries on.
"""

from __future__ import annotations

import logging
from typing import Any

from dnsprobe.snapshot import capture, format_ttl

logger = logging.getLogger(__name__)


def unavailable(reason: str) -> dict[str, Any]:
    return {"available": False, "reason": reason}


def inspect_cache_policy(resolver: object) -> dict[str, Any]:
    """Report the resolver's cache policy without triggering a lookup.

    Returns:
        Dict with ``available`` plus, when available, ``frozen`` (whether the
        policy is already locked in by a first lookup) and the TTL values.
        Never raises.
    """
    try:
        if not hasattr(resolver, "policy"):
            return unavailable(f"{type(resolver).__name__} does not expose a cache policy")
        policy = resolver.policy  # type: ignore[attr-defined]
        if policy is not None:
            return {
                "available": True,
                "frozen": True,
                "ttl": policy.ttl,
                "ttl_display": format_ttl(policy.ttl),
                "ttl_source": policy.ttl_source.value,
                "negative_ttl": policy.negative_ttl,
                "negative_ttl_source": policy.negative_ttl_source.value,
            }

        context = getattr(resolver, "context", None)
        if context is None:
            return unavailable("policy not frozen yet and no context to preview")
        preview = capture(context, label="preview")
        return {
            "available": True,
            "frozen": False,
            "ttl": preview.effective_ttl,
            "ttl_display": format_ttl(preview.effective_ttl),
            "ttl_source": preview.effective_ttl_source.value,
            "negative_ttl": preview.effective_negative_ttl,
            "negative_ttl_source": preview.effective_negative_ttl_source.value,
        }
    except Exception as e:  # diagnostics must never fail the run
        logger.debug(f"Cache policy inspection failed: {e}")
        return unavailable(f"inspection failed: {e}")
