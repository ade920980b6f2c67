"""Expansion of (variants x methods x TTL values) into RunSpecs."""

import logging
from typing import Iterable

from dnsprobe.matrix.spec import ConfigMethod, RunSpec

logger = logging.getLogger(__name__)


def generate(
    variants: Iterable[str],
    methods: Iterable[ConfigMethod],
    ttl_values: Iterable[int],
    target_host: str,
    interval: float,
    duration: float,
) -> list[RunSpec]:
    """Build the run list for a matrix.

    Variant-major, then methods in the given order, then TTL values in the
    given order. NO_OVERRIDE is emitted once per variant with no intended
    TTL, however many TTL values there are. Duplicate inputs are kept as
    given.

    Raises:
        ValueError: On an empty variant or method list, or an overriding
            method with no TTL values to apply.
    """
    variants = list(variants)
    methods = [ConfigMethod(m) for m in methods]
    ttl_values = [int(t) for t in ttl_values]

    if not variants:
        raise ValueError("At least one variant is required")
    if not methods:
        raise ValueError("At least one configuration method is required")
    if not ttl_values and any(m.takes_ttl for m in methods):
        raise ValueError("TTL values are required for overriding methods")

    specs: list[RunSpec] = []
    for variant in variants:
        for method in methods:
            ttls: list[int | None] = list(ttl_values) if method.takes_ttl else [None]
            for ttl in ttls:
                specs.append(RunSpec(
                    variant=variant,
                    method=method,
                    intended_ttl=ttl,
                    target_host=target_host,
                    interval=interval,
                    duration=duration,
                ))

    logger.debug(
        f"Generated {len(specs)} runs: {len(variants)} variants x {len(methods)} methods "
        f"x {len(ttl_values)} TTL values"
    )
    return specs
