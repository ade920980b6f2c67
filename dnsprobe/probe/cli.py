"""Probing process: capture configuration, run the probe loop, print results.

Usage:
    python -m dnsprobe.probe.cli [host] [interval_seconds] [duration_seconds]
        [-D name=value ...] [--security-file PATH] [--threshold-ms N] [--sandbox]

Environment variables (positional arguments take precedence):
    DNS_TARGET_HOST                Hostname to resolve
    DNS_INTERVAL_SECONDS           Seconds between queries
    DNS_DURATION_SECONDS           Total probe duration
    DNS_SET_SECURITY_PROPERTY      "true" to set security properties at runtime
    DNS_CACHE_TTL                  Value for networkaddress.cache.ttl
    DNS_CACHE_NEGATIVE_TTL         Value for networkaddress.cache.negative.ttl
    DNS_SECURITY_PROPERTIES_FILE   Security properties file to load
    DNS_PROBE_THRESHOLD_MS         Cache hit latency threshold

Exit status is 0 once the duration has elapsed (or the run was cancelled
with SIGINT/SIGTERM), whatever the samples show, and 2 on a startup error.
"""

from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Mapping, TextIO

from dnsprobe.context import SECURITY_FILE_ENV, SECURITY_NEGATIVE_TTL, SECURITY_TTL, ConfigurationContext
from dnsprobe.errors import StartupError
from dnsprobe.probe.diagnostics import inspect_cache_policy
from dnsprobe.probe.loop import DEFAULT_THRESHOLD_MS, ProbeLoop, ProbeSample
from dnsprobe.probe.output import format_config_block, format_results_block
from dnsprobe.resolver import CachingResolver, Lookup
from dnsprobe.snapshot import capture

logger = logging.getLogger(__name__)

DEFAULT_HOSTNAME = "www.google.com"
DEFAULT_INTERVAL_SECONDS = 5.0
DEFAULT_DURATION_SECONDS = 120.0

ENV_TARGET_HOST = "DNS_TARGET_HOST"
ENV_INTERVAL = "DNS_INTERVAL_SECONDS"
ENV_DURATION = "DNS_DURATION_SECONDS"
ENV_SET_SECURITY_PROPERTY = "DNS_SET_SECURITY_PROPERTY"
ENV_CACHE_TTL = "DNS_CACHE_TTL"
ENV_CACHE_NEGATIVE_TTL = "DNS_CACHE_NEGATIVE_TTL"
ENV_THRESHOLD = "DNS_PROBE_THRESHOLD_MS"

EXIT_OK = 0
EXIT_STARTUP_ERROR = 2


@dataclass
class ProbeSettings:
    """Fully resolved inputs of one probing process."""

    host: str = DEFAULT_HOSTNAME
    interval: float = DEFAULT_INTERVAL_SECONDS
    duration: float = DEFAULT_DURATION_SECONDS
    threshold_ms: float = DEFAULT_THRESHOLD_MS
    defines: list[str] = field(default_factory=list)
    security_file: str | None = None
    sandbox: bool = False
    inclusive_end: bool = False
    apply_override: bool = False
    override_ttl: str | None = None
    override_negative_ttl: str | None = None


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="dnsprobe.probe.cli",
        description="Probe DNS cache behaviour of this runtime",
    )
    parser.add_argument("host", nargs="?", default=None, help="Hostname to resolve")
    parser.add_argument("interval", nargs="?", default=None, help="Seconds between queries")
    parser.add_argument("duration", nargs="?", default=None, help="Total duration in seconds")
    parser.add_argument(
        "-D", "--define",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Set a system property (repeatable)",
    )
    parser.add_argument(
        "--security-file",
        default=None,
        help=f"Security properties file (default: ${SECURITY_FILE_ENV})",
    )
    parser.add_argument(
        "--threshold-ms",
        default=None,
        help=f"Latency below which a sample counts as a cache hit (default: {DEFAULT_THRESHOLD_MS})",
    )
    parser.add_argument(
        "--sandbox",
        action="store_true",
        help="Run as if an elevated-trust sandbox were active (default TTL becomes forever)",
    )
    parser.add_argument(
        "--inclusive-end",
        action="store_true",
        help="Also take a sample exactly at the end of the duration",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging on stderr")
    return parser


def _number(raw: str, name: str) -> float:
    try:
        value = float(raw)
    except ValueError as e:
        raise StartupError(f"{name} must be a number, got {raw!r}") from e
    if value < 0:
        raise StartupError(f"{name} must be non-negative, got {raw!r}")
    return value


def resolve_settings(args: argparse.Namespace, environ: Mapping[str, str]) -> ProbeSettings:
    """Merge command line and environment into ProbeSettings.

    Raises:
        StartupError: On a non-numeric interval, duration or threshold.
    """
    host = args.host or environ.get(ENV_TARGET_HOST) or DEFAULT_HOSTNAME
    interval_raw = args.interval or environ.get(ENV_INTERVAL) or str(DEFAULT_INTERVAL_SECONDS)
    duration_raw = args.duration or environ.get(ENV_DURATION) or str(DEFAULT_DURATION_SECONDS)
    threshold_raw = args.threshold_ms or environ.get(ENV_THRESHOLD) or str(DEFAULT_THRESHOLD_MS)

    interval = _number(interval_raw, "interval")
    if interval == 0:
        raise StartupError("interval must be greater than zero")
    threshold = _number(threshold_raw, "threshold_ms")
    if threshold == 0:
        raise StartupError("threshold_ms must be greater than zero")

    return ProbeSettings(
        host=host,
        interval=interval,
        duration=_number(duration_raw, "duration"),
        threshold_ms=threshold,
        defines=list(args.define),
        security_file=args.security_file or environ.get(SECURITY_FILE_ENV) or None,
        sandbox=args.sandbox,
        inclusive_end=args.inclusive_end,
        apply_override=environ.get(ENV_SET_SECURITY_PROPERTY, "").lower() == "true",
        override_ttl=environ.get(ENV_CACHE_TTL),
        override_negative_ttl=environ.get(ENV_CACHE_NEGATIVE_TTL),
    )


def apply_runtime_override(context: ConfigurationContext, settings: ProbeSettings) -> list[str]:
    """Set security properties at runtime when the switch is on.

    Must run before the resolver's first lookup. Returns the keys set.
    """
    if not settings.apply_override:
        return []
    applied = []
    if settings.override_ttl is not None:
        context.set_security_property(SECURITY_TTL, settings.override_ttl)
        applied.append(SECURITY_TTL)
    if settings.override_negative_ttl is not None:
        context.set_security_property(SECURITY_NEGATIVE_TTL, settings.override_negative_ttl)
        applied.append(SECURITY_NEGATIVE_TTL)
    return applied


def _progress_line(sample: ProbeSample) -> str:
    ts = datetime.fromtimestamp(sample.timestamp / 1000, tz=timezone.utc).isoformat(timespec="milliseconds")
    if sample.success:
        body = f"[{', '.join(sample.addresses)}]"
    else:
        body = f"FAILED - {sample.error}"
    changed = " [ADDRESSES CHANGED]" if sample.addresses_changed else ""
    return (
        f"[{ts}] Iteration {sample.iteration}: {body} "
        f"(query took {sample.query_ms:.1f}ms, {sample.classification.value}){changed}"
    )


def run_probe(
    settings: ProbeSettings,
    out: TextIO | None = None,
    lookup: Lookup | None = None,
    cancel: threading.Event | None = None,
    clock: Callable[[], float] | None = None,
    sleep: Callable[[float], None] | None = None,
) -> list[ProbeSample]:
    """Run one probing session and print both structured blocks to ``out``.

    Raises:
        StartupError: If the configuration cannot be read.
    """
    out = out if out is not None else sys.stdout
    context = ConfigurationContext.from_sources(
        settings.defines, settings.security_file, sandbox_active=settings.sandbox
    )

    before = capture(context, label="before")
    out.write("Configuration BEFORE runtime changes:\n")
    out.write(before.render() + "\n\n")

    applied = apply_runtime_override(context, settings)
    for key in applied:
        out.write(f"Set security property {key} = {context.get_security_property(key)}\n")

    after = capture(context, label="after")
    out.write("Configuration AFTER runtime changes (if any):\n")
    out.write(after.render() + "\n\n")

    resolver_kwargs = {"clock": clock} if clock is not None else {}
    resolver = CachingResolver(context, lookup=lookup, **resolver_kwargs)
    diagnostics = {"cache_policy": inspect_cache_policy(resolver), "overrides_applied": applied}
    out.write(format_config_block(before, after, diagnostics) + "\n")

    out.write("=" * 80 + "\n")
    out.write(f"Target: {settings.host}\n")
    out.write(f"Interval: {settings.interval}s\n")
    out.write(f"Duration: {settings.duration}s\n")
    out.write("=" * 80 + "\n")
    out.flush()

    loop_kwargs = {}
    if clock is not None:
        loop_kwargs["clock"] = clock
    loop = ProbeLoop(
        resolver,
        threshold_ms=settings.threshold_ms,
        sleep=sleep,
        inclusive_end=settings.inclusive_end,
        **loop_kwargs,
    )
    samples: list[ProbeSample] = []
    for sample in loop.run(settings.host, settings.interval, settings.duration, cancel=cancel):
        samples.append(sample)
        out.write(_progress_line(sample) + "\n")
        out.flush()

    out.write(format_results_block(samples) + "\n")
    out.write(f"Test completed. Total iterations: {len(samples)}\n")
    out.flush()
    return samples


def setup_logging(verbose: bool = False) -> None:
    """Log to stderr so stdout stays parseable."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def main(argv: list[str] | None = None) -> int:
    args = create_parser().parse_args(argv)
    setup_logging(args.verbose)

    cancel = threading.Event()

    def _on_signal(signum, frame):
        logger.info(f"Received signal {signum}, stopping after the current sample")
        cancel.set()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    try:
        settings = resolve_settings(args, os.environ)
        run_probe(settings, cancel=cancel)
    except StartupError as e:
        logger.error(f"Startup failed: {e}")
        return EXIT_STARTUP_ERROR
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
