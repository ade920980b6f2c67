"""Capture of all DNS cache knobs and the effective TTL they produce.

Knobs read, for both the positive and the negative cache lifetime:

1. Security property (``networkaddress.cache.ttl``): the official channel and
   the highest precedence.
2. Deprecated system property (``sun.net.inetaddr.ttl``): used only when the
   security property is absent or empty.
3. General-purpose system property (``-Dnetworkaddress.cache.ttl``): looks
   like a valid override but the resolver never reads it. It is recorded for
   display only and never enters the precedence chain.

When neither 1 nor 2 is usable the compiled default applies: cache forever
when a sandbox (elevated-trust layer) is active, 30 seconds otherwise. The
negative lifetime defaults to 10 seconds.
"""

from __future__ import annotations

import logging
import platform
from dataclasses import dataclass
from enum import Enum
from typing import Any

from dnsprobe.context import (
    SECURITY_NEGATIVE_TTL,
    SECURITY_TTL,
    SUN_NET_NEGATIVE_TTL,
    SUN_NET_TTL,
    SYSTEM_NEGATIVE_TTL,
    SYSTEM_TTL,
    ConfigurationContext,
)

logger = logging.getLogger(__name__)

FOREVER = -1
DEFAULT_TTL = 30
DEFAULT_TTL_SANDBOXED = FOREVER
DEFAULT_NEGATIVE_TTL = 10


class ConfigSource(str, Enum):
    """Where an effective TTL came from."""

    SECURITY_PROPERTY = "security_property"
    SUN_NET_PROPERTY = "sun_net_inetaddr_ttl"
    SYSTEM_PROPERTY = "system_property"  # display only, never selected
    DEFAULT = "default"


def format_ttl(ttl: int | None) -> str:
    """Human-readable TTL."""
    if ttl is None:
        return "none"
    if ttl < 0:
        return "forever"
    if ttl == 0:
        return "0s (no caching)"
    return f"{ttl}s"


def parse_ttl(raw: str) -> int:
    """Parse a TTL string. Any negative value means cache forever.

    Raises:
        ValueError: If the value is not an integer.
    """
    value = int(raw.strip())
    return FOREVER if value < 0 else value


@dataclass(frozen=True)
class KnobReading:
    """Raw value of one knob as read from its table.

    ``raw is None`` means the knob is absent; an empty string is present but
    empty. Neither is ever treated as zero.
    """

    table: str  # "security" or "system"
    name: str
    raw: str | None

    @property
    def key(self) -> str:
        return f"{self.table}_{self.name.replace('.', '_')}"

    @property
    def present(self) -> bool:
        return self.raw is not None and self.raw.strip() != ""

    @property
    def malformed(self) -> bool:
        if not self.present:
            return False
        try:
            parse_ttl(self.raw)  # type: ignore[arg-type]
        except ValueError:
            return True
        return False

    @property
    def value(self) -> int | None:
        """Parsed TTL, or None when absent, empty or malformed."""
        if not self.present or self.malformed:
            return None
        return parse_ttl(self.raw)  # type: ignore[arg-type]

    def display(self) -> str:
        if self.raw is None:
            return "<absent>"
        if self.raw == "":
            return "<empty>"
        return self.raw


def resolve_effective(
    security: KnobReading,
    fallback: KnobReading,
    default: int,
) -> tuple[int, ConfigSource]:
    """Apply the precedence chain: security, then deprecated fallback, then default."""
    for reading, source in (
        (security, ConfigSource.SECURITY_PROPERTY),
        (fallback, ConfigSource.SUN_NET_PROPERTY),
    ):
        if reading.malformed:
            logger.warning(
                f"Ignoring malformed value {reading.raw!r} for {reading.table} "
                f"property {reading.name}"
            )
            continue
        if reading.value is not None:
            return reading.value, source
    return default, ConfigSource.DEFAULT


def runtime_info() -> dict[str, str]:
    return {
        "implementation": platform.python_implementation(),
        "version": platform.python_version(),
        "platform": platform.platform(terse=True),
    }


@dataclass(frozen=True)
class ConfigSnapshot:
    """Immutable view of every cache knob plus the derived effective values.

    Attributes:
        label: When the snapshot was taken ("before" or "after" overrides)
        security_ttl, security_negative_ttl: Security layer readings
        sun_net_ttl, sun_net_negative_ttl: Deprecated fallback readings
        system_ttl, system_negative_ttl: General-purpose readings (ignored)
        sandbox_active: Whether the elevated-trust layer is active
        effective_ttl: Positive TTL the resolver will use (-1 = forever)
        effective_ttl_source: Source of effective_ttl
        effective_negative_ttl: Negative TTL the resolver will use
        effective_negative_ttl_source: Source of effective_negative_ttl
        runtime: Interpreter identification
    """

    label: str
    security_ttl: KnobReading
    security_negative_ttl: KnobReading
    sun_net_ttl: KnobReading
    sun_net_negative_ttl: KnobReading
    system_ttl: KnobReading
    system_negative_ttl: KnobReading
    sandbox_active: bool
    effective_ttl: int
    effective_ttl_source: ConfigSource
    effective_negative_ttl: int
    effective_negative_ttl_source: ConfigSource
    runtime: dict[str, str]

    def readings(self) -> list[KnobReading]:
        return [
            self.security_ttl,
            self.security_negative_ttl,
            self.system_ttl,
            self.system_negative_ttl,
            self.sun_net_ttl,
            self.sun_net_negative_ttl,
        ]

    @property
    def uses_ignored_override(self) -> bool:
        """True when the general-purpose property is set (and therefore ignored)."""
        return self.system_ttl.present or self.system_negative_ttl.present

    def to_dict(self) -> dict[str, Any]:
        """Convert to the CONFIG block payload."""
        return {
            "label": self.label,
            "runtime": dict(self.runtime),
            "sandbox_active": self.sandbox_active,
            "properties": {r.key: r.raw for r in self.readings()},
            "malformed": [r.key for r in self.readings() if r.malformed],
            "effective_ttl": self.effective_ttl,
            "effective_ttl_source": self.effective_ttl_source.value,
            "effective_negative_ttl": self.effective_negative_ttl,
            "effective_negative_ttl_source": self.effective_negative_ttl_source.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConfigSnapshot":
        """Rebuild a snapshot from a CONFIG block payload."""
        props = data.get("properties", {})

        def reading(table: str, name: str) -> KnobReading:
            probe = KnobReading(table, name, None)
            return KnobReading(table, name, props.get(probe.key))

        return cls(
            label=data.get("label", ""),
            security_ttl=reading("security", SECURITY_TTL),
            security_negative_ttl=reading("security", SECURITY_NEGATIVE_TTL),
            sun_net_ttl=reading("system", SUN_NET_TTL),
            sun_net_negative_ttl=reading("system", SUN_NET_NEGATIVE_TTL),
            system_ttl=reading("system", SYSTEM_TTL),
            system_negative_ttl=reading("system", SYSTEM_NEGATIVE_TTL),
            sandbox_active=bool(data.get("sandbox_active", False)),
            effective_ttl=int(data["effective_ttl"]),
            effective_ttl_source=ConfigSource(data["effective_ttl_source"]),
            effective_negative_ttl=int(data.get("effective_negative_ttl", DEFAULT_NEGATIVE_TTL)),
            effective_negative_ttl_source=ConfigSource(
                data.get("effective_negative_ttl_source", ConfigSource.DEFAULT.value)
            ),
            runtime=dict(data.get("runtime", {})),
        )

    def render(self) -> str:
        """Multi-section human-readable rendering."""
        sep = "-" * 40
        lines = [
            f"DNS Cache Configuration Snapshot ({self.label})",
            "=" * 60,
            "",
            "Runtime:",
            sep,
        ]
        for key, value in self.runtime.items():
            lines.append(f"  {key}: {value}")
        lines.append(f"  sandbox active: {self.sandbox_active}")
        lines += ["", "Security properties:", sep]
        lines.append(f"  {SECURITY_TTL}: {self.security_ttl.display()}")
        lines.append(f"  {SECURITY_NEGATIVE_TTL}: {self.security_negative_ttl.display()}")
        lines += ["", "System properties (-D):", sep]
        warning = " WARNING: ignored by the resolver" if self.system_ttl.present else ""
        lines.append(f"  {SYSTEM_TTL}: {self.system_ttl.display()}{warning}")
        lines.append(f"  {SYSTEM_NEGATIVE_TTL}: {self.system_negative_ttl.display()}")
        deprecated = " (deprecated)" if self.sun_net_ttl.present else ""
        lines.append(f"  {SUN_NET_TTL}: {self.sun_net_ttl.display()}{deprecated}")
        lines.append(f"  {SUN_NET_NEGATIVE_TTL}: {self.sun_net_negative_ttl.display()}")
        lines += ["", "Effective values:", sep]
        lines.append(
            f"  TTL: {format_ttl(self.effective_ttl)} "
            f"(from {self.effective_ttl_source.value})"
        )
        lines.append(
            f"  Negative TTL: {format_ttl(self.effective_negative_ttl)} "
            f"(from {self.effective_negative_ttl_source.value})"
        )
        return "\n".join(lines)


def capture(context: ConfigurationContext, label: str = "before") -> ConfigSnapshot:
    """Read every knob from ``context`` and derive the effective TTLs.

    Pure read; never raises for absent or malformed values.
    """
    security_ttl = KnobReading("security", SECURITY_TTL, context.get_security_property(SECURITY_TTL))
    security_neg = KnobReading(
        "security", SECURITY_NEGATIVE_TTL, context.get_security_property(SECURITY_NEGATIVE_TTL)
    )
    sun_ttl = KnobReading("system", SUN_NET_TTL, context.get_system_property(SUN_NET_TTL))
    sun_neg = KnobReading(
        "system", SUN_NET_NEGATIVE_TTL, context.get_system_property(SUN_NET_NEGATIVE_TTL)
    )
    system_ttl = KnobReading("system", SYSTEM_TTL, context.get_system_property(SYSTEM_TTL))
    system_neg = KnobReading(
        "system", SYSTEM_NEGATIVE_TTL, context.get_system_property(SYSTEM_NEGATIVE_TTL)
    )

    default = DEFAULT_TTL_SANDBOXED if context.sandbox_active else DEFAULT_TTL
    effective, source = resolve_effective(security_ttl, sun_ttl, default)
    effective_neg, source_neg = resolve_effective(security_neg, sun_neg, DEFAULT_NEGATIVE_TTL)

    return ConfigSnapshot(
        label=label,
        security_ttl=security_ttl,
        security_negative_ttl=security_neg,
        sun_net_ttl=sun_ttl,
        sun_net_negative_ttl=sun_neg,
        system_ttl=system_ttl,
        system_negative_ttl=system_neg,
        sandbox_active=context.sandbox_active,
        effective_ttl=effective,
        effective_ttl_source=source,
        effective_negative_ttl=effective_neg,
        effective_negative_ttl_source=source_neg,
        runtime=runtime_info(),
    )
