"""Process-wide DNS cache configuration state.

The target runtime keeps two property tables that can influence address
caching:

- system properties, set with ``-D name=value`` on the command line
- security properties, read from the security properties file and mutable
  at runtime

The resolver consults these tables once, on its first lookup, and keeps the
resulting policy for the life of the process. ConfigurationContext makes
that state an explicit object so the same instance can be handed to both
the snapshot capture and the resolver.

Precondition: security properties must be applied before the first lookup.
Writes after that point are recorded (and show up in later snapshots) but
the resolver keeps using the policy it already froze.
"""

from __future__ import annotations

import logging
from pathlib import Path

from dnsprobe.errors import StartupError

logger = logging.getLogger(__name__)

# Security layer (the channel the resolver actually reads)
SECURITY_TTL = "networkaddress.cache.ttl"
SECURITY_NEGATIVE_TTL = "networkaddress.cache.negative.ttl"

# Deprecated fallback, read from the system table
SUN_NET_TTL = "sun.net.inetaddr.ttl"
SUN_NET_NEGATIVE_TTL = "sun.net.inetaddr.negative.ttl"

# Same names as the security keys but set as system properties. The resolver
# never reads these.
SYSTEM_TTL = SECURITY_TTL
SYSTEM_NEGATIVE_TTL = SECURITY_NEGATIVE_TTL

SECURITY_FILE_ENV = "DNS_SECURITY_PROPERTIES_FILE"
SECURITY_ENTRY_PREFIX = "networkaddress.cache"


def parse_properties(text: str) -> dict[str, str]:
    """Parse ``key=value`` properties text.

    Lines starting with ``#`` or ``!`` are comments. A ``:`` separator is
    accepted as well as ``=``. Later duplicates win.
    """
    properties: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line[0] in "#!":
            continue
        eq = line.find("=")
        colon = line.find(":")
        seps = [i for i in (eq, colon) if i >= 0]
        if not seps:
            properties[line] = ""
            continue
        idx = min(seps)
        properties[line[:idx].strip()] = line[idx + 1:].strip()
    return properties


def parse_define(arg: str) -> tuple[str, str]:
    """Parse a ``name=value`` define. A bare ``name`` gets an empty value."""
    if arg.startswith("-D"):
        arg = arg[2:]
    name, _, value = arg.partition("=")
    name = name.strip()
    if not name:
        raise ValueError(f"Invalid property define: {arg!r}")
    return name, value.strip()


def edit_security_properties(text: str, updates: dict[str, str]) -> str:
    """Strip existing cache entries from a security file and append ``updates``.

    Mirrors the in-container edit: every line whose key starts with
    ``networkaddress.cache`` is removed, then the new entries are appended.
    """
    kept = [
        line for line in text.splitlines()
        if not line.strip().startswith(SECURITY_ENTRY_PREFIX)
    ]
    for key, value in updates.items():
        kept.append(f"{key}={value}")
    return "\n".join(kept) + "\n"


class ConfigurationContext:
    """Mutable property tables plus the sandbox flag for one process.

    Usage:
        context = ConfigurationContext.from_sources(["sun.net.inetaddr.ttl=5"])
        context.set_security_property("networkaddress.cache.ttl", "0")
        resolver = CachingResolver(context)
    """

    def __init__(
        self,
        system_properties: dict[str, str] | None = None,
        security_properties: dict[str, str] | None = None,
        sandbox_active: bool = False,
    ) -> None:
        self._system = dict(system_properties or {})
        self._security = dict(security_properties or {})
        self.sandbox_active = sandbox_active
        self._in_use = False

    @classmethod
    def from_sources(
        cls,
        defines: list[str] | None = None,
        security_file: str | Path | None = None,
        sandbox_active: bool = False,
    ) -> "ConfigurationContext":
        """Build a context from ``-D`` defines and an optional security file.

        Raises:
            StartupError: If a define is malformed or the security file
                cannot be read.
        """
        system: dict[str, str] = {}
        for define in defines or []:
            try:
                name, value = parse_define(define)
            except ValueError as e:
                raise StartupError(str(e)) from e
            system[name] = value

        security: dict[str, str] = {}
        if security_file is not None:
            path = Path(security_file)
            try:
                security = parse_properties(path.read_text(encoding="utf-8"))
            except OSError as e:
                raise StartupError(f"Cannot read security properties file {path}: {e}") from e
            logger.debug(f"Loaded {len(security)} security properties from {path}")

        return cls(system, security, sandbox_active=sandbox_active)

    # --- System properties ---

    def get_system_property(self, name: str) -> str | None:
        return self._system.get(name)

    def set_system_property(self, name: str, value: str) -> None:
        self._system[name] = value

    # --- Security properties ---

    def get_security_property(self, name: str) -> str | None:
        return self._security.get(name)

    def set_security_property(self, name: str, value: str) -> None:
        """Set a security property.

        Has no effect on a resolver that has already performed a lookup.
        """
        if self._in_use:
            logger.warning(
                f"Security property {name} set after first lookup; "
                "the active cache policy will not change"
            )
        self._security[name] = value

    # --- First-use latch ---

    @property
    def in_use(self) -> bool:
        """True once a resolver has frozen its policy from this context."""
        return self._in_use

    def mark_used(self) -> None:
        self._in_use = True

    def system_properties(self) -> dict[str, str]:
        return dict(self._system)

    def security_properties(self) -> dict[str, str]:
        return dict(self._security)
