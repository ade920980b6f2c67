"""Run specifications: one point of the test matrix."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ConfigMethod(str, Enum):
    """Mechanisms for influencing the probed process's cache lifetime.

    Attributes:
        NO_OVERRIDE: Baseline, nothing set
        SYSTEM_PROPERTY: -Dnetworkaddress.cache.ttl (the commonly tried, ignored knob)
        SECURITY_FILE: Edit the security properties file before start
        RUNTIME_PROPERTY: Set the security property at runtime before first lookup
        SUN_NET_PROPERTY: -Dsun.net.inetaddr.ttl (deprecated fallback)
    """

    NO_OVERRIDE = "no_override"
    SYSTEM_PROPERTY = "system_property"
    SECURITY_FILE = "security_file"
    RUNTIME_PROPERTY = "runtime_property"
    SUN_NET_PROPERTY = "sun_net_property"

    @property
    def takes_ttl(self) -> bool:
        return self is not ConfigMethod.NO_OVERRIDE


@dataclass(frozen=True)
class RunSpec:
    """One isolated run of the probing process.

    Attributes:
        variant: Runtime variant identifier (image tag or "local")
        method: Configuration method under test
        intended_ttl: TTL the method tries to apply; None for no override
        target_host: Hostname to resolve
        interval: Seconds between queries
        duration: Seconds to probe for
    """

    variant: str
    method: ConfigMethod
    intended_ttl: int | None
    target_host: str
    interval: float
    duration: float

    @property
    def name(self) -> str:
        """Stable identifier used for log files and report rows."""
        if self.intended_ttl is None:
            ttl = "default"
        elif self.intended_ttl < 0:
            ttl = "ttl-forever"
        else:
            ttl = f"ttl{self.intended_ttl}"
        return f"{self.variant}_{self.method.value}_{ttl}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "variant": self.variant,
            "method": self.method.value,
            "intended_ttl": self.intended_ttl,
            "target_host": self.target_host,
            "interval": self.interval,
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunSpec":
        return cls(
            variant=data["variant"],
            method=ConfigMethod(data["method"]),
            intended_ttl=data.get("intended_ttl"),
            target_host=data["target_host"],
            interval=float(data["interval"]),
            duration=float(data["duration"]),
        )
