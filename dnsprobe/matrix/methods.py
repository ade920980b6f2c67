"""Mapping from configuration methods to concrete launch settings."""

from dataclasses import dataclass, field

from dnsprobe.context import (
    SECURITY_FILE_ENV,
    SECURITY_NEGATIVE_TTL,
    SECURITY_TTL,
    SUN_NET_NEGATIVE_TTL,
    SUN_NET_TTL,
    SYSTEM_NEGATIVE_TTL,
    SYSTEM_TTL,
)
from dnsprobe.matrix.spec import ConfigMethod, RunSpec
from dnsprobe.probe.cli import (
    ENV_CACHE_NEGATIVE_TTL,
    ENV_CACHE_TTL,
    ENV_DURATION,
    ENV_INTERVAL,
    ENV_SET_SECURITY_PROPERTY,
    ENV_TARGET_HOST,
    ENV_THRESHOLD,
)

ENV_MODIFY_SECURITY_FILE = "MODIFY_SECURITY_FILE"

# Variables that steer a probing process; only a LaunchPlan may set them
PROBE_ENV_KEYS = (
    ENV_TARGET_HOST,
    ENV_INTERVAL,
    ENV_DURATION,
    ENV_SET_SECURITY_PROPERTY,
    ENV_CACHE_TTL,
    ENV_CACHE_NEGATIVE_TTL,
    ENV_THRESHOLD,
    ENV_MODIFY_SECURITY_FILE,
    SECURITY_FILE_ENV,
)


@dataclass
class LaunchPlan:
    """What a launcher must do to apply one RunSpec's method.

    Attributes:
        env: Extra environment variables for the probing process
        defines: System property definitions, "name=value"
        security_file_updates: Security properties to write into the
            process's security file before start (file-edit method only)
    """

    env: dict[str, str] = field(default_factory=dict)
    defines: list[str] = field(default_factory=list)
    security_file_updates: dict[str, str] = field(default_factory=dict)

    def define_args(self) -> list[str]:
        """Defines rendered as command-line arguments."""
        return [f"-D{d}" for d in self.defines]


def build_plan(spec: RunSpec) -> LaunchPlan:
    """Build the launch plan for ``spec``.

    The negative TTL is always set to the same value as the positive one.
    """
    plan = LaunchPlan(env={
        ENV_TARGET_HOST: spec.target_host,
        ENV_INTERVAL: str(spec.interval),
        ENV_DURATION: str(spec.duration),
    })

    if spec.method == ConfigMethod.NO_OVERRIDE or spec.intended_ttl is None:
        return plan

    ttl = str(spec.intended_ttl)
    if spec.method == ConfigMethod.SYSTEM_PROPERTY:
        plan.defines = [f"{SYSTEM_TTL}={ttl}", f"{SYSTEM_NEGATIVE_TTL}={ttl}"]
    elif spec.method == ConfigMethod.SUN_NET_PROPERTY:
        plan.defines = [f"{SUN_NET_TTL}={ttl}", f"{SUN_NET_NEGATIVE_TTL}={ttl}"]
    elif spec.method == ConfigMethod.SECURITY_FILE:
        plan.env[ENV_MODIFY_SECURITY_FILE] = "true"
        plan.env[ENV_CACHE_TTL] = ttl
        plan.env[ENV_CACHE_NEGATIVE_TTL] = ttl
        plan.security_file_updates = {SECURITY_TTL: ttl, SECURITY_NEGATIVE_TTL: ttl}
    elif spec.method == ConfigMethod.RUNTIME_PROPERTY:
        plan.env[ENV_SET_SECURITY_PROPERTY] = "true"
        plan.env[ENV_CACHE_TTL] = ttl
        plan.env[ENV_CACHE_NEGATIVE_TTL] = ttl
    return plan
