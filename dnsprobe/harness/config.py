"""Configuration for a test matrix run."""

import hashlib
import json
from dataclasses import dataclass, field, replace

from dnsprobe.matrix.spec import ConfigMethod
from dnsprobe.probe.loop import DEFAULT_THRESHOLD_MS


@dataclass
class MatrixConfig:
    """Configuration for a test matrix.

    Attributes:
        target_host: Hostname every run resolves
        interval: Seconds between queries within a run
        duration: Seconds each run probes for
        ttl_values: TTL values applied by every overriding method
        methods: Configuration methods to exercise
        variants: Runtime variants (image tags for docker, informational locally)
        threshold_ms: Latency below which a sample counts as a cache hit
        timeout_grace: Extra seconds beyond duration before a run is killed
        max_workers: Runs executed concurrently (each in its own process)
        image_prefix: Docker image repository; images are <prefix>:<variant>
    """

    target_host: str = "www.google.com"
    interval: float = 5.0
    duration: float = 120.0
    ttl_values: list[int] = field(default_factory=lambda: [0, 1, 5, 30])
    methods: list[ConfigMethod] = field(default_factory=lambda: [
        ConfigMethod.NO_OVERRIDE,
        ConfigMethod.SYSTEM_PROPERTY,
        ConfigMethod.SECURITY_FILE,
        ConfigMethod.RUNTIME_PROPERTY,
        ConfigMethod.SUN_NET_PROPERTY,
    ])
    variants: list[str] = field(default_factory=lambda: ["local"])
    threshold_ms: float = DEFAULT_THRESHOLD_MS
    timeout_grace: float = 30.0
    max_workers: int = 1
    image_prefix: str = "dns-test"

    def content_hash(self) -> str:
        """Compute a hash of the configuration for reproducibility."""
        content = {
            "target_host": self.target_host,
            "interval": self.interval,
            "duration": self.duration,
            "ttl_values": self.ttl_values,
            "methods": [m.value for m in self.methods],
            "variants": self.variants,
            "threshold_ms": self.threshold_ms,
        }
        content_str = json.dumps(content, sort_keys=True)
        return hashlib.sha256(content_str.encode()).hexdigest()[:16]


DOCKER_VARIANTS = ["corretto-21", "corretto-25", "temurin-21", "temurin-25"]


@dataclass
class MatrixPreset:
    """A named MatrixConfig.

    Attributes:
        name: Preset name used on the command line
        config: The configuration
        description: Human-readable description
    """

    name: str
    config: MatrixConfig
    description: str


_PRESETS: dict[str, MatrixPreset] = {
    "full": MatrixPreset(
        name="full",
        config=MatrixConfig(),
        description="All methods, TTLs 0/1/5/30, 120s per run at 5s intervals",
    ),
    "quick": MatrixPreset(
        name="quick",
        config=MatrixConfig(duration=30.0),
        description="All methods, TTLs 0/1/5/30, 30s per run at 5s intervals",
    ),
    "comprehensive": MatrixPreset(
        name="comprehensive",
        config=MatrixConfig(
            interval=2.0,
            duration=15.0,
            ttl_values=[1, 5],
            methods=[
                ConfigMethod.NO_OVERRIDE,
                ConfigMethod.SYSTEM_PROPERTY,
                ConfigMethod.SUN_NET_PROPERTY,
                ConfigMethod.RUNTIME_PROPERTY,
            ],
        ),
        description="Short 15s runs at 2s intervals, TTLs 1/5, every command-line and runtime method",
    ),
}


def get_preset(name: str) -> MatrixPreset:
    """Get a preset by name.

    Raises:
        KeyError: If no preset has that name.
    """
    return _PRESETS[name]


def get_config(name: str, **overrides) -> MatrixConfig:
    """Get a copy of a preset's config with field overrides applied.

    None-valued overrides are ignored so argparse defaults pass straight through.
    """
    base = get_preset(name).config
    config = replace(
        base,
        ttl_values=list(base.ttl_values),
        methods=list(base.methods),
        variants=list(base.variants),
    )
    changes = {k: v for k, v in overrides.items() if v is not None}
    return replace(config, **changes)


def list_presets() -> list[MatrixPreset]:
    return list(_PRESETS.values())
