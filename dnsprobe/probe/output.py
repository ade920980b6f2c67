"""Structured output of a probing run.

A probing process prints two delimited sections among its regular console
output:

    ---CONFIG_START---
    {"before": {...snapshot...}, "after": {...snapshot...}, "diagnostics": {...}}
    ---CONFIG_END---
    ---RESULTS_START---
    [{"iteration": 1, ...}, ...]
    ---RESULTS_END---

Consumers locate the sections with a plain line scan and validate the JSON
payloads with the Pydantic models below. A bare snapshot object (without the
before/after wrapper) and samples without a ``classification`` field are
also accepted; that is the shape JVM-based runtime images emit.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterable

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

from dnsprobe.errors import OutputParseError
from dnsprobe.probe.loop import (
    DEFAULT_THRESHOLD_MS,
    ProbeSample,
    SampleClass,
    classify_sample,
    is_near_threshold,
)
from dnsprobe.snapshot import DEFAULT_NEGATIVE_TTL, ConfigSnapshot, ConfigSource

CONFIG_START = "---CONFIG_START---"
CONFIG_END = "---CONFIG_END---"
RESULTS_START = "---RESULTS_START---"
RESULTS_END = "---RESULTS_END---"


# ---------------------------------------------------------------------------
# Payload schemas
# ---------------------------------------------------------------------------

class SnapshotPayload(BaseModel):
    """One configuration snapshot as printed in the CONFIG block."""

    label: str = ""
    runtime: dict[str, str] = Field(default_factory=dict)
    sandbox_active: bool = Field(
        default=False,
        validation_alias=AliasChoices("sandbox_active", "security_manager_present"),
    )
    properties: dict[str, str | None] = Field(default_factory=dict)
    malformed: list[str] = Field(default_factory=list)
    effective_ttl: int
    effective_ttl_source: ConfigSource
    effective_negative_ttl: int = DEFAULT_NEGATIVE_TTL
    effective_negative_ttl_source: ConfigSource = ConfigSource.DEFAULT


class ConfigPayload(BaseModel):
    """The CONFIG block: snapshots before and after runtime overrides."""

    before: SnapshotPayload
    after: SnapshotPayload | None = None
    diagnostics: dict[str, Any] = Field(default_factory=dict)


class SamplePayload(BaseModel):
    """One entry of the RESULTS block."""

    iteration: int = Field(ge=1)
    timestamp: int
    offset_s: float | None = None
    query_ms: float = Field(ge=0)
    success: bool
    classification: SampleClass | None = None
    addresses: list[str] = Field(default_factory=list)
    error: str | None = None
    addresses_changed: bool = False
    near_threshold: bool | None = None

    @field_validator("addresses")
    @classmethod
    def sort_addresses(cls, v: list[str]) -> list[str]:
        return sorted(v)


# ---------------------------------------------------------------------------
# Emitting
# ---------------------------------------------------------------------------

def format_block(start: str, end: str, payload: Any) -> str:
    return f"{start}\n{json.dumps(payload, indent=2)}\n{end}"


def format_config_block(
    before: ConfigSnapshot,
    after: ConfigSnapshot | None = None,
    diagnostics: dict[str, Any] | None = None,
) -> str:
    payload: dict[str, Any] = {"before": before.to_dict()}
    if after is not None:
        payload["after"] = after.to_dict()
    payload["diagnostics"] = diagnostics or {}
    return format_block(CONFIG_START, CONFIG_END, payload)


def format_results_block(samples: Iterable[ProbeSample]) -> str:
    return format_block(RESULTS_START, RESULTS_END, [s.to_dict() for s in samples])


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def extract_block(text: str, start: str, end: str) -> str | None:
    """Return the text between the ``start`` and ``end`` marker lines.

    Returns None if the start marker is missing or the section is not
    terminated (for example when the child was killed mid-run). When the
    section appears more than once the last complete one wins.
    """
    found: str | None = None
    inside = False
    buffer: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if stripped == start:
            inside = True
            buffer = []
        elif stripped == end and inside:
            inside = False
            found = "\n".join(buffer)
        elif inside:
            buffer.append(line)
    return found


@dataclass(frozen=True)
class ParsedOutput:
    """Snapshots, samples and diagnostics recovered from console output."""

    snapshots: tuple[ConfigSnapshot, ...]
    samples: tuple[ProbeSample, ...]
    diagnostics: dict[str, Any] = field(default_factory=dict)


def _load_json(raw: str | None, name: str) -> Any:
    if raw is None:
        raise OutputParseError(f"{name} block not found in output")
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise OutputParseError(f"{name} block is not valid JSON: {e}") from e


def _parse_config(data: Any) -> tuple[tuple[ConfigSnapshot, ...], dict[str, Any]]:
    if isinstance(data, dict) and "before" not in data and "effective_ttl" in data:
        data = {"before": data}
    try:
        payload = ConfigPayload.model_validate(data)
    except ValidationError as e:
        raise OutputParseError(f"Invalid CONFIG block: {e}") from e

    snapshots = [ConfigSnapshot.from_dict(payload.before.model_dump(mode="json"))]
    if payload.after is not None:
        snapshots.append(ConfigSnapshot.from_dict(payload.after.model_dump(mode="json")))
    return tuple(snapshots), payload.diagnostics


def _parse_samples(data: Any, threshold_ms: float) -> tuple[ProbeSample, ...]:
    if not isinstance(data, list):
        raise OutputParseError("RESULTS block must be a JSON array")
    try:
        entries = [SamplePayload.model_validate(item) for item in data]
    except ValidationError as e:
        raise OutputParseError(f"Invalid RESULTS entry: {e}") from e

    entries.sort(key=lambda entry: entry.iteration)
    first_ts = entries[0].timestamp if entries else 0
    samples = []
    for entry in entries:
        classification = entry.classification or classify_sample(
            entry.iteration, entry.success, entry.query_ms, threshold_ms
        )
        near = entry.near_threshold
        if near is None:
            near = (
                entry.success
                and classification != SampleClass.FIRST
                and is_near_threshold(entry.query_ms, threshold_ms)
            )
        offset = entry.offset_s
        if offset is None:
            offset = (entry.timestamp - first_ts) / 1000.0
        samples.append(ProbeSample(
            iteration=entry.iteration,
            timestamp=entry.timestamp,
            offset_s=offset,
            query_ms=entry.query_ms,
            classification=classification,
            addresses=tuple(entry.addresses) if entry.success else (),
            error=None if entry.success else (entry.error or "resolution failed"),
            addresses_changed=entry.addresses_changed,
            near_threshold=near,
        ))
    return tuple(samples)


def parse_output(text: str, threshold_ms: float = DEFAULT_THRESHOLD_MS) -> ParsedOutput:
    """Extract and validate both structured blocks from mixed console output.

    Args:
        text: Captured stdout/stderr of a probing run
        threshold_ms: Used only for samples that carry no classification

    Raises:
        OutputParseError: If a block is missing, truncated or invalid.
    """
    config_data = _load_json(extract_block(text, CONFIG_START, CONFIG_END), "CONFIG")
    results_data = _load_json(extract_block(text, RESULTS_START, RESULTS_END), "RESULTS")
    snapshots, diagnostics = _parse_config(config_data)
    samples = _parse_samples(results_data, threshold_ms)
    return ParsedOutput(snapshots=snapshots, samples=samples, diagnostics=diagnostics)
