"""Outcome of one isolated probing run."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from dnsprobe.matrix.spec import RunSpec
from dnsprobe.probe.loop import ProbeSample
from dnsprobe.snapshot import ConfigSnapshot


class RunStatus(str, Enum):
    """How a child execution ended."""

    COMPLETED = "completed"
    FAILED = "failed"  # non-zero exit or unparseable output
    TIMED_OUT = "timed_out"
    LAUNCH_ERROR = "launch_error"


@dataclass(frozen=True)
class RunResult:
    """Everything captured from one run. Never mutated after capture.

    Attributes:
        spec: The RunSpec that was executed
        status: How the run ended
        samples: Ordered probe samples (empty unless COMPLETED)
        snapshots: Config snapshots reported by the child (before, after)
        exit_code: Child exit status, None if it never exited normally
        elapsed_s: Wall time of the run
        output: Raw captured console output
        diagnostics: Diagnostic payload from the CONFIG block
        error: Failure description for non-COMPLETED runs
        log_file: Where the output was written, if anywhere
    """

    spec: RunSpec
    status: RunStatus
    samples: tuple[ProbeSample, ...] = ()
    snapshots: tuple[ConfigSnapshot, ...] = ()
    exit_code: int | None = None
    elapsed_s: float = 0.0
    output: str = ""
    diagnostics: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    log_file: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.COMPLETED

    @property
    def effective_snapshot(self) -> ConfigSnapshot | None:
        """The last snapshot the child reported (after runtime overrides)."""
        return self.snapshots[-1] if self.snapshots else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization (raw output excluded)."""
        return {
            "spec": self.spec.to_dict(),
            "status": self.status.value,
            "exit_code": self.exit_code,
            "elapsed_s": round(self.elapsed_s, 3),
            "error": self.error,
            "log_file": self.log_file,
            "snapshots": [s.to_dict() for s in self.snapshots],
            "diagnostics": self.diagnostics,
            "samples": [s.to_dict() for s in self.samples],
        }
