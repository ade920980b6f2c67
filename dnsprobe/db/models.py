"""Data models for database records."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class MatrixRunRecord:
    """Record of one matrix execution.

    Attributes:
        preset: Preset name the configuration started from
        launcher: Launch strategy name ('local', 'docker', ...)
        config_hash: MatrixConfig.content_hash()
        config_json: Serialized configuration
        run_count: Number of RunSpecs in the matrix
        completed_count: Runs that completed
        failed_count: Runs that failed, timed out or could not launch
        runtime_ms: Total runtime in milliseconds
        output_dir: Where the report was written
        id: Database ID (None until inserted)
        created_at: Timestamp of creation
    """

    preset: str
    launcher: str
    config_hash: str
    config_json: str
    run_count: int = 0
    completed_count: int = 0
    failed_count: int = 0
    runtime_ms: int = 0
    output_dir: str | None = None
    id: int | None = None
    created_at: datetime | None = None


@dataclass
class RunResultRecord:
    """Record of one probing run and its verdict.

    Attributes:
        matrix_run_id: FK to matrix_runs table
        run_name: RunSpec.name
        spec_json: Serialized RunSpec
        status: RunStatus value
        verdict: VerdictStatus value
        low_confidence: Whether the verdict was low confidence
        hit_count: Cache hits
        miss_count: Cache misses
        failure_count: Failed lookups
        effective_ttl: TTL the child reported as effective
        effective_ttl_source: Source of the effective TTL
        exit_code: Child exit status
        elapsed_ms: Run wall time in milliseconds
        error: Failure description
        samples_json: Serialized samples
        log_file: Per-run log path
        id: Database ID (None until inserted)
        created_at: Timestamp of creation
    """

    matrix_run_id: int
    run_name: str
    spec_json: str
    status: str
    verdict: str
    low_confidence: bool = False
    hit_count: int = 0
    miss_count: int = 0
    failure_count: int = 0
    effective_ttl: int | None = None
    effective_ttl_source: str | None = None
    exit_code: int | None = None
    elapsed_ms: int = 0
    error: str | None = None
    samples_json: str = "[]"
    log_file: str | None = None
    id: int | None = None
    created_at: datetime | None = None
