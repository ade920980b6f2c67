"""Repository pattern for database operations."""

import json
import sqlite3
from pathlib import Path
from typing import Any

from dnsprobe.db.models import MatrixRunRecord, RunResultRecord
from dnsprobe.harness.verdict import VerdictStatus
from dnsprobe.matrix.result import RunResult
from dnsprobe.matrix.spec import RunSpec
from dnsprobe.report.builder import Report, ReportRow

SCHEMA_VERSION = 1


class Repository:
    """Database repository for matrix runs and their results."""

    def __init__(self, db_path: str | Path = "dnsprobe.db"):
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def connect(self, enable_wal: bool = True) -> None:
        """Open database connection and ensure schema exists.

        Args:
            enable_wal: Enable WAL mode for better concurrent access (default True)
        """
        self._conn = sqlite3.connect(self.db_path, timeout=30.0)
        self._conn.row_factory = sqlite3.Row
        if enable_wal:
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA busy_timeout=30000")
        self._ensure_schema()

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "Repository":
        self.connect()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._conn

    def _ensure_schema(self) -> None:
        """Create schema if it doesn't exist."""
        schema_path = Path(__file__).parent / "schema.sql"
        schema_sql = schema_path.read_text()

        cursor = self.conn.cursor()
        cursor.executescript(schema_sql)

        cursor.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
        row = cursor.fetchone()
        if row is None:
            cursor.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))

        self.conn.commit()

    # --- Matrix run operations ---

    def insert_matrix_run(self, run: MatrixRunRecord) -> int:
        """Insert a new matrix run. Returns the new ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO matrix_runs (
                preset, launcher, config_hash, config_json,
                run_count, completed_count, failed_count, runtime_ms, output_dir
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                run.preset,
                run.launcher,
                run.config_hash,
                run.config_json,
                run.run_count,
                run.completed_count,
                run.failed_count,
                run.runtime_ms,
                run.output_dir,
            ),
        )
        self.conn.commit()
        return cursor.lastrowid  # type: ignore

    def update_matrix_run(
        self,
        run_id: int,
        completed_count: int | None = None,
        failed_count: int | None = None,
        runtime_ms: int | None = None,
        output_dir: str | None = None,
    ) -> None:
        """Update a matrix run's counts."""
        updates = []
        params: list[Any] = []

        if completed_count is not None:
            updates.append("completed_count = ?")
            params.append(completed_count)
        if failed_count is not None:
            updates.append("failed_count = ?")
            params.append(failed_count)
        if runtime_ms is not None:
            updates.append("runtime_ms = ?")
            params.append(runtime_ms)
        if output_dir is not None:
            updates.append("output_dir = ?")
            params.append(output_dir)

        if not updates:
            return

        params.append(run_id)
        self.conn.execute(
            f"UPDATE matrix_runs SET {', '.join(updates)} WHERE id = ?",
            params,
        )
        self.conn.commit()

    def get_matrix_run(self, run_id: int) -> MatrixRunRecord | None:
        """Get a matrix run by ID."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM matrix_runs WHERE id = ?", (run_id,))
        row = cursor.fetchone()
        if row is None:
            return None
        return self._row_to_matrix_run(row)

    def list_matrix_runs(self, limit: int = 50) -> list[MatrixRunRecord]:
        """List matrix runs, newest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM matrix_runs ORDER BY id DESC LIMIT ?",
            (limit,),
        )
        return [self._row_to_matrix_run(row) for row in cursor.fetchall()]

    def _row_to_matrix_run(self, row: sqlite3.Row) -> MatrixRunRecord:
        return MatrixRunRecord(
            id=row["id"],
            preset=row["preset"],
            launcher=row["launcher"],
            config_hash=row["config_hash"],
            config_json=row["config_json"],
            run_count=row["run_count"],
            completed_count=row["completed_count"],
            failed_count=row["failed_count"],
            runtime_ms=row["runtime_ms"],
            output_dir=row["output_dir"],
            created_at=row["created_at"],
        )

    # --- Run result operations ---

    def insert_run_result(self, record: RunResultRecord) -> int:
        """Insert a run result. Returns the new ID."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO run_results (
                matrix_run_id, run_name, spec_json, status, verdict, low_confidence,
                hit_count, miss_count, failure_count, effective_ttl, effective_ttl_source,
                exit_code, elapsed_ms, error, samples_json, log_file
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.matrix_run_id,
                record.run_name,
                record.spec_json,
                record.status,
                record.verdict,
                int(record.low_confidence),
                record.hit_count,
                record.miss_count,
                record.failure_count,
                record.effective_ttl,
                record.effective_ttl_source,
                record.exit_code,
                record.elapsed_ms,
                record.error,
                record.samples_json,
                record.log_file,
            ),
        )
        self.conn.commit()
        return cursor.lastrowid  # type: ignore

    def get_run_results(self, matrix_run_id: int) -> list[RunResultRecord]:
        """Get every run result of a matrix run, in execution order."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT * FROM run_results WHERE matrix_run_id = ? ORDER BY id",
            (matrix_run_id,),
        )
        return [self._row_to_run_result(row) for row in cursor.fetchall()]

    def get_rerun_specs(self, matrix_run_id: int) -> list[RunSpec]:
        """Specs of runs that failed or ended inconclusive, for re-running."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT spec_json FROM run_results
            WHERE matrix_run_id = ? AND (status != 'completed' OR verdict = ?)
            ORDER BY id
            """,
            (matrix_run_id, VerdictStatus.INCONCLUSIVE.value),
        )
        return [RunSpec.from_dict(json.loads(row["spec_json"])) for row in cursor.fetchall()]

    def get_verdict_summary(self, matrix_run_id: int) -> dict[str, int]:
        """Count run results by verdict."""
        cursor = self.conn.cursor()
        cursor.execute(
            "SELECT verdict, COUNT(*) AS n FROM run_results WHERE matrix_run_id = ? GROUP BY verdict",
            (matrix_run_id,),
        )
        return {row["verdict"]: row["n"] for row in cursor.fetchall()}

    def _row_to_run_result(self, row: sqlite3.Row) -> RunResultRecord:
        return RunResultRecord(
            id=row["id"],
            matrix_run_id=row["matrix_run_id"],
            run_name=row["run_name"],
            spec_json=row["spec_json"],
            status=row["status"],
            verdict=row["verdict"],
            low_confidence=bool(row["low_confidence"]),
            hit_count=row["hit_count"],
            miss_count=row["miss_count"],
            failure_count=row["failure_count"],
            effective_ttl=row["effective_ttl"],
            effective_ttl_source=row["effective_ttl_source"],
            exit_code=row["exit_code"],
            elapsed_ms=row["elapsed_ms"],
            error=row["error"],
            samples_json=row["samples_json"],
            log_file=row["log_file"],
            created_at=row["created_at"],
        )

    # --- Report persistence ---

    def record_report(self, matrix_run_id: int, report: Report) -> list[int]:
        """Insert one run result per report row. Returns the new IDs."""
        return [
            self.insert_run_result(_to_record(matrix_run_id, row, result))
            for row, result in zip(report.rows, report.results)
        ]


def _to_record(matrix_run_id: int, row: ReportRow, result: RunResult) -> RunResultRecord:
    return RunResultRecord(
        matrix_run_id=matrix_run_id,
        run_name=row.run_name,
        spec_json=json.dumps(result.spec.to_dict()),
        status=row.status,
        verdict=row.verdict.status.value,
        low_confidence=row.verdict.low_confidence,
        hit_count=row.verdict.hit_count,
        miss_count=row.verdict.miss_count,
        failure_count=row.verdict.failure_count,
        effective_ttl=row.effective_ttl,
        effective_ttl_source=row.effective_ttl_source,
        exit_code=result.exit_code,
        elapsed_ms=int(result.elapsed_s * 1000),
        error=result.error,
        samples_json=json.dumps([s.to_dict() for s in result.samples]),
        log_file=row.log_file,
    )
