"""Verbose logging for matrix runs.

Two output channels:
- Captured child output (config blocks, per-query lines) -> one log file per run
- Run lifecycle events (start, finish, failure) -> console (stderr)
"""

from __future__ import annotations

import datetime
import sys
from pathlib import Path
from typing import TextIO


class VerboseLogger:
    """Two-channel verbose logger.

    Channel 1: per-run log files. Every run's full captured output, with a
    header naming the run, its status and timing.

    Channel 2: console. Run lifecycle events as they happen.
    """

    def __init__(
        self,
        log_dir: str | Path | None = None,
        console: TextIO | None = None,
    ) -> None:
        self._log_dir = Path(log_dir) if log_dir else None
        self._console = console if console is not None else sys.stderr
        if self._log_dir is not None:
            self._log_dir.mkdir(parents=True, exist_ok=True)

    @property
    def log_dir(self) -> Path | None:
        return self._log_dir

    @staticmethod
    def _timestamp() -> str:
        return datetime.datetime.now().isoformat(timespec="seconds")

    # ------------------------------------------------------------------
    # Run output (to file)
    # ------------------------------------------------------------------

    def write_run_log(
        self,
        run_name: str,
        output: str,
        status: str,
        exit_code: int | None = None,
        elapsed_s: float | None = None,
        error_message: str | None = None,
    ) -> str | None:
        """Write a run's captured output to ``<log_dir>/<run_name>.log``.

        Returns:
            The log file path, or None when no log directory is configured.
        """
        if self._log_dir is None:
            return None

        path = self._log_dir / f"{run_name}.log"
        sep = "=" * 80
        with open(path, "w", encoding="utf-8") as f:
            f.write(f"{sep}\n")
            f.write(f"[{self._timestamp()}] RUN {run_name}\n")
            parts = [f"Status: {status}", f"Exit code: {exit_code}"]
            if elapsed_s is not None:
                parts.append(f"Elapsed: {elapsed_s:.1f}s")
            f.write(" | ".join(parts) + "\n")
            if error_message:
                f.write(f"Error: {error_message}\n")
            f.write(f"{sep}\n\n")
            f.write(output)
            if output and not output.endswith("\n"):
                f.write("\n")
        return str(path)

    # ------------------------------------------------------------------
    # Run events (to console)
    # ------------------------------------------------------------------

    def log_run_started(self, run_name: str, current: int, total: int) -> None:
        """Print run start event to console."""
        ts = self._timestamp()
        self._console.write(f"[{ts}] RUN START ({current}/{total}): {run_name}\n")
        self._console.flush()

    def log_run_finished(
        self,
        run_name: str,
        status: str,
        samples: int,
        elapsed_s: float,
        error: str | None = None,
    ) -> None:
        """Print run completion event to console."""
        ts = self._timestamp()
        if error:
            self._console.write(
                f"[{ts}] RUN {status.upper()}: {run_name} after {elapsed_s:.1f}s -> ERROR: {error}\n"
            )
        else:
            self._console.write(
                f"[{ts}] RUN {status.upper()}: {run_name} ({samples} samples, {elapsed_s:.1f}s)\n"
            )
        self._console.flush()
