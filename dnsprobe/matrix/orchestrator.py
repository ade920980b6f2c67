"""Matrix orchestrator: execute every RunSpec in isolation and collect results.

A run that fails (cannot be launched, exits non-zero, times out or prints
unparseable output) becomes a failed RunResult with no samples; the rest of
the matrix still runs.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable

from dnsprobe.errors import LaunchError, OutputParseError
from dnsprobe.matrix.launchers import LaunchOutcome, Launcher
from dnsprobe.matrix.methods import build_plan
from dnsprobe.matrix.result import RunResult, RunStatus
from dnsprobe.matrix.spec import RunSpec
from dnsprobe.probe.loop import DEFAULT_THRESHOLD_MS
from dnsprobe.probe.output import parse_output
from dnsprobe.verbose import VerboseLogger

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_GRACE = 30.0


class MatrixOrchestrator:
    """Runs a list of RunSpecs through a launcher.

    Usage:
        orchestrator = MatrixOrchestrator(LocalProcessLauncher())
        results = orchestrator.execute_all(specs)

    Runs are sequential unless ``max_workers`` > 1. Results always come back
    in the order of the input specs.
    """

    def __init__(
        self,
        launcher: Launcher,
        threshold_ms: float = DEFAULT_THRESHOLD_MS,
        timeout_grace: float = DEFAULT_TIMEOUT_GRACE,
        max_workers: int = 1,
        verbose_logger: VerboseLogger | None = None,
        on_progress: Callable[[int, int, RunResult], None] | None = None,
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.launcher = launcher
        self.threshold_ms = threshold_ms
        self.timeout_grace = timeout_grace
        self.max_workers = max_workers
        self.verbose_logger = verbose_logger
        self.on_progress = on_progress
        self._progress_lock = threading.Lock()
        self._completed = 0

    def timeout_for(self, spec: RunSpec) -> float:
        return spec.duration + self.timeout_grace

    def execute_all(self, specs: list[RunSpec]) -> list[RunResult]:
        """Execute every spec and return one RunResult per spec, in input order."""
        total = len(specs)
        self._completed = 0
        logger.info(
            f"Executing {total} runs with {self.launcher.name} launcher "
            f"({self.max_workers} worker{'s' if self.max_workers != 1 else ''})"
        )

        if self.max_workers == 1 or total <= 1:
            results = [self._execute_tracked(spec, i + 1, total) for i, spec in enumerate(specs)]
        else:
            results_by_index: dict[int, RunResult] = {}
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = {
                    executor.submit(self._execute_tracked, spec, i + 1, total): i
                    for i, spec in enumerate(specs)
                }
                for future in as_completed(futures):
                    results_by_index[futures[future]] = future.result()
            results = [results_by_index[i] for i in range(total)]

        failed = sum(1 for r in results if not r.succeeded)
        logger.info(f"Matrix finished: {total - failed} completed, {failed} failed")
        return results

    def _execute_tracked(self, spec: RunSpec, position: int, total: int) -> RunResult:
        if self.verbose_logger:
            self.verbose_logger.log_run_started(spec.name, position, total)
        result = self.execute_one(spec)
        if self.verbose_logger:
            self.verbose_logger.log_run_finished(
                spec.name, result.status.value, len(result.samples), result.elapsed_s, result.error
            )
        with self._progress_lock:
            self._completed += 1
            if self.on_progress:
                self.on_progress(self._completed, total, result)
        return result

    def execute_one(self, spec: RunSpec) -> RunResult:
        """Execute a single spec. Never raises for run-level failures."""
        timeout = self.timeout_for(spec)
        logger.debug(f"Launching {spec.name} (timeout {timeout:.0f}s)")
        try:
            plan = build_plan(spec)
            outcome = self.launcher.launch(spec, plan, timeout)
        except LaunchError as e:
            logger.error(f"Run {spec.name} could not be launched: {e}")
            return self._finish(spec, RunStatus.LAUNCH_ERROR, LaunchOutcome("", None), error=str(e))
        except Exception as e:
            logger.exception(f"Unexpected error launching {spec.name}")
            return self._finish(
                spec, RunStatus.LAUNCH_ERROR, LaunchOutcome("", None), error=f"{type(e).__name__}: {e}"
            )

        if outcome.timed_out:
            logger.warning(f"Run {spec.name} timed out after {timeout:.0f}s")
            return self._finish(spec, RunStatus.TIMED_OUT, outcome, error=f"timed out after {timeout:.0f}s")
        if outcome.exit_code != 0:
            logger.warning(f"Run {spec.name} exited with status {outcome.exit_code}")
            return self._finish(
                spec, RunStatus.FAILED, outcome, error=f"exited with status {outcome.exit_code}"
            )

        try:
            parsed = parse_output(outcome.output, self.threshold_ms)
        except OutputParseError as e:
            logger.warning(f"Run {spec.name} produced unparseable output: {e}")
            return self._finish(spec, RunStatus.FAILED, outcome, error=str(e))

        return self._finish(
            spec,
            RunStatus.COMPLETED,
            outcome,
            samples=parsed.samples,
            snapshots=parsed.snapshots,
            diagnostics=parsed.diagnostics,
        )

    def _finish(
        self,
        spec: RunSpec,
        status: RunStatus,
        outcome: LaunchOutcome,
        error: str | None = None,
        samples=(),
        snapshots=(),
        diagnostics=None,
    ) -> RunResult:
        log_file = None
        if self.verbose_logger:
            try:
                log_file = self.verbose_logger.write_run_log(
                    spec.name, outcome.output, status.value, outcome.exit_code, outcome.elapsed_s, error
                )
            except OSError as e:
                logger.warning(f"Could not write log for {spec.name}: {e}")
        return RunResult(
            spec=spec,
            status=status,
            samples=tuple(samples),
            snapshots=tuple(snapshots),
            exit_code=outcome.exit_code,
            elapsed_s=outcome.elapsed_s,
            output=outcome.output,
            diagnostics=dict(diagnostics or {}),
            error=error,
            log_file=log_file,
        )
