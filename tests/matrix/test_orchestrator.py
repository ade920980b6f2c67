"""Tests for the matrix orchestrator."""

import io

import pytest

from dnsprobe.context import ConfigurationContext
from dnsprobe.errors import LaunchError
from dnsprobe.matrix.generator import generate
from dnsprobe.matrix.launchers import CallableLauncher, LaunchOutcome
from dnsprobe.matrix.orchestrator import MatrixOrchestrator
from dnsprobe.matrix.result import RunStatus
from dnsprobe.matrix.spec import ConfigMethod
from dnsprobe.probe.loop import ProbeSample, SampleClass
from dnsprobe.probe.output import format_config_block, format_results_block
from dnsprobe.snapshot import capture
from dnsprobe.verbose import VerboseLogger

GOOD_OUTPUT = "\n".join([
    "starting",
    format_config_block(capture(ConfigurationContext())),
    format_results_block([
        ProbeSample(1, 0, 0.0, 40.0, SampleClass.FIRST, ("10.0.0.1",)),
        ProbeSample(2, 1000, 1.0, 0.1, SampleClass.CACHE_HIT, ("10.0.0.1",)),
    ]),
])


def specs(n_variants=1):
    variants = [f"v{i}" for i in range(n_variants)]
    return generate(variants, [ConfigMethod.NO_OVERRIDE, ConfigMethod.RUNTIME_PROPERTY], [0, 5], "example.com", 1.0, 2.0)


class TestExecuteAll:
    def test_all_completed(self):
        results = MatrixOrchestrator(CallableLauncher(lambda s, p: GOOD_OUTPUT)).execute_all(specs())
        assert [r.status for r in results] == [RunStatus.COMPLETED] * 3
        assert all(len(r.samples) == 2 for r in results)
        assert results[0].effective_snapshot.effective_ttl == 30

    def test_failures_do_not_abort_matrix(self):
        def launch(spec, plan):
            if spec.intended_ttl is None:
                raise LaunchError("image not found")
            if spec.intended_ttl == 0:
                return LaunchOutcome("partial output", exit_code=1)
            return GOOD_OUTPUT

        results = MatrixOrchestrator(CallableLauncher(launch)).execute_all(specs())
        assert [r.status for r in results] == [
            RunStatus.LAUNCH_ERROR,
            RunStatus.FAILED,
            RunStatus.COMPLETED,
        ]
        assert results[0].error == "image not found"
        assert results[1].samples == ()
        assert results[1].exit_code == 1

    def test_timeout_and_unparseable_output(self):
        def launch(spec, plan):
            if spec.intended_ttl == 0:
                return LaunchOutcome("---RESULTS_START---\n[", exit_code=None, timed_out=True)
            return "no structured output at all"

        results = MatrixOrchestrator(CallableLauncher(launch)).execute_all(specs())
        assert results[0].status == RunStatus.FAILED
        assert "CONFIG block not found" in results[0].error
        assert results[1].status == RunStatus.TIMED_OUT
        assert results[1].error == "timed out after 32s"

    def test_unexpected_exception_is_contained(self):
        class Exploding(CallableLauncher):
            def launch(self, spec, plan, timeout):
                raise KeyError("bug")

        results = MatrixOrchestrator(Exploding(None)).execute_all(specs())
        assert all(r.status == RunStatus.LAUNCH_ERROR for r in results)

    def test_timeout_is_duration_plus_grace(self):
        seen = []

        class Recording(CallableLauncher):
            def launch(self, spec, plan, timeout):
                seen.append(timeout)
                return LaunchOutcome(GOOD_OUTPUT, 0)

        MatrixOrchestrator(Recording(None), timeout_grace=10).execute_all(specs())
        assert seen == [12.0, 12.0, 12.0]

    def test_parallel_keeps_input_order(self):
        all_specs = specs(n_variants=4)
        results = MatrixOrchestrator(CallableLauncher(lambda s, p: GOOD_OUTPUT), max_workers=4).execute_all(all_specs)
        assert [r.spec for r in results] == all_specs

    def test_invalid_workers(self):
        with pytest.raises(ValueError):
            MatrixOrchestrator(CallableLauncher(lambda s, p: ""), max_workers=0)


class TestProgressAndLogs:
    def test_progress_callback(self):
        calls = []
        orchestrator = MatrixOrchestrator(
            CallableLauncher(lambda s, p: GOOD_OUTPUT),
            on_progress=lambda current, total, result: calls.append((current, total, result.spec.name)),
        )
        orchestrator.execute_all(specs())
        assert [(c, t) for c, t, _ in calls] == [(1, 3), (2, 3), (3, 3)]

    def test_per_run_log_files(self, tmp_path):
        console = io.StringIO()
        vl = VerboseLogger(log_dir=tmp_path / "logs", console=console)
        results = MatrixOrchestrator(
            CallableLauncher(lambda s, p: GOOD_OUTPUT), verbose_logger=vl
        ).execute_all(specs())
        for r in results:
            assert r.log_file is not None
            content = open(r.log_file, encoding="utf-8").read()
            assert r.spec.name in content
            assert "---RESULTS_START---" in content
        assert console.getvalue().count("RUN START") == 3
        assert console.getvalue().count("RUN COMPLETED") == 3
