"""Tests for the report builder."""

import json

from dnsprobe.context import SECURITY_TTL, ConfigurationContext
from dnsprobe.matrix.result import RunResult, RunStatus
from dnsprobe.matrix.spec import ConfigMethod, RunSpec
from dnsprobe.probe.loop import ProbeSample, SampleClass
from dnsprobe.report.builder import build_report, render_markdown, to_json, write_report
from dnsprobe.snapshot import capture


def result(method, ttl, classes, status=RunStatus.COMPLETED, security_ttl=None, log_file=None):
    spec = RunSpec("local", method, ttl, "example.com", 2.0, 10.0)
    samples = [ProbeSample(1, 0, 0.0, 40.0, SampleClass.FIRST, ("10.0.0.1",))]
    for i, cls in enumerate(classes, start=2):
        ms = 0.1 if cls == SampleClass.CACHE_HIT else 40.0
        samples.append(ProbeSample(i, (i - 1) * 2000, (i - 1) * 2.0, ms, cls, ("10.0.0.1",)))
    context = ConfigurationContext(security_properties={SECURITY_TTL: security_ttl} if security_ttl else {})
    if status != RunStatus.COMPLETED:
        return RunResult(spec=spec, status=status, error="exited with status 1", log_file=log_file)
    return RunResult(
        spec=spec,
        status=status,
        samples=tuple(samples),
        snapshots=(capture(context, "after"),),
        exit_code=0,
        log_file=log_file,
    )


HIT = SampleClass.CACHE_HIT
MISS = SampleClass.CACHE_MISS


def sample_results():
    return [
        result(ConfigMethod.NO_OVERRIDE, None, [HIT, HIT]),
        result(ConfigMethod.SYSTEM_PROPERTY, 0, [HIT, HIT]),
        result(ConfigMethod.RUNTIME_PROPERTY, 0, [MISS, MISS], security_ttl="0"),
        result(ConfigMethod.SECURITY_FILE, 5, [], status=RunStatus.FAILED, log_file="logs/x.log"),
    ]


class TestBuildReport:
    def test_one_row_per_result(self):
        report = build_report(sample_results())
        assert [row.method for row in report.rows] == [
            ConfigMethod.NO_OVERRIDE,
            ConfigMethod.SYSTEM_PROPERTY,
            ConfigMethod.RUNTIME_PROPERTY,
            ConfigMethod.SECURITY_FILE,
        ]
        assert [row.verdict.status.value for row in report.rows] == [
            "inconclusive", "contradicted", "expected", "inconclusive",
        ]

    def test_observed_values_from_last_snapshot(self):
        rows = build_report(sample_results()).rows
        assert (rows[1].effective_ttl, rows[1].effective_ttl_source) == (30, "default")
        assert (rows[2].effective_ttl, rows[2].effective_ttl_source) == (0, "security_property")
        assert rows[3].effective_ttl is None

    def test_counts_and_rerun(self):
        report = build_report(sample_results())
        assert report.counts() == {"expected": 1, "contradicted": 1, "inconclusive": 2, "failed_runs": 1}
        assert [r.run_name for r in report.rerun_candidates()] == [
            "local_no_override_default",
            "local_security_file_ttl5",
        ]


class TestRendering:
    def test_markdown(self):
        text = render_markdown(build_report(sample_results(), metadata={"preset": "quick"}))
        assert "# DNS Cache Behavior Report" in text
        assert "- preset: quick" in text
        assert "| local | system_property | 0s (no caching) | 30s | default | 2 | 0 | 0 |" in text
        assert "did not take effect" in text
        assert "## Failed or inconclusive runs" in text
        assert "`local_security_file_ttl5`: failed" in text
        assert "logs/x.log" in text

    def test_json_excludes_raw_output(self):
        data = to_json(build_report(sample_results()))
        assert len(data["rows"]) == 4
        assert "output" not in data["runs"][0]
        json.dumps(data)

    def test_write_report(self, tmp_path):
        json_path, md_path = write_report(build_report(sample_results()), tmp_path / "out")
        assert json_path.name == "results.json"
        assert md_path.name == "SUMMARY.md"
        assert json.loads(json_path.read_text())["counts"]["expected"] == 1
        assert md_path.read_text().startswith("# DNS Cache Behavior Report")
