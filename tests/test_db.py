"""Tests for the persistence layer."""

import json
import tempfile
from pathlib import Path

import pytest

from dnsprobe.db.models import MatrixRunRecord, RunResultRecord
from dnsprobe.db.repo import Repository
from dnsprobe.matrix.result import RunResult, RunStatus
from dnsprobe.matrix.spec import ConfigMethod, RunSpec
from dnsprobe.probe.loop import ProbeSample, SampleClass
from dnsprobe.report.builder import build_report


@pytest.fixture
def repo():
    """Create a temporary database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    repo = Repository(db_path)
    repo.connect()
    yield repo
    repo.close()
    db_path.unlink()


def matrix_run(**overrides):
    fields = dict(preset="quick", launcher="local", config_hash="abc123", config_json="{}", run_count=3)
    fields.update(overrides)
    return MatrixRunRecord(**fields)


def spec(method, ttl):
    return RunSpec("local", method, ttl, "example.com", 5.0, 30.0)


class TestMatrixRunOperations:
    def test_insert_and_get(self, repo):
        run_id = repo.insert_matrix_run(matrix_run())
        record = repo.get_matrix_run(run_id)
        assert record is not None
        assert record.preset == "quick"
        assert record.run_count == 3
        assert record.created_at is not None

    def test_get_missing(self, repo):
        assert repo.get_matrix_run(999) is None

    def test_update(self, repo):
        run_id = repo.insert_matrix_run(matrix_run())
        repo.update_matrix_run(run_id, completed_count=2, failed_count=1, runtime_ms=1500)
        record = repo.get_matrix_run(run_id)
        assert (record.completed_count, record.failed_count, record.runtime_ms) == (2, 1, 1500)

    def test_list_newest_first(self, repo):
        first = repo.insert_matrix_run(matrix_run(preset="full"))
        second = repo.insert_matrix_run(matrix_run(preset="quick"))
        assert [r.id for r in repo.list_matrix_runs()] == [second, first]


class TestRunResultOperations:
    def test_insert_and_list(self, repo):
        run_id = repo.insert_matrix_run(matrix_run())
        repo.insert_run_result(RunResultRecord(
            matrix_run_id=run_id,
            run_name="local_no_override_default",
            spec_json=json.dumps(spec(ConfigMethod.NO_OVERRIDE, None).to_dict()),
            status="completed",
            verdict="inconclusive",
            low_confidence=True,
            hit_count=4,
        ))
        [record] = repo.get_run_results(run_id)
        assert record.run_name == "local_no_override_default"
        assert record.low_confidence is True
        assert record.hit_count == 4

    def test_record_report_and_rerun_specs(self, repo):
        first = ProbeSample(1, 0, 0.0, 40.0, SampleClass.FIRST, ("10.0.0.1",))
        miss = ProbeSample(2, 5000, 5.0, 40.0, SampleClass.CACHE_MISS, ("10.0.0.1",))
        results = [
            RunResult(spec(ConfigMethod.NO_OVERRIDE, None), RunStatus.COMPLETED, samples=(first, miss)),
            RunResult(spec(ConfigMethod.RUNTIME_PROPERTY, 0), RunStatus.COMPLETED, samples=(first, miss)),
            RunResult(spec(ConfigMethod.SECURITY_FILE, 0), RunStatus.TIMED_OUT, error="timed out"),
        ]
        run_id = repo.insert_matrix_run(matrix_run())
        ids = repo.record_report(run_id, build_report(results))
        assert len(ids) == 3

        records = repo.get_run_results(run_id)
        assert [r.verdict for r in records] == ["inconclusive", "expected", "inconclusive"]
        assert len(json.loads(records[1].samples_json)) == 2
        assert records[2].error == "timed out"

        rerun = repo.get_rerun_specs(run_id)
        assert [s.method for s in rerun] == [ConfigMethod.NO_OVERRIDE, ConfigMethod.SECURITY_FILE]
        assert rerun[1] == spec(ConfigMethod.SECURITY_FILE, 0)

        assert repo.get_verdict_summary(run_id) == {"inconclusive": 2, "expected": 1}


class TestConnection:
    def test_not_connected(self, tmp_path):
        with pytest.raises(RuntimeError):
            Repository(tmp_path / "x.db").conn

    def test_context_manager(self, tmp_path):
        with Repository(tmp_path / "x.db") as repo:
            repo.insert_matrix_run(matrix_run())
        with Repository(tmp_path / "x.db") as repo:
            assert len(repo.list_matrix_runs()) == 1
