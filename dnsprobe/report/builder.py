"""Aggregate RunResults into a results table, a narrative and report files."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from dnsprobe.harness.verdict import Verdict, VerdictStatus, classify
from dnsprobe.matrix.result import RunResult
from dnsprobe.matrix.spec import ConfigMethod
from dnsprobe.snapshot import format_ttl

logger = logging.getLogger(__name__)

RESULTS_FILE = "results.json"
SUMMARY_FILE = "SUMMARY.md"

_METHOD_TITLES = {
    ConfigMethod.NO_OVERRIDE: "No override (baseline)",
    ConfigMethod.SYSTEM_PROPERTY: "General-purpose system property",
    ConfigMethod.SECURITY_FILE: "Security properties file",
    ConfigMethod.RUNTIME_PROPERTY: "Security property set at runtime",
    ConfigMethod.SUN_NET_PROPERTY: "Deprecated sun.net system property",
}


@dataclass
class ReportRow:
    """One row of the results table."""

    run_name: str
    variant: str
    method: ConfigMethod
    intended_ttl: int | None
    effective_ttl: int | None
    effective_ttl_source: str | None
    status: str
    verdict: Verdict
    log_file: str | None = None

    @property
    def needs_rerun(self) -> bool:
        return self.status != "completed" or self.verdict.status == VerdictStatus.INCONCLUSIVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_name": self.run_name,
            "variant": self.variant,
            "method": self.method.value,
            "intended_ttl": self.intended_ttl,
            "effective_ttl": self.effective_ttl,
            "effective_ttl_source": self.effective_ttl_source,
            "status": self.status,
            "verdict": self.verdict.to_dict(),
            "log_file": self.log_file,
        }


@dataclass
class Report:
    """Complete report over one matrix execution."""

    rows: list[ReportRow]
    results: list[RunResult]
    generated_at: datetime = field(default_factory=datetime.now)
    metadata: dict[str, Any] = field(default_factory=dict)

    def counts(self) -> dict[str, int]:
        out = {status.value: 0 for status in VerdictStatus}
        for row in self.rows:
            out[row.verdict.status.value] += 1
        out["failed_runs"] = sum(1 for row in self.rows if row.status != "completed")
        return out

    def rerun_candidates(self) -> list[ReportRow]:
        return [row for row in self.rows if row.needs_rerun]


def build_report(
    results: list[RunResult],
    threshold_ms: float | None = None,
    metadata: dict[str, Any] | None = None,
) -> Report:
    """Build one ReportRow per RunResult, in the same order."""
    rows = []
    for result in results:
        spec = result.spec
        snapshot = result.effective_snapshot
        rows.append(ReportRow(
            run_name=spec.name,
            variant=spec.variant,
            method=spec.method,
            intended_ttl=spec.intended_ttl,
            effective_ttl=snapshot.effective_ttl if snapshot else None,
            effective_ttl_source=snapshot.effective_ttl_source.value if snapshot else None,
            status=result.status.value,
            verdict=classify(result, spec.intended_ttl, threshold_ms),
            log_file=result.log_file,
        ))
    return Report(rows=rows, results=list(results), metadata=dict(metadata or {}))


def _ttl_cell(ttl: int | None) -> str:
    return "-" if ttl is None else format_ttl(ttl)


def _latency_cell(value: float | None) -> str:
    return "-" if value is None else f"{value:.1f}"


def _method_findings(report: Report) -> list[str]:
    lines = []
    for method in ConfigMethod:
        rows = [r for r in report.rows if r.method == method]
        if not rows:
            continue
        expected = sum(1 for r in rows if r.verdict.status == VerdictStatus.EXPECTED)
        contradicted = sum(1 for r in rows if r.verdict.status == VerdictStatus.CONTRADICTED)
        inconclusive = len(rows) - expected - contradicted
        sources = sorted({r.effective_ttl_source for r in rows if r.effective_ttl_source})

        if method == ConfigMethod.NO_OVERRIDE:
            ttls = sorted({_ttl_cell(r.effective_ttl) for r in rows if r.effective_ttl is not None})
            finding = f"runtime default TTL {', '.join(ttls) or 'unknown'}"
        elif contradicted and not expected:
            finding = "did not take effect"
        elif expected and not contradicted:
            finding = "took effect"
        elif expected:
            finding = "took effect in some runs only"
        else:
            finding = "no conclusive runs"

        detail = f"{expected} expected, {contradicted} contradicted, {inconclusive} inconclusive"
        source_note = f"; effective source: {', '.join(sources)}" if sources else ""
        lines.append(f"- **{_METHOD_TITLES[method]}** (`{method.value}`): {finding} ({detail}{source_note})")
    return lines


def render_markdown(report: Report) -> str:
    """Render the report as Markdown."""
    lines = [
        "# DNS Cache Behavior Report",
        "",
        f"Generated: {report.generated_at.isoformat(timespec='seconds')}",
    ]
    for key, value in report.metadata.items():
        lines.append(f"- {key}: {value}")
    counts = report.counts()
    lines.extend([
        "",
        f"Runs: {len(report.rows)} | expected: {counts['expected']} | "
        f"contradicted: {counts['contradicted']} | inconclusive: {counts['inconclusive']} | "
        f"failed runs: {counts['failed_runs']}",
        "",
        "## Results",
        "",
        "| Variant | Method | Intended TTL | Effective TTL | Source | Hits | Misses | Failures "
        "| Median ms | Verdict | Status |",
        "|---|---|---|---|---|---|---|---|---|---|---|",
    ])
    for row in report.rows:
        v = row.verdict
        verdict = v.status.value + (" (low confidence)" if v.low_confidence else "")
        lines.append(
            f"| {row.variant} | {row.method.value} | {_ttl_cell(row.intended_ttl)} "
            f"| {_ttl_cell(row.effective_ttl)} | {row.effective_ttl_source or '-'} "
            f"| {v.hit_count} | {v.miss_count} | {v.failure_count} | {_latency_cell(v.median_ms)} "
            f"| {verdict} | {row.status} |"
        )

    lines.extend(["", "## Findings by method", ""])
    lines.extend(_method_findings(report))

    rerun = report.rerun_candidates()
    if rerun:
        lines.extend(["", "## Failed or inconclusive runs", ""])
        for row in rerun:
            reason = "; ".join(row.verdict.notes[-1:]) or row.status
            log = f" (log: `{row.log_file}`)" if row.log_file else ""
            lines.append(f"- `{row.run_name}`: {row.status}, {reason}{log}")
    lines.append("")
    return "\n".join(lines)


def to_json(report: Report) -> dict[str, Any]:
    return {
        "generated_at": report.generated_at.isoformat(timespec="seconds"),
        "metadata": report.metadata,
        "counts": report.counts(),
        "rows": [row.to_dict() for row in report.rows],
        "runs": [result.to_dict() for result in report.results],
    }


def write_report(report: Report, out_dir: str | Path) -> tuple[Path, Path]:
    """Write results.json and SUMMARY.md into ``out_dir``.

    Returns:
        Paths of the JSON and Markdown files.
    """
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    json_path = out / RESULTS_FILE
    md_path = out / SUMMARY_FILE
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(to_json(report), f, indent=2)
    md_path.write_text(render_markdown(report), encoding="utf-8")
    logger.info(f"Report written to {out}")
    return json_path, md_path
