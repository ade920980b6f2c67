#!/usr/bin/env python3
"""Run the DNS cache test matrix and write a report.

Every (variant, method, TTL) combination runs in its own probing process
(or container) so no run can see another run's cache.

Usage:
    python scripts/run_matrix.py --preset quick
    python scripts/run_matrix.py --docker --preset full --output-dir results/jdk
    python scripts/run_matrix.py --ttl 1 5 --methods no_override runtime_property -v
    python scripts/run_matrix.py --rerun-failed 3 --db results/dnsprobe.db
"""

import argparse
import json
import logging
import os
import sys
import time
from dataclasses import asdict
from datetime import datetime
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from dnsprobe.db.models import MatrixRunRecord
from dnsprobe.db.repo import Repository
from dnsprobe.harness.config import DOCKER_VARIANTS, MatrixConfig, get_config, list_presets
from dnsprobe.matrix import (
    ConfigMethod,
    DockerLauncher,
    LocalProcessLauncher,
    MatrixOrchestrator,
    RunResult,
    generate,
)
from dnsprobe.report import build_report, write_report
from dnsprobe.verbose import VerboseLogger

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging.

    Args:
        verbose: If True, set DEBUG level
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def print_presets() -> None:
    """Print information about available presets."""
    print("\nAvailable presets:\n")
    for preset in list_presets():
        config = preset.config
        print(f"  {preset.name}:")
        print(f"    Description: {preset.description}")
        print(f"    interval: {config.interval}s, duration: {config.duration}s")
        print(f"    ttl_values: {config.ttl_values}")
        print(f"    methods: {', '.join(m.value for m in config.methods)}")
        print()


def print_runs(db_path: Path) -> None:
    with Repository(db_path) as repo:
        runs = repo.list_matrix_runs()
        if not runs:
            print("No matrix runs found in database.")
            return
        print("\nMatrix runs:\n")
        for run in runs:
            summary = repo.get_verdict_summary(run.id)
            counts = ", ".join(f"{k}: {v}" for k, v in sorted(summary.items()))
            print(
                f"  #{run.id} {run.created_at} preset={run.preset} launcher={run.launcher} "
                f"runs={run.run_count} failed={run.failed_count} ({counts})"
            )


def config_json(config: MatrixConfig) -> str:
    data = asdict(config)
    data["methods"] = [m.value for m in config.methods]
    return json.dumps(data, sort_keys=True)


def progress_callback(current: int, total: int, result: RunResult, verbose: bool) -> None:
    """Print progress during the matrix."""
    symbol = "+" if result.succeeded else "X"
    if verbose or not result.succeeded:
        print(f"  [{current}/{total}] {result.spec.name}: {result.status.value} ({symbol})")
    elif current % 5 == 0 or current == total:
        print(f"  Progress: {current}/{total} runs")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Run the DNS cache behaviour test matrix",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --preset quick                          # 30s runs on this interpreter
  %(prog)s --docker                                # All runtime images
  %(prog)s --docker --variants temurin-21          # One image
  %(prog)s --list-presets                          # Show presets
  %(prog)s --rerun-failed 3                        # Re-run failed/inconclusive runs of matrix #3
        """,
    )

    parser.add_argument(
        "--preset", "-p",
        choices=[p.name for p in list_presets()],
        default="full",
        help="Configuration preset (default: full)",
    )
    parser.add_argument("--docker", action="store_true", help="Run each spec in a docker container")
    parser.add_argument("--variants", nargs="+", default=None, help="Runtime variants / image tags")
    parser.add_argument("--image-prefix", default=None, help="Docker image repository (default: dns-test)")
    parser.add_argument("--ttl", nargs="+", type=int, default=None, dest="ttl_values", help="TTL values")
    parser.add_argument(
        "--methods",
        nargs="+",
        choices=[m.value for m in ConfigMethod],
        default=None,
        help="Configuration methods to exercise",
    )
    parser.add_argument(
        "--target-host",
        default=os.environ.get("DNS_TARGET_HOST"),
        help="Hostname to resolve (default: $DNS_TARGET_HOST or www.google.com)",
    )
    parser.add_argument("--interval", type=float, default=None, help="Seconds between queries")
    parser.add_argument("--duration", type=float, default=None, help="Seconds per run")
    parser.add_argument("--threshold-ms", type=float, default=None, help="Cache hit latency threshold")
    parser.add_argument("--workers", "-w", type=int, default=None, dest="max_workers", help="Concurrent runs")
    parser.add_argument(
        "--output-dir", "-o",
        default=None,
        help="Report directory (default: results/matrix_<timestamp>)",
    )
    parser.add_argument(
        "--db", "-d",
        default="results/dnsprobe.db",
        help="Path to SQLite database (default: results/dnsprobe.db)",
    )
    parser.add_argument("--no-db", action="store_true", help="Do not record results in the database")
    parser.add_argument(
        "--rerun-failed",
        type=int,
        default=None,
        metavar="MATRIX_ID",
        help="Re-run only the failed or inconclusive runs of an earlier matrix run",
    )
    parser.add_argument("--list-presets", action="store_true", help="List presets and exit")
    parser.add_argument("--list-runs", action="store_true", help="List recorded matrix runs and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging and per-run progress")

    args = parser.parse_args()
    setup_logging(args.verbose)

    if args.list_presets:
        print_presets()
        return 0

    db_path = Path(args.db)
    if args.list_runs:
        if not db_path.exists():
            print(f"Error: Database not found: {db_path}")
            return 1
        print_runs(db_path)
        return 0

    variants = args.variants
    if args.docker and variants is None:
        variants = list(DOCKER_VARIANTS)
    config = get_config(
        args.preset,
        target_host=args.target_host,
        interval=args.interval,
        duration=args.duration,
        ttl_values=args.ttl_values,
        methods=[ConfigMethod(m) for m in args.methods] if args.methods else None,
        variants=variants,
        threshold_ms=args.threshold_ms,
        max_workers=args.max_workers,
        image_prefix=args.image_prefix,
    )

    if args.rerun_failed is not None:
        if not db_path.exists():
            print(f"Error: Database not found: {db_path}")
            return 1
        with Repository(db_path) as repo:
            if repo.get_matrix_run(args.rerun_failed) is None:
                print(f"Error: Matrix run #{args.rerun_failed} not found")
                return 1
            specs = repo.get_rerun_specs(args.rerun_failed)
        if not specs:
            print(f"Matrix run #{args.rerun_failed} has no failed or inconclusive runs.")
            return 0
        preset_name = f"rerun-{args.rerun_failed}"
    else:
        try:
            specs = generate(
                config.variants,
                config.methods,
                config.ttl_values,
                config.target_host,
                config.interval,
                config.duration,
            )
        except ValueError as e:
            parser.error(str(e))
        preset_name = args.preset

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = Path(args.output_dir or f"results/matrix_{timestamp}")
    output_dir.mkdir(parents=True, exist_ok=True)

    if args.docker:
        launcher = DockerLauncher(image_prefix=config.image_prefix)
    else:
        launcher = LocalProcessLauncher()

    longest = max(s.duration for s in specs)
    print(f"\n{'='*60}")
    print(f"DNS CACHE TEST MATRIX: {preset_name}")
    print(f"{'='*60}")
    print(f"\nLauncher: {launcher.name}")
    print(f"Runs: {len(specs)} (up to {longest:.0f}s each, {config.max_workers} at a time)")
    print(f"Target: {specs[0].target_host}")
    print(f"Output: {output_dir}")
    print()

    def on_progress(current: int, total: int, result: RunResult) -> None:
        progress_callback(current, total, result, args.verbose)

    orchestrator = MatrixOrchestrator(
        launcher,
        threshold_ms=config.threshold_ms,
        timeout_grace=config.timeout_grace,
        max_workers=config.max_workers,
        verbose_logger=VerboseLogger(log_dir=output_dir / "logs"),
        on_progress=on_progress,
    )

    start_time = time.time()
    results = orchestrator.execute_all(specs)
    runtime_ms = int((time.time() - start_time) * 1000)

    report = build_report(
        results,
        threshold_ms=config.threshold_ms,
        metadata={
            "preset": preset_name,
            "launcher": launcher.name,
            "config_hash": config.content_hash(),
            "threshold_ms": config.threshold_ms,
        },
    )
    json_path, md_path = write_report(report, output_dir)

    if not args.no_db:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        with Repository(db_path) as repo:
            failed = sum(1 for r in results if not r.succeeded)
            run_id = repo.insert_matrix_run(MatrixRunRecord(
                preset=preset_name,
                launcher=launcher.name,
                config_hash=config.content_hash(),
                config_json=config_json(config),
                run_count=len(results),
                completed_count=len(results) - failed,
                failed_count=failed,
                runtime_ms=runtime_ms,
                output_dir=str(output_dir),
            ))
            repo.record_report(run_id, report)
        print(f"\nRecorded as matrix run #{run_id} in {db_path}")

    counts = report.counts()
    print(f"\n{'='*60}")
    print("MATRIX COMPLETE")
    print(f"{'='*60}")
    print(f"\nRuntime: {runtime_ms / 1000:.1f}s")
    print(f"  Expected: {counts['expected']}")
    print(f"  Contradicted: {counts['contradicted']}")
    print(f"  Inconclusive: {counts['inconclusive']}")
    print(f"  Failed runs: {counts['failed_runs']}")
    print(f"\nResults: {json_path}")
    print(f"Summary: {md_path}")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
