"""Per-scenario response time benchmark — rari vs Next.js.

Probes each scenario URL on both servers with sequential ``GET``
requests (warmup discarded), reduces the timings into nearest-rank
metric sets and prints a per-scenario comparison table plus a
cross-scenario summary.

rari is measured completely before Next.js starts, so load from one
server never overlaps the other's measurement.

Usage:
    python -m scripts.benchmark_performance
    python -m scripts.benchmark_performance --warmup 100 --requests 50
    python -m scripts.benchmark_performance --rari-port 5173 --nextjs-port 3000

Output:
    Comparison table to stdout, progress to stderr.
    ``results/performance-YYYY-MM-DD.json`` and ``results/latest.json``.
    Exit code 1 if a server is unreachable or the report cannot be written.
    Exit code 2 on invalid arguments or port environment variables.
"""

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from core.comparison import ComparisonRow, ComparisonSummary, compare_scenarios, summarize
from core.errors import BenchmarkError
from core.metrics import MetricSet
from core.report import BenchmarkReport, assemble, write_report
from core.targets import DEFAULT_SCENARIOS, Target, default_targets
from infra.http_sampler import HttpSampler, SamplerConfig
from scripts.benchmark_utils import (
    HttpSamplingStrategy,
    apply_default_ports,
    configure_logging,
    default_results_dir,
    format_scenario_table,
    format_summary,
    progress,
    run_targets,
)

REPORT_NAME: str = "performance"


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Run performance benchmarks comparing rari and Next.js",
    )
    parser.add_argument(
        "-w", "--warmup",
        type=int,
        default=50,
        help="Warmup requests per scenario (default: 50)",
    )
    parser.add_argument(
        "-r", "--requests",
        type=int,
        default=20,
        help="Measured requests per scenario (default: 20)",
    )
    parser.add_argument(
        "--rari-port",
        type=int,
        default=None,
        help="rari server port (default: from BENCHMARK_MODE, 3000 in production)",
    )
    parser.add_argument(
        "--nextjs-port",
        type=int,
        default=None,
        help="Next.js server port (default: from BENCHMARK_MODE, 3001 in production)",
    )
    parser.add_argument(
        "--results-dir",
        type=Path,
        default=default_results_dir(),
        help="Directory for JSON reports (default: results)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="Per-request timeout in seconds (default: 10)",
    )
    parser.add_argument(
        "--countdown",
        type=float,
        default=3.0,
        help="Seconds to wait before measuring (default: 3)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def run(args: argparse.Namespace, sampler: HttpSampler) -> Path:
    """Benchmark both targets and persist the report.

    Returns:
        Path of the dated report file.
    """
    rari, nextjs = default_targets(args.rari_port, args.nextjs_port)
    targets: tuple[Target, Target] = (rari, nextjs)
    labels: dict[str, str] = {t.name: t.label for t in targets}
    scenario_names: list[str] = [s.name for s in DEFAULT_SCENARIOS]

    results: dict[str, dict[str, MetricSet]] = run_targets(
        targets,
        HttpSamplingStrategy(sampler, DEFAULT_SCENARIOS),
        countdown_s=args.countdown,
    )

    rows: list[ComparisonRow] = compare_scenarios(
        scenario_names, rari.name, results[rari.name], nextjs.name, results[nextjs.name],
    )
    summary: ComparisonSummary | None = summarize(
        scenario_names, rari.name, results[rari.name], nextjs.name, results[nextjs.name],
    )
    print("\nPerformance Comparison\n")
    print(format_scenario_table(rows, labels))
    print()
    print(format_summary(summary, labels))

    report: BenchmarkReport = assemble(
        config={
            "warmupRequests": sampler.config.warmup_count,
            "testRequests": sampler.config.sample_count,
            "timeoutSeconds": sampler.config.timeout_s,
        },
        per_target=results,
        summary={
            "testRequests": sampler.config.sample_count,
            "warmupRequests": sampler.config.warmup_count,
            "scenarios": len(scenario_names),
        },
    )
    path: Path = write_report(report, args.results_dir, REPORT_NAME, track_latest=True)
    progress(f"\nResults saved to {path}")
    return path


def main(argv: list[str] | None = None) -> None:
    """Run the performance benchmark and write its report."""
    load_dotenv()
    parser: argparse.ArgumentParser = build_parser()
    args: argparse.Namespace = parser.parse_args(argv)
    apply_default_ports(parser, args)
    configure_logging(verbose=args.verbose)

    try:
        config: SamplerConfig = SamplerConfig(
            warmup_count=args.warmup,
            sample_count=args.requests,
            timeout_s=args.timeout,
        )
    except ValidationError as exc:
        parser.error(str(exc))

    progress("rari vs Next.js Performance Benchmark")
    progress("This benchmark compares server-side rendering performance\n")

    try:
        with HttpSampler(config) as sampler:
            run(args, sampler)
    except BenchmarkError as exc:
        progress(f"ERROR: {exc}")
        sys.exit(1)

    progress("\nBenchmark completed!")


if __name__ == "__main__":
    main()
