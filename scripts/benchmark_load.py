"""Concurrent load test — rari vs Next.js, driven by ``oha``.

Runs ``oha`` against each server for a fixed duration and connection
count, one server after the other with a short pause in between, then
compares throughput, latency and errors.

Usage:
    python -m scripts.benchmark_load
    python -m scripts.benchmark_load --duration 60 --connections 100

Output:
    Comparison to stdout, progress to stderr.
    ``results/loadtest-YYYY-MM-DD.json``.
    Exit code 1 if ``oha`` or a server is unavailable, ``oha`` fails, its
    output cannot be parsed, or the report cannot be written.
    Exit code 2 on invalid arguments or port environment variables.
"""

import argparse
import sys
from pathlib import Path

import httpx
from dotenv import load_dotenv
from pydantic import ValidationError

from core.errors import BenchmarkError
from core.metrics import LoadTestResult
from core.report import BenchmarkReport, assemble, write_report
from core.targets import Target, default_targets
from infra.load_generator import LoadGenerator, LoadTestConfig
from scripts.benchmark_utils import (
    LoadToolStrategy,
    apply_default_ports,
    configure_logging,
    default_results_dir,
    format_load_comparison,
    progress,
    run_targets,
)

REPORT_NAME: str = "loadtest"
PAUSE_BETWEEN_TARGETS_S: float = 2.0


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Run load tests comparing rari and Next.js using oha",
    )
    parser.add_argument(
        "-d", "--duration",
        type=int,
        default=30,
        help="Test duration per server in seconds (default: 30)",
    )
    parser.add_argument(
        "-c", "--connections",
        type=int,
        default=50,
        help="Concurrent connections (default: 50)",
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
        "--oha",
        default="oha",
        help="oha executable (default: oha)",
    )
    parser.add_argument(
        "--countdown",
        type=float,
        default=3.0,
        help="Seconds to wait before the first test (default: 3)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def run(
    args: argparse.Namespace,
    generator: LoadGenerator,
    client: httpx.Client,
) -> Path:
    """Load test both targets and persist the report.

    Returns:
        Path of the dated report file.
    """
    rari, nextjs = default_targets(args.rari_port, args.nextjs_port)
    targets: tuple[Target, Target] = (rari, nextjs)

    progress("This test will generate significant load on both servers")
    results: dict[str, LoadTestResult] = run_targets(
        targets,
        LoadToolStrategy(generator, client),
        countdown_s=args.countdown,
        pause_s=PAUSE_BETWEEN_TARGETS_S,
    )

    print()
    print(format_load_comparison(rari, results[rari.name], nextjs, results[nextjs.name]))

    report: BenchmarkReport = assemble(
        config={
            "duration": generator.config.duration_s,
            "connections": generator.config.connections,
        },
        per_target=results,
    )
    path: Path = write_report(report, args.results_dir, REPORT_NAME)
    progress(f"\nResults saved to {path}")
    return path


def main(argv: list[str] | None = None) -> None:
    """Run the load test and write its report."""
    load_dotenv()
    parser: argparse.ArgumentParser = build_parser()
    args: argparse.Namespace = parser.parse_args(argv)
    apply_default_ports(parser, args)
    configure_logging(verbose=args.verbose)

    try:
        config: LoadTestConfig = LoadTestConfig(
            duration_s=args.duration,
            connections=args.connections,
            binary=args.oha,
        )
    except ValidationError as exc:
        parser.error(str(exc))

    progress("rari vs Next.js Load Test")
    progress("This test measures concurrent request handling performance\n")

    try:
        with httpx.Client() as client:
            run(args, LoadGenerator(config), client)
    except BenchmarkError as exc:
        progress(f"ERROR: {exc}")
        sys.exit(1)

    progress("\nLoad test completed!")


if __name__ == "__main__":
    main()
