"""Production build comparison — rari vs Next.js.

Runs ``pnpm run build`` in ``rari-app`` and ``nextjs-app`` under
``NODE_ENV=production``, times both builds, scans the client bundles
(``dist/assets`` and ``.next/static/chunks``) and counts warnings and
errors in the build output.

Usage:
    python -m scripts.benchmark_build
    python -m scripts.benchmark_build --dir path/to/checkout

Output:
    Comparison to stdout, progress to stderr.
    ``<dir>/results/buildtimes-YYYY-MM-DD.json``.
    A failing build is recorded, not fatal. Exit code 1 if an app
    directory is missing, a build command cannot be launched, or the
    report cannot be written.
"""

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from core.errors import BenchmarkError
from core.metrics import BuildResult
from core.report import BenchmarkReport, assemble, write_report
from core.targets import Target, default_targets
from infra.build_runner import BuildRunner
from scripts.benchmark_utils import (
    BuildStrategy,
    configure_logging,
    format_build_comparison,
    progress,
    run_targets,
)

REPORT_NAME: str = "buildtimes"


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Compare build times between rari and Next.js",
    )
    parser.add_argument(
        "-d", "--dir",
        type=Path,
        default=Path("."),
        help="Checkout containing rari-app/ and nextjs-app/ (default: .)",
    )
    parser.add_argument(
        "--countdown",
        type=float,
        default=3.0,
        help="Seconds to wait before building (default: 3)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def run(args: argparse.Namespace, runner: BuildRunner) -> Path:
    """Build both targets and persist the report.

    Returns:
        Path of the dated report file.
    """
    rari, nextjs = default_targets(root_dir=args.dir)
    targets: tuple[Target, Target] = (rari, nextjs)

    progress("This will run production builds which may take some time")
    results: dict[str, BuildResult] = run_targets(
        targets,
        BuildStrategy(runner),
        countdown_s=args.countdown,
    )

    print()
    print(format_build_comparison(rari, results[rari.name], nextjs, results[nextjs.name]))

    report: BenchmarkReport = assemble(
        config={t.name: {"command": t.build_command} for t in targets},
        per_target=results,
    )
    path: Path = write_report(report, args.dir / "results", REPORT_NAME)
    progress(f"\nResults saved to {path}")
    return path


def main(argv: list[str] | None = None) -> None:
    """Run the build comparison and write its report."""
    load_dotenv()
    args: argparse.Namespace = build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose)

    progress("rari vs Next.js Build Time Comparison")
    progress("This benchmark compares build performance and bundle analysis\n")

    try:
        run(args, BuildRunner())
    except BenchmarkError as exc:
        progress(f"ERROR: {exc}")
        sys.exit(1)

    progress("\nBuild comparison completed!")


if __name__ == "__main__":
    main()
