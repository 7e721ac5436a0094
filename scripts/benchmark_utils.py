"""Shared benchmark driver, configuration and console formatting.

Every comparison follows the same shape: check that each target is
ready, then measure the targets one after another with a pluggable
:class:`MeasurementStrategy`, then diff the two result sets. The three
entry points only differ in their strategy:

- :class:`HttpSamplingStrategy` — sequential timed ``GET`` probes per
  scenario, reduced to :class:`~core.metrics.MetricSet` values.
- :class:`LoadToolStrategy` — delegates to ``oha`` and normalizes its
  JSON summary into a :class:`~core.metrics.LoadTestResult`.
- :class:`BuildStrategy` — runs production builds and scans bundles
  into a :class:`~core.metrics.BuildResult`.

Design principles:
    - Targets are never measured concurrently. Load from one target
      would otherwise bleed into the other's timings.
    - No retries and no cancellation. Per-request timeouts are the only
      bound on a phase.
    - Progress goes to stderr, comparison tables to stdout.

Environment:
    ``BENCHMARK_MODE`` (``production`` or ``development``) selects the
    default ports, ``RARI_PORT`` / ``NEXTJS_PORT`` override them and
    ``BENCHMARK_RESULTS_DIR`` sets the default results directory. A
    ``.env`` file is honoured via ``python-dotenv``.
"""

import argparse
import logging
import os
import sys
import time
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Protocol, TypeVar

import httpx

from core.comparison import (
    ComparisonRow,
    ComparisonSummary,
    compare_values,
    format_difference,
)
from core.errors import DependencyUnavailableError, NoSuccessfulSamplesError
from core.metrics import BuildResult, LoadTestResult, MetricSet
from core.targets import MODE_PORTS, Scenario, Target
from infra.build_runner import BuildRunner
from infra.http_sampler import HttpSampler, check_server
from infra.load_generator import LoadGenerator, LoadTestConfig

logger: logging.Logger = logging.getLogger(__name__)

ResultT_co = TypeVar("ResultT_co", covariant=True)
ResultT = TypeVar("ResultT")

LOG_FORMAT: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging for a CLI run."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def default_ports(environ: Mapping[str, str] = os.environ) -> tuple[int, int]:
    """Return (rari port, Next.js port) from the environment.

    Raises:
        ValueError: If ``BENCHMARK_MODE`` is unknown or a port override
            is not an integer.
    """
    mode: str = environ.get("BENCHMARK_MODE", "production").strip().lower()
    if mode not in MODE_PORTS:
        raise ValueError(
            f"BENCHMARK_MODE must be one of {sorted(MODE_PORTS)}, got {mode!r}"
        )
    rari_port, nextjs_port = MODE_PORTS[mode]
    try:
        return (
            int(environ.get("RARI_PORT", rari_port)),
            int(environ.get("NEXTJS_PORT", nextjs_port)),
        )
    except ValueError as exc:
        raise ValueError(f"RARI_PORT and NEXTJS_PORT must be integers: {exc}") from exc


def apply_default_ports(
    parser: argparse.ArgumentParser,
    args: argparse.Namespace,
    environ: Mapping[str, str] = os.environ,
) -> None:
    """Fill ``--rari-port`` / ``--nextjs-port`` left unset on the command line.

    An invalid environment is reported through ``parser.error`` (exit 2).
    """
    if args.rari_port is not None and args.nextjs_port is not None:
        return
    try:
        rari_port, nextjs_port = default_ports(environ)
    except ValueError as exc:
        parser.error(str(exc))
    if args.rari_port is None:
        args.rari_port = rari_port
    if args.nextjs_port is None:
        args.nextjs_port = nextjs_port


def default_results_dir(environ: Mapping[str, str] = os.environ) -> Path:
    return Path(environ.get("BENCHMARK_RESULTS_DIR", "results"))


def progress(message: str = "") -> None:
    """Print a progress line to stderr."""
    print(message, file=sys.stderr)


# ---------------------------------------------------------------------------
# Measurement Strategies
# ---------------------------------------------------------------------------


class MeasurementStrategy(Protocol[ResultT_co]):
    """Measures one target at a time."""

    def prepare(self) -> None:
        """Check tools the strategy depends on. Called once per run."""
        ...

    def check_ready(self, target: Target) -> None:
        """Raise :class:`DependencyUnavailableError` if ``target`` is not usable."""
        ...

    def measure(self, target: Target) -> ResultT_co:
        ...


class HttpSamplingStrategy:
    """Per-scenario latency sampling over HTTP.

    A scenario whose every measured request failed is reported and
    left out of the target's results; the other scenarios still run.
    """

    def __init__(self, sampler: HttpSampler, scenarios: Sequence[Scenario]) -> None:
        self._sampler: HttpSampler = sampler
        self._scenarios: tuple[Scenario, ...] = tuple(scenarios)

    def prepare(self) -> None:
        return None

    def check_ready(self, target: Target) -> None:
        self._sampler.check_ready(target.label, target.base_url)

    def measure(self, target: Target) -> dict[str, MetricSet]:
        progress(f"\nBenchmarking {target.label} (port {target.port})")
        results: dict[str, MetricSet] = {}

        for scenario in self._scenarios:
            url: str = target.url_for(scenario.path)
            progress(f"\n  {scenario.name}")
            progress(f"  Testing {url}...")
            try:
                metrics: MetricSet = self._sampler.measure(url)
            except NoSuccessfulSamplesError as exc:
                progress(f"  Failed: {exc}")
                continue

            progress(
                f"  Avg: {metrics.average:.2f}ms, P95: {metrics.p95:.2f}ms, "
                f"Size: {metrics.avg_size}b"
            )
            results[scenario.name] = metrics

        return results


class LoadToolStrategy:
    """Whole-target load test delegated to the external load tool."""

    def __init__(
        self,
        generator: LoadGenerator,
        client: httpx.Client,
        timeout_s: float = 10.0,
    ) -> None:
        self._generator: LoadGenerator = generator
        self._client: httpx.Client = client
        self._timeout_s: float = timeout_s

    def prepare(self) -> None:
        version: str = self._generator.check_installed()
        progress(f"Using {version}")

    def check_ready(self, target: Target) -> None:
        check_server(self._client, target.label, target.base_url, self._timeout_s)

    def measure(self, target: Target) -> LoadTestResult:
        config: LoadTestConfig = self._generator.config
        progress(f"\nLoad Testing {target.label}")
        progress(f"  URL: {target.base_url}")
        progress(f"  Duration: {config.duration_s}s, Connections: {config.connections}")

        result: LoadTestResult = self._generator.run(target.base_url)
        total: int = int(result.requests.total)
        progress(
            f"  Completed: {total} requests "
            f"({total - result.errors} successful, {result.errors} failed)"
        )
        return result


class BuildStrategy:
    """Production build plus bundle scan."""

    def __init__(self, runner: BuildRunner) -> None:
        self._runner: BuildRunner = runner

    def prepare(self) -> None:
        return None

    def check_ready(self, target: Target) -> None:
        if not target.app_dir.is_dir():
            raise DependencyUnavailableError(
                f"{target.label} app directory not found: {target.app_dir}"
            )

    def measure(self, target: Target) -> BuildResult:
        progress(f"\nBuilding {target.label}...")
        progress(f"  Directory: {target.app_dir}")
        progress(f"  Command: {target.build_command}")

        result: BuildResult = self._runner.build(target)
        if result.success:
            progress(f"  {target.label} built successfully in {result.duration_ms:.2f}ms")
        else:
            progress(f"  {target.label} build failed")
        return result


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


def run_targets(
    targets: Sequence[Target],
    strategy: MeasurementStrategy[ResultT],
    countdown_s: float = 0.0,
    pause_s: float = 0.0,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, ResultT]:
    """Measure each target in turn with ``strategy``.

    Readiness of every target is checked before any measurement starts,
    so a missing server fails the run before load is generated.

    Args:
        targets: Targets in measurement order.
        strategy: Measurement strategy.
        countdown_s: Delay between readiness checks and the first
            measurement.
        pause_s: Delay between consecutive targets.
        sleep: Sleep function, injectable for tests.

    Returns:
        Results keyed by target name, in measurement order.
    """
    strategy.prepare()
    for target in targets:
        strategy.check_ready(target)

    if countdown_s > 0:
        progress(f"\nStarting in {countdown_s:g} seconds...")
        sleep(countdown_s)

    results: dict[str, ResultT] = {}
    for index, target in enumerate(targets):
        if index > 0 and pause_s > 0:
            progress("\nPausing between tests...")
            sleep(pause_s)
        results[target.name] = strategy.measure(target)
        logger.info("Finished measuring %s", target.label)

    return results


# ---------------------------------------------------------------------------
# Comparison Formatting
# ---------------------------------------------------------------------------


def _render_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    widths: list[int] = [
        max(len(headers[i]), *(len(row[i]) for row in rows)) if rows else len(headers[i])
        for i in range(len(headers))
    ]
    separator: str = "+-" + "-+-".join("-" * w for w in widths) + "-+"

    def _line(cells: Sequence[str]) -> str:
        return "| " + " | ".join(c.ljust(w) for c, w in zip(cells, widths)) + " |"

    lines: list[str] = [separator, _line(headers), separator]
    lines.extend(_line(row) for row in rows)
    lines.append(separator)
    return "\n".join(lines)


def format_scenario_table(
    rows: Sequence[ComparisonRow],
    labels: Mapping[str, str],
) -> str:
    """Render per-scenario comparison rows as an ASCII table.

    Args:
        rows: Rows from :func:`core.comparison.compare_scenarios`.
        labels: Display label per target name.
    """
    if not rows:
        return "No scenarios measured for both targets"

    name_a: str = rows[0].name_a
    name_b: str = rows[0].name_b
    headers: list[str] = [
        "Scenario",
        f"{labels.get(name_a, name_a)} (ms)",
        f"{labels.get(name_b, name_b)} (ms)",
        "Difference",
        "Winner",
    ]
    cells: list[list[str]] = [
        [
            row.scenario,
            f"{row.value_a:.2f}",
            f"{row.value_b:.2f}",
            format_difference(row.difference),
            labels.get(row.winner, row.winner),
        ]
        for row in rows
    ]
    return _render_table(headers, cells)


def format_summary(summary: ComparisonSummary | None, labels: Mapping[str, str]) -> str:
    """Render the cross-scenario average response times."""
    if summary is None:
        return "No valid results to compare"

    label_a: str = labels.get(summary.name_a, summary.name_a)
    label_b: str = labels.get(summary.name_b, summary.name_b)
    width: int = max(len(label_a), len(label_b)) + 1
    lines: list[str] = [
        "Summary",
        "Average Response Time:",
        f"  {label_a + ':':<{width}} {summary.average_a:.2f}ms",
        f"  {label_b + ':':<{width}} {summary.average_b:.2f}ms",
    ]
    if summary.improvement > 0:
        lines.append(f"  {label_a} is {summary.improvement:.1f}% faster")
    else:
        lines.append(f"  {label_a} is {abs(summary.improvement):.1f}% slower")
    return "\n".join(lines)


def format_load_comparison(
    target_a: Target,
    result_a: LoadTestResult,
    target_b: Target,
    result_b: LoadTestResult,
) -> str:
    """Render throughput, latency and error comparison of two load tests.

    Throughput is higher-is-better, so a positive difference reads as
    "more requests/sec" here; the comparator itself stays neutral. A
    relative line is omitted when the baseline value is 0.
    """
    width: int = max(len(target_a.label), len(target_b.label)) + 1
    a: str = f"{target_a.label + ':':<{width}}"
    b: str = f"{target_b.label + ':':<{width}}"

    lines: list[str] = ["Load Test Comparison", "", "Throughput (req/sec):"]
    lines.append(f"  {a} {result_a.requests.average:.2f}")
    lines.append(f"  {b} {result_b.requests.average:.2f}")
    if result_b.requests.average > 0:
        throughput: ComparisonRow = compare_values(
            target_a.name, result_a.requests.average,
            target_b.name, result_b.requests.average,
        )
        if throughput.difference > 0:
            lines.append(
                f"  {target_a.label} handles {throughput.difference:.1f}% more requests/sec"
            )
        else:
            lines.append(
                f"  {target_a.label} handles {abs(throughput.difference):.1f}% fewer requests/sec"
            )

    lines.extend(["", "Latency (ms):"])
    lines.append(f"  {a} {result_a.latency.mean:.2f}ms (P95: {result_a.latency.p95:.2f}ms)")
    lines.append(f"  {b} {result_b.latency.mean:.2f}ms (P95: {result_b.latency.p95:.2f}ms)")
    if result_b.latency.mean > 0:
        latency: ComparisonRow = compare_values(
            target_a.name, result_a.latency.mean,
            target_b.name, result_b.latency.mean,
        )
        if latency.difference < 0:
            lines.append(
                f"  {target_a.label} is {abs(latency.difference):.1f}% faster response time"
            )
        else:
            lines.append(
                f"  {target_a.label} is {latency.difference:.1f}% slower response time"
            )

    lines.extend(["", "Errors:"])
    lines.append(f"  {a} {result_a.errors} errors, {result_a.timeouts} timeouts")
    lines.append(f"  {b} {result_b.errors} errors, {result_b.timeouts} timeouts")
    return "\n".join(lines)


def format_build_comparison(
    target_a: Target,
    result_a: BuildResult,
    target_b: Target,
    result_b: BuildResult,
) -> str:
    """Render build time and bundle comparison of two builds."""
    width: int = max(len(target_a.label), len(target_b.label)) + 1
    lines: list[str] = ["Build Performance Comparison", "", "Build Times:"]
    for target, result in ((target_a, result_a), (target_b, result_b)):
        lines.append(f"  {target.label + ':':<{width}} {result.duration_ms / 1000:.2f}s")

    if result_b.duration_ms > 0:
        row: ComparisonRow = compare_values(
            target_a.name, result_a.duration_ms,
            target_b.name, result_b.duration_ms,
        )
        if row.difference < 0:
            lines.append(f"  {target_a.label} builds {abs(row.difference):.1f}% faster")
        else:
            lines.append(f"  {target_a.label} builds {row.difference:.1f}% slower")

    lines.extend(["", "Client Bundle Information:"])
    for target, result in ((target_a, result_a), (target_b, result_b)):
        chunks: str = "Unknown" if result.chunk_count is None else str(result.chunk_count)
        lines.append(f"  {target.label}:")
        lines.append(f"     Size: {result.bundle_size or 'Unknown'}")
        lines.append(f"     Files: {chunks}")
        lines.append(f"     Warnings: {result.warnings}")
        lines.append(f"     Errors: {result.errors}")
    return "\n".join(lines)
