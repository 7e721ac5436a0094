"""Unit tests for the shared benchmark driver and formatting.

Tests cover:
    - Port and results-directory configuration from the environment
    - Unset CLI ports filled from the environment, bad values as usage errors
    - run_targets ordering: readiness first, countdown, pause between targets
    - HttpSamplingStrategy skipping scenarios without successful samples
    - LoadToolStrategy and BuildStrategy readiness/measurement
    - Comparison table, summary, load and build formatting
"""

import argparse
import subprocess
from pathlib import Path
from typing import Any

import httpx
import pytest

from core.comparison import ComparisonRow, ComparisonSummary, compare_values
from core.errors import DependencyUnavailableError
from core.metrics import BuildResult, LoadTestResult, MetricSet, normalize_load_test
from core.targets import Scenario, Target
from infra.build_runner import BuildRunner
from infra.http_sampler import HttpSampler, SamplerConfig
from infra.load_generator import LoadGenerator, LoadTestConfig
from scripts.benchmark_utils import (
    BuildStrategy,
    HttpSamplingStrategy,
    LoadToolStrategy,
    apply_default_ports,
    default_ports,
    default_results_dir,
    format_build_comparison,
    format_load_comparison,
    format_scenario_table,
    format_summary,
    run_targets,
)

RARI: Target = Target(name="rari", label="rari", port=3000)
NEXTJS: Target = Target(name="nextjs", label="Next.js", port=3001)
LABELS: dict[str, str] = {"rari": "rari", "nextjs": "Next.js"}


def _load_result(requests_per_sec: float, average_s: float) -> LoadTestResult:
    raw: dict[str, Any] = {
        "summary": {
            "successRate": 1.0, "total": 10.0, "slowest": 0.5, "fastest": 0.001,
            "average": average_s, "requestsPerSec": requests_per_sec, "sizePerSec": 1000.0,
        },
        "latencyPercentiles": {"p50": 0.01, "p90": 0.05, "p95": 0.1, "p99": 0.2},
    }
    return normalize_load_test(raw, start="s", finish="f")


class RecordingStrategy:
    """Strategy stand-in recording the order of driver calls."""

    def __init__(self, events: list[str], unavailable: str | None = None) -> None:
        self.events: list[str] = events
        self.unavailable: str | None = unavailable

    def prepare(self) -> None:
        self.events.append("prepare")

    def check_ready(self, target: Target) -> None:
        self.events.append(f"ready:{target.name}")
        if target.name == self.unavailable:
            raise DependencyUnavailableError(f"{target.label} is down")

    def measure(self, target: Target) -> str:
        self.events.append(f"measure:{target.name}")
        return f"result-{target.name}"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class TestDefaultPorts:
    """Tests for environment-driven port selection."""

    def test_production_default(self) -> None:
        assert default_ports({}) == (3000, 3001)

    def test_development_mode(self) -> None:
        assert default_ports({"BENCHMARK_MODE": "development"}) == (5173, 3000)

    def test_mode_case_insensitive(self) -> None:
        assert default_ports({"BENCHMARK_MODE": " Production "}) == (3000, 3001)

    def test_port_overrides(self) -> None:
        environ: dict[str, str] = {"RARI_PORT": "4000", "NEXTJS_PORT": "4001"}
        assert default_ports(environ) == (4000, 4001)

    def test_unknown_mode_raises(self) -> None:
        with pytest.raises(ValueError, match="BENCHMARK_MODE"):
            default_ports({"BENCHMARK_MODE": "staging"})

    def test_non_integer_port_raises(self) -> None:
        with pytest.raises(ValueError, match="must be integers"):
            default_ports({"RARI_PORT": "abc"})

    def test_results_dir(self) -> None:
        assert default_results_dir({}) == Path("results")
        assert default_results_dir({"BENCHMARK_RESULTS_DIR": "/tmp/out"}) == Path("/tmp/out")


class TestApplyDefaultPorts:
    """Tests for filling unset CLI ports from the environment."""

    def _parser(self) -> argparse.ArgumentParser:
        parser: argparse.ArgumentParser = argparse.ArgumentParser()
        parser.add_argument("--rari-port", type=int, default=None)
        parser.add_argument("--nextjs-port", type=int, default=None)
        return parser

    def test_fills_only_unset_ports(self) -> None:
        parser: argparse.ArgumentParser = self._parser()
        args: argparse.Namespace = parser.parse_args(["--rari-port", "4000"])

        apply_default_ports(parser, args, {"BENCHMARK_MODE": "development"})

        assert (args.rari_port, args.nextjs_port) == (4000, 3000)

    def test_explicit_ports_skip_environment(self) -> None:
        parser: argparse.ArgumentParser = self._parser()
        args: argparse.Namespace = parser.parse_args(["--rari-port", "4000", "--nextjs-port", "4001"])

        apply_default_ports(parser, args, {"BENCHMARK_MODE": "staging"})

        assert (args.rari_port, args.nextjs_port) == (4000, 4001)

    @pytest.mark.parametrize(
        "environ",
        [{"BENCHMARK_MODE": "staging"}, {"NEXTJS_PORT": "next"}],
    )
    def test_invalid_environment_is_usage_error(
        self, environ: dict[str, str], capsys: pytest.CaptureFixture[str],
    ) -> None:
        parser: argparse.ArgumentParser = self._parser()
        args: argparse.Namespace = parser.parse_args([])

        with pytest.raises(SystemExit) as exc_info:
            apply_default_ports(parser, args, environ)

        assert exc_info.value.code == 2
        assert "error:" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


class TestRunTargets:
    """Tests for the generic sequential driver."""

    def test_readiness_before_measurement(self) -> None:
        events: list[str] = []
        sleeps: list[float] = []

        def sleep(seconds: float) -> None:
            sleeps.append(seconds)
            events.append(f"sleep:{seconds:g}")

        results: dict[str, str] = run_targets(
            [RARI, NEXTJS],
            RecordingStrategy(events),
            countdown_s=3.0,
            pause_s=2.0,
            sleep=sleep,
        )

        assert events == [
            "prepare",
            "ready:rari",
            "ready:nextjs",
            "sleep:3",
            "measure:rari",
            "sleep:2",
            "measure:nextjs",
        ]
        assert sleeps == [3.0, 2.0]
        assert results == {"rari": "result-rari", "nextjs": "result-nextjs"}
        assert list(results) == ["rari", "nextjs"]

    def test_unavailable_target_stops_before_measuring(self) -> None:
        events: list[str] = []

        with pytest.raises(DependencyUnavailableError, match="Next.js is down"):
            run_targets([RARI, NEXTJS], RecordingStrategy(events, unavailable="nextjs"))

        assert not any(e.startswith("measure") for e in events)

    def test_no_sleep_without_delays(self) -> None:
        sleeps: list[float] = []
        run_targets([RARI, NEXTJS], RecordingStrategy([]), sleep=sleeps.append)
        assert sleeps == []


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


class TestHttpSamplingStrategy:
    """Tests for per-scenario sampling."""

    def _sampler(self) -> HttpSampler:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/broken":
                return httpx.Response(500)
            return httpx.Response(200, content=b"page")

        return HttpSampler(
            SamplerConfig(warmup_count=1, sample_count=3),
            client=httpx.Client(transport=httpx.MockTransport(handler)),
            sleep=lambda s: None,
        )

    def test_failed_scenario_skipped(self) -> None:
        strategy: HttpSamplingStrategy = HttpSamplingStrategy(
            self._sampler(),
            [Scenario(name="Home", path="/"), Scenario(name="Broken", path="/broken")],
        )

        results: dict[str, MetricSet] = strategy.measure(RARI)

        assert list(results) == ["Home"]
        assert results["Home"].avg_size == 4

    def test_check_ready_uses_base_url(self) -> None:
        strategy: HttpSamplingStrategy = HttpSamplingStrategy(self._sampler(), [])
        strategy.check_ready(RARI)


class TestLoadToolStrategy:
    """Tests for the load tool strategy."""

    def test_prepare_and_measure(self) -> None:
        stdout: str = (
            '{"summary": {"successRate": 1.0, "total": 10.0, "slowest": 0.5,'
            ' "fastest": 0.001, "average": 0.05, "requestsPerSec": 100.0,'
            ' "sizePerSec": 1000.0}, "latencyPercentiles": {"p50": 0.01,'
            ' "p90": 0.05, "p95": 0.1, "p99": 0.2}}'
        )
        outcomes: list[subprocess.CompletedProcess[str]] = [
            subprocess.CompletedProcess([], 0, stdout="oha 1.4.5", stderr=""),
            subprocess.CompletedProcess([], 0, stdout=stdout, stderr=""),
        ]
        commands: list[list[str]] = []

        def runner(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
            commands.append(cmd)
            return outcomes.pop(0)

        client: httpx.Client = httpx.Client(
            transport=httpx.MockTransport(lambda request: httpx.Response(200)),
        )
        strategy: LoadToolStrategy = LoadToolStrategy(
            LoadGenerator(LoadTestConfig(duration_s=5), runner=runner, clock=lambda: 0.0),
            client,
        )

        strategy.prepare()
        strategy.check_ready(RARI)
        result: LoadTestResult = strategy.measure(RARI)

        assert commands[1][1] == "http://localhost:3000"
        assert result.requests.total == 1000.0


class TestBuildStrategy:
    """Tests for the build strategy readiness check."""

    def test_missing_app_dir(self, tmp_path: Path) -> None:
        target: Target = Target(name="rari", label="rari", port=3000, app_dir=tmp_path / "missing")
        with pytest.raises(DependencyUnavailableError, match="app directory not found"):
            BuildStrategy(BuildRunner()).check_ready(target)

    def test_existing_app_dir(self, tmp_path: Path) -> None:
        target: Target = Target(name="rari", label="rari", port=3000, app_dir=tmp_path)
        BuildStrategy(BuildRunner()).check_ready(target)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


class TestFormatScenarioTable:
    """Tests for the per-scenario ASCII table."""

    def test_renders_rows(self) -> None:
        rows: list[ComparisonRow] = [
            compare_values("rari", 120.0, "nextjs", 100.0, scenario="Homepage"),
        ]
        table: str = format_scenario_table(rows, LABELS)

        assert "rari (ms)" in table
        assert "Next.js (ms)" in table
        assert "120.00" in table
        assert "+20.00%" in table
        assert "| Next.js " in table.splitlines()[3]

    def test_columns_aligned(self) -> None:
        rows: list[ComparisonRow] = [
            compare_values("rari", 1.0, "nextjs", 2.0, scenario="A"),
            compare_values("rari", 1.0, "nextjs", 2.0, scenario="A much longer scenario"),
        ]
        lines: list[str] = format_scenario_table(rows, LABELS).splitlines()
        assert len({len(line) for line in lines}) == 1

    def test_empty(self) -> None:
        assert format_scenario_table([], LABELS) == "No scenarios measured for both targets"


class TestFormatSummary:
    """Tests for the cross-scenario summary."""

    def test_faster(self) -> None:
        summary: ComparisonSummary = ComparisonSummary(
            name_a="rari", name_b="nextjs", scenarios=1,
            average_a=50.0, average_b=100.0, improvement=50.0,
        )
        text: str = format_summary(summary, LABELS)
        assert "rari is 50.0% faster" in text
        assert "100.00ms" in text

    def test_slower(self) -> None:
        summary: ComparisonSummary = ComparisonSummary(
            name_a="rari", name_b="nextjs", scenarios=1,
            average_a=150.0, average_b=100.0, improvement=-50.0,
        )
        assert "rari is 50.0% slower" in format_summary(summary, LABELS)

    def test_none(self) -> None:
        assert format_summary(None, LABELS) == "No valid results to compare"


class TestFormatLoadComparison:
    """Tests for the load test comparison."""

    def test_a_better(self) -> None:
        text: str = format_load_comparison(
            RARI, _load_result(3000.0, 0.03125),
            NEXTJS, _load_result(2000.0, 0.0625),
        )
        assert "Load Test Comparison" in text
        assert "rari handles 50.0% more requests/sec" in text
        assert "rari is 50.0% faster response time" in text
        assert "0 errors, 0 timeouts" in text

    def test_a_worse(self) -> None:
        text: str = format_load_comparison(
            RARI, _load_result(1000.0, 0.0625),
            NEXTJS, _load_result(2000.0, 0.03125),
        )
        assert "rari handles 50.0% fewer requests/sec" in text
        assert "rari is 100.0% slower response time" in text

    def test_zero_baseline_skips_relative_lines(self) -> None:
        text: str = format_load_comparison(
            RARI, _load_result(3000.0, 0.03125),
            NEXTJS, _load_result(0.0, 0.0),
        )
        assert "Next.js: 0.00" in text
        assert "requests/sec" not in text
        assert "response time" not in text
        assert "Errors:" in text


class TestFormatBuildComparison:
    """Tests for the build comparison."""

    def test_faster_build(self) -> None:
        text: str = format_build_comparison(
            RARI, BuildResult(success=True, duration_ms=1000.0, bundle_size="10.00 kB", chunk_count=3),
            NEXTJS, BuildResult(success=True, duration_ms=2000.0),
        )
        assert "Build Performance Comparison" in text
        assert "rari builds 50.0% faster" in text
        assert "Size: 10.00 kB" in text
        assert "Files: 3" in text
        assert "Size: Unknown" in text
        assert "Files: Unknown" in text

    def test_zero_baseline_skips_relative_line(self) -> None:
        text: str = format_build_comparison(
            RARI, BuildResult(success=True, duration_ms=1000.0),
            NEXTJS, BuildResult(success=False, duration_ms=0.0, errors=1),
        )
        assert "builds" not in text
        assert "Errors: 1" in text
