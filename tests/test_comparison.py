"""Unit tests for core.comparison.

Tests cover:
    - Signed relative difference against the baseline
    - Strict-less-than winner with ties going to the baseline
    - Zero-baseline rejection
    - Scenario filtering and cross-scenario summaries
    - Difference formatting
"""

import pytest

from core.comparison import (
    ComparisonRow,
    ComparisonSummary,
    compare,
    compare_scenarios,
    compare_values,
    format_difference,
    summarize,
)
from core.errors import PreconditionError
from core.metrics import MetricSet, reduce_samples


def _metrics(average: float) -> MetricSet:
    """Single-sample MetricSet whose average equals ``average``."""
    return reduce_samples([average])


# ---------------------------------------------------------------------------
# compare_values / compare
# ---------------------------------------------------------------------------


class TestCompareValues:
    """Tests for the two-value comparator."""

    def test_a_faster(self) -> None:
        row: ComparisonRow = compare_values("rari", 100.0, "nextjs", 120.0)
        assert row.difference == pytest.approx(-16.6667, abs=1e-4)
        assert row.winner == "rari"

    def test_a_slower(self) -> None:
        row: ComparisonRow = compare_values("rari", 150.0, "nextjs", 100.0)
        assert row.difference == pytest.approx(50.0)
        assert row.winner == "nextjs"

    def test_tie_goes_to_baseline(self) -> None:
        row: ComparisonRow = compare_values("rari", 42.0, "nextjs", 42.0)
        assert row.difference == 0.0
        assert row.winner == "nextjs"

    def test_zero_baseline_raises(self) -> None:
        with pytest.raises(PreconditionError, match="zero baseline"):
            compare_values("rari", 10.0, "nextjs", 0.0)

    def test_preserves_inputs(self) -> None:
        row: ComparisonRow = compare_values("a", 1.0, "b", 2.0, scenario="Home")
        assert (row.name_a, row.name_b) == ("a", "b")
        assert (row.value_a, row.value_b) == (1.0, 2.0)
        assert row.scenario == "Home"


class TestCompareMetricSets:
    """Tests for comparing MetricSets by average."""

    def test_uses_average(self) -> None:
        row: ComparisonRow = compare("rari", _metrics(100.0), "nextjs", _metrics(120.0))
        assert row.value_a == 100.0
        assert row.value_b == 120.0
        assert row.winner == "rari"

    def test_compare_scenarios_skips_partial(self) -> None:
        results_a: dict[str, MetricSet] = {"Home": _metrics(10.0), "About": _metrics(20.0)}
        results_b: dict[str, MetricSet] = {"Home": _metrics(20.0)}

        rows: list[ComparisonRow] = compare_scenarios(
            ["Home", "About"], "rari", results_a, "nextjs", results_b,
        )

        assert [r.scenario for r in rows] == ["Home"]
        assert rows[0].difference == pytest.approx(-50.0)

    def test_compare_scenarios_keeps_order(self) -> None:
        results: dict[str, MetricSet] = {"B": _metrics(1.0), "A": _metrics(2.0)}
        rows: list[ComparisonRow] = compare_scenarios(
            ["A", "B"], "x", results, "y", results,
        )
        assert [r.scenario for r in rows] == ["A", "B"]


# ---------------------------------------------------------------------------
# summarize
# ---------------------------------------------------------------------------


class TestSummarize:
    """Tests for cross-scenario averages."""

    def test_none_without_common_scenarios(self) -> None:
        assert summarize(["Home"], "rari", {}, "nextjs", {"Home": _metrics(1.0)}) is None

    def test_improvement_positive_when_a_faster(self) -> None:
        summary: ComparisonSummary | None = summarize(
            ["Home", "About"],
            "rari", {"Home": _metrics(50.0), "About": _metrics(70.0)},
            "nextjs", {"Home": _metrics(100.0), "About": _metrics(100.0)},
        )
        assert summary is not None
        assert summary.scenarios == 2
        assert summary.average_a == 60.0
        assert summary.average_b == 100.0
        assert summary.improvement == pytest.approx(40.0)

    def test_improvement_negative_when_a_slower(self) -> None:
        summary: ComparisonSummary | None = summarize(
            ["Home"], "rari", {"Home": _metrics(150.0)}, "nextjs", {"Home": _metrics(100.0)},
        )
        assert summary is not None
        assert summary.improvement == pytest.approx(-50.0)


# ---------------------------------------------------------------------------
# format_difference
# ---------------------------------------------------------------------------


class TestFormatDifference:
    """Tests for signed percentage rendering."""

    def test_positive_prefixed(self) -> None:
        assert format_difference(16.666) == "+16.67%"

    def test_negative(self) -> None:
        assert format_difference(-16.666) == "-16.67%"

    def test_zero_unsigned(self) -> None:
        assert format_difference(0.0) == "0.00%"

    def test_precision(self) -> None:
        assert format_difference(12.3456, precision=1) == "+12.3%"
