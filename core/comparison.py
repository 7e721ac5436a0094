"""Comparator for two named targets measured under the same scenario.

The comparator is direction-agnostic: it reports the signed percentage
difference of ``a`` relative to ``b`` and names the side with the
numerically lower value. For higher-is-better metrics (throughput) the
caller inverts the interpretation; nothing here flips signs.

Tie policy:
    ``winner`` is ``name_a`` only when ``a < b`` strictly. Equal values
    name ``name_b``.

Example:
    >>> row = compare_values("rari", 100.0, "nextjs", 120.0)
    >>> row.winner, format_difference(row.difference)
    ('rari', '-16.67%')
"""

from collections.abc import Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field

from core.errors import PreconditionError
from core.metrics import MetricSet


class ComparisonRow(BaseModel):
    """One compared value pair.

    Attributes:
        scenario: Scenario name, empty for whole-run comparisons.
        name_a: First target.
        name_b: Second (baseline) target.
        value_a: Primary value of ``name_a``.
        value_b: Primary value of ``name_b``.
        difference: ``(value_a - value_b) / value_b * 100``.
        winner: Target with the strictly lower value, else ``name_b``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    scenario: str = ""
    name_a: str
    name_b: str
    value_a: float
    value_b: float
    difference: float
    winner: str


class ComparisonSummary(BaseModel):
    """Cross-scenario averages of two targets.

    Attributes:
        scenarios: Number of scenarios measured for both targets.
        average_a: Mean of per-scenario averages for ``name_a``.
        average_b: Mean of per-scenario averages for ``name_b``.
        improvement: ``(average_b - average_a) / average_b * 100``;
            positive when ``name_a`` is faster.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name_a: str
    name_b: str
    scenarios: int = Field(gt=0)
    average_a: float
    average_b: float
    improvement: float


def compare_values(
    name_a: str,
    value_a: float,
    name_b: str,
    value_b: float,
    scenario: str = "",
) -> ComparisonRow:
    """Compare two raw values where lower is the winning side.

    Raises:
        PreconditionError: If ``value_b`` is zero (no relative baseline).
    """
    if value_b == 0:
        raise PreconditionError(
            f"cannot compute relative difference against zero baseline ({name_b})"
        )

    difference: float = (value_a - value_b) / value_b * 100.0
    winner: str = name_a if value_a < value_b else name_b

    return ComparisonRow(
        scenario=scenario,
        name_a=name_a,
        name_b=name_b,
        value_a=value_a,
        value_b=value_b,
        difference=difference,
        winner=winner,
    )


def compare(
    name_a: str,
    metrics_a: MetricSet,
    name_b: str,
    metrics_b: MetricSet,
    scenario: str = "",
) -> ComparisonRow:
    """Compare two metric sets by their ``average`` latency."""
    return compare_values(
        name_a=name_a,
        value_a=metrics_a.average,
        name_b=name_b,
        value_b=metrics_b.average,
        scenario=scenario,
    )


def compare_scenarios(
    scenarios: Sequence[str],
    name_a: str,
    results_a: Mapping[str, MetricSet],
    name_b: str,
    results_b: Mapping[str, MetricSet],
) -> list[ComparisonRow]:
    """Compare every scenario present in both result maps, in order."""
    return [
        compare(name_a, results_a[scenario], name_b, results_b[scenario], scenario)
        for scenario in scenarios
        if scenario in results_a and scenario in results_b
    ]


def summarize(
    scenarios: Sequence[str],
    name_a: str,
    results_a: Mapping[str, MetricSet],
    name_b: str,
    results_b: Mapping[str, MetricSet],
) -> ComparisonSummary | None:
    """Average both targets over scenarios measured for both.

    Returns:
        :class:`ComparisonSummary`, or ``None`` when no scenario has
        results for both targets.

    Raises:
        PreconditionError: If the baseline mean is zero.
    """
    valid: list[str] = [
        s for s in scenarios if s in results_a and s in results_b
    ]
    if not valid:
        return None

    average_a: float = sum(results_a[s].average for s in valid) / len(valid)
    average_b: float = sum(results_b[s].average for s in valid) / len(valid)
    if average_b == 0:
        raise PreconditionError(f"baseline average for {name_b} is zero")

    return ComparisonSummary(
        name_a=name_a,
        name_b=name_b,
        scenarios=len(valid),
        average_a=average_a,
        average_b=average_b,
        improvement=(average_b - average_a) / average_b * 100.0,
    )


def format_difference(difference: float, precision: int = 2) -> str:
    """Render a signed percentage, ``+``-prefixing positive values."""
    if difference > 0:
        return f"+{difference:.{precision}f}%"
    return f"{difference:.{precision}f}%"
