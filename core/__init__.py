"""Core domain layer for the rari vs Next.js benchmark toolkit.

This package holds the pure parts of a benchmark run: timestamp
formatting, the statistics engine, the two-target comparator, report
assembly/persistence and the error taxonomy. Result models are
Pydantic-based with frozen configuration for immutability.
"""

from core.comparison import (
    ComparisonRow,
    ComparisonSummary,
    compare,
    compare_scenarios,
    compare_values,
    format_difference,
    summarize,
)
from core.errors import (
    BenchmarkError,
    DependencyUnavailableError,
    LoadToolError,
    NoSuccessfulSamplesError,
    ParseFailureError,
    PersistenceError,
    PreconditionError,
    SampleFailure,
)
from core.metrics import (
    BuildResult,
    LoadTestResult,
    MetricSet,
    nearest_rank_percentile,
    normalize_external_summary,
    normalize_load_test,
    reduce_samples,
)
from core.report import BenchmarkReport, assemble, load_report, write_report
from core.targets import Scenario, Target, default_targets
from core.timestamps import format_date, format_timestamp

__all__: list[str] = [
    "BenchmarkError",
    "BenchmarkReport",
    "BuildResult",
    "ComparisonRow",
    "ComparisonSummary",
    "DependencyUnavailableError",
    "LoadTestResult",
    "LoadToolError",
    "MetricSet",
    "NoSuccessfulSamplesError",
    "ParseFailureError",
    "PersistenceError",
    "PreconditionError",
    "SampleFailure",
    "Scenario",
    "Target",
    "assemble",
    "compare",
    "compare_scenarios",
    "compare_values",
    "default_targets",
    "format_date",
    "format_difference",
    "format_timestamp",
    "load_report",
    "nearest_rank_percentile",
    "normalize_external_summary",
    "normalize_load_test",
    "reduce_samples",
    "summarize",
    "write_report",
]
