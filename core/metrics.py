"""Statistics engine: reduces raw timing samples into metric sets.

Two paths produce the same :class:`MetricSet` shape:

- :func:`reduce_samples` computes everything from raw per-request
  latencies collected by the HTTP sampler.
- :func:`normalize_external_summary` maps the already-computed summary
  of an external load generator (``oha --output-format json``) into the
  shape without recomputation. The raw samples are not available on
  that path, so ``stddev`` is emitted as a defined ``0`` placeholder.

Percentile method:
    Nearest rank by linear index truncation, no interpolation:
    ``sorted[floor(fraction * (n - 1))]``. This differs from
    ``numpy.percentile`` on purpose; reports stay comparable with
    earlier runs of the same tool.

Serialization:
    ``min``, ``max``, ``total``, percentile and ``successRate`` fields
    are written as JSON integers when they are mathematically whole
    (``3`` rather than ``3.0``) and as floats otherwise.

Example:
    >>> metrics = reduce_samples([1.0, 2.0, 3.0, 4.0, 5.0])
    >>> metrics.p50, metrics.p95, metrics.p99
    (3.0, 4.0, 4.0)
"""

import math
import statistics
from collections.abc import Mapping, Sequence
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    SerializerFunctionWrapHandler,
    ValidationError,
    model_serializer,
    model_validator,
)

from core.errors import ParseFailureError, PreconditionError


def int_if_whole(value: float) -> int | float:
    """Return ``value`` as an int when it has no fractional part."""
    if math.isfinite(value) and float(value).is_integer():
        return int(value)
    return value


WholeFloat = Annotated[float, PlainSerializer(int_if_whole)]

PERCENTILE_FRACTIONS: tuple[float, ...] = (0.50, 0.95, 0.99)


# ---------------------------------------------------------------------------
# Result Models
# ---------------------------------------------------------------------------


class MetricSet(BaseModel):
    """Aggregate latency statistics for one (target, scenario) pair.

    All latency values are in milliseconds.

    Attributes:
        min: Fastest observed request.
        max: Slowest observed request.
        average: Arithmetic mean latency.
        mean: Same value as ``average``; both keys are persisted.
        stddev: Sample standard deviation, ``0`` when not available.
        p50: Nearest-rank median.
        p90: Nearest-rank P90 (external summaries only).
        p95: Nearest-rank P95.
        p99: Nearest-rank P99.
        errors: Failed measured requests.
        success_rate: Percentage (0-100) of attempted requests that
            succeeded. Persisted as ``successRate``.
        avg_size: Truncating integer mean of response body sizes in
            bytes. Persisted as ``avgSize``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    min: WholeFloat = Field(description="Minimum latency (ms)")
    max: WholeFloat = Field(description="Maximum latency (ms)")
    average: float = Field(description="Mean latency (ms)")
    mean: float = Field(description="Mean latency (ms), duplicate of average")
    stddev: float = Field(default=0.0, ge=0.0, description="Stddev (ms)")
    p50: WholeFloat = Field(description="P50 latency (ms)")
    p90: WholeFloat | None = Field(default=None, description="P90 latency (ms)")
    p95: WholeFloat = Field(description="P95 latency (ms)")
    p99: WholeFloat = Field(description="P99 latency (ms)")
    errors: int = Field(default=0, ge=0, description="Failed requests")
    success_rate: WholeFloat = Field(
        default=100.0,
        ge=0.0,
        le=100.0,
        alias="successRate",
        description="Successful requests as a percentage of attempted",
    )
    avg_size: int | None = Field(
        default=None,
        ge=0,
        alias="avgSize",
        description="Mean response body size (bytes), truncated",
    )

    @model_validator(mode="after")
    def validate_ordering(self) -> "MetricSet":
        """Ensure min <= p50 <= p95 <= p99 <= max."""
        chain: list[float] = [self.min, self.p50, self.p95, self.p99, self.max]
        if any(lower > upper for lower, upper in zip(chain, chain[1:])):
            raise ValueError(
                "metric ordering violated: expected min <= p50 <= p95 <= "
                f"p99 <= max, got {chain}"
            )
        return self

    @model_serializer(mode="wrap")
    def drop_unset_optionals(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        """Omit ``p90`` and ``avgSize`` when the producing path has none."""
        data: dict[str, Any] = handler(self)
        for key in ("p90", "avg_size", "avgSize"):
            if key in data and data[key] is None:
                del data[key]
        return data


class RequestStats(BaseModel):
    """Request-count block of an external load test summary.

    ``total`` is an estimate reconstructed from the reported rate and
    duration. ``average`` and ``mean`` carry requests per second.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    total: WholeFloat
    average: float
    mean: float
    stddev: float = 0.0
    min: WholeFloat = 0.0
    max: WholeFloat = 0.0


class ThroughputStats(BaseModel):
    """Bytes-per-second block of an external load test summary."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    average: float
    mean: float
    stddev: float = 0.0
    min: WholeFloat = 0.0
    max: WholeFloat = 0.0


class LoadTestResult(BaseModel):
    """Normalized result of one external load-generator run.

    Attributes:
        requests: Request rate and reconstructed total.
        latency: Latency metrics in milliseconds.
        throughput: Response bytes per second.
        errors: Failed requests derived from the reported success rate.
        timeouts: Always ``0``; the load tool does not report timeouts
            separately in its JSON summary.
        duration: Wall duration reported by the tool (seconds).
        start: Timestamp taken before the tool was started.
        finish: Timestamp taken after the tool exited.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    requests: RequestStats
    latency: MetricSet
    throughput: ThroughputStats
    errors: int = Field(ge=0)
    timeouts: int = Field(default=0, ge=0)
    duration: float = Field(ge=0.0)
    start: str
    finish: str


class BuildResult(BaseModel):
    """Outcome of one production build.

    Attributes:
        success: Whether the build command exited with status 0.
        duration_ms: Wall time of the build process in milliseconds.
        bundle_size: Human-readable client bundle size (``"12.34 kB"``),
            ``None`` when unknown or empty.
        chunk_count: Number of bundle files, ``None`` when unknown.
        warnings: Best-effort warning count scraped from build output.
        errors: Best-effort error count scraped from build output.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    success: bool
    duration_ms: float = Field(ge=0.0)
    bundle_size: str | None = None
    chunk_count: int | None = Field(default=None, ge=0)
    warnings: int = Field(default=0, ge=0)
    errors: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Percentile Calculation (Nearest Rank)
# ---------------------------------------------------------------------------


def nearest_rank_percentile(sorted_values: Sequence[float], fraction: float) -> float:
    """Return ``sorted_values[floor(fraction * (n - 1))]``.

    Args:
        sorted_values: Values sorted ascending. Must not be empty.
        fraction: Percentile as a fraction in [0.0, 1.0].

    Raises:
        PreconditionError: If ``sorted_values`` is empty or ``fraction``
            is out of range.

    Example:
        >>> nearest_rank_percentile([1.0, 2.0, 3.0, 4.0, 5.0], 0.99)
        4.0
    """
    if not sorted_values:
        raise PreconditionError("sorted_values must not be empty")
    if not 0.0 <= fraction <= 1.0:
        raise PreconditionError(f"fraction must be in [0.0, 1.0], got {fraction}")

    index: int = math.floor(fraction * (len(sorted_values) - 1))
    return sorted_values[index]


# ---------------------------------------------------------------------------
# Sample Reduction
# ---------------------------------------------------------------------------


def reduce_samples(
    samples_ms: Sequence[float],
    sizes: Sequence[int] | None = None,
    errors: int = 0,
) -> MetricSet:
    """Reduce raw latency samples into a :class:`MetricSet`.

    Args:
        samples_ms: Latencies of successful requests in milliseconds,
            in any order. Must not be empty.
        sizes: Optional response body sizes in bytes, parallel to
            ``samples_ms``.
        errors: Number of failed requests in the same batch. The
            success rate is computed over ``len(samples_ms) + errors``
            attempts.

    Returns:
        Frozen :class:`MetricSet`.

    Raises:
        PreconditionError: If ``samples_ms`` is empty, ``errors`` is
            negative or ``sizes`` does not match ``samples_ms`` in length.
    """
    if not samples_ms:
        raise PreconditionError("samples must not be empty")
    if errors < 0:
        raise PreconditionError(f"errors must be >= 0, got {errors}")
    if sizes is not None and len(sizes) != len(samples_ms):
        raise PreconditionError(
            f"sizes ({len(sizes)}) must be parallel to samples ({len(samples_ms)})"
        )

    sorted_ms: list[float] = sorted(float(x) for x in samples_ms)
    count: int = len(sorted_ms)
    average: float = sum(samples_ms) / count
    stddev: float = statistics.stdev(sorted_ms) if count > 1 else 0.0

    attempted: int = count + errors
    success_rate: float = (attempted - errors) / attempted * 100.0

    avg_size: int | None = None
    if sizes:
        avg_size = sum(sizes) // len(sizes)

    p50, p95, p99 = (
        nearest_rank_percentile(sorted_ms, fraction)
        for fraction in PERCENTILE_FRACTIONS
    )

    return MetricSet(
        min=sorted_ms[0],
        max=sorted_ms[-1],
        average=average,
        mean=average,
        stddev=stddev,
        p50=p50,
        p95=p95,
        p99=p99,
        errors=errors,
        success_rate=success_rate,
        avg_size=avg_size,
    )


# ---------------------------------------------------------------------------
# External Summary Normalization
# ---------------------------------------------------------------------------


def _require_number(section: Mapping[str, Any], key: str, path: str) -> float:
    """Fetch a numeric field or raise :class:`ParseFailureError`."""
    value: Any = section.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ParseFailureError(f"missing or non-numeric field {path}.{key}: {value!r}")
    return float(value)


def _require_section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    section: Any = raw.get(key)
    if not isinstance(section, Mapping):
        raise ParseFailureError(f"missing object field {key!r} in load tool output")
    return section


def normalize_external_summary(raw: Mapping[str, Any]) -> MetricSet:
    """Map a load-generator JSON summary into a :class:`MetricSet`.

    Reported values are trusted as given. Latencies arrive in seconds
    and are converted to milliseconds. ``stddev`` is not reported by the
    tool and is set to ``0``.

    The error count is derived from the reported success rate using
    truncating integer casts (see :func:`estimate_request_counts`).

    Args:
        raw: Parsed JSON object with ``summary`` and
            ``latencyPercentiles`` sections.

    Raises:
        ParseFailureError: If a required field is missing, not numeric,
            or the values violate the metric ordering.
    """
    summary: Mapping[str, Any] = _require_section(raw, "summary")
    percentiles: Mapping[str, Any] = _require_section(raw, "latencyPercentiles")

    s_to_ms: float = 1000.0
    average: float = _require_number(summary, "average", "summary") * s_to_ms
    success_rate: float = _require_number(summary, "successRate", "summary")
    _, errors = estimate_request_counts(summary)

    try:
        return MetricSet(
            min=_require_number(summary, "fastest", "summary") * s_to_ms,
            max=_require_number(summary, "slowest", "summary") * s_to_ms,
            average=average,
            mean=average,
            stddev=0.0,
            p50=_require_number(percentiles, "p50", "latencyPercentiles") * s_to_ms,
            p90=_require_number(percentiles, "p90", "latencyPercentiles") * s_to_ms,
            p95=_require_number(percentiles, "p95", "latencyPercentiles") * s_to_ms,
            p99=_require_number(percentiles, "p99", "latencyPercentiles") * s_to_ms,
            errors=errors,
            success_rate=success_rate * 100.0,
        )
    except ValidationError as exc:
        raise ParseFailureError(f"inconsistent load tool summary: {exc}") from exc


def estimate_request_counts(summary: Mapping[str, Any]) -> tuple[float, int]:
    """Reconstruct the request total and error count from a summary.

    ``total = successRate * requestsPerSec * total_seconds`` and
    ``errors = trunc((1 - successRate) * trunc(total))``. Both casts
    truncate; the result can drift from the tool's own totals.

    Returns:
        Tuple of (estimated total as float, error count).
    """
    success_rate: float = _require_number(summary, "successRate", "summary")
    requests_per_sec: float = _require_number(summary, "requestsPerSec", "summary")
    total_secs: float = _require_number(summary, "total", "summary")

    total_requests: float = success_rate * requests_per_sec * total_secs
    errors: int = int((1.0 - success_rate) * int(total_requests))
    return total_requests, max(errors, 0)


def normalize_load_test(
    raw: Mapping[str, Any],
    start: str,
    finish: str,
) -> LoadTestResult:
    """Build a :class:`LoadTestResult` from load-generator JSON output.

    Args:
        raw: Parsed JSON object emitted by the load tool.
        start: Timestamp taken before the tool started.
        finish: Timestamp taken after the tool exited.

    Raises:
        ParseFailureError: If required fields are missing or invalid.
    """
    summary: Mapping[str, Any] = _require_section(raw, "summary")
    latency: MetricSet = normalize_external_summary(raw)
    total_requests, errors = estimate_request_counts(summary)

    requests_per_sec: float = _require_number(summary, "requestsPerSec", "summary")
    size_per_sec: float = _require_number(summary, "sizePerSec", "summary")

    return LoadTestResult(
        requests=RequestStats(
            total=total_requests,
            average=requests_per_sec,
            mean=requests_per_sec,
        ),
        latency=latency,
        throughput=ThroughputStats(average=size_per_sec, mean=size_per_sec),
        errors=errors,
        timeouts=0,
        duration=_require_number(summary, "total", "summary"),
        start=start,
        finish=finish,
    )
