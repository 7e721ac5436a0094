"""Benchmark report assembly and persistence.

A report is assembled once all measurements finish, serialized exactly
once and written to a date-stamped file. The persisted layout puts every
target at the top level next to the run metadata::

    {
      "timestamp": "2026-10-19T08:30:00Z",
      "config": {"warmup": 50, "requests": 20},
      "rari": {"Homepage (All Components)": {...MetricSet...}},
      "nextjs": {"Homepage (All Components)": {...MetricSet...}},
      "summary": {"testRequests": 20, "warmupRequests": 50, "scenarios": 1}
    }

A target entry is one of: a scenario -> :class:`MetricSet` mapping
(per-scenario latency probe), a :class:`LoadTestResult` (external load
tool) or a :class:`BuildResult` (production build comparison).

Writes are whole-file. Writing twice on the same date overwrites the
dated file. Reports written with ``track_latest=True`` also overwrite
``latest.json`` with identical bytes.
"""

import json
import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializerFunctionWrapHandler,
    model_serializer,
    model_validator,
)

from core.errors import PersistenceError, PreconditionError
from core.metrics import BuildResult, LoadTestResult, MetricSet
from core.timestamps import format_date, format_timestamp

TargetEntry = BuildResult | LoadTestResult | dict[str, MetricSet]

RESERVED_KEYS: frozenset[str] = frozenset({"timestamp", "config", "summary", "targets"})

LATEST_FILENAME: str = "latest.json"

TIMESTAMP_PATTERN: str = r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$"


class BenchmarkReport(BaseModel):
    """Top-level persisted benchmark record.

    Attributes:
        timestamp: UTC timestamp of assembly.
        config: Run parameters that produced the measurements.
        targets: Per-target results keyed by target name. Flattened to
            top-level keys on serialization.
        summary: Optional aggregate fields.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    timestamp: str = Field(pattern=TIMESTAMP_PATTERN)
    config: dict[str, Any] = Field(default_factory=dict)
    targets: dict[str, TargetEntry] = Field(min_length=1)
    summary: dict[str, Any] | None = None

    @model_validator(mode="before")
    @classmethod
    def collect_targets(cls, data: Any) -> Any:
        """Gather non-reserved top-level keys of a flat report into ``targets``."""
        if isinstance(data, Mapping) and "targets" not in data:
            data = dict(data)
            data["targets"] = {
                key: data.pop(key) for key in list(data) if key not in RESERVED_KEYS
            }
        return data

    @model_serializer(mode="wrap")
    def flatten_targets(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        """Emit targets as top-level keys between ``config`` and ``summary``."""
        data: dict[str, Any] = handler(self)
        flat: dict[str, Any] = {
            "timestamp": data["timestamp"],
            "config": data["config"],
        }
        flat.update(data["targets"])
        if data.get("summary") is not None:
            flat["summary"] = data["summary"]
        return flat


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def assemble(
    config: Mapping[str, Any],
    per_target: Mapping[str, TargetEntry],
    summary: Mapping[str, Any] | None = None,
    now: float | None = None,
) -> BenchmarkReport:
    """Bundle run config and per-target results into a report.

    Pure construction: no I/O.

    Args:
        config: Run parameters (durations, connection/request counts).
        per_target: Results keyed by target name.
        summary: Optional aggregate fields.
        now: Epoch seconds for the timestamp. Defaults to the current
            time.

    Raises:
        PreconditionError: If ``per_target`` is empty or a target name
            collides with a reserved report key.
    """
    if not per_target:
        raise PreconditionError("per_target must not be empty")
    clashing: set[str] = set(per_target) & RESERVED_KEYS
    if clashing:
        raise PreconditionError(f"target names clash with report keys: {sorted(clashing)}")

    instant: float = time.time() if now is None else now
    return BenchmarkReport(
        timestamp=format_timestamp(instant),
        config=dict(config),
        targets=dict(per_target),
        summary=dict(summary) if summary is not None else None,
    )


# ---------------------------------------------------------------------------
# JSON Serialization
# ---------------------------------------------------------------------------


def report_to_json(report: BenchmarkReport) -> str:
    """Serialize a report to pretty-printed JSON with a trailing newline."""
    return report.model_dump_json(indent=2, by_alias=True) + "\n"


def report_from_json(json_str: str) -> BenchmarkReport:
    """Deserialize a report written by :func:`report_to_json`."""
    return BenchmarkReport.model_validate(json.loads(json_str))


def load_report(path: Path) -> BenchmarkReport:
    """Read and deserialize a report file."""
    return report_from_json(path.read_text(encoding="utf-8"))


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def report_filename(base_name: str, now: float) -> str:
    """Return ``{base_name}-{YYYY-MM-DD}.json`` for the given instant."""
    return f"{base_name}-{format_date(now)}.json"


def write_report(
    report: BenchmarkReport,
    directory: Path,
    base_name: str,
    track_latest: bool = False,
    now: float | None = None,
) -> Path:
    """Write a report to ``{directory}/{base_name}-{date}.json``.

    Creates ``directory`` and its parents when absent. When
    ``track_latest`` is set, ``latest.json`` in the same directory is
    overwritten with the same bytes.

    Args:
        report: Report to persist.
        directory: Output directory.
        base_name: File prefix, e.g. ``"performance"``.
        track_latest: Also write ``latest.json``.
        now: Epoch seconds used for the file date. Defaults to the
            current time.

    Returns:
        Path of the dated report file.

    Raises:
        PersistenceError: If the directory or a file cannot be written.
    """
    instant: float = time.time() if now is None else now
    payload: str = report_to_json(report)
    target: Path = directory / report_filename(base_name, instant)

    try:
        directory.mkdir(parents=True, exist_ok=True)
        target.write_text(payload, encoding="utf-8")
        if track_latest:
            (directory / LATEST_FILENAME).write_text(payload, encoding="utf-8")
    except OSError as exc:
        raise PersistenceError(f"failed to write report to {directory}: {exc}") from exc

    return target
