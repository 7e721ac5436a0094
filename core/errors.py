"""Exception taxonomy for the benchmark toolkit.

Only :class:`SampleFailure` is absorbed locally (by the sample collector,
which counts it). Every other error terminates the run: the CLI entry
points catch :class:`BenchmarkError`, print the message and exit non-zero.
Nothing in this toolkit retries.
"""


class BenchmarkError(Exception):
    """Base class for all benchmark errors."""


class PreconditionError(BenchmarkError, ValueError):
    """Input violates a documented precondition (e.g. empty samples)."""


class DependencyUnavailableError(BenchmarkError):
    """A target server or an external tool is not available."""


class SampleFailure(BenchmarkError):
    """A single measured probe failed.

    Raised per request inside the collector and always counted there,
    never propagated to callers.
    """


class NoSuccessfulSamplesError(BenchmarkError):
    """Every measured probe in a phase failed."""


class ParseFailureError(BenchmarkError):
    """External tool output is malformed or missing expected fields."""


class LoadToolError(BenchmarkError):
    """The external load generator exited with a failure status."""


class PersistenceError(BenchmarkError):
    """Report directory creation or file write failed."""
