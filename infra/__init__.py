"""Infrastructure layer for the benchmark toolkit.

This package provides the I/O collaborators that feed raw samples into
the core: the sequential HTTP sampler, the ``oha`` load-test delegate
and the production build runner.
"""

from infra.build_runner import BuildRunner, count_errors, count_warnings, scan_bundle
from infra.http_sampler import HttpSampler, SampleBatch, SamplerConfig, check_server
from infra.load_generator import LoadGenerator, LoadTestConfig, parse_output

__all__: list[str] = [
    "BuildRunner",
    "HttpSampler",
    "LoadGenerator",
    "LoadTestConfig",
    "SampleBatch",
    "SamplerConfig",
    "check_server",
    "count_errors",
    "count_warnings",
    "parse_output",
    "scan_bundle",
]
