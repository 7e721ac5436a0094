"""Delegate load tests to the ``oha`` HTTP load generator.

``oha`` manages its own connection pool and concurrency. This module
only builds its command line, runs it to completion as a subprocess and
hands its JSON summary to :func:`core.metrics.normalize_load_test`.

Command line::

    oha <url> -z <duration>s -c <connections> --no-tui --output-format json
"""

import json
import logging
import subprocess
import time
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from core.errors import DependencyUnavailableError, LoadToolError, ParseFailureError
from core.metrics import LoadTestResult, normalize_load_test
from core.timestamps import format_timestamp

logger: logging.Logger = logging.getLogger(__name__)

INSTALL_HINT: str = (
    "Install it with: cargo install oha\n"
    "Or visit: https://github.com/hatoo/oha"
)


class LoadTestConfig(BaseModel):
    """Configuration for :class:`LoadGenerator`.

    Attributes:
        duration_s: Test duration per target (seconds).
        connections: Concurrent connections held by the tool.
        binary: Load tool executable.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    duration_s: int = Field(default=30, gt=0, description="Duration (seconds)")
    connections: int = Field(default=50, gt=0, description="Concurrent connections")
    binary: str = Field(default="oha", min_length=1, description="oha executable")


class LoadGenerator:
    """Runs ``oha`` against one URL at a time.

    Args:
        config: Load test configuration.
        runner: ``subprocess.run`` compatible callable, injectable for
            tests.
        clock: Wall clock returning epoch seconds.
    """

    def __init__(
        self,
        config: LoadTestConfig,
        runner: Callable[..., subprocess.CompletedProcess[str]] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config: LoadTestConfig = config
        self._run: Callable[..., subprocess.CompletedProcess[str]] = runner or subprocess.run
        self._clock: Callable[[], float] = clock

    @property
    def config(self) -> LoadTestConfig:
        return self._config

    def check_installed(self) -> str:
        """Verify the load tool runs and return its version string.

        Raises:
            DependencyUnavailableError: If the tool is missing or its
                version check fails.
        """
        try:
            completed: subprocess.CompletedProcess[str] = self._run(
                [self._config.binary, "--version"],
                capture_output=True,
                text=True,
            )
        except OSError as exc:
            raise DependencyUnavailableError(
                f"{self._config.binary} is not installed. {INSTALL_HINT}"
            ) from exc

        if completed.returncode != 0:
            raise DependencyUnavailableError(
                f"{self._config.binary} --version failed "
                f"(exit code {completed.returncode}). {INSTALL_HINT}"
            )

        version: str = completed.stdout.strip()
        logger.info("Found %s", version)
        return version

    def build_command(self, url: str) -> list[str]:
        return [
            self._config.binary,
            url,
            "-z", f"{self._config.duration_s}s",
            "-c", str(self._config.connections),
            "--no-tui",
            "--output-format", "json",
        ]

    def run(self, url: str) -> LoadTestResult:
        """Run one load test against ``url``.

        Raises:
            DependencyUnavailableError: If the tool cannot be launched.
            LoadToolError: If the tool exits non-zero.
            ParseFailureError: If its output is not valid summary JSON.
        """
        cmd: list[str] = self.build_command(url)
        logger.info("Running: %s", " ".join(cmd))

        start: str = format_timestamp(self._clock())
        try:
            completed: subprocess.CompletedProcess[str] = self._run(
                cmd, capture_output=True, text=True,
            )
        except OSError as exc:
            raise DependencyUnavailableError(
                f"failed to execute {self._config.binary}: {exc}"
            ) from exc
        finish: str = format_timestamp(self._clock())

        if completed.returncode != 0:
            raise LoadToolError(
                f"{self._config.binary} failed (exit code "
                f"{completed.returncode}): {completed.stderr.strip()}"
            )

        return parse_output(completed.stdout, start=start, finish=finish)


def parse_output(stdout: str, start: str, finish: str) -> LoadTestResult:
    """Parse ``oha`` JSON stdout into a :class:`LoadTestResult`.

    Raises:
        ParseFailureError: If stdout is not a JSON object or lacks
            required summary fields.
    """
    try:
        raw: Any = json.loads(stdout)
    except json.JSONDecodeError as exc:
        raise ParseFailureError(
            f"failed to parse load tool JSON output: {stdout[:200]!r}"
        ) from exc

    if not isinstance(raw, dict):
        raise ParseFailureError("load tool output is not a JSON object")

    return normalize_load_test(raw, start=start, finish=finish)
