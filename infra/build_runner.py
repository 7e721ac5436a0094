"""Production build runner and client bundle scanner.

Runs a target's build command with ``NODE_ENV=production``, times it and
scrapes its combined stdout/stderr for warning and error counts.

Output scraping is a crude substring heuristic: ``ErrorBoundary`` in a
route listing counts as an error, for example. The counts are a
best-effort signal for eyeballing regressions, not a correctness check.
"""

import logging
import os
import subprocess
import time
from collections.abc import Callable, Iterable
from pathlib import Path

from core.errors import DependencyUnavailableError, PreconditionError
from core.metrics import BuildResult
from core.targets import Target

logger: logging.Logger = logging.getLogger(__name__)

WARNING_MARKERS: tuple[str, ...] = ("warning", "Warning", "WARNING")
DEPRECATION_MARKERS: tuple[str, ...] = ("DeprecationWarning", "[DEP")
ERROR_MARKERS: tuple[str, ...] = ("error", "Error", "ERROR")


# ---------------------------------------------------------------------------
# Output Scraping
# ---------------------------------------------------------------------------


def count_warnings(output: str) -> int:
    """Count warning markers, excluding Node deprecation notices.

    Example:
        >>> count_warnings("Warning: x\\n(node) [DEP0040] DeprecationWarning: y")
        0
    """
    warnings: int = sum(output.count(marker) for marker in WARNING_MARKERS)
    deprecations: int = sum(output.count(marker) for marker in DEPRECATION_MARKERS)
    return max(warnings - deprecations, 0)


def count_errors(output: str) -> int:
    """Count error markers in build output."""
    return sum(output.count(marker) for marker in ERROR_MARKERS)


# ---------------------------------------------------------------------------
# Bundle Scanning
# ---------------------------------------------------------------------------


def scan_bundle(directory: Path, extensions: Iterable[str]) -> tuple[int, int]:
    """Sum size and count of bundle files below ``directory``.

    Args:
        directory: Directory scanned recursively.
        extensions: Extensions without the leading dot.

    Returns:
        Tuple of (total bytes, file count).
    """
    wanted: set[str] = {ext.lstrip(".") for ext in extensions}
    total_size: int = 0
    file_count: int = 0

    for path in directory.rglob("*"):
        if path.is_file() and path.suffix.lstrip(".") in wanted:
            total_size += path.stat().st_size
            file_count += 1

    return total_size, file_count


def format_kilobytes(size_bytes: int) -> str:
    return f"{size_bytes / 1024:.2f} kB"


def bundle_info(target: Target) -> tuple[str | None, int | None]:
    """Return (formatted bundle size, file count) for a built target.

    Both values are ``None`` when the target has no bundle directory or
    it does not exist. The size alone is ``None`` when it sums to zero.
    """
    if target.bundle_dir is None:
        return None, None

    dist_dir: Path = target.app_dir / target.bundle_dir
    if not dist_dir.exists():
        logger.info("Bundle directory %s not found", dist_dir)
        return None, None

    total_size, file_count = scan_bundle(dist_dir, target.bundle_extensions)
    size: str | None = format_kilobytes(total_size) if total_size > 0 else None
    return size, file_count


# ---------------------------------------------------------------------------
# Build Runner
# ---------------------------------------------------------------------------


class BuildRunner:
    """Runs production builds one target at a time.

    Args:
        runner: ``subprocess.run`` compatible callable, injectable for
            tests.
        clock: Monotonic clock returning seconds.
    """

    def __init__(
        self,
        runner: Callable[..., subprocess.CompletedProcess[str]] | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._run: Callable[..., subprocess.CompletedProcess[str]] = runner or subprocess.run
        self._clock: Callable[[], float] = clock

    def build(self, target: Target) -> BuildResult:
        """Run the target's build command and collect bundle info.

        A failing build is a result (``success=False``), not an error.

        Raises:
            PreconditionError: If the build command is blank.
            DependencyUnavailableError: If the command cannot be launched.
        """
        cmd: list[str] = target.build_command.split()
        if not cmd:
            raise PreconditionError(f"empty build command for {target.label}")

        logger.info("Building %s in %s: %s", target.label, target.app_dir, target.build_command)
        env: dict[str, str] = {**os.environ, "NODE_ENV": "production"}

        start: float = self._clock()
        try:
            completed: subprocess.CompletedProcess[str] = self._run(
                cmd,
                cwd=target.app_dir,
                env=env,
                capture_output=True,
                text=True,
            )
        except OSError as exc:
            raise DependencyUnavailableError(
                f"failed to execute build command for {target.label}: {exc}"
            ) from exc
        duration_ms: float = (self._clock() - start) * 1000.0

        combined: str = (completed.stdout or "") + (completed.stderr or "")
        success: bool = completed.returncode == 0

        if success:
            logger.info("%s built successfully in %.2fms", target.label, duration_ms)
            bundle_size, chunk_count = bundle_info(target)
        else:
            logger.error(
                "%s build failed (exit code %d): %s",
                target.label,
                completed.returncode,
                (completed.stderr or "").strip(),
            )
            bundle_size, chunk_count = None, None

        return BuildResult(
            success=success,
            duration_ms=duration_ms,
            bundle_size=bundle_size,
            chunk_count=chunk_count,
            warnings=count_warnings(combined),
            errors=count_errors(combined),
        )
