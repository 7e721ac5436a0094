"""Sequential HTTP latency sampler built on ``httpx``.

Issues a bounded number of timed ``GET`` requests against one URL:

1. ``warmup_count`` requests whose outcome is discarded.
2. ``sample_count`` measured requests.

Every request (warmup or measured) is followed by a fixed delay
(``request_delay_s``, 10 ms by default) so the target is not flooded.
Only one request is in flight at a time.

A measured request counts as successful when the transport succeeds,
the status is 2xx and the body is fully read. Elapsed wall time (ms) runs
from sending the request until the headers arrive, so body transfer is not
part of the latency. Elapsed time and body length (bytes) are recorded
for successes; any failure increments
the error counter. Failures are never retried. The batch fails only when
**no** measured request succeeded.

Each request carries its own timeout; a timed-out request is an error
like any other.

Example:
    >>> with HttpSampler(SamplerConfig(warmup_count=5, sample_count=20)) as sampler:
    ...     sampler.check_ready("rari", "http://localhost:3000")
    ...     metrics = sampler.measure("http://localhost:3000/")
"""

import logging
import time
from collections.abc import Callable

import httpx
from pydantic import BaseModel, ConfigDict, Field

from core.errors import (
    DependencyUnavailableError,
    NoSuccessfulSamplesError,
    SampleFailure,
)
from core.metrics import MetricSet, reduce_samples

logger: logging.Logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class SamplerConfig(BaseModel):
    """Configuration for :class:`HttpSampler`.

    Attributes:
        warmup_count: Discarded requests issued before measurement.
        sample_count: Measured requests.
        request_delay_s: Pause after every request (seconds).
        timeout_s: Per-request timeout (seconds).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    warmup_count: int = Field(default=50, ge=0, description="Warmup requests")
    sample_count: int = Field(default=20, gt=0, description="Measured requests")
    request_delay_s: float = Field(
        default=0.010,
        ge=0.0,
        description="Delay after each request (seconds)",
    )
    timeout_s: float = Field(
        default=10.0,
        gt=0.0,
        description="Per-request timeout (seconds)",
    )


class SampleBatch(BaseModel):
    """Raw samples of one measured phase.

    Attributes:
        samples_ms: Elapsed time per successful request.
        sizes: Body length per successful request, parallel to
            ``samples_ms``.
        errors: Failed measured requests.
        attempted: Measured requests issued.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    samples_ms: list[float]
    sizes: list[int]
    errors: int = Field(ge=0)
    attempted: int = Field(ge=0)


# ---------------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------------


def check_server(
    client: httpx.Client,
    label: str,
    base_url: str,
    timeout_s: float = 10.0,
) -> None:
    """Issue ``GET /`` and fail if the server cannot be reached.

    Raises:
        DependencyUnavailableError: On any transport error.
    """
    url: str = base_url.rstrip("/") + "/"
    try:
        client.get(url, timeout=timeout_s)
    except httpx.HTTPError as exc:
        raise DependencyUnavailableError(
            f"{label} server is not responding at {base_url}: {exc}"
        ) from exc
    logger.info("%s server is responding at %s", label, base_url)


# ---------------------------------------------------------------------------
# Sampler
# ---------------------------------------------------------------------------


class HttpSampler:
    """Sequential timed-probe collector.

    Owns an ``httpx.Client`` unless one is injected. Injecting a client
    (e.g. with ``httpx.MockTransport``) leaves closing it to the caller.

    Args:
        config: Sampler configuration.
        client: Optional pre-built client.
        sleep: Sleep function, injectable for tests.
        clock: Monotonic clock returning seconds, injectable for tests.
    """

    def __init__(
        self,
        config: SamplerConfig,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._config: SamplerConfig = config
        self._owns_client: bool = client is None
        self._client: httpx.Client = client or httpx.Client(timeout=config.timeout_s)
        self._sleep: Callable[[float], None] = sleep
        self._clock: Callable[[], float] = clock

    @property
    def config(self) -> SamplerConfig:
        return self._config

    def close(self) -> None:
        """Close the underlying client if this sampler created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "HttpSampler":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- readiness ----------------------------------------------------------

    def check_ready(self, label: str, base_url: str) -> None:
        """Probe ``GET /`` on a server.

        Any HTTP response (whatever its status) counts as responding;
        only transport failures are fatal.

        Raises:
            DependencyUnavailableError: If the server cannot be reached.
        """
        check_server(self._client, label, base_url, self._config.timeout_s)

    # -- sampling -----------------------------------------------------------

    def _probe(self, url: str) -> tuple[float, int]:
        """Issue one timed request.

        The response is streamed: elapsed time stops once the status line
        and headers arrive, then the body is read in full.

        Returns:
            Tuple of (elapsed ms, body length in bytes).

        Raises:
            SampleFailure: On transport error, non-2xx status or an
                unreadable body.
        """
        start: float = self._clock()
        try:
            with self._client.stream("GET", url, timeout=self._config.timeout_s) as response:
                if not response.is_success:
                    raise SampleFailure(f"request to {url} returned {response.status_code}")
                elapsed_ms: float = (self._clock() - start) * 1000.0

                try:
                    body: bytes = response.read()
                except httpx.HTTPError as exc:
                    raise SampleFailure(f"body of {url} could not be read: {exc}") from exc
        except httpx.HTTPError as exc:
            raise SampleFailure(f"request to {url} failed: {exc}") from exc

        return elapsed_ms, len(body)

    def collect(self, url: str) -> SampleBatch:
        """Run warmup and measured requests against ``url``.

        Raises:
            NoSuccessfulSamplesError: If every measured request failed.
        """
        for _ in range(self._config.warmup_count):
            try:
                self._probe(url)
            except SampleFailure as exc:
                logger.debug("Warmup request failed: %s", exc)
            self._sleep(self._config.request_delay_s)

        samples_ms: list[float] = []
        sizes: list[int] = []
        errors: int = 0

        for _ in range(self._config.sample_count):
            try:
                elapsed_ms, size = self._probe(url)
            except SampleFailure as exc:
                errors += 1
                logger.debug("Sample failed: %s", exc)
            else:
                samples_ms.append(elapsed_ms)
                sizes.append(size)
            self._sleep(self._config.request_delay_s)

        if not samples_ms:
            raise NoSuccessfulSamplesError(
                f"no successful requests to {url} "
                f"({errors}/{self._config.sample_count} failed)"
            )

        return SampleBatch(
            samples_ms=samples_ms,
            sizes=sizes,
            errors=errors,
            attempted=self._config.sample_count,
        )

    def measure(self, url: str) -> MetricSet:
        """Collect samples for ``url`` and reduce them to a :class:`MetricSet`."""
        logger.info("Sampling %s", url)
        batch: SampleBatch = self.collect(url)
        return reduce_samples(
            samples_ms=batch.samples_ms,
            sizes=batch.sizes,
            errors=batch.errors,
        )
