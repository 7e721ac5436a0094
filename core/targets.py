"""Compared targets and the scenarios they are probed with."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BUNDLE_EXTENSIONS: tuple[str, ...] = ("js", "css")

# BENCHMARK_MODE -> (rari port, nextjs port)
MODE_PORTS: dict[str, tuple[int, int]] = {
    "production": (3000, 3001),
    "development": (5173, 3000),
}


class Target(BaseModel):
    """One system under comparison.

    Attributes:
        name: Key used in persisted reports (e.g. ``"nextjs"``).
        label: Display name (e.g. ``"Next.js"``).
        port: Local port the server listens on.
        app_dir: Application directory for production builds.
        build_command: Whitespace-separated build command line.
        bundle_dir: Client bundle directory relative to ``app_dir``.
        bundle_extensions: File extensions counted as bundle files.

    Example:
        >>> t = Target(name="rari", label="rari", port=3000)
        >>> t.base_url
        'http://localhost:3000'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    label: str = Field(min_length=1)
    port: int = Field(gt=0, lt=65536)
    host: str = Field(default="localhost", min_length=1)
    app_dir: Path = Field(default=Path("."))
    build_command: str = Field(default="pnpm run build", min_length=1)
    bundle_dir: Path | None = None
    bundle_extensions: tuple[str, ...] = DEFAULT_BUNDLE_EXTENSIONS

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def url_for(self, path: str) -> str:
        """Return the absolute URL of ``path`` on this target."""
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.base_url}{path}"


class Scenario(BaseModel):
    """A named URL path measured against each target."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    path: str = Field(default="/")


DEFAULT_SCENARIOS: tuple[Scenario, ...] = (
    Scenario(name="Homepage (All Components)", path="/"),
)


def default_targets(
    rari_port: int = 3000,
    nextjs_port: int = 3001,
    root_dir: Path = Path("."),
) -> tuple[Target, Target]:
    """Return the rari and Next.js targets, rari first.

    rari is the candidate (``a``) and Next.js the baseline (``b``) in
    every comparison.
    """
    rari: Target = Target(
        name="rari",
        label="rari",
        port=rari_port,
        app_dir=root_dir / "rari-app",
        bundle_dir=Path("dist/assets"),
    )
    nextjs: Target = Target(
        name="nextjs",
        label="Next.js",
        port=nextjs_port,
        app_dir=root_dir / "nextjs-app",
        bundle_dir=Path(".next/static/chunks"),
    )
    return rari, nextjs
