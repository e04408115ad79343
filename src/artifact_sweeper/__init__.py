"""Artifact Sweeper: scheduled cleanup of old GitHub Actions artifacts."""

from importlib.metadata import PackageNotFoundError, version

from .config import Settings, SweepConfig, resolve_config
from .workflows.sweep import ArtifactSweeper, sweep

try:
    __version__ = version("artifact-sweeper")
except PackageNotFoundError:  # pragma: no cover - fallback for source checkouts
    __version__ = "0.0.0"

__all__ = ["ArtifactSweeper", "Settings", "SweepConfig", "__version__", "resolve_config", "sweep"]
