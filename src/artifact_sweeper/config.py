"""Application configuration using Pydantic settings."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .durations import parse_age
from .errors import ConfigError
from .utils.logging import get_logger

DEV_ENVIRONMENT = "dev"
DOTENV_PATH = Path(".env")

_LOGGER = get_logger("artifact_sweeper.config")
_BOOL = TypeAdapter(bool)


class Settings(BaseSettings):
    """Ambient settings read from the environment.

    A ``.env`` file is only read through :func:`load_settings` in development.
    """

    model_config = SettingsConfigDict(env_prefix="SWEEPER_", env_file=None, extra="ignore", populate_by_name=True)

    repository: str = Field(default="", validation_alias="GITHUB_REPOSITORY")
    token: str = Field(default="", validation_alias=AliasChoices("GITHUB_TOKEN", "GH_TOKEN"))
    api_url: str = Field(default="https://api.github.com", validation_alias="GITHUB_API_URL")
    environment: str = Field(default="production", validation_alias="SWEEPER_ENV")
    branch: str = "master"
    per_page: int = Field(default=100, ge=1)
    run_lookback_days: float = Field(default=10, ge=0)
    max_concurrency: int = Field(default=8, ge=1)
    retries_enabled: bool = True
    max_attempts: int = Field(default=5, ge=1)
    request_timeout: float = Field(default=30.0, gt=0)

    # Action inputs under their plain names, only consulted in development.
    age: Optional[str] = Field(default=None, validation_alias="AGE")
    skip_tags: Optional[str] = Field(default=None, validation_alias="SKIP_TAGS")
    skip_recent: Optional[str] = Field(default=None, validation_alias="SKIP_RECENT")

    @property
    def is_dev(self) -> bool:
        return self.environment.lower() == DEV_ENVIRONMENT

    def read_input(self, key: str, value: Optional[str]) -> Optional[str]:
        """Return an input supplied on the command line or as ``INPUT_*``.

        In development the plain variable (``AGE``, ``SKIP_TAGS`` ...) is the
        fallback, which lets a ``.env`` file drive local runs.
        """

        if value is not None or not self.is_dev:
            return value
        return getattr(self, key.replace("-", "_"))

    def to_dict(self) -> Dict[str, Any]:
        """Return settings as a dictionary with the token masked."""

        payload = self.model_dump()
        payload["token"] = "***" if self.token else ""
        return payload


def load_settings() -> Settings:
    """Read settings, adding the working directory's ``.env`` in development.

    Development mode must be selected by the process environment; a ``.env``
    file cannot switch it on by itself.
    """

    settings = Settings(_env_file=None)
    if settings.is_dev:
        return Settings(_env_file=DOTENV_PATH)
    return settings


class SweepConfig(BaseModel):
    """Validated, immutable configuration for a single sweep."""

    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    age_label: str
    max_age: datetime
    skip_tags: bool = False
    skip_recent: int = Field(default=0, ge=0)
    per_page: int = 100
    branch: str = "master"
    retries_enabled: bool = True
    run_lookback_days: float = 10
    max_concurrency: int = 8
    dry_run: bool = False

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"


def split_repository(value: str) -> Tuple[str, str]:
    """Split ``owner/name`` into its parts, rejecting anything else."""

    parts = (value or "").strip().split("/")
    if len(parts) != 2 or not all(parts):
        raise ConfigError(f"Repository must be given as 'owner/name', got {value!r}.")
    return parts[0], parts[1]


def parse_skip_recent(value: Optional[str]) -> int:
    if value is None or not str(value).strip():
        return 0
    try:
        parsed = int(str(value).strip())
    except ValueError as exc:
        raise ConfigError("skip-recent option must be type of number.") from exc
    if parsed < 0:
        raise ConfigError("skip-recent option must be a non-negative number.")
    return parsed


def parse_flag(value: Optional[str], name: str = "skip-tags") -> bool:
    """Parse yes/no style booleans; unknown values count as false."""

    if value is None or not str(value).strip():
        return False
    try:
        return _BOOL.validate_python(str(value).strip())
    except ValidationError:
        _LOGGER.warning("Unrecognised %s value %r, treating it as false.", name, value)
        return False


def resolve_config(
    settings: Settings,
    *,
    age: Optional[str],
    skip_tags: Optional[str] = None,
    skip_recent: Optional[str] = None,
    dry_run: bool = False,
    max_concurrency: Optional[int] = None,
    now: Optional[datetime] = None,
) -> SweepConfig:
    """Build the :class:`SweepConfig` for one invocation.

    Everything is validated here, before any request is made. Development mode
    (``SWEEPER_ENV=dev``) always implies a dry run.
    """

    if not age:
        raise ConfigError("Input required and not supplied: age")
    owner, repo = split_repository(settings.repository)
    threshold = parse_age(age)
    reference = now or datetime.now(timezone.utc)
    try:
        max_age = threshold.cutoff(reference)
    except (OverflowError, ValueError) as exc:
        raise ConfigError(f"age {age!r} is out of range.") from exc

    _LOGGER.info("Maximum artifact age: %s ( created before %s )", threshold.label, max_age.isoformat())

    return SweepConfig(
        owner=owner,
        repo=repo,
        age_label=threshold.label,
        max_age=max_age,
        skip_tags=parse_flag(skip_tags),
        skip_recent=parse_skip_recent(skip_recent),
        per_page=settings.per_page,
        branch=settings.branch,
        retries_enabled=settings.retries_enabled,
        run_lookback_days=settings.run_lookback_days,
        max_concurrency=max_concurrency or settings.max_concurrency,
        dry_run=dry_run or settings.is_dev,
    )


__all__ = [
    "Settings",
    "SweepConfig",
    "load_settings",
    "parse_flag",
    "parse_skip_recent",
    "resolve_config",
    "split_repository",
]
