"""Error taxonomy for the sweeper.

Client-level failures are raised as :class:`GitHubAPIError` (or one of its
retryable subclasses). The orchestrator wraps them in a stage-specific error so
the CLI can report which stage aborted the run.
"""

from __future__ import annotations

from typing import Optional


class SweeperError(Exception):
    """Base class for all errors raised by the package."""


class ConfigError(SweeperError):
    """Invalid inputs or ambient configuration."""


class GitHubAPIError(SweeperError):
    """A request against the GitHub REST API failed."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        method: Optional[str] = None,
        url: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.method = method
        self.url = url

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.method} {self.url} failed with {self.status_code}: {self.message}"


class RateLimitError(GitHubAPIError):
    """Primary or secondary rate limit hit; retry after ``retry_after`` seconds."""

    def __init__(self, message: str, *, retry_after: float, secondary: bool = False, **kwargs) -> None:  # type: ignore[no-untyped-def]
        super().__init__(message, **kwargs)
        self.retry_after = retry_after
        self.secondary = secondary


class TransientAPIError(GitHubAPIError):
    """Server-side or connection failure worth retrying with backoff."""


class TagListError(SweeperError):
    """Listing repository tags failed."""


class RunListError(SweeperError):
    """Listing workflow runs failed."""


class ArtifactListError(SweeperError):
    """Listing the artifacts of a workflow run failed."""

    def __init__(self, run_id: int, cause: Exception) -> None:
        super().__init__(f"Listing artifacts of workflow run {run_id} failed: {cause}")
        self.run_id = run_id


class DeleteError(SweeperError):
    """Deleting a single artifact failed. Recorded, never propagated."""

    def __init__(self, artifact_id: int, name: str, cause: Exception) -> None:
        super().__init__(f"Error on deleting (id: {artifact_id}, name: {name}): {cause}")
        self.artifact_id = artifact_id
        self.name = name


__all__ = [
    "ArtifactListError",
    "ConfigError",
    "DeleteError",
    "GitHubAPIError",
    "RateLimitError",
    "RunListError",
    "SweeperError",
    "TagListError",
    "TransientAPIError",
]
