"""HTTP collaborators used by the sweep workflow."""

from .github_client import GitHubClient

__all__ = ["GitHubClient"]
