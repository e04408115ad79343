from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterator, List, Optional, Sequence

import pytest

from artifact_sweeper.config import SweepConfig
from artifact_sweeper.errors import GitHubAPIError
from artifact_sweeper.models import Artifact, WorkflowRun

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def make_run(run_id: int, days_old: float, sha: Optional[str] = None, now: datetime = NOW) -> WorkflowRun:
    return WorkflowRun(id=run_id, head_sha=sha or f"sha-{run_id}", created_at=now - timedelta(days=days_old))


def make_artifact(artifact_id: int, days_old: float, run_id: int = 1, now: datetime = NOW) -> Artifact:
    return Artifact(
        id=artifact_id,
        name=f"artifact-{artifact_id}",
        created_at=now - timedelta(days=days_old),
        run_id=run_id,
    )


class FakeGitHub:
    """In-memory stand-in for GitHubClient that records every call."""

    def __init__(
        self,
        run_pages: Sequence[List[WorkflowRun]] = (),
        artifacts: Optional[Dict[int, List[Artifact]]] = None,
        tags: Sequence[str] = (),
        *,
        fail_delete: Sequence[int] = (),
        fail_list_runs: bool = False,
        fail_list_tags: bool = False,
        fail_list_artifacts: Sequence[int] = (),
        list_delay: Callable[[int], float] = lambda run_id: 0.0,
    ) -> None:
        self.run_pages = [list(page) for page in run_pages]
        self.artifacts = artifacts or {}
        self.tags = list(tags)
        self.fail_delete = set(fail_delete)
        self.fail_list_runs = fail_list_runs
        self.fail_list_tags = fail_list_tags
        self.fail_list_artifacts = set(fail_list_artifacts)
        self.list_delay = list_delay
        self.tag_calls = 0
        self.run_calls: List[Dict[str, object]] = []
        self.pages_fetched = 0
        self.listed_runs: List[int] = []
        self.delete_attempts: List[int] = []
        self.deleted: List[int] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def list_tags(self, per_page: int = 100) -> List[str]:
        self.tag_calls += 1
        if self.fail_list_tags:
            raise GitHubAPIError("tags unavailable", status_code=500, method="GET", url="/tags")
        return list(self.tags)

    def list_workflow_runs(self, branch, per_page=100, stop_when=None):  # type: ignore[no-untyped-def]
        self.run_calls.append({"branch": branch, "per_page": per_page})
        if self.fail_list_runs:
            raise GitHubAPIError("runs unavailable", status_code=502, method="GET", url="/runs")
        runs: List[WorkflowRun] = []
        for page in self.run_pages:
            self.pages_fetched += 1
            runs.extend(page)
            if stop_when is not None and stop_when(page):
                break
        return runs

    def list_run_artifacts(self, run_id: int, per_page: int = 100) -> List[Artifact]:
        with self._track():
            time.sleep(self.list_delay(run_id))
            self.listed_runs.append(run_id)
            if run_id in self.fail_list_artifacts:
                raise GitHubAPIError("artifacts unavailable", status_code=500, method="GET", url="/artifacts")
            return list(self.artifacts.get(run_id, []))

    def delete_artifact(self, artifact_id: int) -> None:
        with self._track():
            time.sleep(0.005)
            self.delete_attempts.append(artifact_id)
            if artifact_id in self.fail_delete:
                raise GitHubAPIError("Forbidden", status_code=403, method="DELETE", url=f"/artifacts/{artifact_id}")
            self.deleted.append(artifact_id)

    @contextmanager
    def _track(self) -> Iterator[None]:
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            yield
        finally:
            with self._lock:
                self.in_flight -= 1


@pytest.fixture()
def make_config() -> Callable[..., SweepConfig]:
    def _make(**overrides) -> SweepConfig:  # type: ignore[no-untyped-def]
        values = {
            "owner": "octo",
            "repo": "widgets",
            "age_label": "30 days",
            "max_age": NOW - timedelta(days=30),
        }
        values.update(overrides)
        return SweepConfig(**values)

    return _make
