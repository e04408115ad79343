"""Artifact sweep orchestration.

The sweep runs in four stages: resolve configuration (done by the caller),
collect tagged commits, list recent workflow runs, then fan out one task per
run that lists its artifacts, filters them and deletes the rest.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, FrozenSet, List, Optional, Protocol

from ..config import SweepConfig
from ..errors import ArtifactListError, DeleteError, RunListError, TagListError
from ..models import Artifact, ArtifactOutcome, ArtifactResult, SweepSummary, WorkflowRun
from ..utils.logging import get_logger

# The runs endpoint caps page size server side; asking for more keeps the
# request count down on large repositories.
RUN_PAGE_EXTRA = 200


class ArtifactStore(Protocol):
    """The subset of :class:`~artifact_sweeper.services.GitHubClient` the sweeper uses."""

    def list_tags(self, per_page: int = ...) -> List[str]: ...

    def list_workflow_runs(
        self,
        branch: str,
        per_page: int = ...,
        stop_when: Optional[Callable[[List[WorkflowRun]], bool]] = ...,
    ) -> List[WorkflowRun]: ...

    def list_run_artifacts(self, run_id: int, per_page: int = ...) -> List[Artifact]: ...

    def delete_artifact(self, artifact_id: int) -> None: ...


class RecentBudget:
    """Shared allowance of artifacts kept regardless of age.

    ``claim`` never awaits, so on a single event loop the check and the
    increment cannot interleave: exactly ``limit`` artifacts are kept when at
    least that many are seen. Which ones depends on the order in which the
    per-run listings complete.
    """

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.claimed = 0

    def claim(self) -> bool:
        if not self.limit or self.claimed >= self.limit:
            return False
        self.claimed += 1
        return True


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ArtifactSweeper:
    """Coordinates listing, filtering and deletion for one repository."""

    def __init__(
        self,
        config: SweepConfig,
        client: ArtifactStore,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.config = config
        self._client = client
        self._clock = clock
        self._logger = get_logger("artifact_sweeper.sweep")
        self._budget = RecentBudget(config.skip_recent)
        self._semaphore: Optional[asyncio.Semaphore] = None

    def is_too_old(self, run: WorkflowRun) -> bool:
        """True when *run* predates the run look-back window."""

        return run.created_at < self._clock() - timedelta(days=self.config.run_lookback_days)

    async def run(self) -> SweepSummary:
        """Execute the sweep and return a per-artifact summary."""

        self._semaphore = asyncio.Semaphore(self.config.max_concurrency)
        summary = SweepSummary(
            repository=self.config.repository,
            cutoff=self.config.max_age,
            dry_run=self.config.dry_run,
        )

        tagged = await self._tagged_commits()
        runs = await self._list_runs()
        summary.runs_listed = len(runs)

        selected = self._select_runs(runs, tagged, summary)
        batches = await asyncio.gather(*(self._sweep_run(run) for run in selected))
        for batch in batches:
            summary.results.extend(batch)

        self._logger.info(
            "Sweep of %s finished: %s",
            summary.repository,
            ", ".join(f"{key}={value}" for key, value in summary.counts().items()),
        )
        return summary

    async def _tagged_commits(self) -> Optional[FrozenSet[str]]:
        if not self.config.skip_tags:
            return None
        try:
            shas = await asyncio.to_thread(self._client.list_tags, self.config.per_page)
        except Exception as exc:  # noqa: BLE001
            self._logger.error("Error while requesting tags: %s", exc)
            raise TagListError(f"Error while requesting tags: {exc}") from exc
        return frozenset(shas)

    async def _list_runs(self) -> List[WorkflowRun]:
        def stop_when(page: List[WorkflowRun]) -> bool:
            return any(self.is_too_old(run) for run in page)

        try:
            return await asyncio.to_thread(
                self._client.list_workflow_runs,
                self.config.branch,
                self.config.per_page + RUN_PAGE_EXTRA,
                stop_when,
            )
        except Exception as exc:  # noqa: BLE001
            raise RunListError(f"Error while requesting workflow runs: {exc}") from exc

    def _select_runs(
        self,
        runs: List[WorkflowRun],
        tagged: Optional[FrozenSet[str]],
        summary: SweepSummary,
    ) -> List[WorkflowRun]:
        selected: List[WorkflowRun] = []
        for run in runs:
            if tagged is not None and run.head_sha in tagged:
                self._logger.info("Skipping tagged run %s", run.head_sha)
                summary.runs_skipped_tagged += 1
                continue
            if self.is_too_old(run):
                self._logger.info("Skipping too old run %s", run.head_sha)
                summary.runs_skipped_old += 1
                continue
            selected.append(run)
        summary.runs_examined = len(selected)
        return selected

    async def _sweep_run(self, run: WorkflowRun) -> List[ArtifactResult]:
        self._logger.info("Examinating workflow (id: %s).", run.id)
        try:
            async with self._limit():
                artifacts = await asyncio.to_thread(self._client.list_run_artifacts, run.id, self.config.per_page)
        except Exception as exc:  # noqa: BLE001
            raise ArtifactListError(run.id, exc) from exc

        results: List[ArtifactResult] = []
        doomed: List[Artifact] = []
        for artifact in artifacts:
            outcome = self.classify(artifact)
            if outcome is None:
                doomed.append(artifact)
            else:
                results.append(ArtifactResult(artifact=artifact, outcome=outcome))

        results.extend(await asyncio.gather(*(self._delete(artifact) for artifact in doomed)))
        return results

    def classify(self, artifact: Artifact) -> Optional[ArtifactOutcome]:
        """Return why *artifact* is spared, or ``None`` when it should be deleted."""

        if self._budget.claim():
            self._logger.info("Skipping recent artifact (id: %s, name: %s).", artifact.id, artifact.name)
            return ArtifactOutcome.SKIPPED_RECENT

        filtered = artifact.created_at < self.config.max_age
        self._logger.info(
            "Filtering (id: %s, name: %s) at age %s with result %s",
            artifact.id,
            artifact.name,
            artifact.created_at.isoformat(),
            filtered,
        )
        return None if filtered else ArtifactOutcome.KEPT

    async def _delete(self, artifact: Artifact) -> ArtifactResult:
        if self.config.dry_run:
            self._logger.info(
                "Recognized development environment, preventing artifact (id: %s, name: %s) from being removed.",
                artifact.id,
                artifact.name,
            )
            return ArtifactResult(artifact=artifact, outcome=ArtifactOutcome.PREVENTED)

        self._logger.info("About to remove artifact (id: %s, name: %s).", artifact.id, artifact.name)
        try:
            async with self._limit():
                await asyncio.to_thread(self._client.delete_artifact, artifact.id)
        except Exception as exc:  # noqa: BLE001
            error = DeleteError(artifact.id, artifact.name, exc)
            self._logger.error("%s", error)
            return ArtifactResult(artifact=artifact, outcome=ArtifactOutcome.FAILED, error=str(exc))

        self._logger.info("Successfully removed artifact (id: %s, name: %s).", artifact.id, artifact.name)
        return ArtifactResult(artifact=artifact, outcome=ArtifactOutcome.DELETED)

    def _limit(self) -> asyncio.Semaphore:
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.config.max_concurrency)
        return self._semaphore


def sweep(config: SweepConfig, client: ArtifactStore, *, clock: Callable[[], datetime] = _utcnow) -> SweepSummary:
    """Run a sweep to completion on a fresh event loop."""

    return asyncio.run(ArtifactSweeper(config, client, clock=clock).run())


__all__ = ["ArtifactStore", "ArtifactSweeper", "RecentBudget", "RUN_PAGE_EXTRA", "sweep"]
