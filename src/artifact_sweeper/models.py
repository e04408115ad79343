"""Domain models for workflow runs, artifacts and sweep outcomes."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class WorkflowRun(BaseModel):
    """Snapshot of a workflow run as returned by the runs listing."""

    model_config = ConfigDict(frozen=True)

    id: int
    head_sha: str
    created_at: datetime

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "WorkflowRun":
        return cls(id=payload["id"], head_sha=payload["head_sha"], created_at=payload["created_at"])


class Artifact(BaseModel):
    """Snapshot of an artifact attached to a workflow run."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    created_at: datetime
    run_id: Optional[int] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any], run_id: Optional[int] = None) -> "Artifact":
        return cls(
            id=payload["id"],
            name=payload["name"],
            created_at=payload["created_at"],
            run_id=run_id,
        )


class ArtifactOutcome(str, Enum):
    """What happened to one artifact during a sweep."""

    DELETED = "deleted"
    KEPT = "kept"
    SKIPPED_RECENT = "skipped_recent"
    PREVENTED = "prevented"
    FAILED = "failed"


class ArtifactResult(BaseModel):
    artifact: Artifact
    outcome: ArtifactOutcome
    error: Optional[str] = None


class SweepSummary(BaseModel):
    """Aggregated result of one sweep invocation."""

    repository: str
    cutoff: datetime
    dry_run: bool = False
    runs_listed: int = 0
    runs_examined: int = 0
    runs_skipped_tagged: int = 0
    runs_skipped_old: int = 0
    results: List[ArtifactResult] = Field(default_factory=list)

    def count(self, outcome: ArtifactOutcome) -> int:
        return sum(1 for result in self.results if result.outcome is outcome)

    def counts(self) -> Dict[str, int]:
        """Return the number of artifacts per outcome, including zero counts."""

        return {outcome.value: self.count(outcome) for outcome in ArtifactOutcome}

    @property
    def failed(self) -> List[ArtifactResult]:
        return [result for result in self.results if result.outcome is ArtifactOutcome.FAILED]


__all__ = [
    "Artifact",
    "ArtifactOutcome",
    "ArtifactResult",
    "SweepSummary",
    "WorkflowRun",
]
