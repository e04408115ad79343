from .sweep import ArtifactSweeper, RecentBudget, sweep

__all__ = ["ArtifactSweeper", "RecentBudget", "sweep"]
