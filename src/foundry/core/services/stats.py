"""
Health and statistics service.

Read-only: a liveness probe and per-table counts. Needs no caller
principal and reveals nothing but table sizes.
"""

from __future__ import annotations

from foundry.core.services.models import StoreStats
from foundry.core.state import RecordState

HEALTHY = "ok"


class StatsService:
    """
    Example:
        >>> StatsService(state).health()
        'ok'
        >>> StatsService(state).stats().total_captures
        3
    """

    def __init__(self, state: RecordState) -> None:
        self._state = state

    def health(self) -> str:
        return HEALTHY

    def stats(self) -> StoreStats:
        counts = self._state.counts()
        return StoreStats(
            total_captures=counts["captures"],
            total_sprints=counts["sprints"],
            total_workspaces=counts["workspaces"],
            total_documents=counts["documents"],
            total_templates=counts["templates"],
            total_users=len(self._state.principals()),
        )
