"""Supervisor availability rosters."""

from __future__ import annotations

from typing import Iterable

from triage_core.config import TriageSettings
from triage_core.interfaces import SupervisorRoster


class StaticSupervisorRoster(SupervisorRoster):
    """Roster backed by a fixed set of available supervisor ids.

    ``mark_unavailable`` / ``mark_available`` let an operator (or a test)
    change availability at runtime.
    """

    def __init__(self, available: Iterable[str] = ()) -> None:
        self._available: set[str] = set(available)

    @classmethod
    def from_settings(cls, settings: TriageSettings) -> StaticSupervisorRoster:
        """Every configured backup supervisor, of any tier, is available."""
        return cls(
            s for backups in settings.backup_supervisors.values() for s in backups
        )

    async def is_available(self, supervisor_id: str) -> bool:
        return supervisor_id in self._available

    def mark_available(self, supervisor_id: str) -> None:
        self._available.add(supervisor_id)

    def mark_unavailable(self, supervisor_id: str) -> None:
        self._available.discard(supervisor_id)
