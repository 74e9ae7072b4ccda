"""Audit entries and the append-only trail contract."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol

OPEN_CYCLE = 'OpenCycle'
SAVE_DRAFT = 'SaveDraft'
COMPLETE_STAGE = 'CompleteStage'
CLOSE_CYCLE = 'CloseCycle'
CANCEL = 'Cancel'

ACTIONS = (OPEN_CYCLE, SAVE_DRAFT, COMPLETE_STAGE, CLOSE_CYCLE, CANCEL)


@dataclass(frozen=True)
class AuditEntry:
    cycle_id: str
    actor_id: str
    stage_id: Optional[str]
    action: str
    timestamp: datetime
    before_version: int
    after_version: int
    detail: dict[str, Any] = field(default_factory=dict, compare=False)

    def as_dict(self) -> dict:
        return {
            'cycleId': self.cycle_id,
            'actorId': self.actor_id,
            'stageId': self.stage_id,
            'action': self.action,
            'timestamp': self.timestamp.isoformat(),
            'beforeVersion': self.before_version,
            'afterVersion': self.after_version,
            'detail': dict(self.detail),
        }


class AuditTrail(Protocol):
    def record(self, entry: AuditEntry) -> None: ...

    def history(self, cycle_id: str) -> list[AuditEntry]: ...


class InMemoryAuditTrail:
    """Process-local trail used by tests and scripts."""

    def __init__(self) -> None:
        self._entries: list[AuditEntry] = []

    def record(self, entry: AuditEntry) -> None:
        self._entries.append(entry)

    def history(self, cycle_id: str) -> list[AuditEntry]:
        return [entry for entry in self._entries if entry.cycle_id == cycle_id]
