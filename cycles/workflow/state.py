"""In-memory representation of one treatment cycle's progress."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

ACTIVE = 'Active'
CLOSED = 'Closed'
CANCELLED = 'Cancelled'

STATUSES = (ACTIVE, CLOSED, CANCELLED)
TERMINAL_STATUSES = frozenset({CLOSED, CANCELLED})


def new_cycle_id() -> str:
    return uuid.uuid4().hex


@dataclass
class StageRecord:
    """Data captured for one stage.  Owned by exactly one cycle."""

    stage_id: str
    entered_at: datetime
    completed_at: Optional[datetime] = None
    data: dict[str, Any] = field(default_factory=dict)
    validated: bool = False

    @property
    def completed(self) -> bool:
        return self.completed_at is not None


@dataclass
class TreatmentCycle:
    id: str
    patient_id: str
    doctor_id: str
    treatment_type: str
    current_stage_id: str
    created_at: datetime
    updated_at: datetime
    status: str = ACTIVE
    # Insertion order is registry order for stages the cycle has reached.
    stages: dict[str, StageRecord] = field(default_factory=dict)
    outcome: Any = None
    version: int = 0
    completed_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def record_for(self, stage_id: str) -> Optional[StageRecord]:
        return self.stages.get(stage_id)
