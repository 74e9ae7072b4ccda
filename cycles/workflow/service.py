"""
Caller-facing operations on stored cycles.

Each mutating call loads the cycle, lets the engine compute the next
state, then stores the new state and appends its audit entry inside one
unit of work.  If either write fails, neither is kept.
"""
from __future__ import annotations

import contextlib
import logging
from typing import Any, Callable, ContextManager, Optional

from .audit import OPEN_CYCLE, AuditEntry, AuditTrail
from .engine import Transition, TransitionEngine
from .errors import WorkflowError
from .state import TreatmentCycle
from .store import CycleStore

logger = logging.getLogger(__name__)


class WorkflowService:
    def __init__(
        self,
        store: CycleStore,
        trail: AuditTrail,
        engine: Optional[TransitionEngine] = None,
        unit_of_work: Callable[[], ContextManager] = contextlib.nullcontext,
    ) -> None:
        self.store = store
        self.trail = trail
        self.engine = engine or TransitionEngine()
        self.unit_of_work = unit_of_work

    def get_cycle(self, cycle_id: str) -> TreatmentCycle:
        return self.store.load(cycle_id)

    def audit_history(self, cycle_id: str) -> list[AuditEntry]:
        # Raises CycleNotFound for unknown ids instead of answering with an empty trail.
        self.store.load(cycle_id)
        return self.trail.history(cycle_id)

    def open_cycle(self, *, patient_id: str, doctor_id: str, treatment_type: str, actor_id: str,
                   cycle_id: Optional[str] = None) -> TreatmentCycle:
        transition = self.engine.open_cycle(
            patient_id=patient_id, doctor_id=doctor_id, treatment_type=treatment_type,
            actor_id=actor_id, cycle_id=cycle_id,
        )
        with self.unit_of_work():
            self.store.create(transition.cycle)
            self.trail.record(transition.entry)
        self._log(transition)
        return transition.cycle

    def import_cycle(self, cycle: TreatmentCycle, *, actor_id: str, source: str) -> TreatmentCycle:
        """Store a cycle built outside the engine, audited as its opening."""
        entry = AuditEntry(
            cycle_id=cycle.id,
            actor_id=str(actor_id),
            stage_id=cycle.current_stage_id,
            action=OPEN_CYCLE,
            timestamp=cycle.created_at,
            before_version=0,
            after_version=cycle.version,
            detail={'treatmentType': cycle.treatment_type, 'patientId': cycle.patient_id,
                    'doctorId': cycle.doctor_id, 'source': source, 'status': cycle.status},
        )
        with self.unit_of_work():
            self.store.create(cycle)
            self.trail.record(entry)
        logger.info('cycle %s: imported from %s at %s (%s)', cycle.id, source,
                    cycle.current_stage_id, cycle.status)
        return cycle

    def save_draft(self, cycle_id: str, stage_id: str, data: Any, *, expected_version: int,
                   actor_id: str) -> TreatmentCycle:
        return self._apply(cycle_id, 'SaveDraft', lambda cycle: self.engine.save_draft(
            cycle, stage_id, data, expected_version=expected_version, actor_id=actor_id))

    def complete_stage(self, cycle_id: str, stage_id: str, data: Any, *, expected_version: int,
                       actor_id: str) -> TreatmentCycle:
        return self._apply(cycle_id, 'CompleteStage', lambda cycle: self.engine.complete_stage(
            cycle, stage_id, data, expected_version=expected_version, actor_id=actor_id))

    def close_cycle(self, cycle_id: str, outcome: Any, *, expected_version: int,
                    actor_id: str) -> TreatmentCycle:
        return self._apply(cycle_id, 'CloseCycle', lambda cycle: self.engine.close_cycle(
            cycle, outcome, expected_version=expected_version, actor_id=actor_id))

    def cancel_cycle(self, cycle_id: str, reason: str, *, expected_version: int,
                     actor_id: str) -> TreatmentCycle:
        return self._apply(cycle_id, 'Cancel', lambda cycle: self.engine.cancel_cycle(
            cycle, reason, expected_version=expected_version, actor_id=actor_id))

    def _apply(self, cycle_id: str, action: str,
               step: Callable[[TreatmentCycle], Transition]) -> TreatmentCycle:
        try:
            cycle = self.store.load(cycle_id)
            transition = step(cycle)
            with self.unit_of_work():
                self.store.save(transition.cycle, transition.expected_version)
                self.trail.record(transition.entry)
        except WorkflowError as exc:
            logger.warning('cycle %s: %s rejected (%s): %s', cycle_id, action, exc.code, exc.message)
            raise
        self._log(transition)
        return transition.cycle

    @staticmethod
    def _log(transition: Transition) -> None:
        entry = transition.entry
        logger.info(
            'cycle %s: %s stage=%s v%s->v%s actor=%s',
            entry.cycle_id, entry.action, entry.stage_id,
            entry.before_version, entry.after_version, entry.actor_id,
        )
