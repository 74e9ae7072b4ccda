"""
Transition engine for treatment cycles.

The engine is the state machine.  Every operation takes the cycle
snapshot the caller loaded plus the version the caller believes is
current, computes the complete next state on a copy and returns it
together with the single audit entry describing the change.  Nothing is
persisted here; see :mod:`cycles.workflow.service` for the unit of work
that stores both.

States are ``Active@<stage>``, ``Closed`` and ``Cancelled``.  Completing
the current stage advances to the next stage in registry order; closing
is only legal from a validated final stage; cancelling is legal from any
active stage.  Closed and cancelled cycles accept no further changes.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from .audit import CANCEL, CLOSE_CYCLE, COMPLETE_STAGE, OPEN_CYCLE, SAVE_DRAFT, AuditEntry
from .errors import ConcurrencyConflict, CycleClosed, OutOfOrder, ValidationFailed
from .registry import StageDefinition, StageRegistry, get_registry
from .state import CANCELLED, CLOSED, StageRecord, TreatmentCycle, new_cycle_id
from .validator import validate_stage

CLOSURE_RESULTS = ('Positive', 'Negative', 'Biochemical', 'Ectopic', 'Miscarriage')


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Transition:
    """Next state of a cycle plus the audit entry that records it.

    ``expected_version`` is the version the stored cycle must still have
    for the write to succeed (``0`` for a cycle that does not exist yet).
    """
    cycle: TreatmentCycle
    entry: AuditEntry
    expected_version: int


class TransitionEngine:
    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        registry_for: Callable[[str], StageRegistry] = get_registry,
    ) -> None:
        self.clock = clock or _utcnow
        self.registry_for = registry_for

    # -- creation ---------------------------------------------------------

    def open_cycle(
        self,
        *,
        patient_id: str,
        doctor_id: str,
        treatment_type: str,
        actor_id: str,
        cycle_id: Optional[str] = None,
    ) -> Transition:
        missing = {name for name, value in (('patientId', patient_id), ('doctorId', doctor_id))
                   if not str(value or '').strip()}
        if missing:
            raise ValidationFailed(missing)
        registry = self.registry_for(treatment_type)
        first = registry.first
        now = self.clock()
        cycle = TreatmentCycle(
            id=cycle_id or new_cycle_id(),
            patient_id=str(patient_id),
            doctor_id=str(doctor_id),
            treatment_type=treatment_type,
            current_stage_id=first.stage_id,
            created_at=now,
            updated_at=now,
            stages={first.stage_id: StageRecord(first.stage_id, entered_at=now)},
            version=1,
        )
        entry = AuditEntry(
            cycle_id=cycle.id,
            actor_id=str(actor_id),
            stage_id=first.stage_id,
            action=OPEN_CYCLE,
            timestamp=now,
            before_version=0,
            after_version=1,
            detail={'treatmentType': treatment_type, 'patientId': cycle.patient_id,
                    'doctorId': cycle.doctor_id},
        )
        return Transition(cycle, entry, expected_version=0)

    # -- stage operations -------------------------------------------------

    def save_draft(
        self,
        cycle: TreatmentCycle,
        stage_id: str,
        partial_data: Any,
        *,
        expected_version: int,
        actor_id: str,
    ) -> Transition:
        """Merge ``partial_data`` into a stage without requiring validity."""
        registry = self.registry_for(cycle.treatment_type)
        self._check_mutable(cycle, expected_version)
        stage = registry.definition_for(stage_id)
        self._check_reachable(registry, cycle, stage)
        payload = self._payload(partial_data)

        now = self.clock()
        nxt = copy.deepcopy(cycle)
        record = nxt.stages.get(stage_id) or StageRecord(stage_id, entered_at=now)
        record.data = {**record.data, **payload}
        record.validated = validate_stage(stage, record.data).valid
        if not record.validated:
            # A completed stage whose data no longer validates is reopened.
            record.completed_at = None
        nxt.stages[stage_id] = record
        return self._commit(cycle, nxt, registry, now, actor_id, stage_id, SAVE_DRAFT,
                            {'fields': sorted(payload), 'validated': record.validated})

    def complete_stage(
        self,
        cycle: TreatmentCycle,
        stage_id: str,
        data: Any,
        *,
        expected_version: int,
        actor_id: str,
    ) -> Transition:
        """Validate and finalize a stage, advancing if it is the current one."""
        registry = self.registry_for(cycle.treatment_type)
        self._check_mutable(cycle, expected_version)
        stage = registry.definition_for(stage_id)
        self._check_reachable(registry, cycle, stage)
        payload = self._payload(data)

        existing = cycle.record_for(stage_id)
        merged = {**(existing.data if existing else {}), **payload}
        validate_stage(stage, merged).raise_for_errors()

        now = self.clock()
        nxt = copy.deepcopy(cycle)
        record = nxt.stages.get(stage_id) or StageRecord(stage_id, entered_at=now)
        record.data = merged
        record.validated = True
        record.completed_at = now
        nxt.stages[stage_id] = record

        detail: dict[str, Any] = {'fields': sorted(payload)}
        if stage_id == cycle.current_stage_id:
            following = registry.next_after(stage_id)
            if following is not None:
                nxt.current_stage_id = following.stage_id
                nxt.stages.setdefault(following.stage_id, StageRecord(following.stage_id, entered_at=now))
                detail['advancedTo'] = following.stage_id
        return self._commit(cycle, nxt, registry, now, actor_id, stage_id, COMPLETE_STAGE, detail)

    # -- terminal operations ----------------------------------------------

    def close_cycle(
        self,
        cycle: TreatmentCycle,
        outcome_data: Any,
        *,
        expected_version: int,
        actor_id: str,
    ) -> Transition:
        registry = self.registry_for(cycle.treatment_type)
        self._check_mutable(cycle, expected_version)
        final = registry.final
        if cycle.current_stage_id != final.stage_id:
            raise ValidationFailed(
                type_errors={('currentStageId', f'cycle must reach {final.stage_id} before it can be closed')}
            )
        record = cycle.record_for(final.stage_id)
        if record is None or not record.validated:
            raise ValidationFailed(missing_fields={final.stage_id},
                                   message=f'{final.stage_id} must be validated before closing')
        outcome_data = self._payload(outcome_data)
        result = outcome_data.get('result')
        if result is None or (isinstance(result, str) and not result.strip()):
            raise ValidationFailed(missing_fields={'result'})
        if result not in CLOSURE_RESULTS:
            raise ValidationFailed(type_errors={('result', f'"{result}" is not a valid choice.')})

        now = self.clock()
        nxt = copy.deepcopy(cycle)
        nxt.status = CLOSED
        nxt.outcome = result
        nxt.completed_at = now
        detail = {'outcome': result}
        if outcome_data.get('notes'):
            detail['notes'] = outcome_data['notes']
        return self._commit(cycle, nxt, registry, now, actor_id, final.stage_id, CLOSE_CYCLE, detail)

    def cancel_cycle(
        self,
        cycle: TreatmentCycle,
        reason: str,
        *,
        expected_version: int,
        actor_id: str,
    ) -> Transition:
        registry = self.registry_for(cycle.treatment_type)
        self._check_mutable(cycle, expected_version)
        reason = str(reason).strip() if reason is not None else ''
        if not reason:
            raise ValidationFailed(missing_fields={'reason'})

        now = self.clock()
        nxt = copy.deepcopy(cycle)
        nxt.status = CANCELLED
        nxt.cancel_reason = reason
        return self._commit(cycle, nxt, registry, now, actor_id, cycle.current_stage_id, CANCEL,
                            {'reason': reason})

    # -- helpers ----------------------------------------------------------

    @staticmethod
    def _check_mutable(cycle: TreatmentCycle, expected_version: int) -> None:
        if expected_version != cycle.version:
            raise ConcurrencyConflict(cycle.id, expected_version, cycle.version)
        if cycle.is_terminal:
            raise CycleClosed(f'cycle {cycle.id!r} is {cycle.status}; no further changes are accepted')

    @staticmethod
    def _check_reachable(registry: StageRegistry, cycle: TreatmentCycle, stage: StageDefinition) -> None:
        following = registry.next_after(cycle.current_stage_id)
        limit = following.order if following is not None else registry.order_of(cycle.current_stage_id)
        if stage.order > limit:
            raise OutOfOrder(
                f'{stage.stage_id} is more than one stage ahead of {cycle.current_stage_id}'
            )

    @staticmethod
    def _payload(data: Any) -> dict:
        if data is None:
            return {}
        if not isinstance(data, Mapping):
            raise ValidationFailed(type_errors={('data', 'expected an object')})
        return dict(data)

    @staticmethod
    def _commit(
        before: TreatmentCycle,
        nxt: TreatmentCycle,
        registry: StageRegistry,
        now: datetime,
        actor_id: str,
        stage_id: Optional[str],
        action: str,
        detail: Mapping[str, Any],
    ) -> Transition:
        nxt.stages = _in_registry_order(registry, nxt.stages)
        nxt.version = before.version + 1
        nxt.updated_at = now
        entry = AuditEntry(
            cycle_id=before.id,
            actor_id=str(actor_id),
            stage_id=stage_id,
            action=action,
            timestamp=now,
            before_version=before.version,
            after_version=nxt.version,
            detail=dict(detail),
        )
        return Transition(nxt, entry, expected_version=before.version)


def _in_registry_order(registry: StageRegistry, stages: dict[str, StageRecord]) -> dict[str, StageRecord]:
    known = [s.stage_id for s in registry if s.stage_id in stages]
    # Records for stages dropped from the registry go last.
    unknown = [stage_id for stage_id in stages if stage_id not in registry]
    return {stage_id: stages[stage_id] for stage_id in (*known, *unknown)}
