"""
Cycle operations wired to the database.

Views and management commands call these functions; each one runs the
workflow service with the ORM-backed store and audit trail, writing the
cycle and its audit event in one ``transaction.atomic`` block.
"""
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from cycles.services.audit import DjangoAuditTrail
from cycles.services.persistence import DjangoCycleStore
from cycles.workflow.codec import to_document
from cycles.workflow.engine import TransitionEngine
from cycles.workflow.registry import get_registry
from cycles.workflow.service import WorkflowService
from cycles.workflow.state import TreatmentCycle


def workflow() -> WorkflowService:
    return WorkflowService(
        DjangoCycleStore(),
        DjangoAuditTrail(),
        engine=TransitionEngine(clock=timezone.now),
        unit_of_work=transaction.atomic,
    )


def format_cycle(cycle: TreatmentCycle) -> Dict[str, Any]:
    data = to_document(cycle)
    data.pop('schemaVersion', None)
    return data


def default_treatment_type() -> str:
    return settings.CYCLE_DEFAULT_TREATMENT_TYPE


def get_cycle(cycle_id: str) -> TreatmentCycle:
    return workflow().get_cycle(cycle_id)


def open_cycle(*, patient_id: str, doctor_id: str, actor_id: str,
               treatment_type: Optional[str] = None) -> TreatmentCycle:
    return workflow().open_cycle(
        patient_id=patient_id,
        doctor_id=doctor_id,
        treatment_type=treatment_type or default_treatment_type(),
        actor_id=actor_id,
    )


def save_draft(cycle_id: str, stage_id: str, data: Any, *, expected_version: int, actor_id: str) -> TreatmentCycle:
    return workflow().save_draft(cycle_id, stage_id, data, expected_version=expected_version, actor_id=actor_id)


def complete_stage(cycle_id: str, stage_id: str, data: Any, *, expected_version: int, actor_id: str) -> TreatmentCycle:
    return workflow().complete_stage(cycle_id, stage_id, data, expected_version=expected_version, actor_id=actor_id)


def close_cycle(cycle_id: str, outcome: Any, *, expected_version: int, actor_id: str) -> TreatmentCycle:
    return workflow().close_cycle(cycle_id, outcome, expected_version=expected_version, actor_id=actor_id)


def cancel_cycle(cycle_id: str, reason: str, *, expected_version: int, actor_id: str) -> TreatmentCycle:
    return workflow().cancel_cycle(cycle_id, reason, expected_version=expected_version, actor_id=actor_id)


def audit_history(cycle_id: str) -> List[Dict[str, Any]]:
    return [entry.as_dict() for entry in workflow().audit_history(cycle_id)]


def list_stages(treatment_type: Optional[str] = None) -> List[Dict[str, Any]]:
    registry = get_registry(treatment_type or default_treatment_type())
    return [stage.as_dict() for stage in registry]
