"""
Cycle store backed by the ``CycleDocument`` table.

``save`` is a single conditional ``UPDATE ... WHERE id = %s AND version = %s``;
a zero row count means another writer got there first.
"""
from __future__ import annotations

from django.db import DatabaseError, IntegrityError

from cycles.models import CycleDocument
from cycles.workflow.codec import DocumentError, from_document, to_document
from cycles.workflow.errors import ConcurrencyConflict, CycleNotFound, PersistenceError
from cycles.workflow.state import TreatmentCycle


def _columns(cycle: TreatmentCycle) -> dict:
    return {
        'status': cycle.status,
        'current_stage_id': cycle.current_stage_id,
        'version': cycle.version,
        'document': to_document(cycle),
        'updated_at': cycle.updated_at,
        'completed_at': cycle.completed_at,
    }


class DjangoCycleStore:
    def load(self, cycle_id: str) -> TreatmentCycle:
        try:
            row = CycleDocument.objects.get(pk=cycle_id)
        except CycleDocument.DoesNotExist:
            raise CycleNotFound(cycle_id) from None
        except DatabaseError as exc:
            raise PersistenceError(f'could not load cycle {cycle_id!r}: {exc}') from exc
        try:
            return from_document({**row.document, 'version': row.version})
        except DocumentError as exc:
            raise PersistenceError(f'cycle {cycle_id!r} has an unreadable document: {exc}') from exc

    def create(self, cycle: TreatmentCycle) -> int:
        try:
            CycleDocument.objects.create(
                id=cycle.id,
                patient_id=cycle.patient_id,
                doctor_id=cycle.doctor_id,
                treatment_type=cycle.treatment_type,
                created_at=cycle.created_at,
                **_columns(cycle),
            )
        except IntegrityError as exc:
            raise PersistenceError(f'cycle {cycle.id!r} already exists') from exc
        except DatabaseError as exc:
            raise PersistenceError(f'could not create cycle {cycle.id!r}: {exc}') from exc
        return cycle.version

    def save(self, cycle: TreatmentCycle, expected_version: int) -> int:
        try:
            updated = CycleDocument.objects.filter(pk=cycle.id, version=expected_version).update(
                **_columns(cycle)
            )
            if updated:
                return cycle.version
            current = CycleDocument.objects.filter(pk=cycle.id).values_list('version', flat=True).first()
        except DatabaseError as exc:
            raise PersistenceError(f'could not save cycle {cycle.id!r}: {exc}') from exc
        if current is None:
            raise CycleNotFound(cycle.id)
        raise ConcurrencyConflict(cycle.id, expected_version, current)
