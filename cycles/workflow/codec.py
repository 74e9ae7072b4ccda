"""
Persisted document layout for treatment cycles.

A cycle and all of its stage records are stored as one JSON document::

    {
      "schemaVersion": 1,
      "id": "...", "patientId": "...", "doctorId": "...", "treatmentType": "IVF",
      "currentStageId": "Fertilization", "status": "Active", "version": 7,
      "stages": {"Stimulation": {"stageId": ..., "enteredAt": ..., "completedAt": ...,
                                 "data": {...}, "validated": true}, ...},
      "outcome": null, "createdAt": ..., "updatedAt": ..., "completedAt": null,
      "cancelReason": null
    }

Stage ``data`` maps are stored verbatim, so keys the current registry
does not know about survive a load/save cycle.
"""
from __future__ import annotations

import copy
from datetime import datetime
from typing import Any, Mapping, Optional

from django.utils.dateparse import parse_datetime

from .state import STATUSES, StageRecord, TreatmentCycle

SCHEMA_VERSION = 1


class DocumentError(ValueError):
    """A stored document cannot be read with this schema version."""


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_ts(value: Any, name: str) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    parsed = parse_datetime(str(value))
    if parsed is None:
        raise DocumentError(f'{name}: {value!r} is not an ISO 8601 timestamp')
    return parsed


def stage_to_dict(record: StageRecord) -> dict:
    return {
        'stageId': record.stage_id,
        'enteredAt': _ts(record.entered_at),
        'completedAt': _ts(record.completed_at),
        'data': copy.deepcopy(record.data),
        'validated': record.validated,
    }


def to_document(cycle: TreatmentCycle) -> dict:
    return {
        'schemaVersion': SCHEMA_VERSION,
        'id': cycle.id,
        'patientId': cycle.patient_id,
        'doctorId': cycle.doctor_id,
        'treatmentType': cycle.treatment_type,
        'currentStageId': cycle.current_stage_id,
        'status': cycle.status,
        'version': cycle.version,
        'stages': {stage_id: stage_to_dict(record) for stage_id, record in cycle.stages.items()},
        'outcome': copy.deepcopy(cycle.outcome),
        'createdAt': _ts(cycle.created_at),
        'updatedAt': _ts(cycle.updated_at),
        'completedAt': _ts(cycle.completed_at),
        'cancelReason': cycle.cancel_reason,
    }


def _stage_from_dict(stage_id: str, raw: Mapping[str, Any]) -> StageRecord:
    data = raw.get('data') or {}
    if not isinstance(data, Mapping):
        raise DocumentError(f'stages.{stage_id}.data must be an object')
    return StageRecord(
        stage_id=raw.get('stageId', stage_id),
        entered_at=_parse_ts(raw.get('enteredAt'), f'stages.{stage_id}.enteredAt'),
        completed_at=_parse_ts(raw.get('completedAt'), f'stages.{stage_id}.completedAt'),
        data=copy.deepcopy(dict(data)),
        validated=bool(raw.get('validated', False)),
    )


def from_document(document: Mapping[str, Any]) -> TreatmentCycle:
    schema_version = document.get('schemaVersion')
    if schema_version != SCHEMA_VERSION:
        raise DocumentError(f'unsupported schemaVersion {schema_version!r} (expected {SCHEMA_VERSION})')
    status = document.get('status')
    if status not in STATUSES:
        raise DocumentError(f'unknown status {status!r}')
    try:
        stages = {
            stage_id: _stage_from_dict(stage_id, raw)
            for stage_id, raw in (document.get('stages') or {}).items()
        }
        return TreatmentCycle(
            id=document['id'],
            patient_id=document['patientId'],
            doctor_id=document['doctorId'],
            treatment_type=document['treatmentType'],
            current_stage_id=document['currentStageId'],
            status=status,
            stages=stages,
            outcome=copy.deepcopy(document.get('outcome')),
            version=int(document['version']),
            created_at=_parse_ts(document['createdAt'], 'createdAt'),
            updated_at=_parse_ts(document['updatedAt'], 'updatedAt'),
            completed_at=_parse_ts(document.get('completedAt'), 'completedAt'),
            cancel_reason=document.get('cancelReason'),
        )
    except KeyError as exc:
        raise DocumentError(f'missing document field {exc.args[0]!r}') from exc
