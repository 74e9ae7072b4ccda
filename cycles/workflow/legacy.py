"""
Import of workflow blobs written into a cycle's free-text notes.

Older front ends saved the whole workflow as pretty-printed JSON behind a
header such as ``IVF Workflow Data:``.  This module extracts that blob
and rebuilds a :class:`TreatmentCycle` from it.  Section payloads are
kept verbatim; sections without a stage of their own are nested under
the stage they belong to.  Stimulation also gets its flat medication and
trigger fields filled from the nested `medications` and `triggerShot`
records.  Stages are validated against the registry and
only validated stages before the current one count as completed, so an
imported cycle satisfies the same invariants as one built by the engine.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

from .engine import CLOSURE_RESULTS
from .registry import get_registry
from .state import CLOSED, StageRecord, TreatmentCycle, new_cycle_id
from .validator import validate_stage

HEADER_RE = re.compile(r'^\s*(IVF|IUI)\s+Workflow\s+Data\s*:', re.IGNORECASE)
BLOB_RE = re.compile(r'\{[\s\S]*\}')
DOSE_RE = re.compile(r'^\s*(\d+(?:\.\d+)?)')

SECTION_STAGES = {
    'IVF': {
        'stimulation': 'Stimulation',
        'oocytePickup': 'OocyteRetrieval',
        'fertilization': 'Fertilization',
        'embryoCulture': 'EmbryoCulture',
        'embryoTransfer': 'EmbryoTransfer',
        'pregnancyTest': 'PregnancyOutcome',
    },
    'IUI': {
        'stimulation': 'Stimulation',
        'spermPreparation': 'SpermPreparation',
        'insemination': 'Insemination',
        'pregnancyTest': 'PregnancyOutcome',
    },
}

# Sections without a stage of their own, and the stage that carries them.
NESTED_SECTIONS = {
    'IVF': {'spermPreparation': 'Fertilization', 'lutealSupport': 'EmbryoTransfer'},
    'IUI': {'lutealSupport': 'Insemination'},
}

STATUS_STAGES = {
    'Planned': 'Stimulation',
    'COS': 'Stimulation',
    'OPU': 'OocyteRetrieval',
    'Fert': 'Fertilization',
    'Culture': 'EmbryoCulture',
    'ET': 'EmbryoTransfer',
    'FET': 'EmbryoTransfer',
}

STATUS_OUTCOMES = {'Preg+': 'Positive', 'Preg-': 'Negative'}


class LegacyFormatError(ValueError):
    pass


@dataclass
class LegacyImport:
    cycle: TreatmentCycle
    warnings: list[str] = field(default_factory=list)


def parse_legacy_notes(notes: str, treatment_type: Optional[str] = None) -> tuple[str, dict]:
    """Return ``(treatment_type, blob)`` from a notes field."""
    header = HEADER_RE.match(notes or '')
    if header:
        treatment_type = header.group(1).upper()
    if treatment_type not in SECTION_STAGES:
        raise LegacyFormatError('cannot tell whether the notes hold an IVF or an IUI workflow')
    match = BLOB_RE.search(notes or '')
    if not match:
        raise LegacyFormatError('no workflow JSON found in notes')
    try:
        blob = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise LegacyFormatError(f'workflow JSON is malformed: {exc.msg}') from exc
    if not isinstance(blob, dict):
        raise LegacyFormatError('workflow JSON must be an object')
    return treatment_type, blob


def _dose(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    match = DOSE_RE.match(str(value or ''))
    if not match:
        return None
    number = float(match.group(1))
    return int(number) if number.is_integer() else number


def _summarise_stimulation(data: dict) -> None:
    """Fill the flat medication and trigger fields from the nested records."""
    medications = data.get('medications')
    if isinstance(medications, list) and medications and isinstance(medications[0], Mapping):
        first = medications[0]
        if first.get('drugName'):
            data.setdefault('medicationName', first['drugName'])
        dose = _dose(first.get('dosage'))
        if dose is not None:
            data.setdefault('medicationDose', dose)
    trigger = data.get('triggerShot')
    if isinstance(trigger, Mapping):
        if trigger.get('date'):
            data.setdefault('triggerDate', trigger['date'])
        if trigger.get('medication'):
            data.setdefault('triggerMedication', trigger['medication'])


def _current_stage(treatment_type: str, blob: Mapping[str, Any], present: list[str]) -> str:
    registry = get_registry(treatment_type)
    status = blob.get('currentStatus')
    if status in STATUS_OUTCOMES or status == 'Closed':
        return registry.final.stage_id
    stage_id = STATUS_STAGES.get(status)
    if stage_id in registry:
        return stage_id
    if present:
        return max(present, key=registry.order_of)
    return registry.first.stage_id


def _closing_outcome(blob: Mapping[str, Any]) -> Optional[str]:
    status = blob.get('currentStatus')
    if status in STATUS_OUTCOMES:
        return STATUS_OUTCOMES[status]
    if status != 'Closed':
        return None
    for candidate in (blob.get('finalOutcome'), (blob.get('pregnancyTest') or {}).get('result')):
        if candidate in CLOSURE_RESULTS:
            return candidate
    return None


def legacy_to_cycle(
    treatment_type: str,
    blob: Mapping[str, Any],
    *,
    patient_id: str,
    doctor_id: str,
    imported_at: datetime,
    cycle_id: Optional[str] = None,
) -> LegacyImport:
    registry = get_registry(treatment_type)
    warnings: list[str] = []

    sections: dict[str, dict] = {}
    for key, stage_id in SECTION_STAGES[treatment_type].items():
        if isinstance(blob.get(key), Mapping):
            sections[stage_id] = dict(blob[key])
    for key, stage_id in NESTED_SECTIONS[treatment_type].items():
        if isinstance(blob.get(key), Mapping):
            sections.setdefault(stage_id, {})[key] = dict(blob[key])
    if 'Stimulation' in sections:
        _summarise_stimulation(sections['Stimulation'])

    present = [stage.stage_id for stage in registry if stage.stage_id in sections]
    current_stage_id = _current_stage(treatment_type, blob, present)
    current_order = registry.order_of(current_stage_id)

    stages: dict[str, StageRecord] = {}
    for stage in registry:
        if stage.stage_id not in sections and stage.stage_id != current_stage_id:
            continue
        data = sections.get(stage.stage_id, {})
        validated = validate_stage(stage, data).valid
        completed = validated and stage.order < current_order
        if stage.order < current_order and not validated:
            warnings.append(f'{stage.stage_id} does not validate and was imported as a draft')
        stages[stage.stage_id] = StageRecord(
            stage.stage_id,
            entered_at=imported_at,
            completed_at=imported_at if completed else None,
            data=data,
            validated=validated,
        )

    cycle = TreatmentCycle(
        id=cycle_id or str(blob.get('cycleId') or new_cycle_id()),
        patient_id=str(blob.get('patientId') or patient_id),
        doctor_id=str(doctor_id),
        treatment_type=treatment_type,
        current_stage_id=current_stage_id,
        created_at=imported_at,
        updated_at=imported_at,
        stages=stages,
        version=1,
    )

    outcome = _closing_outcome(blob)
    final = stages.get(registry.final.stage_id)
    if outcome is not None:
        if final is not None and final.validated:
            cycle.status = CLOSED
            cycle.outcome = outcome
            cycle.completed_at = imported_at
        else:
            warnings.append(f'cycle was marked {blob.get("currentStatus")} but '
                            f'{registry.final.stage_id} does not validate; imported as active')
    elif blob.get('currentStatus') == 'Closed':
        warnings.append('cycle was marked Closed without a recognised outcome; imported as active')
    return LegacyImport(cycle, warnings)
