import pytest

from cycles.workflow.audit import CANCEL, CLOSE_CYCLE, COMPLETE_STAGE, OPEN_CYCLE, SAVE_DRAFT, InMemoryAuditTrail
from cycles.workflow.engine import TransitionEngine
from cycles.workflow.errors import (
    ConcurrencyConflict,
    CycleClosed,
    CycleNotFound,
    NotFound,
    OutOfOrder,
    StageNotFound,
    ValidationFailed,
)
from cycles.workflow.registry import get_registry
from cycles.workflow.service import WorkflowService
from cycles.workflow.state import CANCELLED, CLOSED
from cycles.workflow.store import InMemoryCycleStore

from .payloads import IUI_STAGE_DATA, IVF_STAGE_DATA, TickingClock

ACTOR = 'dr-lin'


@pytest.fixture
def store():
    return InMemoryCycleStore()


@pytest.fixture
def trail():
    return InMemoryAuditTrail()


@pytest.fixture
def service(store, trail):
    return WorkflowService(store, trail, engine=TransitionEngine(clock=TickingClock()))


@pytest.fixture
def cycle(service):
    return service.open_cycle(patient_id='p-100', doctor_id='d-7', treatment_type='IVF', actor_id=ACTOR)


def walk_to_final(service, cycle):
    for stage in list(get_registry(cycle.treatment_type))[:-1]:
        cycle = service.complete_stage(cycle.id, stage.stage_id, IVF_STAGE_DATA[stage.stage_id],
                                       expected_version=cycle.version, actor_id=ACTOR)
    return cycle


def test_open_cycle_starts_at_first_stage(cycle, trail):
    assert cycle.current_stage_id == 'Stimulation'
    assert cycle.version == 1
    assert list(cycle.stages) == ['Stimulation']
    [entry] = trail.history(cycle.id)
    assert entry.action == OPEN_CYCLE
    assert (entry.before_version, entry.after_version) == (0, 1)


def test_open_cycle_needs_patient_and_known_protocol(service):
    with pytest.raises(ValidationFailed) as info:
        service.open_cycle(patient_id=' ', doctor_id='d-7', treatment_type='IVF', actor_id=ACTOR)
    assert info.value.missing_fields == {'patientId'}
    with pytest.raises(NotFound):
        service.open_cycle(patient_id='p-1', doctor_id='d-7', treatment_type='ZIFT', actor_id=ACTOR)


def test_completing_current_stage_advances(service, cycle, trail):
    updated = service.complete_stage(cycle.id, 'Stimulation', IVF_STAGE_DATA['Stimulation'],
                                     expected_version=cycle.version, actor_id=ACTOR)
    assert updated.current_stage_id == 'OocyteRetrieval'
    assert updated.version == cycle.version + 1
    record = updated.stages['Stimulation']
    assert record.validated and record.completed
    entries = [e for e in trail.history(cycle.id) if e.action == COMPLETE_STAGE]
    assert len(entries) == 1
    assert entries[0].stage_id == 'Stimulation'
    assert entries[0].actor_id == ACTOR
    assert entries[0].detail['advancedTo'] == 'OocyteRetrieval'


def test_draft_merges_without_validating(service, cycle):
    updated = service.save_draft(cycle.id, 'Stimulation', {'medicationDose': 150},
                                 expected_version=cycle.version, actor_id=ACTOR)
    record = updated.stages['Stimulation']
    assert record.data['medicationDose'] == 150
    assert record.validated is False
    assert updated.current_stage_id == 'Stimulation'

    rest = {k: v for k, v in IVF_STAGE_DATA['Stimulation'].items() if k != 'medicationDose'}
    updated = service.save_draft(cycle.id, 'Stimulation', rest, expected_version=updated.version, actor_id=ACTOR)
    assert updated.stages['Stimulation'].validated is True
    assert updated.stages['Stimulation'].completed is False


def test_complete_validates_the_merged_record(service, cycle):
    partial = dict(IVF_STAGE_DATA['Stimulation'])
    dose = partial.pop('medicationDose')
    cycle = service.save_draft(cycle.id, 'Stimulation', partial, expected_version=cycle.version, actor_id=ACTOR)
    updated = service.complete_stage(cycle.id, 'Stimulation', {'medicationDose': dose},
                                     expected_version=cycle.version, actor_id=ACTOR)
    assert updated.current_stage_id == 'OocyteRetrieval'
    assert updated.stages['Stimulation'].data == IVF_STAGE_DATA['Stimulation']


def test_failed_completion_changes_nothing(service, store, trail, cycle):
    before = store.document(cycle.id)
    data = dict(IVF_STAGE_DATA['Stimulation'])
    del data['triggerMedication']
    with pytest.raises(ValidationFailed) as info:
        service.complete_stage(cycle.id, 'Stimulation', data, expected_version=cycle.version, actor_id=ACTOR)
    assert info.value.missing_fields == {'triggerMedication'}
    assert store.document(cycle.id) == before
    assert len(trail.history(cycle.id)) == 1


def test_string_number_is_not_stored(service, store, cycle):
    before = store.document(cycle.id)
    data = dict(IVF_STAGE_DATA['Stimulation'], medicationDose='150')
    with pytest.raises(ValidationFailed) as info:
        service.complete_stage(cycle.id, 'Stimulation', data, expected_version=cycle.version, actor_id=ACTOR)
    assert [f['field'] for f in info.value.as_dict()['typeErrors']] == ['medicationDose']
    assert store.document(cycle.id) == before


def test_concurrent_writers_second_one_conflicts(service, store, trail, cycle):
    for dose in (100, 125):
        cycle = service.save_draft(cycle.id, 'Stimulation', {'medicationDose': dose},
                                   expected_version=cycle.version, actor_id=ACTOR)
    assert cycle.version == 3

    first = service.save_draft(cycle.id, 'Stimulation', {'medicationDose': 150},
                               expected_version=3, actor_id='nurse-1')
    assert first.version == 4
    with pytest.raises(ConcurrencyConflict) as info:
        service.complete_stage(cycle.id, 'Stimulation', IVF_STAGE_DATA['Stimulation'],
                               expected_version=3, actor_id='nurse-2')
    assert info.value.actual_version == 4

    stored = store.load(cycle.id)
    assert stored.version == 4
    assert stored.stages['Stimulation'].data['medicationDose'] == 150
    assert stored.current_stage_id == 'Stimulation'
    assert [e.after_version for e in trail.history(cycle.id)] == [1, 2, 3, 4]


def test_store_rejects_a_stale_snapshot(store, trail, cycle):
    engine = TransitionEngine(clock=TickingClock())
    snapshot = store.load(cycle.id)
    winner = engine.save_draft(snapshot, 'Stimulation', {'notes': 'first'},
                               expected_version=snapshot.version, actor_id='a')
    store.save(winner.cycle, winner.expected_version)

    loser = engine.save_draft(snapshot, 'Stimulation', {'notes': 'second'},
                              expected_version=snapshot.version, actor_id='b')
    with pytest.raises(ConcurrencyConflict):
        store.save(loser.cycle, loser.expected_version)
    assert store.load(cycle.id).stages['Stimulation'].data['notes'] == 'first'


def test_retrying_the_same_call_conflicts(service, cycle):
    args = (cycle.id, 'Stimulation', IVF_STAGE_DATA['Stimulation'])
    service.complete_stage(*args, expected_version=cycle.version, actor_id=ACTOR)
    with pytest.raises(ConcurrencyConflict):
        service.complete_stage(*args, expected_version=cycle.version, actor_id=ACTOR)


def test_close_from_validated_final_stage(service, cycle, trail):
    cycle = walk_to_final(service, cycle)
    assert cycle.current_stage_id == 'PregnancyOutcome'
    cycle = service.complete_stage(cycle.id, 'PregnancyOutcome', IVF_STAGE_DATA['PregnancyOutcome'],
                                   expected_version=cycle.version, actor_id=ACTOR)
    assert cycle.current_stage_id == 'PregnancyOutcome'

    closed = service.close_cycle(cycle.id, {'result': 'Positive'}, expected_version=cycle.version, actor_id=ACTOR)
    assert closed.status == CLOSED
    assert closed.outcome == 'Positive'
    assert closed.completed_at is not None
    assert trail.history(cycle.id)[-1].action == CLOSE_CYCLE

    for stage_id in ('Stimulation', 'PregnancyOutcome'):
        with pytest.raises(CycleClosed):
            service.save_draft(cycle.id, stage_id, {'notes': 'late'}, expected_version=closed.version, actor_id=ACTOR)


def test_close_requires_final_stage(service, cycle):
    with pytest.raises(ValidationFailed) as info:
        service.close_cycle(cycle.id, {'result': 'Negative'}, expected_version=cycle.version, actor_id=ACTOR)
    assert [name for name, _ in info.value.type_errors] == ['currentStageId']


def test_close_requires_validated_final_record(service, cycle):
    cycle = walk_to_final(service, cycle)
    cycle = service.save_draft(cycle.id, 'PregnancyOutcome', {'betaHCG': 12},
                               expected_version=cycle.version, actor_id=ACTOR)
    with pytest.raises(ValidationFailed) as info:
        service.close_cycle(cycle.id, {'result': 'Negative'}, expected_version=cycle.version, actor_id=ACTOR)
    assert info.value.missing_fields == {'PregnancyOutcome'}


def test_close_rejects_unknown_outcome(service, cycle):
    cycle = walk_to_final(service, cycle)
    cycle = service.complete_stage(cycle.id, 'PregnancyOutcome', IVF_STAGE_DATA['PregnancyOutcome'],
                                   expected_version=cycle.version, actor_id=ACTOR)
    with pytest.raises(ValidationFailed) as info:
        service.close_cycle(cycle.id, {'result': 'Maybe'}, expected_version=cycle.version, actor_id=ACTOR)
    assert [name for name, _ in info.value.type_errors] == ['result']
    with pytest.raises(ValidationFailed) as info:
        service.close_cycle(cycle.id, {}, expected_version=cycle.version, actor_id=ACTOR)
    assert info.value.missing_fields == {'result'}


def test_stage_two_ahead_is_out_of_order(service, store, trail, cycle):
    before = store.document(cycle.id)
    with pytest.raises(OutOfOrder):
        service.complete_stage(cycle.id, 'Fertilization', IVF_STAGE_DATA['Fertilization'],
                               expected_version=cycle.version, actor_id=ACTOR)
    with pytest.raises(OutOfOrder):
        service.save_draft(cycle.id, 'EmbryoTransfer', {'notes': 'x'}, expected_version=cycle.version, actor_id=ACTOR)
    assert store.document(cycle.id) == before
    assert len(trail.history(cycle.id)) == 1


def test_next_stage_can_be_completed_early_without_advancing(service, cycle):
    updated = service.complete_stage(cycle.id, 'OocyteRetrieval', IVF_STAGE_DATA['OocyteRetrieval'],
                                     expected_version=cycle.version, actor_id=ACTOR)
    assert updated.current_stage_id == 'Stimulation'
    assert updated.stages['OocyteRetrieval'].completed
    assert list(updated.stages) == ['Stimulation', 'OocyteRetrieval']


def test_current_stage_never_moves_back(service, cycle):
    cycle = service.complete_stage(cycle.id, 'Stimulation', IVF_STAGE_DATA['Stimulation'],
                                   expected_version=cycle.version, actor_id=ACTOR)
    cycle = service.save_draft(cycle.id, 'Stimulation', {'medicationDose': 'unknown'},
                               expected_version=cycle.version, actor_id=ACTOR)
    assert cycle.current_stage_id == 'OocyteRetrieval'
    assert cycle.stages['Stimulation'].validated is False
    assert cycle.stages['Stimulation'].completed is False


def test_unknown_stage_and_cycle(service, cycle):
    with pytest.raises(StageNotFound):
        service.save_draft(cycle.id, 'Cryopreservation', {}, expected_version=cycle.version, actor_id=ACTOR)
    with pytest.raises(CycleNotFound):
        service.save_draft('nope', 'Stimulation', {}, expected_version=1, actor_id=ACTOR)
    with pytest.raises(CycleNotFound):
        service.audit_history('nope')


def test_draft_payload_must_be_an_object(service, cycle):
    with pytest.raises(ValidationFailed) as info:
        service.save_draft(cycle.id, 'Stimulation', ['medicationDose', 150],
                           expected_version=cycle.version, actor_id=ACTOR)
    assert info.value.type_errors == {('data', 'expected an object')}


def test_cancel_records_reason_and_freezes_cycle(service, cycle, trail):
    with pytest.raises(ValidationFailed) as info:
        service.cancel_cycle(cycle.id, '   ', expected_version=cycle.version, actor_id=ACTOR)
    assert info.value.missing_fields == {'reason'}

    cancelled = service.cancel_cycle(cycle.id, 'Poor ovarian response', expected_version=cycle.version, actor_id=ACTOR)
    assert cancelled.status == CANCELLED
    assert cancelled.cancel_reason == 'Poor ovarian response'
    last = trail.history(cycle.id)[-1]
    assert last.action == CANCEL
    assert last.detail == {'reason': 'Poor ovarian response'}

    with pytest.raises(CycleClosed):
        service.cancel_cycle(cycle.id, 'again', expected_version=cycle.version + 1, actor_id=ACTOR)


def test_audit_versions_are_contiguous(service, cycle, trail):
    cycle = service.save_draft(cycle.id, 'Stimulation', {'notes': 'day 1'}, expected_version=cycle.version, actor_id=ACTOR)
    cycle = service.complete_stage(cycle.id, 'Stimulation', IVF_STAGE_DATA['Stimulation'],
                                   expected_version=cycle.version, actor_id=ACTOR)
    cycle = service.save_draft(cycle.id, 'OocyteRetrieval', {'recoveryTime': 90},
                               expected_version=cycle.version, actor_id=ACTOR)
    history = trail.history(cycle.id)
    assert [e.action for e in history] == [OPEN_CYCLE, SAVE_DRAFT, COMPLETE_STAGE, SAVE_DRAFT]
    for entry in history:
        assert entry.after_version == entry.before_version + 1
    assert history[-1].after_version == cycle.version
    assert [e.timestamp for e in history] == sorted(e.timestamp for e in history)


def test_iui_cycle_runs_its_own_protocol(service):
    cycle = service.open_cycle(patient_id='p-9', doctor_id='d-2', treatment_type='IUI', actor_id=ACTOR)
    for stage_id, data in IUI_STAGE_DATA.items():
        cycle = service.complete_stage(cycle.id, stage_id, data, expected_version=cycle.version, actor_id=ACTOR)
    assert cycle.current_stage_id == 'PregnancyOutcome'
    closed = service.close_cycle(cycle.id, {'result': 'Negative'}, expected_version=cycle.version, actor_id=ACTOR)
    assert closed.status == CLOSED
    assert list(closed.stages) == list(IUI_STAGE_DATA)
