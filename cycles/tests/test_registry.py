import pytest

from cycles.workflow.errors import NotFound, StageNotFound
from cycles.workflow.registry import (
    StageDefinition,
    StageRegistry,
    choice,
    count,
    get_registry,
    record,
    text,
    treatment_types,
)


def test_ivf_stages_are_in_clinical_order():
    registry = get_registry('IVF')
    assert [s.stage_id for s in registry] == [
        'Stimulation', 'OocyteRetrieval', 'Fertilization',
        'EmbryoCulture', 'EmbryoTransfer', 'PregnancyOutcome',
    ]
    assert registry.first.stage_id == 'Stimulation'
    assert registry.final.stage_id == 'PregnancyOutcome'
    assert registry.next_after('Fertilization').stage_id == 'EmbryoCulture'
    assert registry.next_after('PregnancyOutcome') is None


def test_iui_registry_is_separate():
    registry = get_registry('IUI')
    assert [s.stage_id for s in registry] == ['Stimulation', 'SpermPreparation', 'Insemination', 'PregnancyOutcome']
    assert 'OocyteRetrieval' not in registry
    assert set(treatment_types()) == {'IVF', 'IUI'}


def test_registry_is_built_once():
    assert get_registry('IVF') is get_registry('IVF')


def test_unknown_lookups_raise_not_found():
    with pytest.raises(StageNotFound):
        get_registry('IVF').definition_for('Cryopreservation')
    with pytest.raises(NotFound):
        get_registry('GIFT')


def test_registry_rejects_duplicate_ids_and_unordered_stages():
    a = StageDefinition('A', 1, 'A', required_fields=(text('x'),))
    b = StageDefinition('B', 2, 'B', required_fields=(text('y'),))
    with pytest.raises(ValueError):
        StageRegistry('T', (a, StageDefinition('A', 3, 'again')))
    with pytest.raises(ValueError):
        StageRegistry('T', (b, a))
    with pytest.raises(ValueError):
        StageRegistry('T', (a, StageDefinition('C', 1, 'same order')))


def test_stage_definition_rejects_duplicate_field_names():
    with pytest.raises(ValueError):
        StageDefinition('A', 1, 'A', required_fields=(text('x'),), optional_fields=(count('x'),))


def test_field_spec_sanity_checks():
    with pytest.raises(ValueError):
        choice('result', ())
    with pytest.raises(ValueError):
        record('empty')


def test_stage_listing_describes_fields():
    listed = get_registry('IVF').definition_for('OocyteRetrieval').as_dict()
    assert listed['order'] == 2
    names = [f['name'] for f in listed['requiredFields']]
    assert 'totalOocytesRetrieved' in names
    classification = next(f for f in listed['requiredFields'] if f['name'] == 'oocyteClassification')
    assert classification['type'] == 'record'
    assert {f['name'] for f in classification['requiredFields']} == {'mii', 'mi', 'gv', 'atretic'}
