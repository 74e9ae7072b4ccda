import json
from io import StringIO

import pytest
from django.contrib.auth.models import Group, User
from django.core.management import CommandError, call_command

from cycles.models import AuditEvent, CycleDocument
from cycles.services import cycles as svc

from .payloads import IVF_STAGE_DATA

pytestmark = pytest.mark.django_db


def run(*args, **kwargs):
    out = StringIO()
    call_command(*args, stdout=out, stderr=StringIO(), **kwargs)
    return out.getvalue()


def test_cycle_history_prints_each_entry():
    cycle = svc.open_cycle(patient_id='p-1', doctor_id='d-1', treatment_type='IVF', actor_id='3')
    svc.complete_stage(cycle.id, 'Stimulation', IVF_STAGE_DATA['Stimulation'], expected_version=1, actor_id='3')

    text = run('cycle_history', cycle.id)
    assert 'OpenCycle' in text and 'CompleteStage' in text
    assert '2 entries' in text

    lines = run('cycle_history', cycle.id, '--json').splitlines()
    assert [json.loads(line)['afterVersion'] for line in lines] == [1, 2]


def test_cycle_history_unknown_cycle():
    with pytest.raises(CommandError):
        run('cycle_history', 'missing')


def test_import_legacy_workflow_creates_audited_cycle():
    blob = {'currentStatus': 'OPU', 'cycleId': 'legacy-7', 'stimulation': IVF_STAGE_DATA['Stimulation']}
    notes = 'IVF Workflow Data:\n' + json.dumps(blob, indent=2)
    text = run('import_legacy_workflow', '--notes', notes, '--patient', 'p-2', '--doctor', 'd-2', '--actor', '11')
    assert 'imported IVF cycle legacy-7 at OocyteRetrieval (Active)' in text

    row = CycleDocument.objects.get(pk='legacy-7')
    assert row.version == 1
    assert row.document['stages']['Stimulation']['completedAt'] is not None
    event = AuditEvent.objects.get(cycle=row)
    assert event.action == 'OpenCycle'
    assert event.actor_id == '11'
    assert event.detail['source'] == 'legacy-notes'

    with pytest.raises(CommandError):
        run('import_legacy_workflow', '--notes', notes, '--patient', 'p-2', '--doctor', 'd-2', '--actor', '11')


def test_import_legacy_workflow_rejects_unparseable_notes():
    with pytest.raises(CommandError):
        run('import_legacy_workflow', '--notes', 'free text only', '--patient', 'p', '--doctor', 'd', '--actor', '1')


def test_ensure_clinical_roles(settings):
    settings.CYCLE_CLINICAL_ROLES = ['clinician', 'embryologist']
    user = User.objects.create_user(username='emb1', password='P@ssw0rd1')
    run('ensure_clinical_roles', '--user', 'emb1', '--role', 'embryologist')
    run('ensure_clinical_roles')
    assert set(Group.objects.values_list('name', flat=True)) == {'clinician', 'embryologist'}
    assert list(user.groups.values_list('name', flat=True)) == ['embryologist']
