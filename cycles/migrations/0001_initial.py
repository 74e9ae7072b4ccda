import cycles.workflow.state
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='CycleDocument',
            fields=[
                ('id', models.CharField(default=cycles.workflow.state.new_cycle_id, max_length=32, primary_key=True, serialize=False)),
                ('patient_id', models.CharField(db_index=True, max_length=64)),
                ('doctor_id', models.CharField(max_length=64)),
                ('treatment_type', models.CharField(max_length=16)),
                ('status', models.CharField(choices=[('Active', 'Active'), ('Closed', 'Closed'), ('Cancelled', 'Cancelled')], db_index=True, default='Active', max_length=16)),
                ('current_stage_id', models.CharField(max_length=64)),
                ('version', models.PositiveIntegerField(default=1)),
                ('document', models.JSONField(default=dict)),
                ('created_at', models.DateTimeField()),
                ('updated_at', models.DateTimeField()),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
            ],
            options={
                'indexes': [
                    models.Index(fields=['treatment_type', 'status'], name='cycles_type_status_idx'),
                    models.Index(fields=['doctor_id', 'updated_at'], name='cycles_doctor_updated_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AuditEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('actor_id', models.CharField(max_length=64)),
                ('stage_id', models.CharField(blank=True, max_length=64, null=True)),
                ('action', models.CharField(choices=[('OpenCycle', 'OpenCycle'), ('SaveDraft', 'SaveDraft'), ('CompleteStage', 'CompleteStage'), ('CloseCycle', 'CloseCycle'), ('Cancel', 'Cancel')], max_length=32)),
                ('before_version', models.PositiveIntegerField()),
                ('after_version', models.PositiveIntegerField()),
                ('detail', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField()),
                ('cycle', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='audit_events', to='cycles.cycledocument')),
            ],
            options={
                'ordering': ['created_at', 'id'],
                'indexes': [
                    models.Index(fields=['cycle', 'created_at'], name='audit_cycle_created_idx'),
                    models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
                ],
            },
        ),
    ]
