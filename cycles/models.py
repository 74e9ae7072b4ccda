"""
Database models for treatment cycles.

A cycle is stored as one JSON document (see :mod:`cycles.workflow.codec`)
next to a handful of denormalised columns used for filtering and for the
optimistic ``version`` check.  Audit events are append-only rows.
"""
from __future__ import annotations

from django.db import models

from cycles.workflow.audit import ACTIONS
from cycles.workflow.state import ACTIVE, STATUSES, new_cycle_id


class AppendOnlyError(Exception):
    """Raised when code tries to rewrite or remove an audit event."""


class CycleDocument(models.Model):
    id = models.CharField(max_length=32, primary_key=True, default=new_cycle_id)
    patient_id = models.CharField(max_length=64, db_index=True)
    doctor_id = models.CharField(max_length=64)
    treatment_type = models.CharField(max_length=16)
    status = models.CharField(
        max_length=16,
        choices=[(s, s) for s in STATUSES],
        default=ACTIVE,
        db_index=True,
    )
    current_stage_id = models.CharField(max_length=64)
    # Compare-and-swap token; always equal to document['version'].
    version = models.PositiveIntegerField(default=1)
    document = models.JSONField(default=dict)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()
    completed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        indexes = [
            models.Index(fields=['treatment_type', 'status'], name='cycles_type_status_idx'),
            models.Index(fields=['doctor_id', 'updated_at'], name='cycles_doctor_updated_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.treatment_type} cycle {self.id} ({self.status}@{self.current_stage_id})"


class AuditEventQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise AppendOnlyError('audit events cannot be updated')

    def delete(self):
        raise AppendOnlyError('audit events cannot be deleted')


class AuditEvent(models.Model):
    cycle = models.ForeignKey(CycleDocument, on_delete=models.PROTECT, related_name='audit_events')
    actor_id = models.CharField(max_length=64)
    stage_id = models.CharField(max_length=64, blank=True, null=True)
    action = models.CharField(max_length=32, choices=[(a, a) for a in ACTIONS])
    before_version = models.PositiveIntegerField()
    after_version = models.PositiveIntegerField()
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField()

    objects = AuditEventQuerySet.as_manager()

    class Meta:
        ordering = ['created_at', 'id']
        indexes = [
            models.Index(fields=['cycle', 'created_at'], name='audit_cycle_created_idx'),
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.action} {self.cycle_id} v{self.before_version}->v{self.after_version}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise AppendOnlyError('audit events cannot be updated')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise AppendOnlyError('audit events cannot be deleted')
