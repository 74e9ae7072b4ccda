from typing import List

from django.db import DatabaseError

from cycles.models import AuditEvent
from cycles.workflow.audit import AuditEntry
from cycles.workflow.errors import PersistenceError


def log_action(entry: AuditEntry) -> AuditEvent:
    return AuditEvent.objects.create(
        cycle_id=entry.cycle_id,
        actor_id=entry.actor_id,
        stage_id=entry.stage_id,
        action=entry.action,
        before_version=entry.before_version,
        after_version=entry.after_version,
        detail=entry.detail or {},
        created_at=entry.timestamp,
    )


def to_entry(event: AuditEvent) -> AuditEntry:
    return AuditEntry(
        cycle_id=event.cycle_id,
        actor_id=event.actor_id,
        stage_id=event.stage_id,
        action=event.action,
        timestamp=event.created_at,
        before_version=event.before_version,
        after_version=event.after_version,
        detail=event.detail or {},
    )


class DjangoAuditTrail:
    """Audit trail over the append-only ``AuditEvent`` table."""

    def record(self, entry: AuditEntry) -> None:
        try:
            log_action(entry)
        except DatabaseError as exc:
            raise PersistenceError(f'could not record {entry.action} for {entry.cycle_id!r}: {exc}') from exc

    def history(self, cycle_id: str) -> List[AuditEntry]:
        try:
            events = list(AuditEvent.objects.filter(cycle_id=cycle_id).order_by('created_at', 'id'))
        except DatabaseError as exc:
            raise PersistenceError(f'could not read audit trail for {cycle_id!r}: {exc}') from exc
        return [to_entry(e) for e in events]
