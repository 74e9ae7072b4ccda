"""
Django admin registrations for cycle records.

Cycles can be browsed but not edited here; every change has to go
through the workflow so it is versioned and audited.  Audit events are
strictly read-only.
"""

from django.contrib import admin

from .models import AuditEvent, CycleDocument


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(CycleDocument)
class CycleDocumentAdmin(ReadOnlyAdmin):
    list_display = ('id', 'patient_id', 'doctor_id', 'treatment_type', 'current_stage_id', 'status', 'version', 'updated_at')
    list_filter = ('treatment_type', 'status')
    search_fields = ('id', 'patient_id', 'doctor_id')


@admin.register(AuditEvent)
class AuditEventAdmin(ReadOnlyAdmin):
    list_display = ('cycle', 'action', 'stage_id', 'actor_id', 'before_version', 'after_version', 'created_at')
    list_filter = ('action',)
    search_fields = ('cycle__id', 'actor_id')
    ordering = ('created_at', 'id')
