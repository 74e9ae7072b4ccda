"""
URL mappings for the treatment-cycle API.

Trailing slashes are omitted, matching ``APPEND_SLASH = False``.
"""
from django.urls import path, include

from .views import cycles, health

urlpatterns = [
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),
    path('api/stages', cycles.stage_list, name='stage_list'),
    path('api/cycles', cycles.cycle_open, name='cycle_open'),
    path('api/cycles/<str:cycle_id>', cycles.cycle_detail, name='cycle_detail'),
    path('api/cycles/<str:cycle_id>/draft', cycles.cycle_save_draft, name='cycle_save_draft'),
    path('api/cycles/<str:cycle_id>/complete', cycles.cycle_complete_stage, name='cycle_complete_stage'),
    path('api/cycles/<str:cycle_id>/close', cycles.cycle_close, name='cycle_close'),
    path('api/cycles/<str:cycle_id>/cancel', cycles.cycle_cancel, name='cycle_cancel'),
    path('api/cycles/<str:cycle_id>/history', cycles.cycle_history, name='cycle_history'),
]
