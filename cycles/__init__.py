"""
Treatment-cycle workflow app.

The pure state machine lives in :mod:`cycles.workflow`; this app adds
the ORM tables, the Django-backed persistence and audit adapters and a
thin REST surface over them.
"""
