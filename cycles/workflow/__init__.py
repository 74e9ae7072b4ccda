"""
Staged treatment-cycle workflow.

Nothing in this package touches the database.  Callers load a cycle
through a :class:`~cycles.workflow.store.CycleStore`, ask the
:class:`~cycles.workflow.engine.TransitionEngine` for the next state and
persist it together with its audit entry, usually via
:class:`~cycles.workflow.service.WorkflowService`.
"""
