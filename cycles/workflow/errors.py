"""
Typed failures raised by the treatment-cycle workflow.

Every error leaves the stored cycle and its audit trail untouched.  Each
class carries a stable ``code`` used in API payloads and the HTTP status
the DRF exception handler should answer with.
"""
from __future__ import annotations

from typing import Iterable


class WorkflowError(Exception):
    code = 'workflow_error'
    status_code = 400

    def __init__(self, message: str = '') -> None:
        super().__init__(message or self.code)
        self.message = message or self.code

    def as_dict(self) -> dict:
        return {'code': self.code, 'message': self.message}


class NotFound(WorkflowError):
    code = 'not_found'
    status_code = 404


class CycleNotFound(NotFound):
    code = 'cycle_not_found'

    def __init__(self, cycle_id: str) -> None:
        super().__init__(f'treatment cycle {cycle_id!r} does not exist')
        self.cycle_id = cycle_id


class StageNotFound(NotFound):
    code = 'stage_not_found'

    def __init__(self, stage_id: str, treatment_type: str | None = None) -> None:
        where = f' for {treatment_type}' if treatment_type else ''
        super().__init__(f'unknown stage {stage_id!r}{where}')
        self.stage_id = stage_id


class ValidationFailed(WorkflowError):
    """Stage data is incomplete or malformed; nothing was changed."""

    code = 'validation_failed'
    status_code = 400

    def __init__(
        self,
        missing_fields: Iterable[str] = (),
        type_errors: Iterable[tuple[str, str]] = (),
        message: str = '',
    ) -> None:
        self.missing_fields = frozenset(missing_fields)
        self.type_errors = frozenset(type_errors)
        if not message:
            parts = []
            if self.missing_fields:
                parts.append('missing: ' + ', '.join(sorted(self.missing_fields)))
            if self.type_errors:
                parts.append('invalid: ' + ', '.join(sorted(name for name, _ in self.type_errors)))
            message = '; '.join(parts) or 'stage data is invalid'
        super().__init__(message)

    def as_dict(self) -> dict:
        data = super().as_dict()
        data['missingFields'] = sorted(self.missing_fields)
        data['typeErrors'] = [
            {'field': name, 'reason': reason} for name, reason in sorted(self.type_errors)
        ]
        return data


class OutOfOrder(WorkflowError):
    code = 'out_of_order'
    status_code = 422


class ConcurrencyConflict(WorkflowError):
    """The caller's ``expectedVersion`` is stale; reload and retry."""

    code = 'concurrency_conflict'
    status_code = 409

    def __init__(self, cycle_id: str, expected_version: int, actual_version: int | None = None) -> None:
        if actual_version is None:
            message = f'cycle {cycle_id!r} is no longer at version {expected_version}'
        else:
            message = f'cycle {cycle_id!r} is at version {actual_version}, not {expected_version}'
        super().__init__(message)
        self.cycle_id = cycle_id
        self.expected_version = expected_version
        self.actual_version = actual_version

    def as_dict(self) -> dict:
        data = super().as_dict()
        data['expectedVersion'] = self.expected_version
        if self.actual_version is not None:
            data['currentVersion'] = self.actual_version
        return data


class CycleClosed(WorkflowError):
    code = 'cycle_closed'
    status_code = 409


class PersistenceError(WorkflowError):
    """Storage-level failure.  Never retried inside the workflow."""

    code = 'persistence_error'
    status_code = 503
