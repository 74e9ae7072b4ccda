"""
Persistence adapter contract.

Stores keep the serialized cycle document and implement ``save`` as an
atomic compare-and-swap on the stored version.  The Django-backed store
lives in :mod:`cycles.services.persistence`; the in-memory one below is
used by tests and scripts.
"""
from __future__ import annotations

import copy
import threading
from typing import Protocol

from .codec import from_document, to_document
from .errors import ConcurrencyConflict, CycleNotFound, PersistenceError
from .state import TreatmentCycle


class CycleStore(Protocol):
    def load(self, cycle_id: str) -> TreatmentCycle:
        """Return the stored cycle; its ``version`` is the CAS token."""

    def create(self, cycle: TreatmentCycle) -> int:
        """Store a brand new cycle and return its version."""

    def save(self, cycle: TreatmentCycle, expected_version: int) -> int:
        """Replace the stored cycle only if it is still at ``expected_version``."""


class InMemoryCycleStore:
    def __init__(self) -> None:
        self._documents: dict[str, dict] = {}
        self._lock = threading.Lock()

    def load(self, cycle_id: str) -> TreatmentCycle:
        with self._lock:
            document = self._documents.get(cycle_id)
        if document is None:
            raise CycleNotFound(cycle_id)
        return from_document(document)

    def create(self, cycle: TreatmentCycle) -> int:
        with self._lock:
            if cycle.id in self._documents:
                raise PersistenceError(f'cycle {cycle.id!r} already exists')
            self._documents[cycle.id] = to_document(cycle)
        return cycle.version

    def save(self, cycle: TreatmentCycle, expected_version: int) -> int:
        document = to_document(cycle)
        with self._lock:
            stored = self._documents.get(cycle.id)
            if stored is None:
                raise CycleNotFound(cycle.id)
            if stored['version'] != expected_version:
                raise ConcurrencyConflict(cycle.id, expected_version, stored['version'])
            self._documents[cycle.id] = document
        return cycle.version

    def document(self, cycle_id: str) -> dict:
        """Raw stored document, for inspection."""
        with self._lock:
            return copy.deepcopy(self._documents[cycle_id])
