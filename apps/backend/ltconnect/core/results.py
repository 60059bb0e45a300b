# apps/backend/ltconnect/core/results.py
from __future__ import annotations
from typing import Dict, Union

from ltconnect.core.errors import UnresolvedEpicLink, UnresolvedParent
from ltconnect.core.models import (
    BulkSaveResult,
    CreatedRecord,
    EntityKind,
    SavedRef,
    SaveWarning,
)


class ResultAggregator:
    """
    Write-through accumulator for one bulk save. Phases record each record as
    soon as the store returns it, so a snapshot taken after a failure holds
    exactly what was created.
    """

    def __init__(self) -> None:
        self._result = BulkSaveResult()

    def _bucket(self, kind: EntityKind) -> list[SavedRef]:
        if kind == "clientRequirements":
            return self._result.client_requirements
        if kind == "functionalRequirements":
            return self._result.functional_requirements
        if kind == "epics":
            return self._result.epics
        if kind == "tasks":
            return self._result.tasks
        raise ValueError(f"unknown entity kind: {kind!r}")

    def record(self, kind: EntityKind, collection: str, document_id: str, hierarchy_id: str) -> SavedRef:
        ref = SavedRef(id=document_id, hierarchy_id=hierarchy_id)
        self._bucket(kind).append(ref)
        self._result.ledger.append(CreatedRecord(collection=collection, id=document_id))
        return ref

    def warn(self, issue: Union[UnresolvedParent, UnresolvedEpicLink]) -> None:
        self._result.warnings.append(
            SaveWarning(kind=issue.kind, index=issue.index, reference=issue.reference, message=str(issue))
        )

    def hierarchy_ids(self, kind: EntityKind) -> tuple[str, ...]:
        return tuple(r.hierarchy_id for r in self._bucket(kind))

    def counts(self) -> Dict[str, int]:
        return self._result.counts()

    def snapshot(self) -> BulkSaveResult:
        # deep copy so later phases never mutate a result already handed out
        return self._result.model_copy(deep=True)
