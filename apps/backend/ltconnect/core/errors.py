# apps/backend/ltconnect/core/errors.py
from __future__ import annotations
from typing import TYPE_CHECKING, Dict, Optional

if TYPE_CHECKING:
    from ltconnect.core.models import BulkSaveResult


class BulkSaveError(Exception):
    """Base for every error raised or recorded by the bulk save pipeline."""


class MalformedInput(BulkSaveError, ValueError):
    """Top-level generation payload is not an object. Nothing was persisted."""


class UnresolvedParent(BulkSaveError):
    """A child functional requirement's parent key does not resolve. The child is skipped."""

    kind = "UnresolvedParent"

    def __init__(self, index: int, reference: str, title: str = ""):
        super().__init__(
            f"Skipping child functional requirement {index} ({title!r}): parent {reference!r} not found"
        )
        self.index = index
        self.reference = reference


class UnresolvedEpicLink(BulkSaveError):
    """A task's epic reference does not parse or is out of range. The task is saved unlinked."""

    kind = "UnresolvedEpicLink"

    def __init__(self, index: int, reference: str, epic_count: int):
        super().__init__(
            f"Task {index} epic reference {reference!r} does not match any of {epic_count} epics; saved without epic"
        )
        self.index = index
        self.reference = reference


class StoreWriteFailure(BulkSaveError):
    """
    A document store call failed mid-run. Work committed before the failure is
    NOT rolled back; `partial` holds everything created so far.
    """

    def __init__(self, cause: BaseException, partial: "BulkSaveResult", phase: Optional[str] = None):
        self.cause = cause
        self.partial = partial
        self.phase = phase
        counts = partial.counts()
        created = ", ".join(f"{k}={v}" for k, v in counts.items())
        super().__init__(f"Failed to save generated data: {cause} (created so far: {created})")

    @property
    def counts(self) -> Dict[str, int]:
        return self.partial.counts()
