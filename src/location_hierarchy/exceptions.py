"""Error taxonomy for the location hierarchy engine.

Orphaned records are not errors and have no exception here; they are
handled by the index builder.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from location_hierarchy.models import LocationKind, NodeRef
    from location_hierarchy.store import ConflictInfo


class LocationHierarchyError(Exception):
    """Base class for all errors raised by this package."""


class FetchFailure(LocationHierarchyError):
    """Listing one kind of record failed.

    Non-fatal: the loader degrades the kind to an empty collection and
    records a warning.
    """

    def __init__(self, kind: LocationKind, reason: str) -> None:
        self.kind = kind
        self.reason = reason
        super().__init__(f"Failed to fetch {kind.plural}: {reason}")


class DeleteConflict(LocationHierarchyError):
    """The store refused a non-cascading delete because the node has children."""

    def __init__(self, info: ConflictInfo) -> None:
        self.info = info
        super().__init__(info.message or f"{info.ref.kind} {info.ref.id} has child records")


class DeleteFailure(LocationHierarchyError):
    """A delete request failed for any reason other than a conflict."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ConcurrentDeleteConflict(LocationHierarchyError):
    """A delete for the same node is already in flight."""

    def __init__(self, ref: NodeRef) -> None:
        self.ref = ref
        super().__init__(f"A delete for {ref.kind} {ref.id} is already in progress")


class StoreRequestError(LocationHierarchyError):
    """A create or update request was rejected or could not be sent."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)
