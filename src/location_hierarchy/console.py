"""Presentation-facing core of the location hierarchy screen.

``LocationConsole`` owns the current snapshot (tree, index, warnings), the
scope filter and search text, and the deletion coordinator.  The snapshot
is replaced wholesale on every rebuild; readers never see a partially
updated structure.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable

from location_hierarchy.deletion import ConfirmCallback, DeletionAttempt, DeletionCoordinator, DeletionState
from location_hierarchy.hierarchy import EMPTY_INDEX, HierarchyIndex, HierarchyTree
from location_hierarchy.loader import fetch_snapshot
from location_hierarchy.models import HierarchyCounts, LocationItem, LocationKind, Record
from location_hierarchy.resolver import ALL_SCOPE, ScopeFilter, resolve
from location_hierarchy.store import CascadeMode, LocationStoreClient, LocationStoreCredentials

logger = logging.getLogger(__name__)

RebuildListener = Callable[[HierarchyIndex], Awaitable[None] | None]


class LocationConsole:
    """Hierarchy engine bound to one record store.

    Args:
        client: Record store client.
        cascade_mode: How confirmed cascades are executed.
    """

    def __init__(self, client: LocationStoreClient, cascade_mode: CascadeMode = CascadeMode.CLIENT) -> None:
        self._client = client
        self._tree = HierarchyTree()
        self._index = EMPTY_INDEX
        self._warnings: tuple[str, ...] = ()
        self._scope = ALL_SCOPE
        self._search_text = ""
        self._visible: list[LocationItem] = []
        self._generation = 0
        self._closed = False
        self._listeners: list[RebuildListener] = []
        self._deletions = DeletionCoordinator(
            client, self.get_index, cascade_mode=cascade_mode, on_settled=self._after_delete
        )

    @classmethod
    def from_credentials(cls, credentials: LocationStoreCredentials) -> LocationConsole:
        return cls(credentials.get_client(), credentials.cascade_mode)

    # -- snapshots -----------------------------------------------------------

    def get_tree(self) -> HierarchyTree:
        return self._tree

    def get_index(self) -> HierarchyIndex:
        return self._index

    def get_counts(self) -> HierarchyCounts:
        return self._index.counts

    @property
    def warnings(self) -> tuple[str, ...]:
        """Fetch warnings from the last applied rebuild."""
        return self._warnings

    @property
    def scope(self) -> ScopeFilter:
        return self._scope

    @property
    def search_text(self) -> str:
        return self._search_text

    @property
    def visible(self) -> list[LocationItem]:
        return list(self._visible)

    @property
    def deletions(self) -> DeletionCoordinator:
        return self._deletions

    @property
    def closed(self) -> bool:
        return self._closed

    # -- filter inputs -------------------------------------------------------

    def set_scope_filter(self, scope: ScopeFilter) -> list[LocationItem]:
        """Set the scope filter and return the new visible items."""
        self._scope = scope
        self._recompute()
        return self.visible

    def set_search_text(self, text: str) -> list[LocationItem]:
        """Set the search text and return the new visible items."""
        self._search_text = text
        self._recompute()
        return self.visible

    def _recompute(self) -> None:
        self._visible = resolve(self._index, self._scope, self._search_text)

    # -- rebuild -------------------------------------------------------------

    async def refresh(self) -> bool:
        """Fetch all four kinds and rebuild.

        Results of a refresh that was superseded by a later one, or that
        completes after ``close()``, are discarded.

        Returns:
            True if the rebuild was applied.
        """
        if self._closed:
            return False
        self._generation += 1
        generation = self._generation

        snapshot = await fetch_snapshot(self._client)
        if self._closed or generation != self._generation:
            logger.warning("Discarding stale refresh result (generation %d)", generation)
            return False

        self._tree, self._index = snapshot.build()
        self._warnings = snapshot.warnings
        target = self._scope.target
        if target is not None and target not in self._index:
            logger.info("Scope target %s is gone, resetting scope to all", target)
            self._scope = ALL_SCOPE
        self._recompute()

        for listener in list(self._listeners):
            result = listener(self._index)
            if inspect.isawaitable(result):
                await result
        return True

    def subscribe(self, listener: RebuildListener) -> Callable[[], None]:
        """Call *listener* with the new index after every applied rebuild.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def notify_locations_updated(self) -> bool:
        """Entry point for other writers: the store changed, rebuild."""
        logger.info("Locations updated externally, rebuilding")
        return await self.refresh()

    # -- mutations -----------------------------------------------------------

    async def request_delete(
        self,
        kind: LocationKind,
        node_id: int,
        confirm: ConfirmCallback,
    ) -> DeletionAttempt:
        """Run a deletion attempt; see ``DeletionCoordinator.request_delete``."""
        return await self._deletions.request_delete(kind, node_id, confirm)

    async def add(self, kind: LocationKind, name: str, parent_id: int | None = None) -> Record:
        """Create a node under *parent_id*, then rebuild."""
        record = await self._client.create(kind, name, parent_id)
        logger.info("Created %s %d (%s)", kind, record.id, record.name)
        await self.refresh()
        return record

    async def update(
        self,
        kind: LocationKind,
        node_id: int,
        name: str,
        parent_id: int | None = None,
    ) -> Record:
        """Rename or re-parent a node, then rebuild."""
        record = await self._client.update(kind, node_id, name, parent_id)
        logger.info("Updated %s %d (%s)", kind, record.id, record.name)
        await self.refresh()
        return record

    async def _after_delete(self, attempt: DeletionAttempt) -> None:
        if attempt.state is DeletionState.FAILED:
            logger.info("Reconciling after failed delete of %s", attempt.ref)
        await self.refresh()

    async def close(self) -> None:
        """Stop applying results and close the client."""
        self._closed = True
        await self._client.aclose()
