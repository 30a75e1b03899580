"""Scope filter and free-text search over the flattened index."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

from location_hierarchy.hierarchy import HierarchyIndex
from location_hierarchy.models import LocationItem, LocationKind, NodeRef

ScopeKind = Literal["all", "region", "city", "barangay"]


class ScopeFilter(BaseModel):
    """Active hierarchy restriction: All, or one region, city or barangay."""

    model_config = ConfigDict(frozen=True)

    kind: ScopeKind = "all"
    id: int | None = None

    @classmethod
    def region(cls, region_id: int) -> ScopeFilter:
        return cls(kind="region", id=region_id)

    @classmethod
    def city(cls, city_id: int) -> ScopeFilter:
        return cls(kind="city", id=city_id)

    @classmethod
    def barangay(cls, barangay_id: int) -> ScopeFilter:
        return cls(kind="barangay", id=barangay_id)

    @property
    def target(self) -> NodeRef | None:
        """The node this scope is rooted at, or None for All."""
        if self.kind == "all" or self.id is None:
            return None
        return NodeRef(kind=LocationKind(self.kind), id=self.id)

    def matches(self, item: LocationItem) -> bool:
        target = self.target
        if target is None:
            return True
        if item.kind is target.kind and item.id == target.id:
            return True
        return item.ancestor_id(target.kind) == target.id


ALL_SCOPE = ScopeFilter()


def matches_text(item: LocationItem, needle: str) -> bool:
    """Case-insensitive substring match on the name or parent name."""
    if not needle:
        return True
    if needle in item.name.casefold():
        return True
    return item.parent_name is not None and needle in item.parent_name.casefold()


def resolve(index: HierarchyIndex, scope: ScopeFilter, search_text: str = "") -> list[LocationItem]:
    """Select and order the visible items.

    Both predicates must hold.  The scope's own node sorts first, the rest
    by kind precedence then case-insensitive name.  ``sorted`` is stable,
    so equal keys keep index order.

    Args:
        index: Current hierarchy index.
        scope: Active scope filter.
        search_text: Free-text query; empty matches everything.

    Returns:
        A new list; the index is never modified.
    """
    needle = search_text.casefold()
    target = scope.target

    def sort_key(item: LocationItem) -> tuple[int, int, str]:
        pinned = target is not None and item.kind is target.kind and item.id == target.id
        return (0 if pinned else 1, item.kind.precedence, item.name.casefold())

    visible = [item for item in index.items if scope.matches(item) and matches_text(item, needle)]
    return sorted(visible, key=sort_key)
