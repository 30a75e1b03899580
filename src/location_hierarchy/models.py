"""Entity, item and count models for the Region -> City -> Barangay -> Location tree.

All models are frozen: a fetched snapshot and everything derived from it is
immutable, and every change goes through a full rebuild.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Kinds
# ---------------------------------------------------------------------------


class LocationKind(StrEnum):
    """The four containment levels, root to leaf."""

    REGION = "region"
    CITY = "city"
    BARANGAY = "barangay"
    LOCATION = "location"

    @property
    def precedence(self) -> int:
        """Sort rank: region < city < barangay < location."""
        return list(LocationKind).index(self)

    @property
    def plural(self) -> str:
        return "cities" if self is LocationKind.CITY else f"{self.value}s"

    @property
    def parent(self) -> LocationKind | None:
        """The kind one level up, or None for a region."""
        if self is LocationKind.REGION:
            return None
        return list(LocationKind)[self.precedence - 1]

    @property
    def parent_field(self) -> str | None:
        """Name of the parent reference field on records of this kind."""
        parent = self.parent
        return f"{parent.value}_id" if parent else None


# ---------------------------------------------------------------------------
# Entities (as fetched from the record store)
# ---------------------------------------------------------------------------


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: int
    name: str


class Region(_Record):
    """Root of the hierarchy."""


class City(_Record):
    """A city inside a region."""

    region_id: int | None = None


class Barangay(_Record):
    """A barangay inside a city. Some stores send the name as ``barangay``."""

    name: str = Field(validation_alias=AliasChoices("name", "barangay"))
    city_id: int | None = None


class Location(_Record):
    """A leaf location inside a barangay."""

    name: str = Field(validation_alias=AliasChoices("name", "location_name", "village"))
    barangay_id: int | None = None


Record = Region | City | Barangay | Location

RECORD_TYPES: dict[LocationKind, type[_Record]] = {
    LocationKind.REGION: Region,
    LocationKind.CITY: City,
    LocationKind.BARANGAY: Barangay,
    LocationKind.LOCATION: Location,
}


class NodeRef(BaseModel):
    """A ``(kind, id)`` pair. Ids are only unique within their own kind."""

    model_config = ConfigDict(frozen=True)

    kind: LocationKind
    id: int

    def __str__(self) -> str:
        return f"{self.kind}:{self.id}"


# ---------------------------------------------------------------------------
# Flattened items (tagged union over the four kinds)
# ---------------------------------------------------------------------------


class _ItemBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: LocationKind
    id: int
    name: str
    # Declared parent reference, kept even when it does not resolve.
    parent_id: int | None = None
    parent_name: str | None = None
    # Ancestor ids, only set through links that resolved in the snapshot.
    region_id: int | None = None
    city_id: int | None = None
    barangay_id: int | None = None
    orphan: bool = False

    @property
    def ref(self) -> NodeRef:
        return NodeRef(kind=self.kind, id=self.id)

    def ancestor_id(self, kind: LocationKind) -> int | None:
        """Id of this item's resolved ancestor of the given kind, if any."""
        if kind is LocationKind.REGION:
            return self.region_id
        if kind is LocationKind.CITY:
            return self.city_id
        if kind is LocationKind.BARANGAY:
            return self.barangay_id
        return None

    def ancestors(self) -> tuple[NodeRef, ...]:
        """Resolved ancestor chain, root first. Excludes the item itself."""
        chain = []
        for kind in (LocationKind.REGION, LocationKind.CITY, LocationKind.BARANGAY):
            ancestor = self.ancestor_id(kind)
            if ancestor is not None:
                chain.append(NodeRef(kind=kind, id=ancestor))
        return tuple(chain)


class RegionItem(_ItemBase):
    kind: Literal[LocationKind.REGION] = LocationKind.REGION


class CityItem(_ItemBase):
    kind: Literal[LocationKind.CITY] = LocationKind.CITY


class BarangayItem(_ItemBase):
    kind: Literal[LocationKind.BARANGAY] = LocationKind.BARANGAY


class LocationLeafItem(_ItemBase):
    kind: Literal[LocationKind.LOCATION] = LocationKind.LOCATION


LocationItem = Annotated[
    RegionItem | CityItem | BarangayItem | LocationLeafItem,
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Counts
# ---------------------------------------------------------------------------


class HierarchyCounts(BaseModel):
    """Strict descendant counts per node, plus record totals per kind."""

    model_config = ConfigDict(frozen=True)

    by_region: dict[int, int] = {}
    by_city: dict[int, int] = {}
    by_barangay: dict[int, int] = {}
    totals: dict[LocationKind, int] = {}

    def for_node(self, ref: NodeRef) -> int:
        """Descendant count for a node; 0 for leaves and unknown nodes."""
        counts = {
            LocationKind.REGION: self.by_region,
            LocationKind.CITY: self.by_city,
            LocationKind.BARANGAY: self.by_barangay,
        }.get(ref.kind, {})
        return counts.get(ref.id, 0)
