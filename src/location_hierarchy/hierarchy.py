"""Hierarchy index builder.

``build()`` is a pure function of the four flat record collections.  It
returns the nested tree (regions -> cities -> barangays -> locations) and a
flat index of tagged ``LocationItem`` entries with strict descendant counts.

Cost is linear: one id-index pass per kind, then one merge pass.  A record
whose parent does not resolve is an orphan: it is still indexed (with no
parent name) but never counted toward an ancestor it cannot reach.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, PrivateAttr

from location_hierarchy.models import (
    Barangay,
    BarangayItem,
    City,
    CityItem,
    HierarchyCounts,
    Location,
    LocationItem,
    LocationKind,
    LocationLeafItem,
    NodeRef,
    Region,
    RegionItem,
)

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", Region, City, Barangay, Location)

# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------


class BarangayNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    barangay: Barangay
    locations: tuple[Location, ...] = ()


class CityNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    city: City
    barangays: tuple[BarangayNode, ...] = ()


class RegionNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    region: Region
    cities: tuple[CityNode, ...] = ()


class HierarchyTree(BaseModel):
    """Nested view of a snapshot.

    Subtrees whose root has a dangling parent reference hang off the
    ``orphan_*`` tuples instead of a parent.
    """

    model_config = ConfigDict(frozen=True)

    regions: tuple[RegionNode, ...] = ()
    orphan_cities: tuple[CityNode, ...] = ()
    orphan_barangays: tuple[BarangayNode, ...] = ()
    orphan_locations: tuple[Location, ...] = ()


# ---------------------------------------------------------------------------
# Index
# ---------------------------------------------------------------------------


class HierarchyIndex(BaseModel):
    """Flattened items in build order, plus per-node counts."""

    model_config = ConfigDict(frozen=True)

    items: tuple[LocationItem, ...] = ()
    counts: HierarchyCounts = HierarchyCounts()

    _lookup: dict[tuple[LocationKind, int], LocationItem] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: object) -> None:
        for item in self.items:
            self._lookup[(item.kind, item.id)] = item

    def get(self, ref: NodeRef) -> LocationItem | None:
        """Look up an item by ``(kind, id)``."""
        return self._lookup.get((ref.kind, ref.id))

    def __contains__(self, ref: object) -> bool:
        return isinstance(ref, NodeRef) and (ref.kind, ref.id) in self._lookup

    def of_kind(self, kind: LocationKind) -> list[LocationItem]:
        return [item for item in self.items if item.kind is kind]

    def descendants(self, ref: NodeRef) -> list[LocationItem]:
        """Items whose resolved ancestor chain passes through *ref*."""
        if ref.kind is LocationKind.LOCATION or ref not in self:
            return []
        return [item for item in self.items if item.ancestor_id(ref.kind) == ref.id]


EMPTY_INDEX = HierarchyIndex()

# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


def build(
    regions: Sequence[Region],
    cities: Sequence[City],
    barangays: Sequence[Barangay],
    locations: Sequence[Location],
) -> tuple[HierarchyTree, HierarchyIndex]:
    """Build the tree and index for one snapshot.

    Args:
        regions: All fetched regions.
        cities: All fetched cities.
        barangays: All fetched barangays.
        locations: All fetched locations.

    Returns:
        Tuple of (HierarchyTree, HierarchyIndex).
    """
    regions = _last_by_id(LocationKind.REGION, regions)
    cities = _last_by_id(LocationKind.CITY, cities)
    barangays = _last_by_id(LocationKind.BARANGAY, barangays)
    locations = _last_by_id(LocationKind.LOCATION, locations)

    region_by_id = {r.id: r for r in regions}
    city_by_id = {c.id: c for c in cities}
    barangay_by_id = {b.id: b for b in barangays}

    # Resolved ancestor ids per node; None wherever a link is dangling.
    city_region: dict[int, int | None] = {
        c.id: c.region_id if c.region_id in region_by_id else None for c in cities
    }
    barangay_chain: dict[int, tuple[int | None, int | None]] = {}
    for b in barangays:
        if b.city_id in city_by_id:
            barangay_chain[b.id] = (city_region[b.city_id], b.city_id)
        else:
            barangay_chain[b.id] = (None, None)

    items: list[LocationItem] = [RegionItem(id=r.id, name=r.name) for r in regions]

    for c in cities:
        parent = region_by_id.get(c.region_id) if c.region_id is not None else None
        items.append(
            CityItem(
                id=c.id,
                name=c.name,
                parent_id=c.region_id,
                parent_name=parent.name if parent else None,
                region_id=city_region[c.id],
                orphan=parent is None,
            )
        )

    for b in barangays:
        parent_city = city_by_id.get(b.city_id) if b.city_id is not None else None
        region_id, city_id = barangay_chain[b.id]
        items.append(
            BarangayItem(
                id=b.id,
                name=b.name,
                parent_id=b.city_id,
                parent_name=parent_city.name if parent_city else None,
                region_id=region_id,
                city_id=city_id,
                orphan=parent_city is None,
            )
        )

    for loc in locations:
        parent_barangay = barangay_by_id.get(loc.barangay_id) if loc.barangay_id is not None else None
        if parent_barangay is not None:
            region_id, city_id = barangay_chain[parent_barangay.id]
            barangay_id: int | None = parent_barangay.id
        else:
            region_id = city_id = barangay_id = None
        items.append(
            LocationLeafItem(
                id=loc.id,
                name=loc.name,
                parent_id=loc.barangay_id,
                parent_name=parent_barangay.name if parent_barangay else None,
                region_id=region_id,
                city_id=city_id,
                barangay_id=barangay_id,
                orphan=parent_barangay is None,
            )
        )

    by_region = dict.fromkeys(region_by_id, 0)
    by_city = dict.fromkeys(city_by_id, 0)
    by_barangay = dict.fromkeys(barangay_by_id, 0)
    count_maps = {
        LocationKind.REGION: by_region,
        LocationKind.CITY: by_city,
        LocationKind.BARANGAY: by_barangay,
    }
    for item in items:
        for ancestor in item.ancestors():
            count_maps[ancestor.kind][ancestor.id] += 1

    orphans = [item for item in items if item.orphan]
    if orphans:
        logger.warning(
            "%d orphaned record(s) with a missing parent: %s",
            len(orphans),
            ", ".join(str(item.ref) for item in orphans[:10]),
        )

    counts = HierarchyCounts(
        by_region=by_region,
        by_city=by_city,
        by_barangay=by_barangay,
        totals={
            LocationKind.REGION: len(regions),
            LocationKind.CITY: len(cities),
            LocationKind.BARANGAY: len(barangays),
            LocationKind.LOCATION: len(locations),
        },
    )
    tree = _build_tree(regions, cities, barangays, locations, region_by_id, city_by_id, barangay_by_id)
    logger.info(
        "Built hierarchy: %d regions, %d cities, %d barangays, %d locations",
        len(regions),
        len(cities),
        len(barangays),
        len(locations),
    )
    return tree, HierarchyIndex(items=tuple(items), counts=counts)


def _last_by_id(kind: LocationKind, records: Sequence[RecordT]) -> list[RecordT]:
    """One record per id; a repeated id keeps the last record, at the first position."""
    by_id: dict[int, RecordT] = {}
    for record in records:
        by_id[record.id] = record
    if len(by_id) < len(records):
        logger.warning(
            "Dropped %d duplicate %s record(s); the last one per id is kept",
            len(records) - len(by_id),
            kind,
        )
    return list(by_id.values())


def _build_tree(
    regions: Sequence[Region],
    cities: Sequence[City],
    barangays: Sequence[Barangay],
    locations: Sequence[Location],
    region_by_id: dict[int, Region],
    city_by_id: dict[int, City],
    barangay_by_id: dict[int, Barangay],
) -> HierarchyTree:
    locations_by_barangay: dict[int, list[Location]] = defaultdict(list)
    orphan_locations: list[Location] = []
    for loc in locations:
        if loc.barangay_id in barangay_by_id:
            locations_by_barangay[loc.barangay_id].append(loc)
        else:
            orphan_locations.append(loc)

    barangay_nodes_by_city: dict[int, list[BarangayNode]] = defaultdict(list)
    orphan_barangays: list[BarangayNode] = []
    for b in barangays:
        node = BarangayNode(barangay=b, locations=tuple(locations_by_barangay.get(b.id, ())))
        if b.city_id in city_by_id:
            barangay_nodes_by_city[b.city_id].append(node)
        else:
            orphan_barangays.append(node)

    city_nodes_by_region: dict[int, list[CityNode]] = defaultdict(list)
    orphan_cities: list[CityNode] = []
    for c in cities:
        node = CityNode(city=c, barangays=tuple(barangay_nodes_by_city.get(c.id, ())))
        if c.region_id in region_by_id:
            city_nodes_by_region[c.region_id].append(node)
        else:
            orphan_cities.append(node)

    return HierarchyTree(
        regions=tuple(
            RegionNode(region=r, cities=tuple(city_nodes_by_region.get(r.id, ()))) for r in regions
        ),
        orphan_cities=tuple(orphan_cities),
        orphan_barangays=tuple(orphan_barangays),
        orphan_locations=tuple(orphan_locations),
    )
