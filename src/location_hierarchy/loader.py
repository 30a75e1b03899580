"""Concurrent snapshot loading with per-kind degradation."""

from __future__ import annotations

import asyncio
import logging

from pydantic import BaseModel, ConfigDict

from location_hierarchy.exceptions import FetchFailure
from location_hierarchy.hierarchy import HierarchyIndex, HierarchyTree, build
from location_hierarchy.models import Barangay, City, Location, LocationKind, Record, Region
from location_hierarchy.store import LocationStoreClient

logger = logging.getLogger(__name__)


class RecordSnapshot(BaseModel):
    """The four flat collections fetched at one point in time."""

    model_config = ConfigDict(frozen=True)

    regions: tuple[Region, ...] = ()
    cities: tuple[City, ...] = ()
    barangays: tuple[Barangay, ...] = ()
    locations: tuple[Location, ...] = ()
    warnings: tuple[str, ...] = ()
    failed_kinds: tuple[LocationKind, ...] = ()

    def build(self) -> tuple[HierarchyTree, HierarchyIndex]:
        return build(self.regions, self.cities, self.barangays, self.locations)


async def _fetch_kind(client: LocationStoreClient, kind: LocationKind) -> list[Record] | FetchFailure:
    try:
        return await client.list_records(kind)
    except FetchFailure as exc:
        logger.warning("%s; continuing with no %s", exc, kind.plural)
        return exc


async def fetch_snapshot(client: LocationStoreClient) -> RecordSnapshot:
    """Fetch all four kinds concurrently.

    A kind whose fetch fails becomes an empty collection and a warning;
    the other kinds are unaffected.  Returns only after all four settle.
    """
    kinds = list(LocationKind)
    outcomes = await asyncio.gather(*(_fetch_kind(client, kind) for kind in kinds))

    collections: dict[LocationKind, tuple[Record, ...]] = {}
    warnings: list[str] = []
    failed: list[LocationKind] = []
    for kind, outcome in zip(kinds, outcomes, strict=True):
        if isinstance(outcome, FetchFailure):
            collections[kind] = ()
            warnings.append(str(outcome))
            failed.append(kind)
        else:
            collections[kind] = tuple(outcome)

    return RecordSnapshot(
        regions=collections[LocationKind.REGION],
        cities=collections[LocationKind.CITY],
        barangays=collections[LocationKind.BARANGAY],
        locations=collections[LocationKind.LOCATION],
        warnings=tuple(warnings),
        failed_kinds=tuple(failed),
    )
