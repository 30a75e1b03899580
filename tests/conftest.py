"""Shared test fixtures."""

import asyncio
import importlib
import importlib.util
import random
import sys
from pathlib import Path
from types import ModuleType

import pytest

from location_hierarchy.exceptions import DeleteConflict, DeleteFailure, FetchFailure
from location_hierarchy.models import (
    RECORD_TYPES,
    Barangay,
    City,
    Location,
    LocationKind,
    NodeRef,
    Record,
    Region,
)
from location_hierarchy.store import ConflictInfo, DeleteResult, DeleteStatus

PROJECT_ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture
def flow_module() -> type:
    """Factory fixture that imports a flow file by group and name.

    Usage::

        def test_something(flow_module):
            mod = flow_module("locations", "locations_search")
            mod.locations_search_flow()
    """

    class _Loader:
        @staticmethod
        def __call__(group: str, name: str) -> ModuleType:
            path = PROJECT_ROOT / "flows" / group / f"{name}.py"
            spec = importlib.util.spec_from_file_location(name, path)
            assert spec and spec.loader
            mod = importlib.util.module_from_spec(spec)
            sys.modules[name] = mod
            spec.loader.exec_module(mod)
            return mod

    return _Loader


# ---------------------------------------------------------------------------
# In-memory record store
# ---------------------------------------------------------------------------


def _child_kind(kind: LocationKind) -> LocationKind | None:
    kinds = list(LocationKind)
    return kinds[kind.precedence + 1] if kind.precedence + 1 < len(kinds) else None


class InMemoryLocationStore:
    """Async stand-in for LocationStoreClient that records every delete call.

    Behaves like the real server: a non-cascading delete of a node with
    children is refused with a conflict, a cascading delete removes the
    whole subtree, and deleting a missing id reports it as already absent.
    """

    def __init__(
        self,
        regions: list[Region] | None = None,
        cities: list[City] | None = None,
        barangays: list[Barangay] | None = None,
        locations: list[Location] | None = None,
    ) -> None:
        self.records: dict[LocationKind, dict[int, Record]] = {
            LocationKind.REGION: {r.id: r for r in regions or []},
            LocationKind.CITY: {c.id: c for c in cities or []},
            LocationKind.BARANGAY: {b.id: b for b in barangays or []},
            LocationKind.LOCATION: {loc.id: loc for loc in locations or []},
        }
        self.delete_calls: list[tuple[LocationKind, int, bool]] = []
        self.list_calls: list[LocationKind] = []
        self.fail_kinds: set[LocationKind] = set()
        self.fail_deletes: dict[tuple[LocationKind, int], str] = {}
        self.delete_gate: asyncio.Event | None = None
        self.closed = False

    @classmethod
    def random(cls, rng: random.Random) -> "InMemoryLocationStore":
        """A valid random tree: every parent reference resolves."""
        regions = [Region(id=i, name=f"Region {i}") for i in range(1, rng.randint(2, 4))]
        cities = [City(id=i, name=f"City {i}", region_id=rng.choice(regions).id) for i in range(1, rng.randint(2, 8))]
        barangays = [
            Barangay(id=i, name=f"Barangay {i}", city_id=rng.choice(cities).id) for i in range(1, rng.randint(2, 15))
        ]
        locations = [
            Location(id=i, name=f"Location {i}", barangay_id=rng.choice(barangays).id)
            for i in range(1, rng.randint(2, 30))
        ]
        return cls(regions, cities, barangays, locations)

    async def __aenter__(self) -> "InMemoryLocationStore":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        self.closed = True

    async def list_records(self, kind: LocationKind) -> list[Record]:
        self.list_calls.append(kind)
        await asyncio.sleep(0)
        if kind in self.fail_kinds:
            raise FetchFailure(kind, "network error")
        return list(self.records[kind].values())

    def children(self, kind: LocationKind, node_id: int) -> list[Record]:
        child = _child_kind(kind)
        if child is None:
            return []
        field = child.parent_field
        return [r for r in self.records[child].values() if getattr(r, field) == node_id]

    def subtree(self, kind: LocationKind, node_id: int) -> list[tuple[LocationKind, int]]:
        child = _child_kind(kind)
        found: list[tuple[LocationKind, int]] = []
        for record in self.children(kind, node_id):
            found.append((child, record.id))
            found.extend(self.subtree(child, record.id))
        return found

    async def delete(self, kind: LocationKind, node_id: int, cascade: bool = False) -> DeleteResult:
        self.delete_calls.append((kind, node_id, cascade))
        if self.delete_gate is not None:
            await self.delete_gate.wait()
        ref = NodeRef(kind=kind, id=node_id)
        if (kind, node_id) in self.fail_deletes:
            raise DeleteFailure(self.fail_deletes[(kind, node_id)], status_code=500)
        if node_id not in self.records[kind]:
            return DeleteResult(ref=ref, status=DeleteStatus.ALREADY_ABSENT, cascade=cascade)

        below = self.subtree(kind, node_id)
        if below and not cascade:
            tally = {k: sum(1 for bk, _ in below if bk is k) for k in LocationKind}
            raise DeleteConflict(
                ConflictInfo(
                    ref=ref,
                    name=self.records[kind][node_id].name,
                    city_count=tally[LocationKind.CITY],
                    barangay_count=tally[LocationKind.BARANGAY],
                    location_count=tally[LocationKind.LOCATION],
                    message=f"Cannot delete {kind} with child records",
                )
            )
        for below_kind, below_id in below:
            self.records[below_kind].pop(below_id, None)
        del self.records[kind][node_id]
        return DeleteResult(ref=ref, status=DeleteStatus.DELETED, cascade=cascade)

    async def create(self, kind: LocationKind, name: str, parent_id: int | None = None) -> Record:
        new_id = max(self.records[kind], default=0) + 1
        fields = {kind.parent_field: parent_id} if kind.parent_field else {}
        record = RECORD_TYPES[kind](id=new_id, name=name, **fields)
        self.records[kind][new_id] = record
        return record

    async def update(
        self, kind: LocationKind, node_id: int, name: str, parent_id: int | None = None
    ) -> Record:
        fields = {kind.parent_field: parent_id} if kind.parent_field else {}
        record = RECORD_TYPES[kind](id=node_id, name=name, **fields)
        self.records[kind][node_id] = record
        return record


# ---------------------------------------------------------------------------
# Sample data
# ---------------------------------------------------------------------------


@pytest.fixture
def rizal() -> dict[str, list]:
    """Rizal/Binangonan with two barangays of three locations each, plus Laguna."""
    return {
        "regions": [Region(id=1, name="Rizal"), Region(id=2, name="Laguna")],
        "cities": [
            City(id=1, name="Binangonan", region_id=1),
            City(id=2, name="Calamba", region_id=2),
        ],
        "barangays": [
            Barangay(id=1, name="Libid", city_id=1),
            Barangay(id=2, name="Pantok", city_id=1),
            Barangay(id=3, name="Bucal", city_id=2),
        ],
        "locations": [
            Location(id=1, name="Purok 1", barangay_id=1),
            Location(id=2, name="Purok 2", barangay_id=1),
            Location(id=3, name="Purok 3", barangay_id=1),
            Location(id=4, name="Sitio Bato", barangay_id=2),
            Location(id=5, name="Sitio Ilog", barangay_id=2),
            Location(id=6, name="Sitio Laot", barangay_id=2),
            Location(id=7, name="Binangonan Relay", barangay_id=3),
        ],
    }


@pytest.fixture
def rizal_store(rizal: dict[str, list]) -> InMemoryLocationStore:
    return InMemoryLocationStore(**rizal)


@pytest.fixture
def store_factory() -> type[InMemoryLocationStore]:
    """The in-memory store class, for tests that build their own data."""
    return InMemoryLocationStore
