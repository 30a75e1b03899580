"""Cascade impact analysis and confirmation wording."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from location_hierarchy.hierarchy import HierarchyIndex
from location_hierarchy.models import LocationKind, NodeRef
from location_hierarchy.store import ConflictInfo

# Descendant kinds reported for each target kind, top-down.
DESCENDANT_KINDS: dict[LocationKind, tuple[LocationKind, ...]] = {
    LocationKind.REGION: (LocationKind.CITY, LocationKind.BARANGAY, LocationKind.LOCATION),
    LocationKind.CITY: (LocationKind.BARANGAY, LocationKind.LOCATION),
    LocationKind.BARANGAY: (LocationKind.LOCATION,),
    LocationKind.LOCATION: (),
}


class ImpactSummary(BaseModel):
    """What a cascade delete of ``target`` would remove, by descendant kind.

    Kinds that cannot sit below the target are ``None`` rather than 0, so a
    city summary never reports a city count.
    """

    model_config = ConfigDict(frozen=True)

    target: NodeRef
    name: str = ""
    cities: int | None = None
    barangays: int | None = None
    locations: int | None = None
    known: bool = True

    def counts(self) -> dict[LocationKind, int]:
        """Non-None counts keyed by kind, top-down."""
        values = {
            LocationKind.CITY: self.cities,
            LocationKind.BARANGAY: self.barangays,
            LocationKind.LOCATION: self.locations,
        }
        return {kind: n for kind, n in values.items() if n is not None}

    @property
    def total(self) -> int:
        return sum(self.counts().values())

    @property
    def is_empty(self) -> bool:
        return self.total == 0


def _summary(target: NodeRef, name: str, tallies: dict[LocationKind, int], known: bool) -> ImpactSummary:
    return ImpactSummary(
        target=target,
        name=name,
        cities=tallies.get(LocationKind.CITY),
        barangays=tallies.get(LocationKind.BARANGAY),
        locations=tallies.get(LocationKind.LOCATION),
        known=known,
    )


def analyze(node: NodeRef, index: HierarchyIndex) -> ImpactSummary:
    """Count every descendant of *node* in *index*, by kind.

    Pure: reads the index and nothing else.  A node the index does not
    know yields an all-zero summary with ``known=False``.

    Args:
        node: The delete target.
        index: Current hierarchy index.

    Returns:
        ImpactSummary snapshot for the target.
    """
    tallies = dict.fromkeys(DESCENDANT_KINDS[node.kind], 0)
    item = index.get(node)
    for descendant in index.descendants(node):
        tallies[descendant.kind] += 1
    return _summary(node, item.name if item else "", tallies, known=item is not None)


def from_conflict(info: ConflictInfo, name: str = "") -> ImpactSummary:
    """Impact as reported by the server, for stale or unknown local data."""
    reported = {
        LocationKind.CITY: info.city_count,
        LocationKind.BARANGAY: info.barangay_count,
        LocationKind.LOCATION: info.location_count,
    }
    tallies = {kind: reported[kind] for kind in DESCENDANT_KINDS[info.ref.kind]}
    return _summary(info.ref, name or info.name, tallies, known=True)


def _plural(kind: LocationKind, n: int) -> str:
    return f"{n} {kind.value if n == 1 else kind.plural}"


def basic_prompt(name: str) -> str:
    """Level-agnostic first confirmation."""
    return f"Are you sure you want to delete {name}?"


def describe_impact(summary: ImpactSummary) -> str:
    """Second confirmation text enumerating what the cascade removes.

    An empty summary falls back to the plain prompt.
    """
    name = summary.name or f"{summary.target.kind} {summary.target.id}"
    parts = [_plural(kind, n) for kind, n in summary.counts().items() if n]
    if not parts:
        return basic_prompt(name)
    listed = parts[0] if len(parts) == 1 else f"{', '.join(parts[:-1])} and {parts[-1]}"
    return (
        f"{name} contains {listed}. "
        f"Deleting it will permanently remove all of them. Continue?"
    )
