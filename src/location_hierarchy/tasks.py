"""Reusable Prefect tasks for the location flows.

Import these into any flow that needs a fresh hierarchy snapshot.
"""

from prefect import task

from location_hierarchy.config import TASK_DEFAULTS
from location_hierarchy.hierarchy import HierarchyIndex, HierarchyTree
from location_hierarchy.loader import RecordSnapshot, fetch_snapshot
from location_hierarchy.store import LocationStoreClient


@task(**TASK_DEFAULTS)
async def load_snapshot(client: LocationStoreClient) -> RecordSnapshot:
    """Fetch all four record kinds concurrently.

    Failed kinds come back empty, with a warning on the snapshot.
    """
    snapshot = await fetch_snapshot(client)
    print(
        f"Fetched {len(snapshot.regions)} regions, {len(snapshot.cities)} cities, "
        f"{len(snapshot.barangays)} barangays, {len(snapshot.locations)} locations"
    )
    for warning in snapshot.warnings:
        print(f"WARNING: {warning}")
    return snapshot


@task
def build_hierarchy(snapshot: RecordSnapshot) -> tuple[HierarchyTree, HierarchyIndex]:
    """Build the tree and index for a snapshot."""
    tree, index = snapshot.build()
    orphans = sum(1 for item in index.items if item.orphan)
    print(f"Indexed {len(index.items)} items ({orphans} orphaned)")
    return tree, index
