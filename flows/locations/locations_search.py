"""Location Search.

Resolve a scope filter and a free-text query against a fresh hierarchy
snapshot and publish the ordered matches as a table artifact.

Prefect approach: flow parameters as the filter inputs, table artifact for
the result set.
"""

import asyncio

from dotenv import load_dotenv
from prefect import flow, task
from prefect.artifacts import create_table_artifact

from location_hierarchy.hierarchy import HierarchyIndex
from location_hierarchy.models import LocationItem
from location_hierarchy.resolver import ALL_SCOPE, ScopeFilter, resolve
from location_hierarchy.store import get_location_store_credentials
from location_hierarchy.tasks import build_hierarchy, load_snapshot


@task
def search_locations(index: HierarchyIndex, scope: ScopeFilter, search_text: str) -> list[LocationItem]:
    """Apply scope and text filters; the scope's own node comes first."""
    matches = resolve(index, scope, search_text)
    print(f"{len(matches)} match(es) for {search_text!r} in scope {scope.kind}")
    return matches


@task
def publish_matches(matches: list[LocationItem]) -> list[dict[str, str | int]]:
    """Publish the matches as a table artifact and return the rows."""
    rows: list[dict[str, str | int]] = [
        {
            "kind": str(item.kind),
            "id": item.id,
            "name": item.name,
            "parent": item.parent_name or "",
        }
        for item in matches
    ]
    create_table_artifact(
        key="location-search",
        table=rows,
        description="Location search results",
    )
    return rows


@flow(name="locations_search", log_prints=True)
async def locations_search_flow(
    search_text: str = "",
    scope_kind: str = "all",
    scope_id: int | None = None,
    credentials_block: str = "location-store",
) -> list[dict[str, str | int]]:
    """Search the location hierarchy.

    Args:
        search_text: Case-insensitive substring of a name or parent name.
        scope_kind: One of all, region, city or barangay.
        scope_id: Id of the scope node; required unless scope_kind is all.
        credentials_block: Name of the saved LocationStoreCredentials block.
    """
    scope = ALL_SCOPE if scope_kind == "all" else ScopeFilter(kind=scope_kind, id=scope_id)
    async with get_location_store_credentials(credentials_block).get_client() as client:
        snapshot = await load_snapshot(client)
    _tree, index = build_hierarchy(snapshot)
    matches = search_locations(index, scope, search_text)
    return publish_matches(matches)


if __name__ == "__main__":
    load_dotenv()
    asyncio.run(locations_search_flow(search_text="binang"))
