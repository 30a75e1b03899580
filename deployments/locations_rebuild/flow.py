"""Location hierarchy rebuild -- deployment-ready flow.

Rebuilds the hierarchy from the record store and republishes the count
summary.  Registered with an event trigger so any writer that emits
``location-hierarchy.locations.updated`` causes a rebuild.

Register with::

    python deployments/locations_rebuild/deploy.py
"""
from __future__ import annotations

import asyncio

from prefect import flow, task
from prefect.artifacts import create_markdown_artifact
from prefect.runtime import deployment
from pydantic import BaseModel

from location_hierarchy.hierarchy import HierarchyIndex
from location_hierarchy.models import LocationKind
from location_hierarchy.store import get_location_store_credentials
from location_hierarchy.tasks import build_hierarchy, load_snapshot


class RebuildSummary(BaseModel):
    deployment_name: str
    totals: dict[str, int]
    orphan_count: int
    warnings: list[str]
    markdown: str


@task
def publish_counts(index: HierarchyIndex, warnings: list[str]) -> RebuildSummary:
    """Markdown table of records per kind and the largest regions."""
    dep_name = deployment.name or "local"
    totals = {str(kind): n for kind, n in index.counts.totals.items()}
    orphan_count = sum(1 for item in index.items if item.orphan)

    lines = [
        f"# Location hierarchy ({dep_name})",
        "",
        "| Kind | Records |",
        "|------|--------:|",
    ]
    for kind, n in totals.items():
        lines.append(f"| {LocationKind(kind).plural} | {n} |")
    lines.extend(["", f"**Orphaned records:** {orphan_count}"])

    regions = sorted(
        index.of_kind(LocationKind.REGION),
        key=lambda item: index.counts.for_node(item.ref),
        reverse=True,
    )
    if regions:
        lines.extend(["", "| Region | Records below |", "|--------|--------------:|"])
        for item in regions[:20]:
            lines.append(f"| {item.name} | {index.counts.for_node(item.ref)} |")
    for w in warnings:
        lines.append(f"\n> {w}")

    markdown = "\n".join(lines)
    create_markdown_artifact(
        key="location-hierarchy-rebuild",
        markdown=markdown,
        description="Location hierarchy record counts",
    )
    return RebuildSummary(
        deployment_name=dep_name,
        totals=totals,
        orphan_count=orphan_count,
        warnings=warnings,
        markdown=markdown,
    )


@flow(name="locations_rebuild", log_prints=True)
async def locations_rebuild_flow(credentials_block: str = "location-store") -> RebuildSummary:
    """Rebuild the location hierarchy and publish record counts."""
    async with get_location_store_credentials(credentials_block).get_client() as client:
        snapshot = await load_snapshot(client)
    _tree, index = build_hierarchy(snapshot)
    summary = publish_counts(index, list(snapshot.warnings))
    print(f"[{summary.deployment_name}] rebuilt {len(index.items)} items")
    return summary


if __name__ == "__main__":
    asyncio.run(locations_rebuild_flow())
