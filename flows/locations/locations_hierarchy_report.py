"""Location Hierarchy Report.

Fetch regions, cities, barangays and locations concurrently, build the
containment hierarchy, and publish a markdown report with per-region
descendant counts and any orphaned records.

Prefect approach: async flow, fetches gathered inside one task, report
published as a markdown artifact.
"""

import asyncio

from dotenv import load_dotenv
from prefect import flow, task
from prefect.artifacts import create_markdown_artifact
from pydantic import BaseModel

from location_hierarchy.config import timestamp
from location_hierarchy.hierarchy import HierarchyIndex
from location_hierarchy.impact import analyze
from location_hierarchy.loader import RecordSnapshot
from location_hierarchy.models import LocationKind
from location_hierarchy.store import get_location_store_credentials
from location_hierarchy.tasks import build_hierarchy, load_snapshot

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class RegionSummary(BaseModel):
    """Descendant counts for one region."""

    region_id: int
    name: str
    cities: int
    barangays: int
    locations: int
    descendants: int


class HierarchyReport(BaseModel):
    """Summary of one hierarchy build."""

    generated_at: str
    totals: dict[str, int]
    regions: list[RegionSummary]
    orphans: list[str]
    warnings: list[str]
    markdown: str


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


@task
def summarize_regions(index: HierarchyIndex) -> list[RegionSummary]:
    """Impact counts for every region, sorted by name."""
    summaries = []
    for item in index.of_kind(LocationKind.REGION):
        impact = analyze(item.ref, index)
        summaries.append(
            RegionSummary(
                region_id=item.id,
                name=item.name,
                cities=impact.cities or 0,
                barangays=impact.barangays or 0,
                locations=impact.locations or 0,
                descendants=index.counts.for_node(item.ref),
            )
        )
    return sorted(summaries, key=lambda s: s.name.casefold())


@task
def publish_report(
    snapshot: RecordSnapshot,
    index: HierarchyIndex,
    summaries: list[RegionSummary],
) -> HierarchyReport:
    """Render the markdown report and create an artifact."""
    totals = {str(kind): n for kind, n in index.counts.totals.items()}
    orphans = [f"{item.kind} {item.name} (parent {item.parent_id})" for item in index.items if item.orphan]

    lines = [
        "# Location Hierarchy",
        "",
        " | ".join(f"**{LocationKind(kind).plural}:** {n}" for kind, n in totals.items()),
        "",
        "| Region | Cities | Barangays | Locations | Total below |",
        "|--------|-------:|----------:|----------:|------------:|",
    ]
    for s in summaries:
        lines.append(f"| {s.name} | {s.cities} | {s.barangays} | {s.locations} | {s.descendants} |")

    if orphans:
        lines.extend(["", f"## Orphaned records ({len(orphans)})", ""])
        lines.extend(f"- {o}" for o in orphans)
    if snapshot.warnings:
        lines.extend(["", "## Warnings", ""])
        lines.extend(f"- {w}" for w in snapshot.warnings)

    markdown = "\n".join(lines)
    create_markdown_artifact(
        key="location-hierarchy-report",
        markdown=markdown,
        description="Region -> City -> Barangay -> Location counts",
    )
    return HierarchyReport(
        generated_at=timestamp(),
        totals=totals,
        regions=summaries,
        orphans=orphans,
        warnings=list(snapshot.warnings),
        markdown=markdown,
    )


# ---------------------------------------------------------------------------
# Flow
# ---------------------------------------------------------------------------


@flow(name="locations_hierarchy_report", log_prints=True)
async def locations_hierarchy_report_flow(credentials_block: str = "location-store") -> HierarchyReport:
    """Fetch the location records, build the hierarchy and publish a report.

    Args:
        credentials_block: Name of the saved LocationStoreCredentials block.
    """
    async with get_location_store_credentials(credentials_block).get_client() as client:
        snapshot = await load_snapshot(client)
    _tree, index = build_hierarchy(snapshot)
    summaries = summarize_regions(index)
    report = publish_report(snapshot, index, summaries)
    print(f"Report: {len(report.regions)} regions, {len(report.orphans)} orphans, {len(report.warnings)} warnings")
    return report


if __name__ == "__main__":
    load_dotenv()
    asyncio.run(locations_hierarchy_report_flow())
