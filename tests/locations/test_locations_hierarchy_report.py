"""Tests for the locations_hierarchy_report flow."""

import asyncio
import importlib.util
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

_spec = importlib.util.spec_from_file_location(
    "locations_hierarchy_report",
    Path(__file__).resolve().parent.parent.parent / "flows" / "locations" / "locations_hierarchy_report.py",
)
assert _spec and _spec.loader
_mod = importlib.util.module_from_spec(_spec)
sys.modules["locations_hierarchy_report"] = _mod
_spec.loader.exec_module(_mod)

from location_hierarchy.hierarchy import build  # noqa: E402
from location_hierarchy.models import City, LocationKind  # noqa: E402
from location_hierarchy.store import LocationStoreCredentials  # noqa: E402

HierarchyReport = _mod.HierarchyReport
RegionSummary = _mod.RegionSummary
summarize_regions = _mod.summarize_regions
locations_hierarchy_report_flow = _mod.locations_hierarchy_report_flow


def test_summarize_regions(rizal) -> None:
    _tree, index = build(**rizal)
    summaries = summarize_regions.fn(index)
    assert [s.name for s in summaries] == ["Laguna", "Rizal"]
    rizal_summary = summaries[1]
    assert (rizal_summary.cities, rizal_summary.barangays, rizal_summary.locations) == (1, 2, 6)
    assert rizal_summary.descendants == 9


@patch.object(LocationStoreCredentials, "get_client")
def test_flow_runs(mock_get_client: MagicMock, rizal_store) -> None:
    mock_get_client.return_value = rizal_store
    state = asyncio.run(locations_hierarchy_report_flow(return_state=True))
    assert state.is_completed()
    assert rizal_store.closed


@patch.object(LocationStoreCredentials, "get_client")
def test_flow_report_contents(mock_get_client: MagicMock, rizal_store) -> None:
    mock_get_client.return_value = rizal_store
    report = asyncio.run(locations_hierarchy_report_flow())
    assert isinstance(report, HierarchyReport)
    assert report.totals == {"region": 2, "city": 2, "barangay": 3, "location": 7}
    assert report.orphans == []
    assert "| Rizal | 1 | 2 | 6 | 9 |" in report.markdown
    assert rizal_store.closed


@patch.object(LocationStoreCredentials, "get_client")
def test_flow_reports_orphans_and_warnings(mock_get_client: MagicMock, rizal_store) -> None:
    rizal_store.records[LocationKind.CITY][9] = City(id=9, name="Ghost", region_id=404)
    rizal_store.fail_kinds = {LocationKind.LOCATION}
    mock_get_client.return_value = rizal_store
    report = asyncio.run(locations_hierarchy_report_flow())
    assert report.orphans == ["city Ghost (parent 404)"]
    assert report.warnings == ["Failed to fetch locations: network error"]
    assert "## Warnings" in report.markdown
