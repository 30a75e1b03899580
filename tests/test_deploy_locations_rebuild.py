"""Tests for the locations_rebuild deployment flow."""

import asyncio
import importlib.util
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

_spec = importlib.util.spec_from_file_location(
    "deploy_locations_rebuild",
    Path(__file__).resolve().parent.parent / "deployments" / "locations_rebuild" / "flow.py",
)
assert _spec and _spec.loader
_mod = importlib.util.module_from_spec(_spec)
sys.modules["deploy_locations_rebuild"] = _mod
_spec.loader.exec_module(_mod)

from location_hierarchy.hierarchy import build  # noqa: E402
from location_hierarchy.store import LocationStoreCredentials  # noqa: E402

RebuildSummary = _mod.RebuildSummary
publish_counts = _mod.publish_counts
locations_rebuild_flow = _mod.locations_rebuild_flow


def test_publish_counts(rizal) -> None:
    _tree, index = build(**rizal)
    summary = publish_counts.fn(index, [])
    assert summary.deployment_name == "local"
    assert summary.totals["location"] == 7
    assert summary.orphan_count == 0
    assert "| Rizal | 9 |" in summary.markdown
    assert summary.markdown.index("Rizal") < summary.markdown.index("Laguna")


@patch.object(LocationStoreCredentials, "get_client")
def test_flow_runs(mock_get_client: MagicMock, rizal_store) -> None:
    mock_get_client.return_value = rizal_store
    state = asyncio.run(locations_rebuild_flow(return_state=True))
    assert state.is_completed()


@patch.object(LocationStoreCredentials, "get_client")
def test_flow_summary(mock_get_client: MagicMock, rizal_store) -> None:
    mock_get_client.return_value = rizal_store
    summary = asyncio.run(locations_rebuild_flow())
    assert isinstance(summary, RebuildSummary)
    assert summary.totals == {"region": 2, "city": 2, "barangay": 3, "location": 7}
