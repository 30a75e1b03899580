"""Tests for the locations_search flow."""

import asyncio
import importlib.util
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

_spec = importlib.util.spec_from_file_location(
    "locations_search",
    Path(__file__).resolve().parent.parent.parent / "flows" / "locations" / "locations_search.py",
)
assert _spec and _spec.loader
_mod = importlib.util.module_from_spec(_spec)
sys.modules["locations_search"] = _mod
_spec.loader.exec_module(_mod)

from location_hierarchy.hierarchy import build  # noqa: E402
from location_hierarchy.resolver import ALL_SCOPE, ScopeFilter  # noqa: E402
from location_hierarchy.store import LocationStoreCredentials  # noqa: E402

search_locations = _mod.search_locations
publish_matches = _mod.publish_matches
locations_search_flow = _mod.locations_search_flow


def test_search_locations(rizal) -> None:
    _tree, index = build(**rizal)
    matches = search_locations.fn(index, ALL_SCOPE, "binang")
    assert [m.name for m in matches] == ["Binangonan", "Libid", "Pantok", "Binangonan Relay"]


def test_search_locations_scoped(rizal) -> None:
    _tree, index = build(**rizal)
    matches = search_locations.fn(index, ScopeFilter.city(1), "")
    assert matches[0].name == "Binangonan"


@patch.object(LocationStoreCredentials, "get_client")
def test_flow_runs(mock_get_client: MagicMock, rizal_store) -> None:
    mock_get_client.return_value = rizal_store
    state = asyncio.run(locations_search_flow(search_text="purok", return_state=True))
    assert state.is_completed()


@patch.object(LocationStoreCredentials, "get_client")
def test_flow_rows(mock_get_client: MagicMock, rizal_store) -> None:
    mock_get_client.return_value = rizal_store
    rows = asyncio.run(locations_search_flow(scope_kind="barangay", scope_id=2))
    assert rows[0] == {"kind": "barangay", "id": 2, "name": "Pantok", "parent": "Binangonan"}
    assert [row["name"] for row in rows[1:]] == ["Sitio Bato", "Sitio Ilog", "Sitio Laot"]
