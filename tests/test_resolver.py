"""Tests for location_hierarchy.resolver -- scope filter and search."""

import pytest

from location_hierarchy.hierarchy import HierarchyIndex, build
from location_hierarchy.models import LocationKind
from location_hierarchy.resolver import ALL_SCOPE, ScopeFilter, resolve


@pytest.fixture
def index(rizal: dict[str, list]) -> HierarchyIndex:
    _tree, idx = build(**rizal)
    return idx


def _names(items: list) -> list[str]:
    return [item.name for item in items]


def test_all_scope_empty_text_returns_everything(index: HierarchyIndex) -> None:
    result = resolve(index, ALL_SCOPE, "")
    assert len(result) == len(index.items)
    kinds = [item.kind.precedence for item in result]
    assert kinds == sorted(kinds)


def test_search_matches_name_or_parent_name(index: HierarchyIndex) -> None:
    result = resolve(index, ALL_SCOPE, "binang")
    assert [(item.kind, item.name) for item in result] == [
        (LocationKind.CITY, "Binangonan"),
        (LocationKind.BARANGAY, "Libid"),
        (LocationKind.BARANGAY, "Pantok"),
        (LocationKind.LOCATION, "Binangonan Relay"),
    ]


def test_search_is_case_insensitive(index: HierarchyIndex) -> None:
    assert _names(resolve(index, ALL_SCOPE, "LIBID")) == _names(resolve(index, ALL_SCOPE, "libid"))


def test_region_scope_includes_region_itself(index: HierarchyIndex) -> None:
    result = resolve(index, ScopeFilter.region(1), "")
    assert result[0].kind is LocationKind.REGION and result[0].id == 1
    assert len(result) == 10
    assert "Calamba" not in _names(result)


def test_city_scope_pins_city_first(index: HierarchyIndex) -> None:
    result = resolve(index, ScopeFilter.city(2), "")
    assert (result[0].kind, result[0].id) == (LocationKind.CITY, 2)
    assert _names(result) == ["Calamba", "Bucal", "Binangonan Relay"]


def test_barangay_scope(index: HierarchyIndex) -> None:
    result = resolve(index, ScopeFilter.barangay(1), "")
    assert _names(result) == ["Libid", "Purok 1", "Purok 2", "Purok 3"]


def test_scope_and_text_both_required(index: HierarchyIndex) -> None:
    result = resolve(index, ScopeFilter.region(2), "binang")
    assert _names(result) == ["Binangonan Relay"]


def test_pinned_node_first_even_when_name_sorts_later(index: HierarchyIndex) -> None:
    result = resolve(index, ScopeFilter.barangay(2), "")
    assert result[0].name == "Pantok"
    assert _names(result[1:]) == ["Sitio Bato", "Sitio Ilog", "Sitio Laot"]


def test_scope_on_missing_node_matches_nothing(index: HierarchyIndex) -> None:
    assert resolve(index, ScopeFilter.city(404), "") == []


def test_resolve_is_repeatable(index: HierarchyIndex) -> None:
    for scope in (ALL_SCOPE, ScopeFilter.region(1), ScopeFilter.city(1)):
        for text in ("", "purok", "o"):
            assert resolve(index, scope, text) == resolve(index, scope, text)


def test_resolve_does_not_reorder_index(index: HierarchyIndex) -> None:
    before = list(index.items)
    resolve(index, ScopeFilter.city(1), "sitio")
    assert list(index.items) == before


def test_all_scope_has_no_target() -> None:
    assert ALL_SCOPE.target is None
    assert ScopeFilter.city(5).target is not None
