"""Tests for CatalogSnapshot / LedgerSnapshot.

Tests cover:
    - Lookup by id, iteration, emptiness
    - Anomaly reporting (inconsistent counts, duplicate ids) without raising
    - Balances read as 0 when not held, snapshots are read-only
"""

import pytest

from realtoken.core.snapshots import CatalogSnapshot, LedgerSnapshot

from tests.core.factories import catalog, ledger, make_property


def test_empty_snapshots():
    assert CatalogSnapshot().is_empty
    assert len(CatalogSnapshot()) == 0
    assert LedgerSnapshot().is_empty
    assert LedgerSnapshot().total_tokens == 0


def test_default_snapshots_are_read_only_and_independent():
    first, second = LedgerSnapshot(), LedgerSnapshot()
    assert dict(first.balances) == {}
    assert CatalogSnapshot().get(1) is None
    with pytest.raises(TypeError):
        first.balances[1] = 5
    assert first == second


def test_catalog_lookup_and_iteration():
    cat = catalog(make_property(id=1), make_property(id=2), generation=3)
    assert cat.get(2).id == 2
    assert cat.get(7) is None
    assert [p.id for p in cat] == [1, 2]
    assert cat.generation == 3


def test_catalog_reports_inconsistent_counts():
    cat = catalog(make_property(id=1, available=5, sold=4, total=10), make_property(id=2))
    assert cat.inconsistent_ids == [1]


def test_catalog_reports_duplicate_ids():
    cat = catalog(make_property(id=1), make_property(id=1), make_property(id=2))
    assert cat.duplicate_ids == [1]


def test_ledger_balance_defaults_to_zero():
    led = ledger({1: 4, 2: 0})
    assert led.balance_for(1) == 4
    assert led.balance_for(3) == 0
    assert led.held_property_ids == [1]
    assert led.total_tokens == 4


def test_ledger_snapshot_is_read_only():
    led = ledger({1: 4})
    with pytest.raises(TypeError):
        led.balances[1] = 5


def test_ledger_build_copies_input():
    source = {1: 4}
    led = LedgerSnapshot.build(source, 1)
    source[1] = 99
    assert led.balance_for(1) == 4
