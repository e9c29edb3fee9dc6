"""Optimistic cache ordering and reconciliation tests."""

import pytest

from conftest import make_record
from memory.optimistic_cache import OptimisticCache


def test_insert_prepends_newest_first() -> None:
    cache = OptimisticCache()
    for record_id in (1, 2, 3):
        cache.insert(make_record(record_id))

    assert [record.id for record in cache.records] == [3, 2, 1]


def test_reconcile_swaps_fields_without_moving_the_record() -> None:
    cache = OptimisticCache([make_record(5)])
    cache.insert(make_record(1_700_000_000_000))
    cache.insert(make_record(1_700_000_000_001))

    changed = cache.reconcile(1_700_000_000_000, 42, "https://cdn.test/42.jpg", "2025-03-01T00:00:00+00:00")

    assert changed is True
    assert [record.id for record in cache.records] == [1_700_000_000_001, 42, 5]
    reconciled = cache.get(42)
    assert reconciled.image_url == "https://cdn.test/42.jpg"
    assert reconciled.created_at == "2025-03-01T00:00:00+00:00"
    assert 1_700_000_000_000 not in cache


def test_reconcile_twice_is_a_no_op() -> None:
    cache = OptimisticCache()
    cache.insert(make_record(111))

    assert cache.reconcile(111, 7, "https://cdn.test/7.jpg", "2025-03-01T00:00:00+00:00")
    snapshot = [record.to_dict() for record in cache.records]
    assert cache.reconcile(111, 7, "https://cdn.test/7.jpg", "2025-03-01T00:00:00+00:00") is False

    assert [record.to_dict() for record in cache.records] == snapshot


def test_unknown_placeholder_is_ignored() -> None:
    cache = OptimisticCache([make_record(1)])

    assert cache.reconcile(999, 2, "x", "y") is False
    assert [record.id for record in cache.records] == [1]


def test_order_survives_interleaved_reconciles() -> None:
    cache = OptimisticCache()
    for placeholder in (1001, 1002, 1003, 1004):
        cache.insert(make_record(placeholder))
        if placeholder % 2 == 0:
            cache.reconcile(placeholder - 1, placeholder - 1000, "img", "ts")

    ids = [record.id for record in cache.records]
    assert ids == [1004, 3, 1002, 1]


def test_duplicate_ids_are_rejected() -> None:
    cache = OptimisticCache([make_record(1)])

    with pytest.raises(ValueError):
        cache.insert(make_record(1))
    with pytest.raises(ValueError):
        cache.replace_all([make_record(2), make_record(2)])
