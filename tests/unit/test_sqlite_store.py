import pytest

from ugc_validator.types import OrderStatus
from ugc_validator.errors import ConcurrentUpdateError


def test_register_and_get_order(record_store):
    created = record_store.register_order("ORD-1", "a@example.com")
    fetched = record_store.get("ORD-1")

    assert fetched == created
    assert fetched.status == OrderStatus.NOT_YET_REVIEWED
    assert fetched.version == 1
    assert record_store.get("missing") is None


def test_duplicate_create_is_a_conflict(record_store):
    record_store.register_order("ORD-1")
    with pytest.raises(ConcurrentUpdateError):
        record_store.register_order("ORD-1")


def test_update_if_checks_status_and_version(record_store):
    record_store.register_order("ORD-1")

    updated = record_store.update_if("ORD-1", OrderStatus.NOT_YET_REVIEWED, 1, {"status": OrderStatus.REJECTED})
    assert updated.status == OrderStatus.REJECTED
    assert updated.version == 2

    with pytest.raises(ConcurrentUpdateError):
        record_store.update_if("ORD-1", OrderStatus.NOT_YET_REVIEWED, 1, {"status": OrderStatus.ACCEPTED})
    with pytest.raises(ConcurrentUpdateError):
        record_store.update_if("ORD-1", OrderStatus.REJECTED, 1, {"status": OrderStatus.ACCEPTED})
    assert record_store.get("ORD-1").status == OrderStatus.REJECTED


def test_update_if_rejects_unknown_fields(record_store):
    record_store.register_order("ORD-1")
    with pytest.raises(ValueError):
        record_store.update_if("ORD-1", OrderStatus.NOT_YET_REVIEWED, 1, {"version": 9})


def test_pool_add_codes_skips_duplicates(reward_pool):
    assert reward_pool.add_codes(["A", "B"]) == 2
    assert reward_pool.add_codes(["B", "C"]) == 1
    assert reward_pool.stats() == {"available": 3, "assigned": 0}


def test_pool_hands_out_codes_in_insertion_order(reward_pool):
    reward_pool.add_codes(["FIRST", "SECOND"])
    assert reward_pool.fetch_available().code == "FIRST"
    reward_pool.mark_assigned("FIRST", "ORD-1", "a@example.com")
    assert reward_pool.fetch_available().code == "SECOND"
    assert [c.code for c in reward_pool.assigned_codes()] == ["FIRST"]
    assert reward_pool.stats() == {"available": 1, "assigned": 1}


def test_empty_pool_returns_none(reward_pool):
    assert reward_pool.fetch_available() is None
