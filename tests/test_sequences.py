from datetime import datetime, timezone

from errors import UpstreamError
from sequences import MIN_DYNAMIC_PRODUCT_ID, SequenceAllocator


def fixed_clock(year, month, day):
    return lambda: datetime(year, month, day, 12, 0, tzinfo=timezone.utc)


def test_first_product_id_starts_at_reserved_offset(store):
    assert SequenceAllocator(store).next_product_id() == MIN_DYNAMIC_PRODUCT_ID


def test_static_catalogue_ids_are_ignored(store):
    store.set("products", "7", {"id": 7, "name": "Static"})
    assert SequenceAllocator(store).next_product_id() == 1000


def test_product_ids_increase(store):
    allocator = SequenceAllocator(store)
    issued = []
    for _ in range(3):
        product_id = allocator.next_product_id()
        store.set("products", str(product_id), {"id": product_id})
        issued.append(product_id)
    assert issued == [1000, 1001, 1002]


def test_order_ids_are_daily_and_padded(store):
    allocator = SequenceAllocator(store, clock=fixed_clock(2025, 3, 9))
    first = allocator.next_order_id()
    store.set("orders", first, {"orderId": first})
    second = allocator.next_order_id()
    assert (first, second) == ("ORD-20250309-00001", "ORD-20250309-00002")


def test_order_sequence_resets_on_new_day(store):
    store.set("orders", "ORD-20250309-00041", {"orderId": "ORD-20250309-00041"})
    allocator = SequenceAllocator(store, clock=fixed_clock(2025, 3, 10))
    assert allocator.next_order_id() == "ORD-20250310-00001"


def test_store_failure_falls_back_to_timestamp(store, monkeypatch):
    def broken(*args, **kwargs):
        raise UpstreamError("Database query failed")

    monkeypatch.setattr(store, "query", broken)
    allocator = SequenceAllocator(store, millis=lambda: 1700000000000)
    assert allocator.next_product_id() == 1700000000000
    assert allocator.next_order_id() == "ORD-1700000000000"
