from dataclasses import replace
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from tripload.batching import BatchAccumulator
from tripload.dedup import InMemoryKeyIndex
from tripload.schemas import TripRecord


def make_record(minute: int, passengers: int = 1) -> TripRecord:
    pickup = datetime(2024, 3, 15, 18, minute, tzinfo=UTC)
    return TripRecord(
        pickup_at=pickup,
        dropoff_at=pickup + timedelta(minutes=10),
        passenger_count=passengers,
        trip_distance=Decimal("1.0"),
        store_and_fwd_flag="No",
        pu_location_id=1,
        do_location_id=2,
        fare_amount=Decimal("9.50"),
        tip_amount=Decimal("0"),
    )


def test_index_reports_first_occurrence_only() -> None:
    index = InMemoryKeyIndex()

    assert index.observe("a|b|1") is True
    assert index.observe("a|b|1") is False
    assert index.observe("a|b|2") is True
    assert len(index) == 2
    assert "a|b|1" in index


def test_index_comparison_is_case_sensitive() -> None:
    index = InMemoryKeyIndex()

    assert index.observe("key") is True
    assert index.observe("KEY") is True


def test_records_differing_only_in_fare_share_a_key() -> None:
    first = make_record(0)
    second = replace(first, fare_amount=Decimal("99"), tip_amount=Decimal("5"), trip_distance=Decimal("7"))
    index = InMemoryKeyIndex()

    assert index.observe(first.dedup_key()) is True
    assert index.observe(second.dedup_key()) is False


def test_accumulator_signals_flush_at_threshold() -> None:
    accumulator = BatchAccumulator(batch_size=2)

    accumulator.add(make_record(0))
    assert accumulator.should_flush() is False
    accumulator.add(make_record(1))
    assert accumulator.should_flush() is True


def test_drain_returns_records_in_order_and_clears() -> None:
    accumulator = BatchAccumulator(batch_size=3)
    records = [make_record(minute) for minute in range(3)]
    for record in records:
        accumulator.add(record)

    batch = accumulator.drain()

    assert batch == records
    assert len(accumulator) == 0
    assert accumulator.drain() == []
    assert accumulator.should_flush() is False


def test_drained_batch_is_not_mutated_by_later_adds() -> None:
    accumulator = BatchAccumulator(batch_size=1)
    accumulator.add(make_record(0))
    batch = accumulator.drain()

    accumulator.add(make_record(1))

    assert len(batch) == 1


@pytest.mark.parametrize("batch_size", [0, -5])
def test_accumulator_rejects_non_positive_threshold(batch_size: int) -> None:
    with pytest.raises(ValueError):
        BatchAccumulator(batch_size)
