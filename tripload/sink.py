import logging
from collections.abc import Sequence
from typing import Protocol

from sqlalchemy import insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from tripload.db_models import Base, TaxiTrip
from tripload.retry import RetryExhaustedError, RetryPolicy
from tripload.schemas import TripRecord


logger = logging.getLogger(__name__)

PASSENGER_COUNT_MAX = 255


class SinkWriteError(RuntimeError):
    pass


class BatchSink(Protocol):
    def ensure_destination(self) -> None: ...

    def write(self, batch: Sequence[TripRecord]) -> None: ...


class SqlAlchemyBatchSink:
    def __init__(self, engine: Engine, retry_policy: RetryPolicy | None = None) -> None:
        self.engine = engine
        self.retry_policy = retry_policy or RetryPolicy()

    def ensure_destination(self) -> None:
        Base.metadata.create_all(self.engine)
        logger.info("destination ready", extra={"table": TaxiTrip.__tablename__})

    def write(self, batch: Sequence[TripRecord]) -> None:
        if not batch:
            return
        rows = [_to_row(record) for record in batch]

        def insert_once() -> None:
            # One transaction per batch: the whole batch lands or none of it does.
            with self.engine.begin() as conn:
                conn.execute(insert(TaxiTrip), rows)

        try:
            self.retry_policy.call(
                insert_once,
                should_retry=lambda exc: isinstance(exc, OperationalError),
                on_failure=self._log_failure,
            )
        except RetryExhaustedError as exc:
            raise SinkWriteError(f"batch of {len(rows)} rows failed after {exc.attempts} attempt(s): {exc}") from exc
        logger.info("batch written", extra={"rows": len(rows)})

    def _log_failure(self, attempt: int, exc: Exception) -> None:
        logger.warning("batch write attempt failed", extra={"attempt": attempt, "error": str(exc)})


def _to_row(record: TripRecord) -> dict[str, object]:
    return {
        "pickup_at": record.pickup_at,
        "dropoff_at": record.dropoff_at,
        "passenger_count": min(max(record.passenger_count, 0), PASSENGER_COUNT_MAX),
        "trip_distance": record.trip_distance,
        "store_and_fwd_flag": record.store_and_fwd_flag,
        "pu_location_id": record.pu_location_id,
        "do_location_id": record.do_location_id,
        "fare_amount": record.fare_amount,
        "tip_amount": record.tip_amount,
    }
