import csv
from collections.abc import Iterator
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from types import TracebackType
from typing import TextIO

from tripload.schemas import KEY_TIME_FORMAT, TripRecord


DUPLICATE_COLUMNS = (
    "tpep_pickup_datetime",
    "tpep_dropoff_datetime",
    "passenger_count",
    "trip_distance",
    "store_and_fwd_flag",
    "PULocationID",
    "DOLocationID",
    "fare_amount",
    "tip_amount",
)


class DuplicateSink:
    def __init__(self, path: Path) -> None:
        self.path = path
        self._outfile: TextIO | None = None
        self._writer = None

    def open(self) -> "DuplicateSink":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._outfile = self.path.open("w", encoding="utf-8", newline="")
        self._writer = csv.writer(self._outfile, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
        self._writer.writerow(DUPLICATE_COLUMNS)
        return self

    def write(self, record: TripRecord) -> None:
        if self._writer is None:
            raise RuntimeError(f"duplicate sink for {self.path} is not open")
        self._writer.writerow(
            [
                record.pickup_at.astimezone(UTC).strftime(KEY_TIME_FORMAT),
                record.dropoff_at.astimezone(UTC).strftime(KEY_TIME_FORMAT),
                record.passenger_count,
                record.trip_distance,
                record.store_and_fwd_flag,
                record.pu_location_id,
                record.do_location_id,
                record.fare_amount,
                record.tip_amount,
            ]
        )

    def close(self) -> None:
        if self._outfile is not None:
            self._outfile.close()
        self._outfile = None
        self._writer = None

    def __enter__(self) -> "DuplicateSink":
        return self.open()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()


def read_duplicates(path: Path) -> Iterator[TripRecord]:
    with path.open("r", encoding="utf-8", newline="") as infile:
        for row in csv.DictReader(infile):
            yield TripRecord(
                pickup_at=_parse_utc(row["tpep_pickup_datetime"]),
                dropoff_at=_parse_utc(row["tpep_dropoff_datetime"]),
                passenger_count=int(row["passenger_count"]),
                trip_distance=Decimal(row["trip_distance"]),
                store_and_fwd_flag=row["store_and_fwd_flag"],
                pu_location_id=int(row["PULocationID"]),
                do_location_id=int(row["DOLocationID"]),
                fare_amount=Decimal(row["fare_amount"]),
                tip_amount=Decimal(row["tip_amount"]),
            )


def _parse_utc(value: str) -> datetime:
    return datetime.strptime(value, KEY_TIME_FORMAT).replace(tzinfo=UTC)
