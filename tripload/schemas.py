from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum


KEY_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class HeaderMap:
    indexes: dict[str, int]

    @classmethod
    def from_names(cls, names: list[str]) -> "HeaderMap":
        # Later duplicates win, matching a plain dict rebuild.
        return cls({name.strip().lower(): index for index, name in enumerate(names)})

    def index_of(self, name: str) -> int | None:
        return self.indexes.get(name.strip().lower())


@dataclass(frozen=True)
class RawRow:
    fields: list[str]
    header: HeaderMap
    line_number: int = 0

    def get(self, *names: str) -> str:
        for name in names:
            index = self.header.index_of(name)
            if index is not None and index < len(self.fields):
                return self.fields[index].strip()
        return ""


@dataclass(frozen=True)
class TripRecord:
    pickup_at: datetime
    dropoff_at: datetime
    passenger_count: int
    trip_distance: Decimal
    store_and_fwd_flag: str
    pu_location_id: int
    do_location_id: int
    fare_amount: Decimal
    tip_amount: Decimal

    def dedup_key(self) -> str:
        return "|".join(
            (
                self.pickup_at.strftime(KEY_TIME_FORMAT),
                self.dropoff_at.strftime(KEY_TIME_FORMAT),
                str(self.passenger_count),
            )
        )


class RejectionReason(str, Enum):
    INVALID_PICKUP = "invalid_pickup"
    INVALID_DROPOFF = "invalid_dropoff"
    NONEXISTENT_LOCAL_TIME = "nonexistent_local_time"
    DROPOFF_BEFORE_PICKUP = "dropoff_before_pickup"


@dataclass(frozen=True)
class Valid:
    record: TripRecord
    defaulted_fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class Rejected:
    reason: RejectionReason
    detail: str = ""


NormalizeResult = Valid | Rejected


@dataclass
class RunCounters:
    inserted: int = 0
    duplicates: int = 0
    errors: int = 0
    defaulted_rows: int = 0
    cancelled: bool = False
    rejections: Counter[str] = field(default_factory=Counter)

    @property
    def total(self) -> int:
        return self.inserted + self.duplicates + self.errors
