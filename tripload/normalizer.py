from datetime import UTC, datetime
from decimal import Decimal
import re
from zoneinfo import ZoneInfo

from tripload.schemas import NormalizeResult, RawRow, Rejected, RejectionReason, TripRecord, Valid


TIMESTAMP_FORMAT = "%m/%d/%Y %I:%M:%S %p"
_TIMESTAMP_SHAPE = re.compile(
    r"\d{2}/\d{2}/\d{4} \d{2}:\d{2}:\d{2} [AP]M", re.IGNORECASE | re.ASCII
)
_INTEGER_SHAPE = re.compile(r"[+-]?\d+", re.ASCII)
_DECIMAL_SHAPE = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?", re.ASCII)
INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1

PICKUP_COLUMNS = ("tpep_pickup_datetime", "pickup_datetime", "pickup")
DROPOFF_COLUMNS = ("tpep_dropoff_datetime", "dropoff_datetime", "dropoff")
PASSENGER_COLUMNS = ("passenger_count", "passengers")
DISTANCE_COLUMNS = ("trip_distance", "distance")
FLAG_COLUMNS = ("store_and_fwd_flag",)
PICKUP_ZONE_COLUMNS = ("PULocationID", "pickup_zone")
DROPOFF_ZONE_COLUMNS = ("DOLocationID", "dropoff_zone")
FARE_COLUMNS = ("fare_amount", "fare")
TIP_COLUMNS = ("tip_amount", "tip")


class _NonexistentLocalTime(ValueError):
    pass


def parse_local_timestamp(value: str) -> datetime | None:
    if not _TIMESTAMP_SHAPE.fullmatch(value):
        return None
    try:
        return datetime.strptime(value.upper(), TIMESTAMP_FORMAT)
    except ValueError:
        return None


def to_utc(local: datetime, zone: ZoneInfo) -> datetime:
    # fold=1 resolves a repeated fall-back hour to standard time.
    aware = local.replace(tzinfo=zone, fold=1)
    converted = aware.astimezone(UTC)
    if converted.astimezone(zone).replace(tzinfo=None) != local:
        raise _NonexistentLocalTime(f"{local.isoformat()} does not exist in {zone.key}")
    return converted


def normalize_flag(value: str) -> str:
    flag = value.strip()
    if flag.upper() == "N":
        return "No"
    if flag.upper() == "Y":
        return "Yes"
    return flag


class RecordNormalizer:
    def __init__(self, source_timezone: ZoneInfo | str = "America/New_York") -> None:
        if isinstance(source_timezone, str):
            source_timezone = ZoneInfo(source_timezone)
        self.source_timezone = source_timezone

    def normalize(self, row: RawRow) -> NormalizeResult:
        pickup_text = row.get(*PICKUP_COLUMNS)
        dropoff_text = row.get(*DROPOFF_COLUMNS)

        pickup_local = parse_local_timestamp(pickup_text)
        if pickup_local is None:
            return Rejected(RejectionReason.INVALID_PICKUP, pickup_text)
        dropoff_local = parse_local_timestamp(dropoff_text)
        if dropoff_local is None:
            return Rejected(RejectionReason.INVALID_DROPOFF, dropoff_text)

        try:
            pickup_at = to_utc(pickup_local, self.source_timezone)
            dropoff_at = to_utc(dropoff_local, self.source_timezone)
        except _NonexistentLocalTime as exc:
            return Rejected(RejectionReason.NONEXISTENT_LOCAL_TIME, str(exc))

        if dropoff_at < pickup_at:
            return Rejected(
                RejectionReason.DROPOFF_BEFORE_PICKUP,
                f"pickup={pickup_text} dropoff={dropoff_text}",
            )

        defaulted: list[str] = []
        record = TripRecord(
            pickup_at=pickup_at,
            dropoff_at=dropoff_at,
            passenger_count=max(_to_int(row.get(*PASSENGER_COLUMNS), "passenger_count", defaulted), 0),
            trip_distance=max(_to_decimal(row.get(*DISTANCE_COLUMNS), "trip_distance", defaulted), Decimal(0)),
            store_and_fwd_flag=normalize_flag(row.get(*FLAG_COLUMNS)),
            pu_location_id=_to_int(row.get(*PICKUP_ZONE_COLUMNS), "pu_location_id", defaulted),
            do_location_id=_to_int(row.get(*DROPOFF_ZONE_COLUMNS), "do_location_id", defaulted),
            fare_amount=_to_decimal(row.get(*FARE_COLUMNS), "fare_amount", defaulted),
            tip_amount=_to_decimal(row.get(*TIP_COLUMNS), "tip_amount", defaulted),
        )
        return Valid(record, tuple(defaulted))


def _to_int(text: str, name: str, defaulted: list[str]) -> int:
    if _INTEGER_SHAPE.fullmatch(text):
        value = int(text)
        if INT32_MIN <= value <= INT32_MAX:
            return value
    if text:
        defaulted.append(name)
    return 0


def _to_decimal(text: str, name: str, defaulted: list[str]) -> Decimal:
    # The shape check also keeps out NaN, Infinity and non-ASCII digits.
    if _DECIMAL_SHAPE.fullmatch(text):
        return Decimal(text)
    if text:
        defaulted.append(name)
    return Decimal(0)
