from datetime import datetime
from decimal import Decimal

from sqlalchemy import BigInteger, DateTime, Index, Integer, Numeric, SmallInteger, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class TaxiTrip(Base):
    __tablename__ = "taxi_trips"
    __table_args__ = (
        Index("ix_taxi_trips_pu_location_id", "pu_location_id"),
        Index("ix_taxi_trips_trip_distance", "trip_distance"),
        Index("ix_taxi_trips_duration", "pickup_at", "dropoff_at"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    pickup_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    dropoff_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    passenger_count: Mapped[int] = mapped_column(SmallInteger)
    trip_distance: Mapped[Decimal] = mapped_column(Numeric(9, 3))
    store_and_fwd_flag: Mapped[str] = mapped_column(String(10))
    pu_location_id: Mapped[int] = mapped_column(Integer)
    do_location_id: Mapped[int] = mapped_column(Integer)
    fare_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    tip_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
