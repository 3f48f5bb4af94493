from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import JSON, CheckConstraint, Enum, Index, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql.sqltypes import BigInteger, Date, DateTime, Integer, Numeric, String

from .domain.entities import BookingStatus


class Base(DeclarativeBase):
    pass


class Tour(Base):
    __tablename__ = "tours"
    __table_args__ = (
        UniqueConstraint("type", name="uq_tours_type"),
        CheckConstraint("max_participants >= 1", name="chk_tours_max_participants"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    # ["08:00", "10:00", ...] in tour-local time
    available_times: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    cancellation_cutoff_hours: Mapped[Optional[float]] = mapped_column(Numeric(5, 2), nullable=True)
    cancellation_cutoff_hours_with_participant: Mapped[Optional[float]] = mapped_column(Numeric(5, 2), nullable=True)
    next_day_cutoff_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    min_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("adults >= 0 AND children >= 0 AND infants >= 0", name="chk_bookings_party"),
        Index("idx_bookings_tour_date", "tour_type", "booking_date"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    tour_type: Mapped[str] = mapped_column(String(64), nullable=False)
    booking_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    booking_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    adults: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    children: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    infants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[BookingStatus] = mapped_column(
        Enum(
            BookingStatus,
            values_callable=lambda enum_cls: [e.value for e in enum_cls],
            native_enum=False,
        ),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
