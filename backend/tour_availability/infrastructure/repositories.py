from __future__ import annotations

from datetime import date
from typing import Iterable, List

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.entities import (
    DEFAULT_CUTOFF_HOURS,
    BookingRecord,
    BookingStatus,
    CutoffPolicy,
    TourConfig,
    as_time_tuple,
    normalize_tour_key,
)
from ..domain.repositories import BookingRepository, TourRepository
from ..models import Booking, Tour


def _hours(value: object) -> float | None:
    return float(value) if value is not None else None


class SqlAlchemyTourRepository(TourRepository):
    def __init__(
        self,
        session: AsyncSession,
        *,
        extended_cutoff_tours: Iterable[str] = (),
        extended_cutoff_hours: float = DEFAULT_CUTOFF_HOURS,
    ) -> None:
        self.session = session
        self.extended_cutoff_tours = {normalize_tour_key(t) for t in extended_cutoff_tours}
        self.extended_cutoff_hours = extended_cutoff_hours

    async def get(self, tour_key: str) -> TourConfig | None:
        tour_type = normalize_tour_key(tour_key)
        result = await self.session.scalar(select(Tour).where(Tour.type == tour_type))
        if not isinstance(result, Tour):
            return None
        return self.to_config(result)

    def to_config(self, tour: Tour) -> TourConfig:
        default_hours = (
            self.extended_cutoff_hours if tour.type in self.extended_cutoff_tours else DEFAULT_CUTOFF_HOURS
        )
        policy = CutoffPolicy.resolve(
            cutoff_hours=_hours(tour.cancellation_cutoff_hours),
            cutoff_hours_with_participant=_hours(tour.cancellation_cutoff_hours_with_participant),
            next_day_cutoff_time=tour.next_day_cutoff_time,
            default_hours=default_hours,
        )
        return TourConfig(
            tour_key=tour.type,
            max_slots=tour.max_participants,
            available_times=as_time_tuple(tour.available_times or []),
            policy=policy,
            price=tour.price,
            min_participants=tour.min_participants,
        )


class SqlAlchemyBookingRepository(BookingRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_confirmed(
        self,
        tour_type: str,
        *,
        start: date | None = None,
        end: date | None = None,
    ) -> List[BookingRecord]:
        stmt: Select[tuple[Booking]] = select(Booking).where(
            Booking.tour_type == normalize_tour_key(tour_type),
            Booking.status == BookingStatus.CONFIRMED,
        )
        if start is not None:
            stmt = stmt.where(Booking.booking_date >= start)
        if end is not None:
            stmt = stmt.where(Booking.booking_date <= end)
        rows = await self.session.scalars(stmt)
        return [
            BookingRecord(
                date=row.booking_date.isoformat() if row.booking_date else None,
                time=row.booking_time,
                adults=row.adults,
                children=row.children,
                infants=row.infants,
                status=row.status,
            )
            for row in rows.all()
        ]
