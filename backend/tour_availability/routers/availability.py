from datetime import date
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, get_settings
from ..deps import get_availability_cache, get_session, get_slot_gate, get_tour_timezone
from ..domain.entities import PartySize
from ..domain.errors import InvalidDateRangeError, StaleRequestError, TourNotFoundError
from ..infrastructure.repositories import SqlAlchemyBookingRepository, SqlAlchemyTourRepository
from ..schemas import BookableSlotsRead, DateDisabledRead, NextAvailableDateRead, PartySizeQuery, PreloadRead
from ..usecases import calendar as calendar_usecase
from ..usecases import slots as slot_usecase
from ..usecases.availability_cache import AvailabilityCache
from ..usecases.slots import SlotRequestGate

router = APIRouter(prefix="/tours", tags=["availability"])


def _party(adults: int, children: int, infants: int) -> PartySize:
    try:
        return PartySizeQuery(adults=adults, children=children, infants=infants).to_domain()
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="invalid party size") from exc


def _tour_repo(session: AsyncSession, settings: Settings) -> SqlAlchemyTourRepository:
    return SqlAlchemyTourRepository(
        session,
        extended_cutoff_tours=settings.extended_cutoff_tours,
        extended_cutoff_hours=settings.extended_cutoff_hours,
    )


@router.get("/{tour_key}/availability/next-available-date", response_model=NextAvailableDateRead)
async def get_next_available_date(
    tour_key: str,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    cache: AvailabilityCache = Depends(get_availability_cache),
    tz: ZoneInfo = Depends(get_tour_timezone),
) -> NextAvailableDateRead:
    try:
        found = await calendar_usecase.next_available_date(
            _tour_repo(session, settings),
            SqlAlchemyBookingRepository(session),
            cache,
            tour_key=tour_key,
            search_days=settings.next_available_search_days,
            window_days=settings.preload_window_days,
            tz=tz,
        )
    except TourNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="tour not found")
    return NextAvailableDateRead(date=found)


@router.get("/{tour_key}/availability/{day}/slots", response_model=BookableSlotsRead)
async def list_bookable_slots(
    tour_key: str,
    day: date,
    adults: int = Query(default=1, ge=0),
    children: int = Query(default=0, ge=0),
    infants: int = Query(default=0, ge=0),
    x_session_id: Optional[str] = Header(default=None),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    cache: AvailabilityCache = Depends(get_availability_cache),
    gate: SlotRequestGate = Depends(get_slot_gate),
    tz: ZoneInfo = Depends(get_tour_timezone),
) -> BookableSlotsRead:
    party = _party(adults, children, infants)
    computation = slot_usecase.list_bookable_slots(
        _tour_repo(session, settings),
        SqlAlchemyBookingRepository(session),
        cache,
        tour_key=tour_key,
        day=day,
        party=party,
        tz=tz,
    )
    try:
        if x_session_id:
            time_slots = await gate.run(f"{x_session_id}:{tour_key}", computation)
        else:
            time_slots = await computation
    except TourNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="tour not found")
    except StaleRequestError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="superseded by a newer request")
    return BookableSlotsRead(date=day, time_slots=time_slots)


@router.get("/{tour_key}/availability/{day}/disabled", response_model=DateDisabledRead)
async def get_date_disabled(
    tour_key: str,
    day: date,
    adults: int = Query(default=1, ge=0),
    children: int = Query(default=0, ge=0),
    infants: int = Query(default=0, ge=0),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    cache: AvailabilityCache = Depends(get_availability_cache),
    tz: ZoneInfo = Depends(get_tour_timezone),
) -> DateDisabledRead:
    party = _party(adults, children, infants)
    try:
        disabled = await slot_usecase.is_date_disabled(
            _tour_repo(session, settings),
            SqlAlchemyBookingRepository(session),
            cache,
            tour_key=tour_key,
            day=day,
            party=party,
            tz=tz,
        )
    except TourNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="tour not found")
    return DateDisabledRead(date=day, disabled=disabled)


@router.post("/{tour_key}/availability/preload", response_model=PreloadRead, status_code=status.HTTP_202_ACCEPTED)
async def preload_availability(
    tour_key: str,
    start: date = Query(..., description="First date to load (tour-local)"),
    end: date = Query(..., description="Last date to load, inclusive"),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    cache: AvailabilityCache = Depends(get_availability_cache),
) -> PreloadRead:
    try:
        fetched = await calendar_usecase.preload_calendar(
            _tour_repo(session, settings),
            cache,
            tour_key=tour_key,
            start=start,
            end=end,
            max_days=settings.next_available_search_days,
        )
    except InvalidDateRangeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except TourNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="tour not found")
    return PreloadRead(start=start, end=end, fetched_dates=fetched)
