import logging
import math
from datetime import UTC, date, datetime, time, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduling.core.config import settings
from clinic_scheduling.core.errors import ConflictError, NotFoundError, ValidationError
from clinic_scheduling.models.practitioner import Practitioner
from clinic_scheduling.models.reservation import ReservationStatus, SlotReservation, SlotReservationPublic
from clinic_scheduling.services.appointment_service import appointment_interval, list_active_appointments
from clinic_scheduling.services.intervals import MINUTES_PER_DAY, Interval, format_hhmm, to_minutes

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def hold_duration() -> timedelta:
    return timedelta(seconds=settings.reservation_hold_seconds)


def reservation_interval(reservation: SlotReservation) -> Interval:
    return Interval.starting_at(reservation.reservation_time, reservation.duration_minutes)


def expires_in_seconds(reservation: SlotReservation, now: datetime | None = None) -> int:
    remaining = (reservation.expires_at - (now or utc_now())).total_seconds()
    return max(0, math.ceil(remaining))


def to_public(r: SlotReservation, now: datetime | None = None) -> SlotReservationPublic:
    return SlotReservationPublic(
        id=r.id,
        practitioner_id=r.practitioner_id,
        reservation_date=r.reservation_date,
        reservation_time=format_hhmm(r.reservation_time),
        duration_minutes=r.duration_minutes,
        session_id=r.session_id,
        status=r.status,
        expires_at=r.expires_at,
        expires_in_seconds=expires_in_seconds(r, now),
    )


async def expire_stale_reservations(session: AsyncSession, now: datetime | None = None) -> int:
    """Mark PENDING holds past their deadline as EXPIRED. Returns how many changed."""
    now = now or utc_now()
    result = await session.execute(
        update(SlotReservation)
        .where(SlotReservation.status == ReservationStatus.PENDING, SlotReservation.expires_at <= now)
        .values(status=ReservationStatus.EXPIRED, updated_at=now)
    )
    if result.rowcount:
        logger.info("Expired %d stale slot reservations", result.rowcount)
    return result.rowcount


async def list_active_reservations(
    session: AsyncSession,
    practitioner_id: int,
    d: date,
    *,
    now: datetime | None = None,
    exclude_session_id: str | None = None,
) -> list[SlotReservation]:
    # A lapsed hold stops counting at expires_at even before it is marked EXPIRED
    q = (
        select(SlotReservation)
        .where(
            SlotReservation.practitioner_id == practitioner_id,
            SlotReservation.reservation_date == d,
            SlotReservation.status == ReservationStatus.PENDING,
            SlotReservation.expires_at > (now or utc_now()),
        )
        .order_by(SlotReservation.reservation_time, SlotReservation.id)
    )
    if exclude_session_id is not None:
        q = q.where(SlotReservation.session_id != exclude_session_id)
    result = await session.execute(q)
    return list(result.scalars().all())


async def find_blocking_reservation(
    session: AsyncSession,
    practitioner_id: int,
    d: date,
    wanted: Interval,
    *,
    exclude_session_id: str | None = None,
    now: datetime | None = None,
) -> SlotReservation | None:
    for reservation in await list_active_reservations(
        session, practitioner_id, d, now=now, exclude_session_id=exclude_session_id
    ):
        if reservation_interval(reservation).overlaps(wanted):
            return reservation
    return None


async def create_reservation(
    session: AsyncSession,
    practitioner_id: int,
    d: date,
    start: time,
    duration_minutes: int,
    session_id: str,
    *,
    customer_id: int | None = None,
    now: datetime | None = None,
) -> SlotReservation:
    """Hold ``[start, start + duration)`` for ``session_id``.

    Asking again for the same slot from the same session extends the hold. A
    session keeps one hold per practitioner and date; picking another time
    releases the previous one.
    """
    if not session_id or not session_id.strip():
        raise ValidationError("session_id is required")
    if not 1 <= duration_minutes <= MINUTES_PER_DAY:
        raise ValidationError(f"duration_minutes must be between 1 and {MINUTES_PER_DAY}")
    if to_minutes(start) + duration_minutes > MINUTES_PER_DAY:
        raise ValidationError("Reservation must end on the day it starts")
    now = now or utc_now()

    # Serialize holds per practitioner, as the portal booking path does
    result = await session.execute(
        select(Practitioner).where(Practitioner.id == practitioner_id).with_for_update()
    )
    practitioner = result.scalar_one_or_none()
    if practitioner is None or not practitioner.is_active:
        raise NotFoundError(f"Practitioner {practitioner_id} not found", code="PRACTITIONER_NOT_FOUND")
    if not practitioner.is_bookable:
        raise ValidationError("Practitioner does not take online bookings", code="PRACTITIONER_NOT_BOOKABLE")

    await expire_stale_reservations(session, now)
    wanted = Interval.starting_at(start, duration_minutes)
    for appointment in await list_active_appointments(session, practitioner_id, d):
        if appointment_interval(appointment).overlaps(wanted):
            raise ConflictError("This slot has already been booked", code="SLOT_ALREADY_BOOKED")

    existing: SlotReservation | None = None
    for reservation in await list_active_reservations(session, practitioner_id, d, now=now):
        if reservation.session_id != session_id:
            if reservation_interval(reservation).overlaps(wanted):
                raise ConflictError(
                    f"This slot is held by another customer for {expires_in_seconds(reservation, now)}s",
                    code="SLOT_BEING_RESERVED",
                )
        elif reservation.reservation_time == start and reservation.duration_minutes == duration_minutes:
            existing = reservation
        else:
            reservation.status = ReservationStatus.RELEASED
            reservation.released_at = now
            reservation.updated_at = now

    if existing is not None:
        existing.expires_at = now + hold_duration()
        existing.updated_at = now
        await session.flush()
        return existing

    reservation = SlotReservation(
        practitioner_id=practitioner_id,
        reservation_date=d,
        reservation_time=start,
        duration_minutes=duration_minutes,
        session_id=session_id,
        customer_id=customer_id,
        status=ReservationStatus.PENDING,
        expires_at=now + hold_duration(),
        created_at=now,
        updated_at=now,
    )
    session.add(reservation)
    await session.flush()
    logger.info(
        "Slot held: practitioner=%s %s %s session=%s until %s",
        practitioner_id, d, format_hhmm(start), session_id, reservation.expires_at,
    )
    return reservation


async def _pending_for_session(
    session: AsyncSession, reservation_id: int, session_id: str, now: datetime
) -> SlotReservation:
    reservation = await session.get(SlotReservation, reservation_id)
    if (
        reservation is None
        or reservation.session_id != session_id
        or reservation.status != ReservationStatus.PENDING
    ):
        raise NotFoundError("Reservation not found or already processed", code="RESERVATION_NOT_FOUND")
    if reservation.expires_at <= now:
        raise ConflictError("Your reservation has expired; select a new time", code="RESERVATION_EXPIRED")
    return reservation


async def extend_reservation(
    session: AsyncSession, reservation_id: int, session_id: str, *, now: datetime | None = None
) -> SlotReservation:
    now = now or utc_now()
    reservation = await _pending_for_session(session, reservation_id, session_id, now)
    reservation.expires_at = now + hold_duration()
    reservation.updated_at = now
    await session.flush()
    return reservation


async def confirm_reservation(
    session: AsyncSession, reservation_id: int, session_id: str, *, now: datetime | None = None
) -> SlotReservation:
    now = now or utc_now()
    reservation = await _pending_for_session(session, reservation_id, session_id, now)
    reservation.status = ReservationStatus.CONFIRMED
    reservation.confirmed_at = now
    reservation.updated_at = now
    await session.flush()
    return reservation


async def confirm_session_holds(
    session: AsyncSession,
    practitioner_id: int,
    d: date,
    booked: Interval,
    session_id: str,
    *,
    now: datetime | None = None,
) -> int:
    """Confirm this session's live holds that the new booking covers."""
    now = now or utc_now()
    confirmed = 0
    for reservation in await list_active_reservations(session, practitioner_id, d, now=now):
        if reservation.session_id == session_id and reservation_interval(reservation).overlaps(booked):
            reservation.status = ReservationStatus.CONFIRMED
            reservation.confirmed_at = now
            reservation.updated_at = now
            confirmed += 1
    await session.flush()
    return confirmed


async def release_reservation(
    session: AsyncSession, reservation_id: int, session_id: str, *, now: datetime | None = None
) -> bool:
    now = now or utc_now()
    result = await session.execute(
        update(SlotReservation)
        .where(
            SlotReservation.id == reservation_id,
            SlotReservation.session_id == session_id,
            SlotReservation.status == ReservationStatus.PENDING,
        )
        .values(status=ReservationStatus.RELEASED, released_at=now, updated_at=now)
    )
    return result.rowcount > 0


async def release_session_reservations(
    session: AsyncSession, session_id: str, *, now: datetime | None = None
) -> int:
    now = now or utc_now()
    result = await session.execute(
        update(SlotReservation)
        .where(SlotReservation.session_id == session_id, SlotReservation.status == ReservationStatus.PENDING)
        .values(status=ReservationStatus.RELEASED, released_at=now, updated_at=now)
    )
    return result.rowcount
