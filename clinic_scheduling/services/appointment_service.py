import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduling.core.errors import InvalidStatusTransitionError, NotFoundError
from clinic_scheduling.models.appointment import Appointment, AppointmentPublic, AppointmentStatus
from clinic_scheduling.services.intervals import Interval, format_hhmm

logger = logging.getLogger(__name__)

# SCHEDULED -> CHECK_IN -> IN_PROGRESS -> COMPLETED; any non-terminal state may be cancelled
ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset({AppointmentStatus.CHECK_IN, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CHECK_IN: frozenset({AppointmentStatus.IN_PROGRESS, AppointmentStatus.CANCELLED}),
    AppointmentStatus.IN_PROGRESS: frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def apply_status_transition(appointment: Appointment, target: AppointmentStatus) -> Appointment:
    """Move ``appointment`` along the status DAG. Checking in also confirms it."""
    current = AppointmentStatus(appointment.status)
    if not can_transition(current, target):
        raise InvalidStatusTransitionError(
            f"Cannot move appointment from {current.value} to {target.value}"
        )
    appointment.status = target
    if target == AppointmentStatus.CHECK_IN:
        appointment.is_confirmed = True
    return appointment


def appointment_interval(appointment: Appointment) -> Interval:
    return Interval.starting_at(appointment.appointment_time, appointment.duration_minutes)


def to_public(a: Appointment) -> AppointmentPublic:
    return AppointmentPublic(
        id=a.id,
        practitioner_id=a.practitioner_id,
        pet_id=a.pet_id,
        appointment_date=a.appointment_date,
        appointment_time=format_hhmm(a.appointment_time),
        duration_minutes=a.duration_minutes,
        visit_type=a.visit_type,
        reason=a.reason,
        status=a.status,
        is_confirmed=a.is_confirmed,
        source=a.source,
        created_at=a.created_at,
    )


async def get_appointment(session: AsyncSession, appointment_id: int) -> Appointment:
    appointment = await session.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFoundError(f"Appointment {appointment_id} not found", code="APPOINTMENT_NOT_FOUND")
    return appointment


async def list_active_appointments(
    session: AsyncSession, practitioner_id: int, d: date
) -> list[Appointment]:
    result = await session.execute(
        select(Appointment)
        .where(
            Appointment.practitioner_id == practitioner_id,
            Appointment.appointment_date == d,
            Appointment.status != AppointmentStatus.CANCELLED,
        )
        .order_by(Appointment.appointment_time)
    )
    return list(result.scalars().all())


async def list_appointments(
    session: AsyncSession,
    practitioner_id: int | None = None,
    d: date | None = None,
    status: AppointmentStatus | None = None,
) -> list[Appointment]:
    q = select(Appointment).order_by(Appointment.appointment_date, Appointment.appointment_time)
    if practitioner_id is not None:
        q = q.where(Appointment.practitioner_id == practitioner_id)
    if d is not None:
        q = q.where(Appointment.appointment_date == d)
    if status is not None:
        q = q.where(Appointment.status == status)
    result = await session.execute(q)
    return list(result.scalars().all())


async def update_status(
    session: AsyncSession, appointment_id: int, status: AppointmentStatus
) -> Appointment:
    appointment = await get_appointment(session, appointment_id)
    previous = appointment.status
    apply_status_transition(appointment, status)
    session.add(appointment)
    await session.flush()
    await session.refresh(appointment)
    logger.info("Appointment %s: %s -> %s", appointment_id, previous, status.value)
    return appointment


async def update_confirmation(session: AsyncSession, appointment_id: int, is_confirmed: bool) -> Appointment:
    appointment = await get_appointment(session, appointment_id)
    if appointment.status == AppointmentStatus.CANCELLED:
        raise InvalidStatusTransitionError("A cancelled appointment cannot be confirmed")
    appointment.is_confirmed = is_confirmed
    session.add(appointment)
    await session.flush()
    await session.refresh(appointment)
    return appointment
