import logging
from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduling.api.deps import get_booking_resolver, get_session, require_staff
from clinic_scheduling.api.schemas.booking import (
    BookAppointmentRequest,
    ConfirmationUpdateRequest,
    StatusUpdateRequest,
)
from clinic_scheduling.core.errors import ConflictError, SchedulingError
from clinic_scheduling.core.security import TokenClaims
from clinic_scheduling.models.appointment import AppointmentPublic, AppointmentStatus, BookingSource
from clinic_scheduling.services.appointment_service import (
    get_appointment,
    list_appointments,
    to_public,
    update_confirmation,
    update_status,
)
from clinic_scheduling.services.availability_service import find_alternatives
from clinic_scheduling.services.booking_service import BookingRequest, BookingResolver
from clinic_scheduling.services.email_service import send_booking_notification_email

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/appointments", tags=["appointments"])


async def book_with_alternatives(
    body: BookAppointmentRequest,
    actor: BookingSource,
    resolver: BookingResolver,
    session: AsyncSession,
    background_tasks: BackgroundTasks,
) -> AppointmentPublic:
    """Book through the resolver; on conflict attach nearby free slots to the error."""
    request = BookingRequest(
        practitioner_id=body.practitioner_id,
        pet_id=body.pet_id,
        date=body.date,
        time=body.time,
        duration_minutes=body.duration_minutes,
        visit_type=body.visit_type,
        reason=body.reason,
        actor=actor,
        session_id=body.session_id,
    )
    try:
        appointment = await resolver.book(request)
    except ConflictError as exc:
        try:
            suggestions = await find_alternatives(
                session, body.practitioner_id, body.date, body.time, body.duration_minutes
            )
        except SchedulingError as e:
            logger.warning("Could not compute alternatives: %s", e)
            suggestions = []
        exc.alternatives = [
            {"date": s.date.isoformat(), "time": s.time, "label": s.label} for s in suggestions
        ]
        raise
    background_tasks.add_task(send_booking_notification_email, appointment)
    return to_public(appointment)


@router.post("", response_model=AppointmentPublic, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    body: BookAppointmentRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    resolver: BookingResolver = Depends(get_booking_resolver),
    _staff: TokenClaims = Depends(require_staff),
) -> AppointmentPublic:
    return await book_with_alternatives(body, BookingSource.STAFF, resolver, session, background_tasks)


@router.get("", response_model=list[AppointmentPublic])
async def list_all_appointments(
    practitioner_id: int | None = Query(default=None),
    date_param: date | None = Query(default=None, alias="date"),
    status_param: AppointmentStatus | None = Query(default=None, alias="status"),
    session: AsyncSession = Depends(get_session),
    _staff: TokenClaims = Depends(require_staff),
) -> list[AppointmentPublic]:
    appointments = await list_appointments(session, practitioner_id, date_param, status_param)
    return [to_public(a) for a in appointments]


@router.get("/{appointment_id}", response_model=AppointmentPublic)
async def read_appointment(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    _staff: TokenClaims = Depends(require_staff),
) -> AppointmentPublic:
    return to_public(await get_appointment(session, appointment_id))


@router.patch("/{appointment_id}/status", response_model=AppointmentPublic)
async def change_status(
    appointment_id: int,
    body: StatusUpdateRequest,
    session: AsyncSession = Depends(get_session),
    _staff: TokenClaims = Depends(require_staff),
) -> AppointmentPublic:
    return to_public(await update_status(session, appointment_id, body.status))


@router.patch("/{appointment_id}/confirmation", response_model=AppointmentPublic)
async def change_confirmation(
    appointment_id: int,
    body: ConfirmationUpdateRequest,
    session: AsyncSession = Depends(get_session),
    _staff: TokenClaims = Depends(require_staff),
) -> AppointmentPublic:
    return to_public(await update_confirmation(session, appointment_id, body.is_confirmed))
