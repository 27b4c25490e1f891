from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduling.api.deps import get_booking_resolver, get_session, require_customer
from clinic_scheduling.api.routes.appointments import book_with_alternatives
from clinic_scheduling.api.schemas.booking import BookAppointmentRequest
from clinic_scheduling.core.security import TokenClaims
from clinic_scheduling.models.appointment import AppointmentPublic, BookingSource
from clinic_scheduling.services.booking_service import BookingResolver

router = APIRouter(prefix="/portal", tags=["portal"])


@router.post("/appointments", response_model=AppointmentPublic, status_code=status.HTTP_201_CREATED)
async def book_portal_appointment(
    body: BookAppointmentRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    resolver: BookingResolver = Depends(get_booking_resolver),
    _customer: TokenClaims = Depends(require_customer),
) -> AppointmentPublic:
    """Customer self-booking. Runs under the serialized portal policy."""
    return await book_with_alternatives(body, BookingSource.PORTAL, resolver, session, background_tasks)
