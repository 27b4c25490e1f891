from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduling.api.deps import get_session, require_customer
from clinic_scheduling.api.schemas.reservation import (
    ReleasedResponse,
    ReservationRequest,
    ReservationSessionRequest,
)
from clinic_scheduling.core.security import TokenClaims
from clinic_scheduling.models.reservation import SlotReservationPublic
from clinic_scheduling.services.reservation_service import (
    confirm_reservation,
    create_reservation,
    extend_reservation,
    list_active_reservations,
    release_reservation,
    release_session_reservations,
    to_public,
    utc_now,
)

router = APIRouter(prefix="/portal/reservations", tags=["reservations"])


@router.get("", response_model=list[SlotReservationPublic])
async def active_reservations(
    practitioner_id: int = Query(...),
    date_param: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
) -> list[SlotReservationPublic]:
    """Slots currently held by portal customers, so the UI can grey them out."""
    now = utc_now()
    reservations = await list_active_reservations(session, practitioner_id, date_param, now=now)
    return [to_public(r, now) for r in reservations]


@router.post("", response_model=SlotReservationPublic, status_code=status.HTTP_201_CREATED)
async def hold_slot(
    body: ReservationRequest,
    session: AsyncSession = Depends(get_session),
    customer: TokenClaims = Depends(require_customer),
) -> SlotReservationPublic:
    reservation = await create_reservation(
        session,
        body.practitioner_id,
        body.date,
        body.time,
        body.duration_minutes,
        body.session_id,
        customer_id=int(customer.subject) if customer.subject.isdigit() else None,
    )
    return to_public(reservation)


@router.post("/{reservation_id}/extend", response_model=SlotReservationPublic)
async def extend_hold(
    reservation_id: int,
    body: ReservationSessionRequest,
    session: AsyncSession = Depends(get_session),
    _customer: TokenClaims = Depends(require_customer),
) -> SlotReservationPublic:
    return to_public(await extend_reservation(session, reservation_id, body.session_id))


@router.post("/{reservation_id}/confirm", response_model=SlotReservationPublic)
async def confirm_hold(
    reservation_id: int,
    body: ReservationSessionRequest,
    session: AsyncSession = Depends(get_session),
    _customer: TokenClaims = Depends(require_customer),
) -> SlotReservationPublic:
    return to_public(await confirm_reservation(session, reservation_id, body.session_id))


@router.delete("/{reservation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def release_hold(
    reservation_id: int,
    session_id: str = Query(..., min_length=1),
    session: AsyncSession = Depends(get_session),
    _customer: TokenClaims = Depends(require_customer),
) -> None:
    # Releasing an unknown or already processed hold is a no-op
    await release_reservation(session, reservation_id, session_id)


@router.post("/release-session", response_model=ReleasedResponse)
async def release_all_holds(
    body: ReservationSessionRequest,
    session: AsyncSession = Depends(get_session),
    _customer: TokenClaims = Depends(require_customer),
) -> ReleasedResponse:
    return ReleasedResponse(released=await release_session_reservations(session, body.session_id))
