from datetime import date, datetime

from fastapi import APIRouter, Depends, Query

from clinic_scheduling.api.deps import require_staff
from clinic_scheduling.api.schemas.booking import OccupancyResponse
from clinic_scheduling.core.security import TokenClaims
from clinic_scheduling.services.occupancy_service import classify

router = APIRouter(prefix="/boarding", tags=["boarding"])


@router.get("/occupancy", response_model=OccupancyResponse)
async def occupancy(
    expected_checkout: datetime | date = Query(...),
    today: datetime | date | None = Query(default=None),
    _staff: TokenClaims = Depends(require_staff),
) -> OccupancyResponse:
    """Urgency colour for a boarding stay by days left until checkout."""
    result = classify(expected_checkout, today)
    return OccupancyResponse(days_remaining=result.days_remaining, level=result.level)
