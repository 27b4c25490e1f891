from fastapi import APIRouter, Depends

from clinic_scheduling.api.deps import get_code_generator, require_staff
from clinic_scheduling.api.schemas.booking import SequenceCodeResponse
from clinic_scheduling.core.security import TokenClaims
from clinic_scheduling.services.sequence_service import SequenceCodeGenerator

router = APIRouter(prefix="/sequences", tags=["sequences"])


@router.post("/{scope}/next", response_model=SequenceCodeResponse)
async def next_sequence_code(
    scope: str,
    generator: SequenceCodeGenerator = Depends(get_code_generator),
    _staff: TokenClaims = Depends(require_staff),
) -> SequenceCodeResponse:
    return SequenceCodeResponse(scope=scope, code=await generator.next_code(scope))
