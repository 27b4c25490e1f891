from functools import lru_cache

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from clinic_scheduling.core.db import engine, get_session
from clinic_scheduling.core.security import CUSTOMER_ROLE, STAFF_ROLE, TokenClaims, decode_access_token
from clinic_scheduling.services.booking_service import BookingResolver, build_booking_resolver
from clinic_scheduling.services.sequence_service import SequenceCodeGenerator, SqlSequenceCounter

__all__ = [
    "get_session",
    "get_current_principal",
    "require_staff",
    "require_customer",
    "get_booking_resolver",
    "get_code_generator",
]

security = HTTPBearer(auto_error=False)


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> TokenClaims:
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    claims = decode_access_token(credentials.credentials)
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return claims


async def require_staff(principal: TokenClaims = Depends(get_current_principal)) -> TokenClaims:
    if principal.role != STAFF_ROLE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Staff access required")
    return principal


async def require_customer(principal: TokenClaims = Depends(get_current_principal)) -> TokenClaims:
    if principal.role != CUSTOMER_ROLE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Customer access required")
    return principal


@lru_cache
def get_booking_resolver() -> BookingResolver:
    return build_booking_resolver(engine)


@lru_cache
def get_code_generator() -> SequenceCodeGenerator:
    return SequenceCodeGenerator(SqlSequenceCounter(engine))
