from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from clinic_scheduling.core.config import settings

STAFF_ROLE = "staff"
CUSTOMER_ROLE = "customer"
_ROLES = {STAFF_ROLE, CUSTOMER_ROLE}


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    role: str


def create_access_token(subject: str | int, role: str) -> str:
    if role not in _ROLES:
        raise ValueError(f"Unknown role: {role}")
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode = {"sub": str(subject), "exp": expire, "type": "access", "role": role}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> TokenClaims | None:
    try:
        payload = jwt.decode(
            token, settings.secret_key, algorithms=[settings.algorithm]
        )
    except JWTError:
        return None
    if payload.get("type") != "access":
        return None
    sub = payload.get("sub")
    role = payload.get("role")
    if not sub or role not in _ROLES:
        return None
    return TokenClaims(subject=str(sub), role=role)
