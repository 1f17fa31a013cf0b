import enum
import logging
from dataclasses import dataclass

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import JWT_ALGORITHM, SECRET_KEY

logger = logging.getLogger(__name__)

security = HTTPBearer()


class Role(str, enum.Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as supplied by the auth service"""

    user_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def create_access_token(user_id: str, role: str) -> str:
    """Issue a token in the shape the auth service produces (used by tooling and tests)"""
    return jwt.encode({"sub": user_id, "role": role}, SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Actor:
    """
    Verify a bearer token and return the actor it identifies.
    Raises HTTPException 401 for invalid signatures or missing claims.
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"Token verification failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid authentication token") from e

    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or not role:
        logger.warning("Token missing sub or role claim")
        raise HTTPException(status_code=401, detail="Invalid authentication token")

    try:
        return Actor(user_id=str(user_id), role=Role(role))
    except ValueError as e:
        logger.warning(f"Token carries unknown role: {role}")
        raise HTTPException(status_code=403, detail="Unknown role") from e


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    """FastAPI dependency resolving the caller from the Authorization header"""
    return decode_access_token(credentials.credentials)
