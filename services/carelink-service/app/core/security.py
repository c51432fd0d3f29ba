"""
CareLink Service — Security helpers (JWT decode only, shared secret)

Tokens are issued by the external identity provider; this service trusts
the `sub` and `role` claims unconditionally once the signature checks out.
"""
from typing import Any

from fastapi import Depends, Request, HTTPException, status
from jose import jwt
from pydantic import BaseModel

from app.core.config import get_settings

settings = get_settings()

ROLE_USER = "user"
ROLE_ADMIN = "admin"


class CurrentUser(BaseModel):
    id: str
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def decode_token(token: str) -> dict[str, Any]:
    """Decode and validate a JWT. Raises JWTError on failure."""
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


def get_current_user(request: Request) -> CurrentUser:
    claims = getattr(request.state, "user", None)
    if not claims or not claims.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentUser(id=str(claims["sub"]), role=claims.get("role") or ROLE_USER)


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
