"""Bearer-token verification and the caller capability passed to the query layer."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.config import settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Viewer:
    """Who is asking. Anonymous callers have neither subject nor role."""

    subject: str | None = None
    role: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.subject is not None

    @property
    def is_privileged(self) -> bool:
        return self.role == settings.admin_role


ANONYMOUS = Viewer()


def create_access_token(subject: str, role: str | None = None, expires_minutes: int | None = None) -> str:
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.access_token_expire_minutes
    )
    claims: dict[str, Any] = {"sub": subject, "type": "access", "exp": expire}
    if role:
        claims["role"] = role
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])


async def get_viewer(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Viewer:
    if credentials is None:
        return ANONYMOUS

    try:
        claims = decode_token(credentials.credentials)
    except JWTError:
        logger.warning("Rejected invalid or expired access token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    if claims.get("type") != "access" or not claims.get("sub"):
        logger.warning("Rejected access token with bad claims")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")

    return Viewer(subject=str(claims["sub"]), role=claims.get("role"))


async def require_privileged(viewer: Viewer = Depends(get_viewer)) -> Viewer:
    if not viewer.is_authenticated:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    if not viewer.is_privileged:
        logger.warning("Privileged route denied for subject %s", viewer.subject)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient privileges")
    return viewer
