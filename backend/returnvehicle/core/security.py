"""
Access/identity gate.

Bearer credentials are verified by an IdentityVerifier and resolved to a
local User row carrying the role. The default verifier checks HS256 JWTs
signed with SECRET_KEY, which is what the identity provider integration and
the test-suite mint; swap it through `set_identity_verifier` for another
provider. Nothing downstream of `get_current_user` ever sees a raw token.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from returnvehicle.core.config import get_settings
from returnvehicle.core.exceptions import ForbiddenError, UnauthenticatedError
from returnvehicle.core.logging import get_logger
from returnvehicle.db.session import get_db
from returnvehicle.models.status import UserRole, UserStatus
from returnvehicle.models.user import User
from returnvehicle.services.user_service import upsert_identity

logger = get_logger(__name__)
settings = get_settings()
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class VerifiedIdentity:
    uid: str
    email: str = ""
    display_name: str = ""
    photo_url: str = ""


class IdentityVerifier(ABC):
    @abstractmethod
    def verify(self, token: str) -> VerifiedIdentity:
        """Resolve a bearer credential or raise UnauthenticatedError."""


class JWTIdentityVerifier(IdentityVerifier):
    def __init__(self, secret_key: str, algorithm: str):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def verify(self, token: str) -> VerifiedIdentity:
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            raise UnauthenticatedError("Invalid or expired token") from e

        uid = payload.get("sub")
        if not uid:
            raise UnauthenticatedError("Invalid token payload")
        return VerifiedIdentity(
            uid=str(uid),
            email=payload.get("email") or "",
            display_name=payload.get("name") or "",
            photo_url=payload.get("picture") or "",
        )


_verifier: IdentityVerifier = JWTIdentityVerifier(settings.SECRET_KEY, settings.ALGORITHM)


def get_identity_verifier() -> IdentityVerifier:
    return _verifier


def set_identity_verifier(verifier: IdentityVerifier) -> None:
    global _verifier
    _verifier = verifier


def create_access_token(
    uid: str,
    email: str = "",
    name: str = "",
    picture: str = "",
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Mint an identity token in the shape the default verifier accepts."""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    claims = {"sub": uid, "email": email, "name": name, "picture": picture, "exp": expire}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError("Missing bearer token")

    identity = get_identity_verifier().verify(credentials.credentials)
    user = await upsert_identity(db, identity)

    if user.status == UserStatus.BLOCKED.value:
        logger.warning("blocked_user_rejected", uid=user.uid)
        raise ForbiddenError("Account is blocked")
    return user


def require_role(*roles: UserRole):
    allowed = {r.value for r in roles}

    async def _dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise ForbiddenError("Insufficient role for this action")
        return user

    return _dependency
