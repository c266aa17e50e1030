"""Principal resolution for the HTTP adapter (shared local token + user header)."""

from __future__ import annotations

from dataclasses import dataclass
from hmac import compare_digest
from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from taskflow.core.config import settings
from taskflow.core.logging import get_logger
from taskflow.db.session import get_session
from taskflow.models.users import User

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)
SECURITY_DEP = Depends(security)
SESSION_DEP = Depends(get_session)
USER_ID_HEADER = "X-User-Id"


@dataclass(frozen=True)
class Principal:
    """Authenticated actor passed explicitly into every core operation."""

    user_id: UUID
    role: str


def _token_matches(credentials: HTTPAuthorizationCredentials | None) -> bool:
    if credentials is None or credentials.scheme.lower() != "bearer":
        return False
    token = credentials.credentials.strip()
    expected = settings.local_auth_token.strip()
    if not token or not expected:
        return False
    return compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


def _parse_user_id(raw: str | None) -> UUID | None:
    if raw is None:
        return None
    try:
        return UUID(raw.strip())
    except ValueError:
        return None


async def get_principal(
    credentials: HTTPAuthorizationCredentials | None = SECURITY_DEP,
    x_user_id: str | None = Header(default=None, alias=USER_ID_HEADER),
    session: AsyncSession = SESSION_DEP,
) -> Principal:
    """Resolve the calling user into a principal or raise HTTP 401."""
    if not _token_matches(credentials):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    user_id = _parse_user_id(x_user_id)
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    user = await User.objects.by_id(user_id).first(session)
    if user is None:
        logger.info("auth.principal.unknown_user", extra={"user_id": str(user_id)})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
    return Principal(user_id=user.id, role=user.role)
