"""Authentication introspection endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter

from taskflow.api.deps import PRINCIPAL_DEP, SESSION_DEP
from taskflow.schemas.users import UserRead
from taskflow.services.users import get_current_user

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from taskflow.core.auth import Principal

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=UserRead, summary="Resolve Authenticated User")
async def auth_me(
    session: AsyncSession = SESSION_DEP,
    principal: Principal = PRINCIPAL_DEP,
) -> UserRead:
    """Return the user record behind the request credentials."""
    user = await get_current_user(session, principal=principal)
    return UserRead.model_validate(user, from_attributes=True)
