"""User directory endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, status

from taskflow.api.deps import PRINCIPAL_DEP, SESSION_DEP
from taskflow.schemas.common import OkResponse
from taskflow.schemas.users import UserCreate, UserProfileUpdate, UserRead, UserRoleUpdate
from taskflow.services import users as user_service

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from taskflow.core.auth import Principal

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=list[UserRead])
async def list_users(
    session: AsyncSession = SESSION_DEP,
    principal: Principal = PRINCIPAL_DEP,
) -> list[UserRead]:
    users = await user_service.get_users(session, principal=principal)
    return [UserRead.model_validate(user, from_attributes=True) for user in users]


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    session: AsyncSession = SESSION_DEP,
    principal: Principal = PRINCIPAL_DEP,
) -> UserRead:
    """Create a user (admin only)."""
    user = await user_service.create_user(session, principal=principal, payload=payload)
    return UserRead.model_validate(user, from_attributes=True)


@router.get("/me", response_model=UserRead)
async def get_me(
    session: AsyncSession = SESSION_DEP,
    principal: Principal = PRINCIPAL_DEP,
) -> UserRead:
    user = await user_service.get_current_user(session, principal=principal)
    return UserRead.model_validate(user, from_attributes=True)


@router.patch("/me", response_model=UserRead)
async def update_me(
    payload: UserProfileUpdate,
    session: AsyncSession = SESSION_DEP,
    principal: Principal = PRINCIPAL_DEP,
) -> UserRead:
    """Update the caller's own username and/or email."""
    user = await user_service.update_profile(session, principal=principal, payload=payload)
    return UserRead.model_validate(user, from_attributes=True)


@router.patch("/{user_id}/role", response_model=UserRead)
async def update_user_role(
    user_id: UUID,
    payload: UserRoleUpdate,
    session: AsyncSession = SESSION_DEP,
    principal: Principal = PRINCIPAL_DEP,
) -> UserRead:
    user = await user_service.update_user_role(
        session,
        principal=principal,
        user_id=user_id,
        role=payload.role,
    )
    return UserRead.model_validate(user, from_attributes=True)


@router.delete("/{user_id}", response_model=OkResponse)
async def delete_user(
    user_id: UUID,
    session: AsyncSession = SESSION_DEP,
    principal: Principal = PRINCIPAL_DEP,
) -> OkResponse:
    """Delete a user; their tasks return to the backlog unassigned."""
    await user_service.delete_user(session, principal=principal, user_id=user_id)
    return OkResponse()
