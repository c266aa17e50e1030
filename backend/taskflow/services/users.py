"""User directory operations and username lookups used for response enrichment."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import col

from taskflow.core.errors import NotFoundError, StorageError, ValidationError
from taskflow.core.logging import get_logger
from taskflow.core.time import utcnow
from taskflow.db import crud
from taskflow.models.comments import TaskComment
from taskflow.models.notifications import Notification
from taskflow.models.tasks import DEFAULT_TASK_STATE, Task
from taskflow.models.users import User
from taskflow.services.permissions import (
    MANAGE_USERS,
    is_known_role,
    normalize_role,
    require_capability,
)

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from taskflow.core.auth import Principal
    from taskflow.schemas.users import UserCreate, UserProfileUpdate

logger = get_logger(__name__)

EMAIL_IN_USE = "Email already in use"


async def resolve_username(session: AsyncSession, user_id: UUID | None) -> str | None:
    """Return the username for *user_id*, or None when absent or unreadable."""
    if user_id is None:
        return None
    try:
        user = await User.objects.by_id(user_id).first(session)
    except SQLAlchemyError as exc:
        logger.warning(
            "user.resolve_failed",
            extra={"user_id": str(user_id), "error": str(exc)},
        )
        return None
    return user.username if user is not None else None


async def _email_taken(
    session: AsyncSession,
    email: str,
    *,
    exclude_id: UUID | None = None,
) -> bool:
    query = User.objects.filter_by(email=email)
    if exclude_id is not None:
        query = query.filter(col(User.id) != exclude_id)
    return await query.first(session) is not None


def _clean_required(value: str | None, field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{field} is required")
    return cleaned


async def get_users(session: AsyncSession, *, principal: Principal) -> list[User]:
    """List every user; open to any authenticated principal."""
    del principal
    try:
        return await User.objects.all().order_by(col(User.created_at).asc()).all(session)
    except SQLAlchemyError as exc:
        raise StorageError(str(exc)) from exc


async def get_current_user(session: AsyncSession, *, principal: Principal) -> User:
    user = await User.objects.by_id(principal.user_id).first(session)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def create_user(
    session: AsyncSession,
    *,
    principal: Principal,
    payload: UserCreate,
) -> User:
    """Create a user record (admin only)."""
    require_capability(principal, MANAGE_USERS)
    username = _clean_required(payload.username, "username")
    email = _clean_required(payload.email, "email")
    if not is_known_role(payload.role):
        raise ValidationError(f"Unknown role '{payload.role}'")
    if await _email_taken(session, email):
        raise ValidationError(EMAIL_IN_USE)

    user = User(username=username, email=email, role=normalize_role(payload.role))
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ValidationError(EMAIL_IN_USE) from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StorageError(str(exc)) from exc
    await session.refresh(user)
    logger.info(
        "user.created",
        extra={"user_id": str(user.id), "role": user.role, "actor_id": str(principal.user_id)},
    )
    return user


async def update_user_role(
    session: AsyncSession,
    *,
    principal: Principal,
    user_id: UUID,
    role: str,
) -> User:
    """Change another user's board role (admin only)."""
    require_capability(principal, MANAGE_USERS)
    if not is_known_role(role):
        raise ValidationError(f"Unknown role '{role}'")
    user = await User.objects.by_id(user_id).first(session)
    if user is None:
        raise NotFoundError("User not found")
    user.role = normalize_role(role)
    session.add(user)
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StorageError(str(exc)) from exc
    await session.refresh(user)
    logger.info(
        "user.role_updated",
        extra={"user_id": str(user.id), "role": user.role, "actor_id": str(principal.user_id)},
    )
    return user


async def update_profile(
    session: AsyncSession,
    *,
    principal: Principal,
    payload: UserProfileUpdate,
) -> User:
    """Apply a partial username/email update to the principal's own record."""
    user = await get_current_user(session, principal=principal)
    updates = payload.model_dump(exclude_unset=True)
    if "username" in updates:
        user.username = _clean_required(updates["username"], "username")
    if "email" in updates:
        email = _clean_required(updates["email"], "email")
        if await _email_taken(session, email, exclude_id=user.id):
            raise ValidationError(EMAIL_IN_USE)
        user.email = email
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ValidationError(EMAIL_IN_USE) from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StorageError(str(exc)) from exc
    await session.refresh(user)
    return user


async def delete_user(
    session: AsyncSession,
    *,
    principal: Principal,
    user_id: UUID,
) -> None:
    """Delete a user after releasing everything that references them.

    Assigned tasks go back to the backlog unassigned, authorship links are
    cleared, and the user's notifications are removed. All of it commits in
    one transaction.
    """
    require_capability(principal, MANAGE_USERS)
    user = await User.objects.by_id(user_id).first(session)
    if user is None:
        raise NotFoundError("User not found")
    try:
        reassigned = await crud.update_where(
            session,
            Task,
            col(Task.assignee_id) == user_id,
            commit=False,
            assignee_id=None,
            state=DEFAULT_TASK_STATE,
            updated_at=utcnow(),
        )
        await crud.update_where(
            session,
            Task,
            col(Task.created_by_user_id) == user_id,
            commit=False,
            created_by_user_id=None,
        )
        await crud.update_where(
            session,
            TaskComment,
            col(TaskComment.author_id) == user_id,
            commit=False,
            author_id=None,
        )
        await crud.delete_where(
            session,
            Notification,
            col(Notification.user_id) == user_id,
            commit=False,
        )
        await crud.delete_where(session, User, col(User.id) == user_id, commit=False)
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StorageError(str(exc)) from exc
    logger.info(
        "user.deleted",
        extra={
            "user_id": str(user_id),
            "reassigned_tasks": reassigned,
            "actor_id": str(principal.user_id),
        },
    )
