"""Notification inbox endpoints for the calling user."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter

from taskflow.api.deps import PRINCIPAL_DEP, SESSION_DEP
from taskflow.schemas.notifications import NotificationRead
from taskflow.services import notifications as notification_service

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from taskflow.core.auth import Principal

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationRead])
async def list_notifications(
    session: AsyncSession = SESSION_DEP,
    principal: Principal = PRINCIPAL_DEP,
) -> list[NotificationRead]:
    """Return the caller's notifications, newest first."""
    notifications = await notification_service.list_notifications(
        session,
        principal=principal,
    )
    return [NotificationRead.model_validate(item, from_attributes=True) for item in notifications]


@router.patch("/{notification_id}/read", response_model=NotificationRead)
async def mark_read(
    notification_id: UUID,
    session: AsyncSession = SESSION_DEP,
    principal: Principal = PRINCIPAL_DEP,
) -> NotificationRead:
    notification = await notification_service.mark_notification_read(
        session,
        principal=principal,
        notification_id=notification_id,
    )
    return NotificationRead.model_validate(notification, from_attributes=True)
