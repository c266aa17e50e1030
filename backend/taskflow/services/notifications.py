"""Best-effort notification dispatch plus recipient-scoped reads."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col

from taskflow.core.errors import NotFoundError, StorageError
from taskflow.core.logging import get_logger
from taskflow.db import crud
from taskflow.models.notifications import Notification

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from taskflow.core.auth import Principal

logger = get_logger(__name__)


async def _persist_notification(
    session: AsyncSession,
    *,
    user_id: UUID,
    message: str,
) -> Notification:
    notification = Notification(user_id=user_id, message=message)
    session.add(notification)
    await session.commit()
    return notification


async def notify(
    session: AsyncSession,
    *,
    user_id: UUID,
    message: str,
) -> Notification | None:
    """Persist a notification for *user_id*; failures are logged and dropped.

    Callers invoke this only after their own changes are committed, so the
    rollback here never touches the primary mutation.
    """
    try:
        notification = await _persist_notification(session, user_id=user_id, message=message)
    except Exception as exc:
        try:
            await session.rollback()
        except SQLAlchemyError:
            logger.exception("notification.rollback_failed", extra={"user_id": str(user_id)})
        logger.warning(
            "notification.dispatch_failed",
            extra={"user_id": str(user_id), "error": str(exc)},
        )
        return None
    logger.info(
        "notification.dispatched",
        extra={"user_id": str(user_id), "notification_id": str(notification.id)},
    )
    return notification


async def list_notifications(
    session: AsyncSession,
    *,
    principal: Principal,
) -> list[Notification]:
    """Return the principal's own notifications, newest first."""
    try:
        return (
            await Notification.objects.filter_by(user_id=principal.user_id)
            .order_by(col(Notification.created_at).desc())
            .all(session)
        )
    except SQLAlchemyError as exc:
        raise StorageError(str(exc)) from exc


async def mark_notification_read(
    session: AsyncSession,
    *,
    principal: Principal,
    notification_id: UUID,
) -> Notification:
    """Mark one notification read; it must belong to the principal."""
    try:
        updated = await crud.update_where(
            session,
            Notification,
            col(Notification.id) == notification_id,
            col(Notification.user_id) == principal.user_id,
            read=True,
        )
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StorageError(str(exc)) from exc
    if updated == 0:
        raise NotFoundError("Notification not found")
    notification = await Notification.objects.by_id(notification_id).first(session)
    if notification is None:
        raise NotFoundError("Notification not found")
    # Bulk UPDATE bypasses the identity map.
    await session.refresh(notification)
    return notification
