"""Notification read schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlmodel import SQLModel

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)


class NotificationRead(SQLModel):
    """Notification payload returned to its recipient."""

    id: UUID
    user_id: UUID
    message: str
    read: bool
    created_at: datetime
