"""Per-user notifications created as side effects of task mutations."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field

from taskflow.core.time import utcnow
from taskflow.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Notification(QueryModel, table=True):
    """Notification for a single recipient; only `read` is ever updated."""

    __tablename__ = "notifications"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", index=True)
    message: str
    read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, index=True)
