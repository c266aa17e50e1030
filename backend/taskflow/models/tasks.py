"""Task model representing a card on the kanban board."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlmodel import Field

from taskflow.core.time import utcnow
from taskflow.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)

DEFAULT_TASK_STATE = "backlog"


class Task(QueryModel, table=True):
    """Board task; `state` conventionally names a column id but is not a foreign key."""

    __tablename__ = "tasks"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    title: str
    description: str = Field(default="")
    state: str = Field(default=DEFAULT_TASK_STATE, index=True)
    priority: int = Field(default=0)

    assignee_id: UUID | None = Field(default=None, foreign_key="users.id", index=True)
    created_by_user_id: UUID | None = Field(
        default=None,
        foreign_key="users.id",
        index=True,
    )

    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)
