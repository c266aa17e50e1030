"""Schemas for task create/update/read and comment payloads."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field
from sqlmodel import SQLModel
from sqlmodel._compat import SQLModelConfig

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)

# Field names a task patch may set; anything else is ignored by the update.
TASK_PATCH_FIELDS = frozenset({"state", "title", "description", "priority", "assignee"})


class TaskCreate(SQLModel):
    """Draft for a new task."""

    title: str = Field(examples=["Refresh landing page copy"])
    description: str = ""
    state: str = Field(default="backlog", examples=["backlog", "inprogress"])
    priority: int = Field(default=0, examples=[2])
    assignee: str | None = Field(
        default=None,
        description='Assignee user id; empty, null, or "null" leaves the task unassigned.',
        examples=["11111111-1111-1111-1111-111111111111"],
    )


class TaskUpdate(SQLModel):
    """Sparse task patch; each field is either absent or present with a value.

    Unknown keys are kept in ``model_extra`` so permission checks see the
    full requested key set, but they are never written.
    """

    model_config = SQLModelConfig(extra="allow")

    state: str | None = None
    title: str | None = None
    description: str | None = None
    priority: float | None = Field(
        default=None,
        description="Numeric priority; fractional values are truncated.",
    )
    assignee: str | None = Field(
        default=None,
        description="New assignee user id, or empty/null to unassign.",
    )

    @property
    def requested_fields(self) -> frozenset[str]:
        """Every key present in the submitted patch, recognized or not."""
        return frozenset(self.model_fields_set) | frozenset(self.model_extra or {})

    @property
    def present_fields(self) -> frozenset[str]:
        """Recognized keys present in the patch."""
        return frozenset(self.model_fields_set) & TASK_PATCH_FIELDS


class CommentCreate(SQLModel):
    """Payload for adding a comment to a task."""

    content: str = Field(examples=["Waiting on design review."])


class CommentRead(SQLModel):
    """Comment payload with the author's resolved username."""

    id: UUID
    task_id: UUID
    content: str
    author: str = Field(default="", description="Author username, empty if unresolved.")
    author_id: UUID | None = None
    created_at: datetime


class TaskRead(SQLModel):
    """Task payload; `assignee` carries the resolved username."""

    id: UUID
    title: str
    description: str
    state: str
    priority: int
    assignee: str = Field(default="", description="Assignee username, empty when unassigned.")
    assignee_id: UUID | None = None
    created_by_user_id: UUID | None = None
    comments: list[CommentRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
