"""User API schemas for create, update, and read operations."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field
from sqlmodel import SQLModel

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)


class UserBase(SQLModel):
    """Common user fields shared across user payload schemas."""

    username: str = Field(
        description="Display name shown on task cards and comments.",
        examples=["alex"],
    )
    email: str = Field(
        description="Unique email address for the user.",
        examples=["alex@example.com"],
    )


class UserCreate(UserBase):
    """Payload used by admins to create a user record."""

    role: str = Field(
        default="member",
        description="Board role; `user` is accepted as an alias of `member`.",
        examples=["member", "admin"],
    )


class UserRoleUpdate(SQLModel):
    """Payload for changing a user's board role."""

    role: str = Field(examples=["admin"])


class UserProfileUpdate(SQLModel):
    """Payload for partial updates of the caller's own profile."""

    username: str | None = None
    email: str | None = None


class UserRead(UserBase):
    """Full user payload returned by API responses."""

    id: UUID = Field(
        description="Internal user UUID.",
        examples=["11111111-1111-1111-1111-111111111111"],
    )
    role: str = Field(examples=["member"])
    created_at: datetime
