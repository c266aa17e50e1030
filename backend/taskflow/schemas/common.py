"""Common response schemas shared by route modules."""

from __future__ import annotations

from pydantic import Field
from sqlmodel import SQLModel


class OkResponse(SQLModel):
    """Standard success acknowledgement for mutations without a body."""

    ok: bool = Field(default=True, examples=[True])
