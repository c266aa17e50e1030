"""Schemas for the aggregated board view and column management."""

from __future__ import annotations

from pydantic import Field
from sqlmodel import SQLModel

from taskflow.schemas.tasks import TaskRead


class BoardColumnRead(SQLModel):
    """Column as rendered on the board, with its ordered task-id bucket."""

    id: str
    title: str
    task_ids: list[str] = Field(default_factory=list)


class BoardRead(SQLModel):
    """Board projection: every task, every column, and the rendering order."""

    tasks: dict[str, TaskRead] = Field(default_factory=dict)
    columns: dict[str, BoardColumnRead] = Field(default_factory=dict)
    column_order: list[str] = Field(default_factory=list)


class BoardColumnDetail(SQLModel):
    """Column configuration row."""

    id: str = Field(examples=["inprogress"])
    title: str = Field(examples=["In Progress"])
    order: int = Field(examples=[2])


class BoardColumnUpdate(BoardColumnDetail):
    """One entry of a batch column update."""


class BoardColumnCreate(SQLModel):
    """Payload for appending a new column."""

    title: str = Field(examples=["Review"])
