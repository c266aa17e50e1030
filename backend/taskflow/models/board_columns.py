"""Board column and board configuration models."""

from __future__ import annotations

from datetime import datetime

from sqlmodel import Field

from taskflow.core.time import utcnow
from taskflow.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)

BOARD_CONFIG_ID = 1


class BoardColumn(QueryModel, table=True):
    """Named, ordered column that task states conventionally reference."""

    __tablename__ = "board_columns"  # pyright: ignore[reportAssignmentType]

    id: str = Field(primary_key=True)
    title: str
    order: int = Field(default=0, index=True)


class BoardConfig(QueryModel, table=True):
    """Singleton row holding the serialized column rendering order."""

    __tablename__ = "board_config"  # pyright: ignore[reportAssignmentType]

    id: int = Field(default=BOARD_CONFIG_ID, primary_key=True)
    # JSON-encoded list of column ids.
    column_order: str = Field(default="[]")
    updated_at: datetime = Field(default_factory=utcnow)
