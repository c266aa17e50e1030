"""Board view and column configuration endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, status

from taskflow.api.deps import PRINCIPAL_DEP, SESSION_DEP
from taskflow.schemas.boards import (
    BoardColumnCreate,
    BoardColumnDetail,
    BoardColumnUpdate,
    BoardRead,
)
from taskflow.schemas.common import OkResponse
from taskflow.services import board as board_service

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from taskflow.core.auth import Principal

router = APIRouter(prefix="/board", tags=["board"])


@router.get("", response_model=BoardRead)
async def get_board(
    session: AsyncSession = SESSION_DEP,
    principal: Principal = PRINCIPAL_DEP,
) -> BoardRead:
    """Return every task, every column, and the column rendering order."""
    return await board_service.get_board(session, principal=principal)


@router.get("/columns", response_model=list[BoardColumnDetail])
async def list_columns(
    session: AsyncSession = SESSION_DEP,
    principal: Principal = PRINCIPAL_DEP,
) -> list[BoardColumnDetail]:
    columns = await board_service.list_board_columns(session, principal=principal)
    return [BoardColumnDetail.model_validate(column, from_attributes=True) for column in columns]


@router.put("/columns", response_model=OkResponse)
async def update_columns(
    payload: list[BoardColumnUpdate],
    session: AsyncSession = SESSION_DEP,
    principal: Principal = PRINCIPAL_DEP,
) -> OkResponse:
    """Rename and reorder columns as one batch (admin only)."""
    await board_service.update_board_columns(session, principal=principal, columns=payload)
    return OkResponse()


@router.post(
    "/columns",
    response_model=BoardColumnDetail,
    status_code=status.HTTP_201_CREATED,
)
async def add_column(
    payload: BoardColumnCreate,
    session: AsyncSession = SESSION_DEP,
    principal: Principal = PRINCIPAL_DEP,
) -> BoardColumnDetail:
    column = await board_service.add_board_column(
        session,
        principal=principal,
        title=payload.title,
    )
    return BoardColumnDetail.model_validate(column, from_attributes=True)


@router.delete("/columns/{column_id}", response_model=OkResponse)
async def delete_column(
    column_id: str,
    session: AsyncSession = SESSION_DEP,
    principal: Principal = PRINCIPAL_DEP,
) -> OkResponse:
    """Delete a column and send its tasks back to the backlog."""
    await board_service.delete_board_column(session, principal=principal, column_id=column_id)
    return OkResponse()
