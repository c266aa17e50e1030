"""Task CRUD and comment endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, status

from taskflow.api.deps import PRINCIPAL_DEP, SESSION_DEP
from taskflow.schemas.common import OkResponse
from taskflow.schemas.tasks import CommentCreate, CommentRead, TaskCreate, TaskRead, TaskUpdate
from taskflow.services import tasks as task_service

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from taskflow.core.auth import Principal

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.post("", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
async def create_task(
    payload: TaskCreate,
    session: AsyncSession = SESSION_DEP,
    principal: Principal = PRINCIPAL_DEP,
) -> TaskRead:
    """Create a task (admin only); unassigned tasks start in the backlog."""
    return await task_service.create_task(session, principal=principal, draft=payload)


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(
    task_id: UUID,
    session: AsyncSession = SESSION_DEP,
    principal: Principal = PRINCIPAL_DEP,
) -> TaskRead:
    return await task_service.get_task(session, principal=principal, task_id=task_id)


@router.patch("/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: UUID,
    payload: TaskUpdate,
    session: AsyncSession = SESSION_DEP,
    principal: Principal = PRINCIPAL_DEP,
) -> TaskRead:
    """Apply a sparse patch. Members may only send `{"state": ...}`."""
    return await task_service.update_task(
        session,
        principal=principal,
        task_id=task_id,
        patch=payload,
    )


@router.delete("/{task_id}", response_model=OkResponse)
async def delete_task(
    task_id: UUID,
    session: AsyncSession = SESSION_DEP,
    principal: Principal = PRINCIPAL_DEP,
) -> OkResponse:
    await task_service.delete_task(session, principal=principal, task_id=task_id)
    return OkResponse()


@router.post(
    "/{task_id}/comments",
    response_model=CommentRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    task_id: UUID,
    payload: CommentCreate,
    session: AsyncSession = SESSION_DEP,
    principal: Principal = PRINCIPAL_DEP,
) -> CommentRead:
    return await task_service.add_comment(
        session,
        principal=principal,
        task_id=task_id,
        content=payload.content,
    )
