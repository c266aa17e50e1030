"""Task lifecycle operations: create, read, patch, delete, and comment."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import col, select

from taskflow.core.errors import NotFoundError, StorageError, ValidationError
from taskflow.core.logging import get_logger
from taskflow.core.time import utcnow
from taskflow.db import crud
from taskflow.models.comments import TaskComment
from taskflow.models.tasks import DEFAULT_TASK_STATE, Task
from taskflow.models.users import User
from taskflow.schemas.tasks import CommentRead, TaskRead
from taskflow.services.notifications import notify
from taskflow.services.permissions import (
    ADD_COMMENT,
    CREATE_TASK,
    DELETE_TASK,
    READ_TASK,
    require_capability,
    require_task_patch,
)
from taskflow.services.users import resolve_username

if TYPE_CHECKING:
    from typing import Any

    from sqlmodel.ext.asyncio.session import AsyncSession

    from taskflow.core.auth import Principal
    from taskflow.schemas.tasks import TaskCreate, TaskUpdate

logger = get_logger(__name__)

UNASSIGNED_SENTINELS = frozenset({"", "null"})
NON_NULLABLE_PATCH_FIELDS = ("state", "title", "description", "priority")
TASK_NOT_FOUND = "Task not found"
UNKNOWN_ASSIGNEE = "Assignee does not exist"


def parse_assignee(value: str | None) -> UUID | None:
    """Turn an assignee id string into a UUID; empty, null, or "null" mean none."""
    if value is None:
        return None
    raw = value.strip()
    if raw in UNASSIGNED_SENTINELS:
        return None
    try:
        return UUID(raw)
    except ValueError as exc:
        raise ValidationError(f"Invalid assignee id '{raw}'") from exc


def to_task_read(
    task: Task,
    *,
    assignee: str = "",
    comments: list[CommentRead] | None = None,
) -> TaskRead:
    model = TaskRead.model_validate(task, from_attributes=True)
    model.assignee = assignee
    model.comments = comments or []
    return model


async def _require_assignee(session: AsyncSession, assignee_id: UUID) -> None:
    try:
        assignee = await User.objects.by_id(assignee_id).first(session)
    except SQLAlchemyError as exc:
        raise StorageError(str(exc)) from exc
    if assignee is None:
        raise ValidationError(UNKNOWN_ASSIGNEE)


async def list_task_comments(
    session: AsyncSession,
    *,
    task_id: UUID,
    newest_first: bool,
) -> list[CommentRead]:
    """Load a task's comments with author usernames in the requested order."""
    created = col(TaskComment.created_at)
    statement = (
        select(TaskComment, User.username)
        .outerjoin(User, col(User.id) == col(TaskComment.author_id))
        .where(col(TaskComment.task_id) == task_id)
        .order_by(created.desc() if newest_first else created.asc())
    )
    comments: list[CommentRead] = []
    for comment, username in await session.exec(statement):
        model = CommentRead.model_validate(comment, from_attributes=True)
        model.author = username or ""
        comments.append(model)
    return comments


async def create_task(
    session: AsyncSession,
    *,
    principal: Principal,
    draft: TaskCreate,
) -> TaskRead:
    """Create a task; unassigned drafts always land in the backlog."""
    require_capability(principal, CREATE_TASK)
    title = (draft.title or "").strip()
    if not title:
        raise ValidationError("title is required")
    assignee_id = parse_assignee(draft.assignee)
    state = (draft.state or "").strip() or DEFAULT_TASK_STATE
    if assignee_id is None:
        state = DEFAULT_TASK_STATE
    else:
        await _require_assignee(session, assignee_id)

    task = Task(
        title=title,
        description=draft.description or "",
        state=state,
        priority=draft.priority,
        assignee_id=assignee_id,
        created_by_user_id=principal.user_id,
    )
    session.add(task)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ValidationError(UNKNOWN_ASSIGNEE) from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StorageError(str(exc)) from exc
    await session.refresh(task)
    logger.info(
        "task.created",
        extra={
            "task_id": str(task.id),
            "state": task.state,
            "assignee_id": str(assignee_id) if assignee_id else None,
            "actor_id": str(principal.user_id),
        },
    )

    if assignee_id is None:
        return to_task_read(task)
    username = await resolve_username(session, assignee_id)
    response = to_task_read(task, assignee=username or str(assignee_id))
    await notify(
        session,
        user_id=assignee_id,
        message=f"You have been assigned a new task: {title}",
    )
    return response


async def get_task(
    session: AsyncSession,
    *,
    principal: Principal,
    task_id: UUID,
) -> TaskRead:
    """Return a task with its comments newest first."""
    require_capability(principal, READ_TASK)
    task = await Task.objects.by_id(task_id).first(session)
    if task is None:
        raise NotFoundError(TASK_NOT_FOUND)
    username = await resolve_username(session, task.assignee_id)
    try:
        comments = await list_task_comments(session, task_id=task.id, newest_first=True)
    except SQLAlchemyError as exc:
        raise StorageError(str(exc)) from exc
    return to_task_read(task, assignee=username or "", comments=comments)


def _patch_values(patch: TaskUpdate) -> dict[str, Any]:
    present = patch.present_fields
    for name in NON_NULLABLE_PATCH_FIELDS:
        if name in present and getattr(patch, name) is None:
            raise ValidationError(f"{name} must not be null")

    values: dict[str, Any] = {}
    if "state" in present:
        values["state"] = patch.state
    if "title" in present:
        values["title"] = patch.title
    if "description" in present:
        values["description"] = patch.description
    if "priority" in present and patch.priority is not None:
        if not math.isfinite(patch.priority):
            raise ValidationError("priority must be a finite number")
        values["priority"] = int(patch.priority)
    if "assignee" in present:
        values["assignee_id"] = parse_assignee(patch.assignee)
    return values


async def update_task(
    session: AsyncSession,
    *,
    principal: Principal,
    task_id: UUID,
    patch: TaskUpdate,
) -> TaskRead:
    """Apply a sparse patch in one UPDATE, then notify against the old snapshot.

    The baseline row is read under a row lock so concurrent patches cannot
    both diff against the same stale state.
    """
    require_task_patch(principal, patch.requested_fields)
    values = _patch_values(patch)
    present = patch.present_fields
    new_assignee_id = values.get("assignee_id")
    if new_assignee_id is not None:
        await _require_assignee(session, new_assignee_id)

    task = await Task.objects.by_id(task_id).for_update().first(session)
    if task is None:
        raise NotFoundError(TASK_NOT_FOUND)
    old_state = task.state
    old_assignee_id = task.assignee_id
    old_title = task.title

    try:
        updated = await crud.update_where(
            session,
            Task,
            col(Task.id) == task_id,
            commit=False,
            updated_at=utcnow(),
            **values,
        )
        if updated == 0:
            await session.rollback()
            raise StorageError(f"Task {task_id} update affected no rows")
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ValidationError(UNKNOWN_ASSIGNEE) from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StorageError(str(exc)) from exc

    await session.refresh(task)
    username = await resolve_username(session, task.assignee_id)
    response = to_task_read(task, assignee=username or "")
    logger.info(
        "task.updated",
        extra={
            "task_id": str(task_id),
            "fields": sorted(present),
            "actor_id": str(principal.user_id),
        },
    )

    if "state" in values and values["state"] != old_state and old_assignee_id is not None:
        await notify(
            session,
            user_id=old_assignee_id,
            message=f"Your task status changed to: {values['state']}",
        )
    # Fires on every priority patch, including an unchanged value.
    if "priority" in values and old_assignee_id is not None:
        await notify(
            session,
            user_id=old_assignee_id,
            message=f"Priority of task '{old_title}' changed to {values['priority']}",
        )
    if new_assignee_id is not None and new_assignee_id != old_assignee_id:
        await notify(
            session,
            user_id=new_assignee_id,
            message=f"You have been assigned task: {old_title}",
        )
    return response


async def delete_task(
    session: AsyncSession,
    *,
    principal: Principal,
    task_id: UUID,
) -> None:
    """Delete a task and its comments, then tell the former assignee."""
    require_capability(principal, DELETE_TASK)
    assignee_id: UUID | None = None
    title = ""
    try:
        existing = await Task.objects.by_id(task_id).first(session)
    except SQLAlchemyError as exc:
        logger.warning(
            "task.delete.preread_failed",
            extra={"task_id": str(task_id), "error": str(exc)},
        )
        await session.rollback()
        existing = None
    if existing is not None:
        assignee_id = existing.assignee_id
        title = existing.title

    try:
        await crud.delete_where(
            session,
            TaskComment,
            col(TaskComment.task_id) == task_id,
            commit=False,
        )
        deleted = await crud.delete_where(session, Task, col(Task.id) == task_id, commit=False)
        if deleted == 0:
            await session.rollback()
            raise NotFoundError(TASK_NOT_FOUND)
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StorageError(str(exc)) from exc
    logger.info(
        "task.deleted",
        extra={"task_id": str(task_id), "actor_id": str(principal.user_id)},
    )

    if assignee_id is not None:
        await notify(session, user_id=assignee_id, message=f"Task '{title}' was deleted")


async def add_comment(
    session: AsyncSession,
    *,
    principal: Principal,
    task_id: UUID,
    content: str,
) -> CommentRead:
    """Append a comment and notify whoever is currently assigned."""
    require_capability(principal, ADD_COMMENT)
    if not (content or "").strip():
        raise ValidationError("content is required")
    task = await Task.objects.by_id(task_id).first(session)
    if task is None:
        raise NotFoundError(TASK_NOT_FOUND)
    assignee_id = task.assignee_id
    title = task.title

    comment = TaskComment(task_id=task_id, content=content, author_id=principal.user_id)
    session.add(comment)
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StorageError(str(exc)) from exc
    await session.refresh(comment)

    author = await resolve_username(session, principal.user_id)
    response = CommentRead.model_validate(comment, from_attributes=True)
    response.author = author or ""
    logger.info(
        "task.comment_added",
        extra={"task_id": str(task_id), "comment_id": str(comment.id)},
    )

    if assignee_id is not None:
        await notify(
            session,
            user_id=assignee_id,
            message=f"A comment was added to task '{title}'",
        )
    return response
