"""Board aggregation and column configuration."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import col, select

from taskflow.core.errors import NotFoundError, StorageError, ValidationError
from taskflow.core.logging import get_logger
from taskflow.core.time import utcnow
from taskflow.db import crud
from taskflow.models.board_columns import BOARD_CONFIG_ID, BoardColumn, BoardConfig
from taskflow.models.tasks import DEFAULT_TASK_STATE, Task
from taskflow.models.users import User
from taskflow.schemas.boards import BoardColumnRead, BoardRead
from taskflow.services.permissions import MANAGE_USERS, READ_BOARD, require_capability
from taskflow.services.tasks import list_task_comments, to_task_read

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from taskflow.core.auth import Principal
    from taskflow.schemas.boards import BoardColumnUpdate
    from taskflow.schemas.tasks import CommentRead, TaskRead

logger = get_logger(__name__)

DEFAULT_COLUMN_ORDER: tuple[str, ...] = ("backlog", "inprogress", "aprove", "done")
DEFAULT_COLUMN_TITLES: dict[str, str] = {
    "backlog": "Backlog",
    "inprogress": "In Progress",
    "aprove": "Approve",
    "done": "Done",
}


def parse_column_order(raw: str | None) -> list[str]:
    """Decode a stored column order, falling back to the default sequence."""
    if raw is None:
        return list(DEFAULT_COLUMN_ORDER)
    try:
        value: Any = json.loads(raw)
    except ValueError:
        return list(DEFAULT_COLUMN_ORDER)
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        return list(DEFAULT_COLUMN_ORDER)
    return value


async def _load_column_order(session: AsyncSession) -> list[str]:
    try:
        config = await BoardConfig.objects.by_id(BOARD_CONFIG_ID).first(session)
    except SQLAlchemyError as exc:
        logger.warning("board.config_load_failed", extra={"error": str(exc)})
        await session.rollback()
        return list(DEFAULT_COLUMN_ORDER)
    return parse_column_order(config.column_order if config is not None else None)


async def _load_comments(session: AsyncSession, task_id: UUID) -> list[CommentRead]:
    return await list_task_comments(session, task_id=task_id, newest_first=False)


async def get_board(session: AsyncSession, *, principal: Principal) -> BoardRead:
    """Assemble the full board.

    Every task appears in ``tasks``. A task id is also appended to a column
    bucket, newest task first, only when the task's state names an existing
    column; tasks in unknown states are listed but sit in no column.
    Comments are attached oldest first, and a task whose comments cannot be
    loaded is returned without them.
    """
    require_capability(principal, READ_BOARD)
    board = BoardRead(column_order=await _load_column_order(session))

    try:
        columns = await BoardColumn.objects.all().order_by(col(BoardColumn.order)).all(session)
        for column in columns:
            board.columns[column.id] = BoardColumnRead(id=column.id, title=column.title)

        statement = (
            select(Task, User.username)
            .outerjoin(User, col(User.id) == col(Task.assignee_id))
            .order_by(col(Task.created_at).desc())
        )
        rows = list(await session.exec(statement))
    except SQLAlchemyError as exc:
        raise StorageError(str(exc)) from exc

    task_reads: list[TaskRead] = []
    for task, username in rows:
        model = to_task_read(task, assignee=username or "")
        board.tasks[str(task.id)] = model
        task_reads.append(model)
        bucket = board.columns.get(task.state)
        if bucket is not None:
            bucket.task_ids.append(str(task.id))

    for model in task_reads:
        try:
            model.comments = await _load_comments(session, model.id)
        except SQLAlchemyError as exc:
            logger.warning(
                "board.comments_load_failed",
                extra={"task_id": str(model.id), "error": str(exc)},
            )
            await session.rollback()
    return board


def _validate_column_batch(columns: Sequence[BoardColumnUpdate]) -> None:
    seen: set[str] = set()
    for column in columns:
        column_id = column.id.strip()
        if not column_id:
            raise ValidationError("Column id is required")
        if column_id in seen:
            raise ValidationError(f"Duplicate column id '{column_id}'")
        seen.add(column_id)


async def _apply_column_update(session: AsyncSession, column: BoardColumnUpdate) -> None:
    await crud.update_where(
        session,
        BoardColumn,
        col(BoardColumn.id) == column.id,
        commit=False,
        title=column.title,
        order=column.order,
    )


async def _write_column_order(session: AsyncSession, column_order: list[str]) -> None:
    payload = json.dumps(column_order)
    updated = await crud.update_where(
        session,
        BoardConfig,
        col(BoardConfig.id) == BOARD_CONFIG_ID,
        commit=False,
        column_order=payload,
        updated_at=utcnow(),
    )
    if updated == 0:
        session.add(BoardConfig(id=BOARD_CONFIG_ID, column_order=payload))
        await session.flush()


async def update_board_columns(
    session: AsyncSession,
    *,
    principal: Principal,
    columns: Sequence[BoardColumnUpdate],
) -> None:
    """Rename/reorder columns and rewrite the column order in one transaction.

    Ids that match no stored column update nothing but still appear in the
    rewritten order.
    """
    require_capability(principal, MANAGE_USERS)
    _validate_column_batch(columns)
    try:
        for column in columns:
            await _apply_column_update(session, column)
        await _write_column_order(session, [column.id for column in columns])
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.warning("board.columns_update_failed", extra={"error": str(exc)})
        raise StorageError(str(exc)) from exc
    logger.info(
        "board.columns_updated",
        extra={"column_ids": [column.id for column in columns]},
    )


async def list_board_columns(
    session: AsyncSession,
    *,
    principal: Principal,
) -> list[BoardColumn]:
    require_capability(principal, READ_BOARD)
    try:
        return await BoardColumn.objects.all().order_by(col(BoardColumn.order)).all(session)
    except SQLAlchemyError as exc:
        raise StorageError(str(exc)) from exc


async def add_board_column(
    session: AsyncSession,
    *,
    principal: Principal,
    title: str,
) -> BoardColumn:
    """Append a column after the current highest order as ``column-<n>``."""
    require_capability(principal, MANAGE_USERS)
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError("title is required")
    try:
        max_order = (await session.exec(select(func.max(BoardColumn.order)))).one()
        next_order = int(max_order or 0) + 1
        column = BoardColumn(id=f"column-{next_order}", title=cleaned, order=next_order)
        session.add(column)
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ValidationError("Column already exists") from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StorageError(str(exc)) from exc
    await session.refresh(column)
    logger.info("board.column_added", extra={"column_id": column.id})
    return column


async def delete_board_column(
    session: AsyncSession,
    *,
    principal: Principal,
    column_id: str,
) -> None:
    """Remove a column; its tasks fall back to the backlog unassigned."""
    require_capability(principal, MANAGE_USERS)
    column = await BoardColumn.objects.by_id(column_id).first(session)
    if column is None:
        raise NotFoundError("Column not found")
    try:
        moved = await crud.update_where(
            session,
            Task,
            col(Task.state) == column_id,
            commit=False,
            state=DEFAULT_TASK_STATE,
            assignee_id=None,
            updated_at=utcnow(),
        )
        await crud.delete_where(
            session,
            BoardColumn,
            col(BoardColumn.id) == column_id,
            commit=False,
        )
        config = await BoardConfig.objects.by_id(BOARD_CONFIG_ID).first(session)
        if config is not None:
            order = parse_column_order(config.column_order)
            if column_id in order:
                await _write_column_order(
                    session,
                    [item for item in order if item != column_id],
                )
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StorageError(str(exc)) from exc
    logger.info(
        "board.column_deleted",
        extra={"column_id": column_id, "moved_tasks": moved},
    )


async def seed_board_defaults(session: AsyncSession) -> None:
    """Create the default columns and column order when none exist yet."""
    existing = await BoardColumn.objects.all().limit(1).first(session)
    if existing is None:
        for index, column_id in enumerate(DEFAULT_COLUMN_ORDER, start=1):
            session.add(
                BoardColumn(
                    id=column_id,
                    title=DEFAULT_COLUMN_TITLES[column_id],
                    order=index,
                ),
            )
    config = await BoardConfig.objects.by_id(BOARD_CONFIG_ID).first(session)
    if config is None:
        session.add(
            BoardConfig(
                id=BOARD_CONFIG_ID,
                column_order=json.dumps(list(DEFAULT_COLUMN_ORDER)),
            ),
        )
    if existing is None or config is None:
        await session.commit()
        logger.info("board.defaults_seeded")
