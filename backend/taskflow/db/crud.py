"""Small statement-level write helpers shared by services."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, update

if TYPE_CHECKING:
    from sqlmodel import SQLModel
    from sqlmodel.ext.asyncio.session import AsyncSession


async def update_where(
    session: AsyncSession,
    model: type[SQLModel],
    *criteria: Any,
    commit: bool = True,
    **values: Any,
) -> int:
    """Issue one UPDATE for rows matching *criteria* and return the row count."""
    statement = update(model).where(*criteria).values(**values)
    result = await session.exec(statement)  # type: ignore[call-overload]
    if commit:
        await session.commit()
    return int(result.rowcount or 0)


async def delete_where(
    session: AsyncSession,
    model: type[SQLModel],
    *criteria: Any,
    commit: bool = True,
) -> int:
    """Issue one DELETE for rows matching *criteria* and return the row count."""
    statement = delete(model).where(*criteria)
    result = await session.exec(statement)  # type: ignore[call-overload]
    if commit:
        await session.commit()
    return int(result.rowcount or 0)
