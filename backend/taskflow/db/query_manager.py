"""Chainable query helpers exposed as `Model.objects` on table models."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlmodel import SQLModel, col, select

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession
    from sqlmodel.sql.expression import SelectOfScalar

ModelT = TypeVar("ModelT", bound=SQLModel)


@dataclass(frozen=True)
class ModelQuery(Generic[ModelT]):
    """Immutable wrapper around a select statement for one model."""

    model: type[ModelT]
    statement: SelectOfScalar[ModelT]

    def filter(self, *criteria: Any) -> ModelQuery[ModelT]:
        return replace(self, statement=self.statement.where(*criteria))

    def filter_by(self, **kwargs: Any) -> ModelQuery[ModelT]:
        return replace(self, statement=self.statement.filter_by(**kwargs))

    def order_by(self, *ordering: Any) -> ModelQuery[ModelT]:
        return replace(self, statement=self.statement.order_by(*ordering))

    def limit(self, value: int) -> ModelQuery[ModelT]:
        return replace(self, statement=self.statement.limit(value))

    def for_update(self) -> ModelQuery[ModelT]:
        """Lock matched rows until the surrounding transaction ends.

        Already-loaded instances are overwritten with the locked row values.
        """
        statement = self.statement.with_for_update().execution_options(populate_existing=True)
        return replace(self, statement=statement)

    async def all(self, session: AsyncSession) -> list[ModelT]:
        return list(await session.exec(self.statement))

    async def first(self, session: AsyncSession) -> ModelT | None:
        return (await session.exec(self.statement)).first()


class ModelManager(Generic[ModelT]):
    """Entry point for building queries against a table model."""

    def __init__(self, model: type[ModelT]) -> None:
        self.model = model

    def all(self) -> ModelQuery[ModelT]:
        return ModelQuery(self.model, select(self.model))

    def by_id(self, obj_id: object) -> ModelQuery[ModelT]:
        return self.filter(col(getattr(self.model, "id")) == obj_id)

    def filter(self, *criteria: Any) -> ModelQuery[ModelT]:
        return self.all().filter(*criteria)

    def filter_by(self, **kwargs: Any) -> ModelQuery[ModelT]:
        return self.all().filter_by(**kwargs)


class ManagerDescriptor:
    """Class-level descriptor returning a manager bound to the owning model."""

    def __get__(self, instance: object, owner: type[ModelT]) -> ModelManager[ModelT]:
        return ModelManager(owner)
