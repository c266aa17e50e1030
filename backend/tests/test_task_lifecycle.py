# ruff: noqa: INP001, S101
"""Task lifecycle behavior against an in-memory database."""

from __future__ import annotations

from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from taskflow.core.auth import Principal
from taskflow.core.errors import AuthorizationError, NotFoundError, StorageError, ValidationError
from taskflow.models.comments import TaskComment
from taskflow.models.notifications import Notification
from taskflow.models.tasks import Task
from taskflow.models.users import User
from taskflow.schemas.tasks import TaskCreate, TaskUpdate
from taskflow.services import tasks as task_service


async def _make_engine() -> AsyncEngine:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)
    return engine


def _session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def _add_user(session: AsyncSession, *, username: str, role: str = "member") -> User:
    user = User(username=username, email=f"{username}@example.com", role=role)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


def _principal(user: User) -> Principal:
    return Principal(user_id=user.id, role=user.role)


async def _notifications_for(session: AsyncSession, user_id: UUID) -> list[Notification]:
    return await Notification.objects.filter_by(user_id=user_id).all(session)


@pytest.mark.asyncio
async def test_create_without_assignee_forces_backlog() -> None:
    engine = await _make_engine()
    try:
        async with _session_maker(engine)() as session:
            admin = await _add_user(session, username="admin", role="admin")
            created = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="Write docs", state="done"),
            )
            assert created.state == "backlog"
            assert created.assignee == ""
            assert created.assignee_id is None
            assert created.created_by_user_id == admin.id

            sentinel = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="Triage", state="inprogress", assignee="null"),
            )
            assert sentinel.state == "backlog"
            assert sentinel.assignee == ""
            assert await Notification.objects.all().all(session) == []
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_create_with_assignee_keeps_state_and_notifies_assignee() -> None:
    engine = await _make_engine()
    try:
        async with _session_maker(engine)() as session:
            admin = await _add_user(session, username="admin", role="admin")
            bob = await _add_user(session, username="bob")
            created = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="Ship it", state="inprogress", assignee=str(bob.id)),
            )
            assert created.state == "inprogress"
            assert created.assignee == "bob"
            assert created.assignee_id == bob.id

            notifications = await _notifications_for(session, bob.id)
            assert [n.message for n in notifications] == [
                "You have been assigned a new task: Ship it",
            ]
            assert notifications[0].read is False
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_create_falls_back_to_raw_assignee_id_when_username_unresolved(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    engine = await _make_engine()

    async def _unresolved(*_args: object, **_kwargs: object) -> None:
        return None

    try:
        async with _session_maker(engine)() as session:
            admin = await _add_user(session, username="admin", role="admin")
            bob = await _add_user(session, username="bob")
            monkeypatch.setattr(task_service, "resolve_username", _unresolved)
            created = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="Orphan", assignee=str(bob.id)),
            )
            assert created.assignee == str(bob.id)
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_create_with_unknown_assignee_is_rejected_before_insert() -> None:
    engine = await _make_engine()
    try:
        async with _session_maker(engine)() as session:
            admin = await _add_user(session, username="admin", role="admin")
            with pytest.raises(ValidationError) as exc:
                await task_service.create_task(
                    session,
                    principal=_principal(admin),
                    draft=TaskCreate(title="x", assignee=str(uuid4()), state="done"),
                )
            assert exc.value.message == "Assignee does not exist"
            assert await Task.objects.all().all(session) == []
            assert await Notification.objects.all().all(session) == []
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_update_with_unknown_assignee_leaves_task_untouched() -> None:
    engine = await _make_engine()
    try:
        async with _session_maker(engine)() as session:
            admin = await _add_user(session, username="admin", role="admin")
            bob = await _add_user(session, username="bob")
            bob_id = bob.id
            created = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="Keep", state="inprogress", assignee=str(bob_id)),
            )
            with pytest.raises(ValidationError):
                await task_service.update_task(
                    session,
                    principal=_principal(admin),
                    task_id=created.id,
                    patch=TaskUpdate(assignee=str(uuid4()), state="done"),
                )
            task = await Task.objects.by_id(created.id).first(session)
            assert task is not None
            assert task.assignee_id == bob_id
            assert task.state == "inprogress"
    finally:
        await engine.dispose()


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ['{"priority": NaN}', '{"priority": Infinity}'])
async def test_non_finite_priority_is_a_validation_error(raw: str) -> None:
    engine = await _make_engine()
    try:
        async with _session_maker(engine)() as session:
            admin = await _add_user(session, username="admin", role="admin")
            created = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="Ranked", priority=1),
            )
            with pytest.raises(ValidationError):
                await task_service.update_task(
                    session,
                    principal=_principal(admin),
                    task_id=created.id,
                    patch=TaskUpdate.model_validate_json(raw),
                )
            task = await Task.objects.by_id(created.id).first(session)
            assert task is not None
            assert task.priority == 1
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_timestamps_are_stored_as_naive_utc() -> None:
    engine = await _make_engine()
    maker = _session_maker(engine)
    try:
        async with maker() as session:
            admin = await _add_user(session, username="admin", role="admin")
            created = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="Stamped"),
            )
        async with maker() as session:
            task = await Task.objects.by_id(created.id).first(session)
            assert task is not None
            assert task.created_at.tzinfo is None
            assert task.updated_at.tzinfo is None
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_create_rejects_blank_title_bad_assignee_and_members() -> None:
    engine = await _make_engine()
    try:
        async with _session_maker(engine)() as session:
            admin = await _add_user(session, username="admin", role="admin")
            member = await _add_user(session, username="mia")
            with pytest.raises(ValidationError):
                await task_service.create_task(
                    session,
                    principal=_principal(admin),
                    draft=TaskCreate(title="   "),
                )
            with pytest.raises(ValidationError):
                await task_service.create_task(
                    session,
                    principal=_principal(admin),
                    draft=TaskCreate(title="x", assignee="not-a-uuid"),
                )
            with pytest.raises(AuthorizationError):
                await task_service.create_task(
                    session,
                    principal=_principal(member),
                    draft=TaskCreate(title="x"),
                )
            assert await Task.objects.all().all(session) == []
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_member_state_patch_allowed_but_mixed_patch_denied_without_changes() -> None:
    engine = await _make_engine()
    try:
        async with _session_maker(engine)() as session:
            admin = await _add_user(session, username="admin", role="admin")
            member = await _add_user(session, username="mia")
            created = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="Original"),
            )

            moved = await task_service.update_task(
                session,
                principal=_principal(member),
                task_id=created.id,
                patch=TaskUpdate(state="done"),
            )
            assert moved.state == "done"

            with pytest.raises(AuthorizationError):
                await task_service.update_task(
                    session,
                    principal=_principal(member),
                    task_id=created.id,
                    patch=TaskUpdate(state="backlog", title="x"),
                )
            current = await task_service.get_task(
                session,
                principal=_principal(member),
                task_id=created.id,
            )
            assert current.title == "Original"
            assert current.state == "done"
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_member_patch_with_unrecognized_key_is_denied() -> None:
    engine = await _make_engine()
    try:
        async with _session_maker(engine)() as session:
            admin = await _add_user(session, username="admin", role="admin")
            member = await _add_user(session, username="mia")
            created = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="Original"),
            )
            patch = TaskUpdate.model_validate({"state": "done", "colour": "red"})
            assert patch.requested_fields == frozenset({"state", "colour"})
            with pytest.raises(AuthorizationError):
                await task_service.update_task(
                    session,
                    principal=_principal(member),
                    task_id=created.id,
                    patch=patch,
                )

            # Admins may send it; the unknown key is ignored.
            updated = await task_service.update_task(
                session,
                principal=_principal(admin),
                task_id=created.id,
                patch=patch,
            )
            assert updated.state == "done"
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_priority_patch_notifies_even_when_unchanged() -> None:
    engine = await _make_engine()
    try:
        async with _session_maker(engine)() as session:
            admin = await _add_user(session, username="admin", role="admin")
            bob = await _add_user(session, username="bob")
            created = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="Prio", priority=3, assignee=str(bob.id)),
            )
            updated = await task_service.update_task(
                session,
                principal=_principal(admin),
                task_id=created.id,
                patch=TaskUpdate(priority=3),
            )
            assert updated.priority == 3

            messages = [n.message for n in await _notifications_for(session, bob.id)]
            priority_messages = [m for m in messages if m.startswith("Priority")]
            assert priority_messages == ["Priority of task 'Prio' changed to 3"]
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_priority_is_truncated_and_not_notified_without_assignee() -> None:
    engine = await _make_engine()
    try:
        async with _session_maker(engine)() as session:
            admin = await _add_user(session, username="admin", role="admin")
            created = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="Loose"),
            )
            updated = await task_service.update_task(
                session,
                principal=_principal(admin),
                task_id=created.id,
                patch=TaskUpdate(priority=2.9),
            )
            assert updated.priority == 2
            assert await Notification.objects.all().all(session) == []
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_state_notification_only_on_change_with_assignee() -> None:
    engine = await _make_engine()
    try:
        async with _session_maker(engine)() as session:
            admin = await _add_user(session, username="admin", role="admin")
            bob = await _add_user(session, username="bob")
            assigned = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="A", state="inprogress", assignee=str(bob.id)),
            )
            unassigned = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="B"),
            )

            def _state_messages(items: list[Notification]) -> list[str]:
                return [n.message for n in items if n.message.startswith("Your task status")]

            await task_service.update_task(
                session,
                principal=_principal(admin),
                task_id=assigned.id,
                patch=TaskUpdate(state="inprogress"),
            )
            assert _state_messages(await _notifications_for(session, bob.id)) == []

            await task_service.update_task(
                session,
                principal=_principal(admin),
                task_id=unassigned.id,
                patch=TaskUpdate(state="done"),
            )
            assert _state_messages(await Notification.objects.all().all(session)) == []

            await task_service.update_task(
                session,
                principal=_principal(admin),
                task_id=assigned.id,
                patch=TaskUpdate(state="done"),
            )
            assert _state_messages(await _notifications_for(session, bob.id)) == [
                "Your task status changed to: done",
            ]
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_assignee_change_notifies_new_assignee_only_when_different() -> None:
    engine = await _make_engine()
    try:
        async with _session_maker(engine)() as session:
            admin = await _add_user(session, username="admin", role="admin")
            bob = await _add_user(session, username="bob")
            carol = await _add_user(session, username="carol")
            created = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="Handoff", assignee=str(bob.id)),
            )

            await task_service.update_task(
                session,
                principal=_principal(admin),
                task_id=created.id,
                patch=TaskUpdate(assignee=str(bob.id)),
            )
            assert len(await _notifications_for(session, bob.id)) == 1

            updated = await task_service.update_task(
                session,
                principal=_principal(admin),
                task_id=created.id,
                patch=TaskUpdate(assignee=str(carol.id)),
            )
            assert updated.assignee == "carol"
            assert [n.message for n in await _notifications_for(session, carol.id)] == [
                "You have been assigned task: Handoff",
            ]

            cleared = await task_service.update_task(
                session,
                principal=_principal(admin),
                task_id=created.id,
                patch=TaskUpdate(assignee=""),
            )
            assert cleared.assignee == ""
            assert cleared.assignee_id is None
            assert len(await _notifications_for(session, carol.id)) == 1
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_update_validation_and_missing_task() -> None:
    engine = await _make_engine()
    try:
        async with _session_maker(engine)() as session:
            admin = await _add_user(session, username="admin", role="admin")
            created = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="Keep"),
            )
            with pytest.raises(ValidationError):
                await task_service.update_task(
                    session,
                    principal=_principal(admin),
                    task_id=created.id,
                    patch=TaskUpdate.model_validate({"title": None}),
                )
            with pytest.raises(NotFoundError):
                await task_service.update_task(
                    session,
                    principal=_principal(admin),
                    task_id=uuid4(),
                    patch=TaskUpdate(state="done"),
                )
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_update_affecting_no_rows_is_storage_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    engine = await _make_engine()
    try:
        async with _session_maker(engine)() as session:
            admin = await _add_user(session, username="admin", role="admin")
            created = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="Race"),
            )

            async def _no_rows(*_args: object, **_kwargs: object) -> int:
                return 0

            monkeypatch.setattr(task_service.crud, "update_where", _no_rows)
            with pytest.raises(StorageError):
                await task_service.update_task(
                    session,
                    principal=_principal(admin),
                    task_id=created.id,
                    patch=TaskUpdate(title="Lost"),
                )
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_delete_task_removes_comments_and_notifies_former_assignee() -> None:
    engine = await _make_engine()
    try:
        async with _session_maker(engine)() as session:
            admin = await _add_user(session, username="admin", role="admin")
            bob = await _add_user(session, username="bob")
            created = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="Doomed", assignee=str(bob.id)),
            )
            await task_service.add_comment(
                session,
                principal=_principal(admin),
                task_id=created.id,
                content="bye",
            )

            await task_service.delete_task(session, principal=_principal(admin), task_id=created.id)

            assert await Task.objects.by_id(created.id).first(session) is None
            assert await TaskComment.objects.filter_by(task_id=created.id).all(session) == []
            messages = [n.message for n in await _notifications_for(session, bob.id)]
            assert "Task 'Doomed' was deleted" in messages

            with pytest.raises(NotFoundError):
                await task_service.delete_task(
                    session,
                    principal=_principal(admin),
                    task_id=created.id,
                )
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_member_cannot_delete_task() -> None:
    engine = await _make_engine()
    try:
        async with _session_maker(engine)() as session:
            admin = await _add_user(session, username="admin", role="admin")
            member = await _add_user(session, username="mia")
            created = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="Stays"),
            )
            with pytest.raises(AuthorizationError):
                await task_service.delete_task(
                    session,
                    principal=_principal(member),
                    task_id=created.id,
                )
            assert await Task.objects.by_id(created.id).first(session) is not None
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_add_comment_resolves_author_and_notifies_current_assignee() -> None:
    engine = await _make_engine()
    try:
        async with _session_maker(engine)() as session:
            admin = await _add_user(session, username="admin", role="admin")
            bob = await _add_user(session, username="bob")
            created = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="Chatty", assignee=str(bob.id)),
            )

            comment = await task_service.add_comment(
                session,
                principal=_principal(bob),
                task_id=created.id,
                content="on it",
            )
            assert comment.author == "bob"
            assert comment.author_id == bob.id
            assert comment.task_id == created.id

            messages = [n.message for n in await _notifications_for(session, bob.id)]
            assert messages.count("A comment was added to task 'Chatty'") == 1
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_add_comment_rejects_blank_content_and_unknown_task() -> None:
    engine = await _make_engine()
    try:
        async with _session_maker(engine)() as session:
            admin = await _add_user(session, username="admin", role="admin")
            created = await task_service.create_task(
                session,
                principal=_principal(admin),
                draft=TaskCreate(title="Quiet"),
            )
            with pytest.raises(ValidationError):
                await task_service.add_comment(
                    session,
                    principal=_principal(admin),
                    task_id=created.id,
                    content="  ",
                )
            with pytest.raises(NotFoundError):
                await task_service.add_comment(
                    session,
                    principal=_principal(admin),
                    task_id=uuid4(),
                    content="hello",
                )
            assert await TaskComment.objects.all().all(session) == []
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_get_task_missing_raises_not_found() -> None:
    engine = await _make_engine()
    try:
        async with _session_maker(engine)() as session:
            member = await _add_user(session, username="mia")
            with pytest.raises(NotFoundError):
                await task_service.get_task(
                    session,
                    principal=_principal(member),
                    task_id=uuid4(),
                )
    finally:
        await engine.dispose()
