# ruff: noqa: INP001, S101
"""Error payloads, request ids, and request logging installed on the app."""

from __future__ import annotations

from typing import Any

import pytest
from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from taskflow.core import error_handling
from taskflow.core.error_handling import REQUEST_ID_HEADER, install_error_handling
from taskflow.core.errors import (
    AuthorizationError,
    NotFoundError,
    StorageError,
    TaskflowError,
    ValidationError,
)


def _client_for(router: APIRouter) -> TestClient:
    app = FastAPI()
    install_error_handling(app)
    app.include_router(router)
    return TestClient(app, raise_server_exceptions=False)


def _raising(exc: Exception) -> TestClient:
    router = APIRouter()

    @router.get("/fail")
    def fail() -> None:
        raise exc

    return _client_for(router)


@pytest.mark.parametrize(
    ("exc", "status_code", "code"),
    [
        (ValidationError("title is required"), 400, "bad_request"),
        (AuthorizationError("Members may only change task state"), 403, "forbidden"),
        (NotFoundError("Task not found"), 404, "not_found"),
    ],
)
def test_domain_errors_map_to_status_and_code(
    exc: TaskflowError,
    status_code: int,
    code: str,
) -> None:
    resp = _raising(exc).get("/fail")

    assert resp.status_code == status_code
    body = resp.json()
    assert body["detail"] == exc.message
    assert body["code"] == code
    assert resp.headers.get(REQUEST_ID_HEADER) == body["request_id"]


def test_storage_error_detail_is_hidden_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(error_handling.settings, "expose_storage_errors", False)

    resp = _raising(StorageError('relation "tasks" does not exist')).get("/fail")

    assert resp.status_code == 500
    assert resp.json()["detail"] == "Internal Server Error"
    assert resp.json()["code"] == "internal"


def test_storage_error_detail_is_exposed_when_enabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(error_handling.settings, "expose_storage_errors", True)

    resp = _raising(StorageError('relation "tasks" does not exist')).get("/fail")

    assert resp.status_code == 500
    assert resp.json()["detail"] == 'relation "tasks" does not exist'


def test_unexpected_exception_is_a_bare_500() -> None:
    resp = _raising(RuntimeError("boom")).get("/fail")

    assert resp.status_code == 500
    body = resp.json()
    assert body["detail"] == "Internal Server Error"
    assert "code" not in body
    assert resp.headers.get(REQUEST_ID_HEADER) == body["request_id"]


def test_malformed_path_parameter_is_422_with_request_id() -> None:
    router = APIRouter()

    @router.get("/tasks/{task_id}")
    def read(task_id: int) -> dict[str, int]:
        return {"task_id": task_id}

    resp = _client_for(router).get("/tasks/not-a-number")

    assert resp.status_code == 422
    body = resp.json()
    assert isinstance(body["detail"], list)
    assert resp.headers.get(REQUEST_ID_HEADER) == body["request_id"]


def test_client_request_id_is_trimmed_and_echoed() -> None:
    resp = _raising(NotFoundError("Task not found")).get(
        "/fail",
        headers={REQUEST_ID_HEADER: "  req-123  "},
    )

    assert resp.json()["request_id"] == "req-123"
    assert resp.headers.get(REQUEST_ID_HEADER) == "req-123"


def _capture(monkeypatch: pytest.MonkeyPatch, level: str) -> list[tuple[str, dict[str, Any]]]:
    captured: list[tuple[str, dict[str, Any]]] = []

    def _record(message: str, *args: object, **kwargs: Any) -> None:
        del args
        captured.append((message, kwargs.get("extra") or {}))

    monkeypatch.setattr(error_handling.logger, level, _record)
    return captured


def test_slow_request_logs_threshold(monkeypatch: pytest.MonkeyPatch) -> None:
    ticks = iter((100.0, 100.2))
    monkeypatch.setattr(error_handling, "perf_counter", lambda: next(ticks))
    monkeypatch.setattr(error_handling.settings, "request_log_slow_ms", 1)
    warnings = _capture(monkeypatch, "warning")
    router = APIRouter()

    @router.get("/board")
    def board() -> dict[str, bool]:
        return {"ok": True}

    resp = _client_for(router).get("/board")

    assert resp.status_code == 200
    assert [message for message, _ in warnings] == ["http.request.slow"]
    assert warnings[0][1]["path"] == "/board"
    assert warnings[0][1]["slow_threshold_ms"] == 1


def test_health_probes_are_not_logged_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(error_handling.settings, "request_log_include_health", False)
    monkeypatch.setattr(error_handling.settings, "request_log_slow_ms", 0)
    infos = _capture(monkeypatch, "info")
    router = APIRouter()

    @router.get("/healthz")
    def healthz() -> dict[str, bool]:
        return {"ok": True}

    @router.get("/board")
    def board() -> dict[str, bool]:
        return {"ok": True}

    client = _client_for(router)
    client.get("/healthz")
    client.get("/board")

    assert [extra["path"] for message, extra in infos if message == "http.request.complete"] == [
        "/board",
    ]


def test_json_safe_decodes_bytes_and_stringifies_unknowns() -> None:
    class Marker:
        def __str__(self) -> str:
            return "marker"

    assert error_handling._json_safe({"raw": b"\xff", "items": (Marker(), 1)}) == {
        "raw": "\ufffd",
        "items": ["marker", 1],
    }


@pytest.mark.asyncio
async def test_taskflow_handler_rejects_foreign_exceptions() -> None:
    request = Request({"type": "http", "headers": [], "state": {}})
    with pytest.raises(TypeError, match="Expected TaskflowError"):
        await error_handling._taskflow_error_handler(request, RuntimeError("x"))
