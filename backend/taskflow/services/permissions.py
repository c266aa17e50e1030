"""Role capability tables and the task-patch key-set guard."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from taskflow.core.errors import AuthorizationError

if TYPE_CHECKING:
    from taskflow.core.auth import Principal

READ_BOARD = "read-board"
READ_TASK = "read-task"
CREATE_TASK = "create-task"
PATCH_STATE_ONLY = "patch-state-only"
PATCH_FULL = "patch-full"
DELETE_TASK = "delete-task"
ADD_COMMENT = "add-comment"
MANAGE_USERS = "manage-users"

ALL_CAPABILITIES = frozenset(
    {
        READ_BOARD,
        READ_TASK,
        CREATE_TASK,
        PATCH_STATE_ONLY,
        PATCH_FULL,
        DELETE_TASK,
        ADD_COMMENT,
        MANAGE_USERS,
    },
)

ADMIN_ROLE = "admin"
MEMBER_ROLE = "member"
# Older clients send "user" for the non-admin role.
ROLE_ALIASES = {"user": MEMBER_ROLE}

ROLE_CAPABILITIES: dict[str, set[str]] = {
    ADMIN_ROLE: {"*"},
    MEMBER_ROLE: {READ_BOARD, READ_TASK, PATCH_STATE_ONLY, ADD_COMMENT},
}

STATE_ONLY_PATCH = frozenset({"state"})


def normalize_role(role: str | None) -> str:
    """Lowercase a role name and fold legacy aliases."""
    value = (role or "").strip().lower()
    return ROLE_ALIASES.get(value, value)


def is_known_role(role: str | None) -> bool:
    return normalize_role(role) in ROLE_CAPABILITIES


def effective_capabilities(role: str | None) -> frozenset[str]:
    """Return the concrete capability set for a role; unknown roles get none."""
    perms = ROLE_CAPABILITIES.get(normalize_role(role), set())
    if "*" in perms:
        return ALL_CAPABILITIES
    return frozenset(perms)


def authorize(role: str | None, capability: str) -> tuple[bool, str]:
    """Check a single capability.

    Returns:
        (allowed, reason); reason is empty on success.
    """
    if capability in effective_capabilities(role):
        return True, ""
    return False, f"Role '{normalize_role(role) or 'anonymous'}' lacks capability '{capability}'"


def authorize_task_patch(role: str | None, requested_fields: Iterable[str]) -> tuple[bool, str]:
    """Check a task patch by the shape of its key set.

    Full-patch roles may send any keys. Otherwise the key set must be exactly
    ``{"state"}``; any other key denies the whole patch, and an empty patch
    is denied too.
    """
    fields = frozenset(requested_fields)
    capabilities = effective_capabilities(role)
    if PATCH_FULL in capabilities:
        return True, ""
    if PATCH_STATE_ONLY not in capabilities:
        return False, f"Role '{normalize_role(role) or 'anonymous'}' cannot update tasks"
    if fields != STATE_ONLY_PATCH:
        extra = sorted(fields - STATE_ONLY_PATCH)
        if extra:
            return False, f"Members may only change task state; not allowed: {', '.join(extra)}"
        return False, "Members may only change task state"
    return True, ""


def require_capability(principal: Principal, capability: str) -> None:
    """Raise AuthorizationError unless the principal holds *capability*."""
    allowed, reason = authorize(principal.role, capability)
    if not allowed:
        raise AuthorizationError(reason)


def require_task_patch(principal: Principal, requested_fields: Iterable[str]) -> None:
    """Raise AuthorizationError unless the principal may send this patch shape."""
    allowed, reason = authorize_task_patch(principal.role, requested_fields)
    if not allowed:
        raise AuthorizationError(reason)
