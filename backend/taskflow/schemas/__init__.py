"""Public schema exports shared across API route modules."""

from taskflow.schemas.boards import (
    BoardColumnCreate,
    BoardColumnDetail,
    BoardColumnRead,
    BoardColumnUpdate,
    BoardRead,
)
from taskflow.schemas.common import OkResponse
from taskflow.schemas.health import HealthStatusResponse
from taskflow.schemas.notifications import NotificationRead
from taskflow.schemas.tasks import CommentCreate, CommentRead, TaskCreate, TaskRead, TaskUpdate
from taskflow.schemas.users import UserCreate, UserProfileUpdate, UserRead, UserRoleUpdate

__all__ = [
    "BoardColumnCreate",
    "BoardColumnDetail",
    "BoardColumnRead",
    "BoardColumnUpdate",
    "BoardRead",
    "CommentCreate",
    "CommentRead",
    "HealthStatusResponse",
    "NotificationRead",
    "OkResponse",
    "TaskCreate",
    "TaskRead",
    "TaskUpdate",
    "UserCreate",
    "UserProfileUpdate",
    "UserRead",
    "UserRoleUpdate",
]
