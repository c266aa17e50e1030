"""Model exports for SQLAlchemy/SQLModel metadata discovery."""

from taskflow.models.board_columns import BoardColumn, BoardConfig
from taskflow.models.comments import TaskComment
from taskflow.models.notifications import Notification
from taskflow.models.tasks import Task
from taskflow.models.users import User

__all__ = [
    "BoardColumn",
    "BoardConfig",
    "Notification",
    "Task",
    "TaskComment",
    "User",
]
