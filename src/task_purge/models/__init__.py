"""Data models and enums for the task-purge monitor."""

from task_purge.models.settings import DEFAULT_POLL_INTERVAL_MS, MonitorSettings
from task_purge.models.state import EventKind, MonitorEvent, MonitorPhase, MonitorState
from task_purge.models.task import (
    Board,
    BoardColumn,
    BoardUser,
    ColumnValue,
    RawTask,
    TaskPriority,
    UrgentTask,
)

__all__ = [
    "Board",
    "BoardColumn",
    "BoardUser",
    "ColumnValue",
    "DEFAULT_POLL_INTERVAL_MS",
    "EventKind",
    "MonitorEvent",
    "MonitorPhase",
    "MonitorSettings",
    "MonitorState",
    "RawTask",
    "TaskPriority",
    "UrgentTask",
]
