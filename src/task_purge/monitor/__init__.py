"""Polling state machine, display rendering and per-user monitor registry."""

from task_purge.monitor.registry import MonitorRegistry, build_monitor
from task_purge.monitor.render import format_countdown, format_task, render_tasks
from task_purge.monitor.scheduler import Monitor, validate_settings

__all__ = [
    "Monitor",
    "MonitorRegistry",
    "build_monitor",
    "format_countdown",
    "format_task",
    "render_tasks",
    "validate_settings",
]
