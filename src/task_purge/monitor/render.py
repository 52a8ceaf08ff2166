"""Display text for the monitor: task lines and the countdown."""

from task_purge.models.task import TaskPriority, UrgentTask

EMPTY_MESSAGE = "未完了の緊急・高優先度タスクはありません"
IN_PROGRESS = "確認中..."
IDLE = "--:--"

_PRIORITY_LABELS = {
    TaskPriority.CRITICAL: "緊急",
    TaskPriority.HIGH: "高",
}


def format_task(task: UrgentTask) -> str:
    """One display line, e.g. ``[緊急] Launch / Ship deck (期限: 今日)``."""
    label = _PRIORITY_LABELS[task.priority]
    deadline = "期限切れ" if task.overdue else "今日"
    title = f"{task.board_name} / {task.name}" if task.board_name else task.name
    return f"[{label}] {title} (期限: {deadline})"


def render_tasks(tasks: list[UrgentTask]) -> list[str]:
    """Render the result set of a cycle; an empty set renders a single notice."""
    if not tasks:
        return [EMPTY_MESSAGE]
    return [format_task(task) for task in tasks]


def format_countdown(remaining_seconds: float | None) -> str:
    """``MM:SS`` until the next check, the in-progress marker at zero, idle when unknown."""
    if remaining_seconds is None:
        return IDLE
    if remaining_seconds <= 0:
        return IN_PROGRESS
    total = int(remaining_seconds)
    minutes, seconds = divmod(total, 60)
    return f"{minutes:02d}:{seconds:02d}"
