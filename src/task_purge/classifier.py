"""Urgency classification of raw board items.

Pure functions only: every predicate takes the item plus its inputs and
returns a verdict, so evaluation order never changes the outcome. A task is
urgent when all four predicates hold:

1. priority resolves to a critical or high token
2. the due date is today (or earlier, under the inclusive policy)
3. the status is not a completed token
4. the watched person is among the assignees
"""

import json
import logging
from datetime import date, datetime
from enum import Enum
from zoneinfo import ZoneInfo

from task_purge.config import get_config
from task_purge.models.settings import MonitorSettings
from task_purge.models.task import ColumnValue, RawTask, TaskPriority, UrgentTask
from task_purge.vocabulary import Vocabulary, columns_for, load_vocabulary

logger = logging.getLogger(__name__)


class DuePolicy(str, Enum):
    """How due dates before today are treated."""

    STRICT = "strict"  # only today qualifies
    INCLUSIVE = "inclusive"  # today or earlier; earlier is flagged overdue


def normalize(value: str | None) -> str:
    """Trim and case-fold a column text for token comparison."""
    return (value or "").strip().casefold()


def today_in(timezone_name: str) -> date:
    """Current calendar day in the given IANA zone."""
    return datetime.now(ZoneInfo(timezone_name)).date()


def resolve_column(task: RawTask, candidates: list[str]) -> ColumnValue | None:
    """Return the first candidate column present on the task with a value.

    Candidates are tried in order. A column counts as present when its text
    or raw value is non-empty.
    """
    by_id = {column.column_id: column for column in task.column_values}
    for column_id in candidates:
        column = by_id.get(column_id)
        if column is not None and (column.text.strip() or column.raw_value):
            return column
    return None


def match_priority(text: str | None, vocabulary: Vocabulary) -> TaskPriority | None:
    """Map a priority label onto an urgency tier, or None when below high."""
    normalized = normalize(text)
    if not normalized:
        return None
    if normalized in {normalize(t) for t in vocabulary.critical_tokens}:
        return TaskPriority.CRITICAL
    if normalized in {normalize(t) for t in vocabulary.high_tokens}:
        return TaskPriority.HIGH
    return None


def parse_due_date(text: str | None, timezone_name: str) -> date | None:
    """Parse a due-date column text into a calendar day in the reference zone.

    Accepts ``YYYY-MM-DD`` optionally followed by a time. Aware timestamps are
    converted into the reference zone first; naive ones are taken as-is.
    Returns None for empty or unparsable text.
    """
    if not text or not text.strip():
        return None
    try:
        parsed = datetime.fromisoformat(text.strip())
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(ZoneInfo(timezone_name))
    return parsed.date()


def due_verdict(due: date | None, today: date, policy: DuePolicy) -> bool | None:
    """Return the overdue flag for a qualifying due date, None when it does not qualify."""
    if due is None:
        return None
    if due == today:
        return False
    if due < today and policy is DuePolicy.INCLUSIVE:
        return True
    return None


def is_completed(text: str | None, vocabulary: Vocabulary) -> bool:
    return normalize(text) in {normalize(t) for t in vocabulary.completed_tokens}


def assignee_ids(raw_value: str | None) -> list[str]:
    """Extract person ids from an assignee column's raw JSON value.

    Malformed or missing data yields an empty list, never "everyone".
    """
    if not raw_value:
        return []
    try:
        parsed = json.loads(raw_value)
    except (TypeError, ValueError):
        return []
    if not isinstance(parsed, dict):
        return []
    entries = parsed.get("personsAndTeams")
    if not isinstance(entries, list):
        return []
    return [
        str(entry["id"])
        for entry in entries
        if isinstance(entry, dict) and entry.get("id") is not None
    ]


def is_assigned_to(raw_value: str | None, user_id: str) -> bool:
    return bool(user_id) and str(user_id) in assignee_ids(raw_value)


def classify(
    task: RawTask,
    settings: MonitorSettings,
    *,
    today: date | None = None,
    policy: DuePolicy = DuePolicy.INCLUSIVE,
    vocabulary: Vocabulary | None = None,
    timezone_name: str | None = None,
) -> UrgentTask | None:
    """Classify one raw task for the watched person.

    Args:
        task: Raw board item.
        settings: Monitor settings (watched person, explicit column ids).
        today: Calendar day to compare against. Defaults to today in the
            reference zone.
        policy: Due-date policy; strict only accepts today.
        vocabulary: Column candidates and tokens. Defaults to the packaged file.
        timezone_name: Reference zone. Defaults to ``AppConfig.reference_timezone``.

    Returns:
        UrgentTask when every predicate holds, otherwise None.
    """
    vocabulary = vocabulary or load_vocabulary()
    timezone_name = timezone_name or get_config().reference_timezone
    today = today or today_in(timezone_name)
    columns = columns_for(settings, vocabulary)

    priority_col = resolve_column(task, columns.priority)
    due_col = resolve_column(task, columns.due_date)
    status_col = resolve_column(task, columns.status)
    assignee_col = resolve_column(task, columns.assignee)

    priority = match_priority(priority_col.text if priority_col else None, vocabulary)
    due = parse_due_date(due_col.text if due_col else None, timezone_name)
    overdue = due_verdict(due, today, policy)
    completed = is_completed(status_col.text if status_col else None, vocabulary)
    assigned = is_assigned_to(
        assignee_col.raw_value if assignee_col else None, settings.watched_user_id
    )

    if priority is None or overdue is None or completed or not assigned:
        return None

    return UrgentTask(
        id=task.id,
        name=task.name,
        board_name=task.board_name,
        priority=priority,
        overdue=overdue,
    )


def filter_urgent(
    tasks: list[RawTask],
    settings: MonitorSettings,
    *,
    today: date,
    policy: DuePolicy = DuePolicy.INCLUSIVE,
    vocabulary: Vocabulary | None = None,
    timezone_name: str | None = None,
) -> list[UrgentTask]:
    """Classify every task, keeping urgent ones in input order."""
    urgent: list[UrgentTask] = []
    for task in tasks:
        verdict = classify(
            task,
            settings,
            today=today,
            policy=policy,
            vocabulary=vocabulary,
            timezone_name=timezone_name,
        )
        if verdict is not None:
            urgent.append(verdict)
    logger.info(
        "Classified tasks",
        extra={"fetched": len(tasks), "urgent": len(urgent), "policy": policy.value},
    )
    return urgent
