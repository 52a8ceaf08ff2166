"""Monitor state machine records and the events published on its channel."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from task_purge.models.task import UrgentTask


class MonitorPhase(str, Enum):
    """Lifecycle phase of a Monitor."""

    STOPPED = "stopped"
    RUNNING = "running"
    CHECKING = "checking"


class EventKind(str, Enum):
    """Kinds of events a Monitor publishes to its subscribers."""

    PHASE_CHANGED = "phase_changed"
    TASKS_RENDERED = "tasks_rendered"
    CYCLE_COMPLETED = "cycle_completed"
    CYCLE_FAILED = "cycle_failed"
    COUNTDOWN = "countdown"


class MonitorState(BaseModel):
    """Mutable state owned by exactly one Monitor."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    phase: MonitorPhase = MonitorPhase.STOPPED
    next_check_at: datetime | None = None
    last_error: str | None = None
    last_checked_at: datetime | None = None
    tasks: list[UrgentTask] = []
    countdown: str = "--:--"


class MonitorEvent(BaseModel):
    """A single notification on the monitor's event channel.

    ``state`` is a snapshot taken when the event was published.
    """

    kind: EventKind
    state: MonitorState
    tasks: list[UrgentTask] = []
    error: str | None = None
    countdown: str | None = None
