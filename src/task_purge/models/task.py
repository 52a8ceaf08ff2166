"""Board and task records: raw items from the board API and classified urgent tasks."""

from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class TaskPriority(str, Enum):
    """Urgency tiers. Anything below HIGH never becomes an UrgentTask."""

    CRITICAL = "critical"
    HIGH = "high"


class Board(BaseModel):
    """A board as returned by the board listing call."""

    id: str
    name: str


class BoardColumn(BaseModel):
    """Column metadata of a board (used to pick single-board column ids)."""

    id: str
    title: str
    type: str


class BoardUser(BaseModel):
    """A board subscriber: someone who can be picked as the watched person."""

    id: str
    name: str
    email: str = ""


class ColumnValue(BaseModel):
    """One column cell of an item: display text plus the raw JSON value."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    column_id: str
    text: str = ""
    raw_value: str | None = None


class RawTask(BaseModel):
    """A board item as fetched during one poll. Never persisted."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    board_name: str = ""
    column_values: list[ColumnValue] = []


class UrgentTask(BaseModel):
    """A task that passed every urgency predicate. Discarded at the end of a cycle."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    board_name: str = ""
    priority: TaskPriority
    overdue: bool = False
