"""Request and response bodies of the message-generation endpoint."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from task_purge.models.task import TaskPriority


class ReminderRequest(BaseModel):
    """Task attributes the reminder is written from (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    board_name: str = ""
    task_name: str = Field(min_length=1)
    priority: TaskPriority = TaskPriority.HIGH
    is_overdue: bool = False


class ReminderResponse(BaseModel):
    message: str
