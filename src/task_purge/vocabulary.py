"""Column candidates and value tokens loaded from ``vocabulary.yaml``."""

import functools
from pathlib import Path

import yaml
from pydantic import BaseModel

from task_purge.models.settings import MonitorSettings

_CONFIG_PATH = Path(__file__).resolve().parent / "vocabulary.yaml"


class ColumnCandidates(BaseModel):
    """Ordered candidate column ids per semantic field."""

    priority: list[str] = []
    due_date: list[str] = []
    status: list[str] = []
    assignee: list[str] = []


class Vocabulary(BaseModel):
    """Board vocabulary: where fields live and which values mean what."""

    columns: ColumnCandidates
    critical_tokens: list[str] = []
    high_tokens: list[str] = []
    completed_tokens: list[str] = []
    excluded_board_patterns: list[str] = []


@functools.lru_cache
def load_vocabulary() -> Vocabulary:
    """Load the vocabulary from the YAML config file. Result is cached."""
    with open(_CONFIG_PATH, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return Vocabulary.model_validate(data)


def columns_for(settings: MonitorSettings, vocabulary: Vocabulary) -> ColumnCandidates:
    """Apply the settings' explicit column ids on top of the vocabulary candidates."""
    columns = vocabulary.columns
    return ColumnCandidates(
        priority=[settings.priority_column] if settings.priority_column else columns.priority,
        due_date=[settings.due_date_column] if settings.due_date_column else columns.due_date,
        status=[settings.status_column] if settings.status_column else columns.status,
        assignee=[settings.assignee_column] if settings.assignee_column else columns.assignee,
    )
