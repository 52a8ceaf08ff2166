"""Per-user monitor settings, as stored in the settings document store."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_POLL_INTERVAL_MS = 15 * 60 * 1000  # 15 minutes


class MonitorSettings(BaseModel):
    """Settings document keyed by user id (camelCase keys on the wire).

    ``board_id`` switches the monitor into single-board mode. The ``*_column``
    fields pin explicit column ids and replace the vocabulary's candidate
    list for that field.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    access_token: str = ""
    watched_user_id: str = ""
    poll_interval_ms: int = Field(default=DEFAULT_POLL_INTERVAL_MS, gt=0)
    generation_api_key: str | None = None

    board_id: str | None = None
    priority_column: str | None = None
    due_date_column: str | None = None
    status_column: str | None = None
    assignee_column: str | None = None

    @property
    def is_complete(self) -> bool:
        """True when the fields required to start monitoring are present."""
        return bool(self.access_token and self.watched_user_id)

    @property
    def single_board(self) -> bool:
        return bool(self.board_id)
