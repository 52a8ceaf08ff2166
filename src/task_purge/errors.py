"""Error taxonomy for the monitoring engine.

Messages are user-facing (shown verbatim in the UI), hence Japanese.
"""


class TaskPurgeError(Exception):
    """Base class for all task-purge failures."""

    default_message = "エラーが発生しました。"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class ConfigError(TaskPurgeError):
    """Required settings are missing or out of range. Fatal to Monitor.start()."""

    default_message = "設定が完了していません。管理画面で全ての項目を設定してください。"


class AuthError(TaskPurgeError):
    """Board API rejected the access token (HTTP 401)."""

    default_message = "APIトークンが無効です。管理画面で再設定してください。"


class RateLimitError(TaskPurgeError):
    """Board API rate limit reached (HTTP 429). Caller should back off."""

    default_message = "APIレート制限に達しました。しばらく待ってから再試行してください。"


class TransportError(TaskPurgeError):
    """Network failure, unexpected HTTP status or malformed response."""

    default_message = "ネットワークエラーが発生しました。"


class QueryError(TaskPurgeError):
    """Board API answered with a GraphQL error payload."""

    default_message = "APIクエリが失敗しました。"


class UtteranceError(TaskPurgeError):
    """The utterance player could not speak a message."""

    default_message = "音声の再生に失敗しました。"


class GenerationError(TaskPurgeError):
    """The LLM returned no usable reminder text."""

    default_message = "メッセージを生成できませんでした。"
