"""Async GraphQL client for the monday.com board API.

Wraps an ``httpx.AsyncClient`` and maps every failure onto the error
taxonomy in ``task_purge.errors``. Does NOT retry: the monitor's poll
interval is the only backoff.
"""

import logging

import httpx
from pydantic import ValidationError

from task_purge.config import AppConfig, get_config
from task_purge.errors import AuthError, QueryError, RateLimitError, TransportError
from task_purge.models.task import Board, BoardColumn, BoardUser, ColumnValue, RawTask

logger = logging.getLogger(__name__)

BOARDS_QUERY = """
query ($limit: Int!) {
  boards(limit: $limit) {
    id
    name
  }
}
"""

ITEMS_QUERY = """
query ($boardId: [ID!]!, $limit: Int!) {
  boards(ids: $boardId) {
    name
    items_page(limit: $limit) {
      items {
        id
        name
        column_values {
          id
          text
          value
        }
      }
    }
  }
}
"""

COLUMNS_QUERY = """
query ($boardId: [ID!]!) {
  boards(ids: $boardId) {
    columns {
      id
      title
      type
    }
  }
}
"""

SUBSCRIBERS_QUERY = """
query ($boardId: [ID!]!) {
  boards(ids: $boardId) {
    subscribers {
      id
      name
      email
    }
  }
}
"""

ME_QUERY = "query { me { id } }"


class BoardClient:
    """Board API client bound to one access token.

    Pass ``http_client`` to inject a preconfigured ``httpx.AsyncClient``
    (tests use ``httpx.MockTransport``); otherwise one is created and owned
    by this instance.
    """

    def __init__(
        self,
        access_token: str,
        config: AppConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or get_config()
        self._access_token = access_token
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.board_request_timeout_seconds)
        )

    async def __aenter__(self) -> "BoardClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def query(self, query: str, variables: dict | None = None) -> dict:
        """Execute a GraphQL query and return its ``data`` object.

        Raises:
            AuthError: HTTP 401.
            RateLimitError: HTTP 429.
            QueryError: GraphQL error payload (first reported message).
            TransportError: network failure, other non-2xx, malformed body.
        """
        try:
            response = await self._http.post(
                self._config.board_api_url,
                json={"query": query, "variables": variables or {}},
                headers={
                    "Authorization": self._access_token,
                    "API-Version": self._config.board_api_version,
                },
            )
        except httpx.HTTPError as exc:
            logger.warning("Board API request failed: %s", exc)
            raise TransportError() from exc

        if response.status_code == 401:
            raise AuthError()
        if response.status_code == 429:
            raise RateLimitError()

        try:
            payload = response.json()
        except ValueError as exc:
            logger.warning("Board API returned non-JSON body (HTTP %d)", response.status_code)
            raise TransportError() from exc

        if isinstance(payload, dict):
            errors = payload.get("errors")
            if isinstance(errors, list) and errors:
                first = errors[0]
                message = first.get("message") if isinstance(first, dict) else str(first)
                raise QueryError(message or None)
            if payload.get("error_message"):
                raise QueryError(str(payload["error_message"]))

        if not response.is_success:
            logger.warning("Board API returned HTTP %d", response.status_code)
            raise TransportError()

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            raise TransportError("ボードAPIの応答が不正です。")
        return data

    async def list_boards(self, limit: int | None = None) -> list[Board]:
        """List boards visible to the token (bounded count)."""
        data = await self.query(
            BOARDS_QUERY, {"limit": limit or self._config.board_list_limit}
        )
        try:
            return [
                Board(id=str(b["id"]), name=b.get("name") or "")
                for b in data.get("boards") or []
            ]
        except (KeyError, TypeError, AttributeError, ValidationError) as exc:
            raise TransportError("ボード一覧の応答が不正です。") from exc

    async def fetch_board_tasks(self, board_id: str) -> list[RawTask]:
        """Fetch the first page of items on one board as RawTask records.

        Raises:
            TransportError: the response does not have the expected shape.
        """
        data = await self.query(
            ITEMS_QUERY,
            {"boardId": [board_id], "limit": self._config.board_page_limit},
        )
        try:
            board = _first_board(data)
            if board is None:
                return []
            items_page = board.get("items_page")
            if not isinstance(items_page, dict):
                raise TypeError("items_page is not an object")
            items = items_page.get("items") or []
            if not isinstance(items, list):
                raise TypeError("items is not a list")
            tasks = [
                RawTask(
                    id=str(item["id"]),
                    name=item.get("name") or "",
                    board_name=board.get("name") or "",
                    column_values=[
                        ColumnValue(
                            column_id=c["id"],
                            text=c.get("text") or "",
                            raw_value=c.get("value"),
                        )
                        for c in item.get("column_values") or []
                    ],
                )
                for item in items
            ]
        except (KeyError, TypeError, AttributeError, ValidationError) as exc:
            raise TransportError("タスクの応答が不正です。") from exc

        logger.info(
            "Fetched board tasks",
            extra={"board_id": board_id, "items": len(tasks)},
        )
        return tasks

    async def list_columns(self, board_id: str) -> list[BoardColumn]:
        """List the columns of one board (used to pick single-board column ids)."""
        data = await self.query(COLUMNS_QUERY, {"boardId": [board_id]})
        try:
            board = _first_board(data)
            if board is None:
                return []
            return [
                BoardColumn(id=c["id"], title=c.get("title") or "", type=c.get("type") or "")
                for c in board.get("columns") or []
            ]
        except (KeyError, TypeError, AttributeError, ValidationError) as exc:
            raise TransportError("カラム一覧の応答が不正です。") from exc

    async def list_subscribers(self, board_id: str) -> list[BoardUser]:
        """List the people subscribed to a board (candidates for the watched person)."""
        data = await self.query(SUBSCRIBERS_QUERY, {"boardId": [board_id]})
        try:
            board = _first_board(data)
            if board is None:
                return []
            return [
                BoardUser(id=str(u["id"]), name=u.get("name") or "", email=u.get("email") or "")
                for u in board.get("subscribers") or []
            ]
        except (KeyError, TypeError, AttributeError, ValidationError) as exc:
            raise TransportError("ユーザー一覧の応答が不正です。") from exc

    async def validate_token(self) -> bool:
        """Return True when the token can read its own profile, False when it is rejected.

        Rate limits, transport and query failures propagate: they say nothing
        about the token itself.
        """
        try:
            await self.query(ME_QUERY)
        except AuthError:
            return False
        return True


def _first_board(data: dict) -> dict | None:
    """The single board of a ``boards(ids: ...)`` answer, None when the id matched nothing."""
    boards = data.get("boards") or []
    if not isinstance(boards, list):
        raise TypeError("boards is not a list")
    if not boards:
        return None
    board = boards[0]
    if not isinstance(board, dict):
        raise TypeError("board is not an object")
    return board
