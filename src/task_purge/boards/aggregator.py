"""Board fan-out: fetch many boards concurrently with per-board failure isolation."""

import asyncio
import logging

from task_purge.boards.client import BoardClient
from task_purge.models.task import Board, RawTask
from task_purge.vocabulary import Vocabulary, load_vocabulary

logger = logging.getLogger(__name__)


def is_excluded_board(name: str, patterns: list[str]) -> bool:
    """True when the board name contains any denylisted substring."""
    return any(pattern and pattern in name for pattern in patterns)


async def _fetch_tagged(client: BoardClient, board: Board) -> list[RawTask]:
    """Fetch one board and tag every record with the board's listed name."""
    tasks = await client.fetch_board_tasks(board.id)
    return [task.model_copy(update={"board_name": board.name}) for task in tasks]


async def fetch_all_urgent_sources(
    client: BoardClient, vocabulary: Vocabulary | None = None
) -> list[RawTask]:
    """Fetch every eligible board and merge their tasks.

    Boards are fetched concurrently without a global cap. A board whose fetch
    fails contributes zero tasks; the failure is logged and never aborts the
    aggregation. A failing board *listing* propagates to the caller.

    Returns:
        Concatenated tasks in board-listing order. No de-duplication.
    """
    vocabulary = vocabulary or load_vocabulary()
    boards = await client.list_boards()
    eligible = [
        b for b in boards if not is_excluded_board(b.name, vocabulary.excluded_board_patterns)
    ]

    results = await asyncio.gather(
        *[_fetch_tagged(client, b) for b in eligible],
        return_exceptions=True,
    )

    merged: list[RawTask] = []
    failed = 0
    for board, result in zip(eligible, results):
        if isinstance(result, Exception):
            failed += 1
            logger.warning("Skipping board %s (%s): %s", board.name, board.id, result)
            continue
        if isinstance(result, BaseException):
            raise result
        merged.extend(result)

    logger.info(
        "Aggregated boards",
        extra={
            "boards": len(boards),
            "eligible": len(eligible),
            "failed": failed,
            "tasks": len(merged),
        },
    )
    return merged


async def fetch_single_board(client: BoardClient, board_id: str) -> list[RawTask]:
    """Fetch one board. Failures propagate to the caller."""
    return await client.fetch_board_tasks(board_id)
