"""Board API access: GraphQL client and multi-board aggregation."""

from task_purge.boards.aggregator import (
    fetch_all_urgent_sources,
    fetch_single_board,
    is_excluded_board,
)
from task_purge.boards.client import BoardClient

__all__ = [
    "BoardClient",
    "fetch_all_urgent_sources",
    "fetch_single_board",
    "is_excluded_board",
]
