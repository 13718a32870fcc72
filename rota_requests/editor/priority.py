"""
Priority rank allocator

Each user may mark at most one strongly preferred day off with rank 1 and one
with rank 2 per week. Choosing "strong off" on a cell cycles its rank
None -> 1 -> 2 -> None, skipping ranks already used elsewhere in the week.
"""
from typing import Optional, Set, Union

from rota_requests import rules
from rota_requests.editor.cell_cache import CellCache
from rota_requests.editor.types import BLOCKED, CellKey, _Blocked

RankOutcome = Union[None, int, _Blocked]

_CYCLE = {None: 1, 1: 2, 2: None}


def next_rank(current_rank: Optional[int], taken: Set[int]) -> RankOutcome:
    """
    Next rank for a cell whose rank is ``current_rank``.

    If the naturally-next rank is taken the other rank is tried; with both
    taken the result is BLOCKED. Going back to no rank is never blocked.
    """
    desired = _CYCLE.get(current_rank, 1)
    if desired is None or desired not in taken:
        return desired
    for rank in rules.PRIORITY_RANKS:
        if rank not in taken:
            return rank
    return BLOCKED


def taken_ranks(cache: CellCache, user_id: int, day, exclude_key: Optional[CellKey] = None) -> Set[int]:
    """Ranks held by the user's other off requests in the same week, committed or pending."""
    taken = set()
    for key, value in cache.week_entries(user_id, day):
        if key == exclude_key:
            continue
        if value.rank is not None:
            taken.add(value.rank)
    return taken


def current_rank(cache: CellCache, key: CellKey) -> Optional[int]:
    """Rank the cell shows right now (pending value first)."""
    return cache.display_value(key).rank
