"""Weekly request quota"""
from dataclasses import dataclass

from rota_requests import rules
from rota_requests.editor.cell_cache import CellCache
from rota_requests.editor.types import CellKey


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    count: int
    limit: int = rules.MAX_REQUESTS_PER_WEEK


def occupied_days(cache: CellCache, user_id: int, day) -> int:
    """Distinct days of the week holding a committed or pending value."""
    return sum(1 for key in cache.week_keys(user_id, day) if cache.is_occupied(key))


def check_quota(cache: CellCache, user_id: int, candidate_date,
                limit: int = rules.MAX_REQUESTS_PER_WEEK) -> QuotaDecision:
    """
    Whether a value may be written to (user, candidate_date).

    Re-saving a day that already holds a value never counts against the
    limit.
    """
    key = CellKey.of(user_id, candidate_date)
    count = occupied_days(cache, key.user_id, key.date)
    if cache.is_occupied(key):
        return QuotaDecision(True, count, limit)
    return QuotaDecision(count < limit, count, limit)
