"""Unit tests for the request cell cache and its generation tokens."""
import pytest
from datetime import date

from rota_requests.editor.cell_cache import CellCache
from rota_requests.editor.types import CellKey, CellValue, RequestRecord

pytestmark = pytest.mark.unit

KEY = CellKey(1, date(2026, 11, 2))


def _rec(value, rank=None, key=KEY):
    return RequestRecord(None, key.user_id, key.date, value, rank)


def test_load_skips_empty_values():
    cache = CellCache()
    cache.load([
        {'id': 1, 'user_id': 1, 'date': '2026-11-02', 'value': 'O', 'important_rank': 1},
        {'id': 2, 'user_id': 1, 'date': '2026-11-03', 'value': ''},
    ])

    assert cache.committed_value(KEY) == CellValue('O', 1)
    assert cache.committed(CellKey(1, date(2026, 11, 3))) is None


def test_display_prefers_pending_value():
    cache = CellCache()
    cache.load([_rec('N')])
    token = cache.next_token(KEY)
    cache.put_pending(KEY, CellValue('O', 2), token)

    assert cache.display_value(KEY).display() == 'O²'
    assert cache.committed_value(KEY).display() == 'N'


def test_tokens_increase_across_keys():
    cache = CellCache()
    other = CellKey(2, date(2026, 11, 2))

    first = cache.next_token(KEY)
    second = cache.next_token(other)
    third = cache.next_token(KEY)

    assert first < second < third
    assert cache.latest_token(KEY) == third
    assert cache.is_latest(KEY, first) is False
    assert cache.is_latest(KEY, third) is True


def test_reload_makes_every_earlier_token_stale():
    cache = CellCache()
    token = cache.next_token(KEY)
    cache.put_pending(KEY, CellValue('O'), token)

    cache.load([])

    assert cache.has_pending(KEY) is False
    assert cache.is_latest(KEY, token) is False
    assert cache.commit(KEY, _rec('O'), token) is False
    assert cache.committed(KEY) is None


def test_drop_pending_requires_matching_token():
    cache = CellCache()
    old = cache.next_token(KEY)
    cache.put_pending(KEY, CellValue('N'), old)
    new = cache.next_token(KEY)
    cache.put_pending(KEY, CellValue('O'), new)

    assert cache.drop_pending(KEY, old) is False
    assert cache.pending(KEY).value == CellValue('O')
    assert cache.drop_pending(KEY, new) is True
    assert cache.has_pending(KEY) is False


def test_older_commit_cannot_overwrite_newer_one():
    cache = CellCache()
    old = cache.next_token(KEY)
    new = cache.next_token(KEY)

    assert cache.commit(KEY, _rec('O'), new) is True
    assert cache.commit(KEY, _rec('N'), old) is False
    assert cache.committed_value(KEY) == CellValue('O')


def test_commit_none_clears_cell():
    cache = CellCache()
    cache.load([_rec('O')])
    token = cache.next_token(KEY)

    assert cache.commit(KEY, None, token) is True
    assert cache.committed(KEY) is None
    assert cache.display_value(KEY).is_empty


def test_week_entries_yield_both_sides():
    cache = CellCache()
    cache.load([_rec('O', 1)])
    cache.put_pending(KEY, CellValue('O', 2), cache.next_token(KEY))

    values = [value for key, value in cache.week_entries(1, KEY.date) if key == KEY]

    assert CellValue('O', 1) in values
    assert CellValue('O', 2) in values


def test_is_occupied():
    cache = CellCache()
    other = CellKey(1, date(2026, 11, 3))
    cache.load([_rec('O')])
    cache.put_pending(other, CellValue.EMPTY, cache.next_token(other))

    assert cache.is_occupied(KEY) is True
    assert cache.is_occupied(other) is False


def test_keys_are_sorted_union():
    cache = CellCache()
    later = CellKey(1, date(2026, 11, 5))
    cache.load([_rec('O', key=later)])
    cache.put_pending(KEY, CellValue('N'), cache.next_token(KEY))

    assert cache.keys() == [KEY, later]
    assert str(KEY) == '1_2026-11-02'
