"""
Unit tests for the editability gate and grid view state.
"""
import pytest
from datetime import date, datetime, timedelta

from conftest import PERIOD_START, period_rows
from rota_requests.editor.calendar_builder import group_dates_into_weeks
from rota_requests.editor.cell_cache import CellCache
from rota_requests.editor.editability import EditDenial, check_edit, grid
from rota_requests.editor.lock_registry import LockRegistry
from rota_requests.editor.notice_gate import NoticeGate
from rota_requests.editor.types import Actor, CellKey, CellValue, PeriodInfo

pytestmark = pytest.mark.unit

NOW = datetime(2026, 10, 17, 12, 0)
OPEN_DAY = PERIOD_START + timedelta(days=1)           # week 1, open
CLOSED_DAY = PERIOD_START + timedelta(days=8)         # week 2, closed

STAFF = Actor(id=1, name='Ana', role_id=2)
OTHER = Actor(id=2, name='Luis', role_id=2)
ADMIN = Actor(id=9, name='Marta', role_id=1, is_admin=True)


@pytest.fixture
def weeks():
    return group_dates_into_weeks(period_rows(week_flags=[(True, False), (False, False)]))


@pytest.fixture
def period():
    return PeriodInfo(id=7, start_date=PERIOD_START, end_date=PERIOD_START + timedelta(days=34))


def _gate(actor, key, weeks, period, locks=None, notices=None, now=NOW):
    return check_edit(actor, key, weeks, period, locks or LockRegistry(), notices or NoticeGate(),
                      now=now)


def _blocking_notices(actor):
    gate = NoticeGate()
    gate.apply([{'id': 1, 'version': 1, 'is_mandatory': True}], actor)
    return gate


class TestCheckEdit:

    def test_owner_may_edit_open_week(self, weeks, period):
        decision = _gate(STAFF, CellKey(1, OPEN_DAY), weeks, period)
        assert decision.allowed is True
        assert bool(decision) is True

    def test_not_logged_in(self, weeks, period):
        assert _gate(None, CellKey(1, OPEN_DAY), weeks, period).reason == EditDenial.NOT_LOGGED_IN

    def test_staff_cannot_edit_other_rows(self, weeks, period):
        decision = _gate(STAFF, CellKey(2, OPEN_DAY), weeks, period)
        assert decision.reason == EditDenial.NOT_OWNER
        assert decision.message == 'You can only edit your own requests.'

    def test_admin_may_edit_other_rows(self, weeks, period):
        assert _gate(ADMIN, CellKey(2, OPEN_DAY), weeks, period).allowed is True

    def test_closed_week_blocks_everyone(self, weeks, period):
        assert _gate(STAFF, CellKey(1, CLOSED_DAY), weeks, period).reason == EditDenial.WEEK_CLOSED
        assert _gate(ADMIN, CellKey(1, CLOSED_DAY), weeks, period).reason == EditDenial.WEEK_CLOSED

    def test_date_outside_window_is_closed(self, weeks, period):
        key = CellKey(1, PERIOD_START - timedelta(days=1))
        assert _gate(STAFF, key, weeks, period).reason == EditDenial.WEEK_CLOSED

    def test_blocking_notice_stops_admins_too(self, weeks, period):
        for actor in (STAFF, ADMIN):
            decision = _gate(actor, CellKey(1, OPEN_DAY), weeks, period,
                             notices=_blocking_notices(actor))
            assert decision.reason == EditDenial.NOTICES_BLOCKING

    def test_lock_stops_staff_with_reason(self, weeks, period):
        locks = LockRegistry([{'user_id': 1, 'date': OPEN_DAY.isoformat(), 'reason_en': 'Night cover'}])

        decision = _gate(STAFF, CellKey(1, OPEN_DAY), weeks, period, locks=locks)
        assert decision.reason == EditDenial.CELL_LOCKED
        assert decision.message == 'Night cover'

        assert _gate(ADMIN, CellKey(1, OPEN_DAY), weeks, period, locks=locks).allowed is True

    def test_closed_week_reported_before_lock(self, weeks, period):
        locks = LockRegistry([{'user_id': 1, 'date': CLOSED_DAY.isoformat()}])
        decision = _gate(STAFF, CellKey(1, CLOSED_DAY), weeks, period, locks=locks)
        assert decision.reason == EditDenial.WEEK_CLOSED

    def test_after_deadline_open_after_close_decides(self):
        weeks = group_dates_into_weeks(period_rows(week_flags=[(True, False), (False, True)]))
        period = PeriodInfo(id=7, start_date=PERIOD_START, end_date=PERIOD_START + timedelta(days=34),
                            closes_at=NOW - timedelta(hours=1))

        assert _gate(STAFF, CellKey(1, OPEN_DAY), weeks, period).reason == EditDenial.WEEK_CLOSED
        assert _gate(STAFF, CellKey(1, CLOSED_DAY), weeks, period).allowed is True

    def test_spanish_messages(self, weeks, period):
        actor = Actor(id=1, role_id=2, preferred_lang='es')
        decision = _gate(actor, CellKey(1, CLOSED_DAY), weeks, period)
        assert decision.message == 'Esta semana está cerrada a solicitudes.'


class TestGrid:

    def test_grid_view_state(self, weeks, period):
        users = [STAFF, OTHER, ADMIN]
        cache = CellCache()
        cache.load([{'user_id': 1, 'date': OPEN_DAY.isoformat(), 'value': 'O', 'important_rank': 1}])
        pending_key = CellKey(1, OPEN_DAY + timedelta(days=1))
        cache.put_pending(pending_key, CellValue('N'), cache.next_token(pending_key))
        locks = LockRegistry([{'user_id': 2, 'date': OPEN_DAY.isoformat()}])

        sections = grid(STAFF, users, weeks, period, cache, locks, NoticeGate(), now=NOW)

        assert [s.label for s in sections] == ['Charge Nurses', 'Staff Nurses']
        rows = {row.user.id: row for s in sections for row in s.rows}
        own = {c.key: c for c in rows[1].cells}
        assert len(rows[1].cells) == 35
        assert own[CellKey(1, OPEN_DAY)].text == 'O¹'
        assert own[CellKey(1, OPEN_DAY)].editable is True
        assert own[pending_key].pending is True
        assert own[CellKey(1, CLOSED_DAY)].closed is True
        assert own[CellKey(1, CLOSED_DAY)].editable is False
        assert rows[2].unlocked is False
        assert all(not c.editable for c in rows[2].cells)
        assert not any(c.locked_admin for c in rows[2].cells)

    def test_admin_sees_locked_cells_flagged(self, weeks, period):
        locks = LockRegistry([{'user_id': 2, 'date': OPEN_DAY.isoformat()}])

        sections = grid(ADMIN, [OTHER], weeks, period, CellCache(), locks, NoticeGate(), now=NOW)

        cells = {c.key: c for c in sections[0].rows[0].cells}
        assert cells[CellKey(2, OPEN_DAY)].locked_admin is True
        assert cells[CellKey(2, OPEN_DAY)].editable is True

    def test_blocking_notices_make_grid_read_only(self, weeks, period):
        sections = grid(STAFF, [STAFF], weeks, period, CellCache(), LockRegistry(),
                        _blocking_notices(STAFF), now=NOW)

        assert not any(c.editable for c in sections[0].rows[0].cells)
