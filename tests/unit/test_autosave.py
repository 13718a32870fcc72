"""
Unit tests for the auto-save / rollback controller.

Tests cover:
- Optimistic display, commit and notification on success
- Local rejections (gate, quota, rank) that never reach the network
- Remote rejections rolling back to the last confirmed value
- Out-of-order resolution of overlapping writes to one cell
"""
import asyncio
import logging
import pytest
from datetime import datetime, timedelta

from conftest import PERIOD_START
from rota_requests.editor.autosave import SavePhase
from rota_requests.editor.session import EditingSession
from rota_requests.editor.types import CellKey, CellValue, EditChoice
from rota_requests.integrations.request_api.remote_store import RemoteError, RemoteErrorKind

pytestmark = pytest.mark.unit

NOW = datetime(2026, 10, 17, 12, 0)
MONDAY = PERIOD_START + timedelta(days=1)
KEY = CellKey(1, MONDAY)


def _record(day, value='O', rank=None, user_id=1):
    return {'id': None, 'user_id': user_id, 'date': day.isoformat(), 'value': value,
            'important_rank': rank}


async def _ready(remote, notes, user_id=1, pin='1111'):
    session = EditingSession(remote, notifier=lambda message, level: notes.append((level, message)),
                             clock=lambda: NOW)
    assert await session.login(user_id, pin) is True
    await session.load()
    return session


async def _settle(rounds=5):
    for _ in range(rounds):
        await asyncio.sleep(0)


def _run(remote, steps, notes=None, **login):
    """Log in, load, then run ``steps(session)``; returns (session, result)."""
    notes = notes if notes is not None else []

    async def scenario():
        session = await _ready(remote, notes, **login)
        return session, await steps(session)

    return asyncio.run(scenario())


class TestSuccessfulSave:

    def test_off_request_is_saved_and_announced(self, fake_remote):
        notes = []
        session, outcome = _run(fake_remote, lambda s: s.apply_choice(1, MONDAY, 'O'), notes)

        assert outcome.committed is True
        assert outcome.stale is False
        assert session.display(1, MONDAY) == 'O'
        assert session.cache.has_pending(KEY) is False
        assert fake_remote.calls == [('set_cell', 1, None, MONDAY, 'O', None)]
        assert notes == [('info', 'Saved (1_2026-11-02) = O')]

    def test_phase_sequence(self, fake_remote):
        phases = []

        async def steps(session):
            session.subscribe(lambda event, **data: phases.append(data['phase'])
                              if event == 'phase' else None)
            return await session.apply_choice(1, MONDAY, 'N')

        _run(fake_remote, steps)

        assert phases == [SavePhase.VALIDATING, SavePhase.OPTIMISTIC_WRITE, SavePhase.REMOTE_WRITE,
                          SavePhase.COMMITTED, SavePhase.IDLE]

    def test_clear_removes_the_cell(self, fake_remote):
        fake_remote.requests = [_record(MONDAY)]
        notes = []
        session, outcome = _run(fake_remote, lambda s: s.apply_choice(1, MONDAY, EditChoice.CLEAR), notes)

        assert outcome.committed is True
        assert session.display(1, MONDAY) == ''
        assert session.cache.committed(KEY) is None
        assert fake_remote.calls == [('clear_cell', 1, None, MONDAY)]
        assert notes == [('info', 'Cleared + saved (1_2026-11-02)')]

    def test_strong_off_cycles_ranks(self, fake_remote):
        async def steps(session):
            shown = []
            for _ in range(3):
                await session.apply_choice(1, MONDAY, 'O*')
                shown.append(session.display(1, MONDAY))
            return shown

        _, shown = _run(fake_remote, steps)

        assert shown == ['O¹', 'O²', 'O']
        assert [c[5] for c in fake_remote.calls] == [1, 2, None]

    def test_strong_off_skips_taken_rank(self, fake_remote):
        fake_remote.requests = [_record(MONDAY, 'O', 1)]
        wednesday = MONDAY + timedelta(days=2)

        session, outcome = _run(fake_remote, lambda s: s.apply_choice(1, wednesday, 'O*'))

        assert session.display(1, wednesday) == 'O²'
        assert fake_remote.calls[-1][5] == 2

    def test_admin_writes_other_users_cell_as_target(self, fake_remote):
        session, outcome = _run(fake_remote, lambda s: s.apply_choice(2, MONDAY, 'O'),
                                user_id=9, pin='9999')

        assert outcome.committed is True
        assert fake_remote.calls == [('set_cell', 9, 2, MONDAY, 'O', None)]
        assert session.display(2, MONDAY) == 'O'


class TestLocalRejection:

    def test_quota_blocks_sixth_day_without_network(self, fake_remote):
        fake_remote.requests = [_record(PERIOD_START + timedelta(days=i)) for i in range(5)]
        notes = []
        friday = PERIOD_START + timedelta(days=5)

        session, outcome = _run(fake_remote, lambda s: s.apply_choice(1, friday, 'O'), notes)

        assert outcome.rejected is True
        assert outcome.reason == 'quota_exceeded'
        assert session.display(1, friday) == ''
        assert fake_remote.calls == []
        assert notes == [('warning', 'Max 5 requests per week. Clear one day to pick another.')]

    def test_quota_allows_resaving_existing_day(self, fake_remote):
        fake_remote.requests = [_record(PERIOD_START + timedelta(days=i)) for i in range(5)]

        session, outcome = _run(fake_remote, lambda s: s.apply_choice(1, PERIOD_START, 'N'))

        assert outcome.committed is True
        assert session.display(1, PERIOD_START) == 'N'

    def test_exhausted_ranks_leave_cell_unchanged(self, fake_remote):
        fake_remote.requests = [_record(MONDAY, 'O', 1), _record(MONDAY + timedelta(days=1), 'O', 2)]
        wednesday = MONDAY + timedelta(days=2)
        notes = []

        session, outcome = _run(fake_remote, lambda s: s.apply_choice(1, wednesday, 'O*'), notes)

        assert outcome.reason == 'priority_exhausted'
        assert session.display(1, wednesday) == ''
        assert fake_remote.calls == []
        assert notes[-1][1].startswith('No more strong preferences available.')

    def test_rejection_publishes_idle_phase(self, fake_remote):
        phases = []

        async def steps(session):
            session.subscribe(lambda event, **data: phases.append(data['phase'])
                              if event == 'phase' else None)
            return await session.apply_choice(2, MONDAY, 'O')

        session, outcome = _run(fake_remote, steps)

        assert outcome.rejected is True
        assert phases == [SavePhase.VALIDATING, SavePhase.IDLE]
        assert session.autosave.phase(CellKey(2, MONDAY)) == SavePhase.IDLE

    def test_other_users_row_is_refused(self, fake_remote):
        session, outcome = _run(fake_remote, lambda s: s.apply_choice(2, MONDAY, 'O'))

        assert outcome.reason == 'not_owner'
        assert fake_remote.calls == []

    def test_overlong_code_is_refused(self, fake_remote):
        session, outcome = _run(fake_remote, lambda s: s.apply_choice(1, MONDAY, 'TOOLONGCODE'))

        assert outcome.reason == 'invalid_value'
        assert fake_remote.calls == []


class TestRemoteRejection:

    def test_server_quota_rejection_reverts(self, fake_remote):
        fake_remote.requests = [_record(MONDAY, 'N')]
        fake_remote.fail_next(RemoteError.from_payload(
            {'success': False, 'error': 'QuotaExceeded',
             'message': 'Weekly request limit reached (max 5 per week)'}, status_code=409))
        notes = []

        session, outcome = _run(fake_remote, lambda s: s.apply_choice(1, MONDAY, 'O'), notes)

        assert outcome.reverted is True
        assert outcome.reason == 'QuotaExceeded'
        assert session.display(1, MONDAY) == 'N'
        assert notes == [('error', 'Max 5 requests per week. Clear one day to pick another.')]

    def test_untagged_priority_message_is_classified(self, fake_remote):
        fake_remote.fail_next(RemoteError.from_payload(
            {'success': False, 'message': 'Priority 1 already used this week (max 2 per week)'}))
        notes = []

        session, outcome = _run(fake_remote, lambda s: s.apply_choice(1, MONDAY, 'O*'), notes)

        assert outcome.reason == RemoteErrorKind.PRIORITY_SLOT_EXHAUSTED.value
        assert session.display(1, MONDAY) == ''
        assert notes[-1] == ('error', 'No more strong preferences available.\nUse O or add a comment.')

    def test_server_lock_reason_is_shown(self, fake_remote):
        fake_remote.fail_next(RemoteError.from_payload(
            {'success': False, 'error': 'CellLocked', 'message': 'Night cover'}, status_code=403))
        notes = []

        _, outcome = _run(fake_remote, lambda s: s.apply_choice(1, MONDAY, 'O'), notes)

        assert outcome.reason == 'Unauthorized'
        assert notes[-1] == ('error', 'Night cover')

    def test_missing_session_pin_reverts(self, fake_remote):
        notes = []

        async def steps(session):
            session.client_store.clear_pin(1)
            return await session.apply_choice(1, MONDAY, 'O')

        session, outcome = _run(fake_remote, steps, notes)

        assert outcome.reverted is True
        assert session.display(1, MONDAY) == ''
        assert fake_remote.calls == []
        assert notes[-1] == ('error', 'Missing session PIN. Log in again.')

    def test_unexpected_exception_reverts(self, fake_remote):
        fake_remote.fail_next(RuntimeError('connection reset'))
        notes = []

        session, outcome = _run(fake_remote, lambda s: s.apply_choice(1, MONDAY, 'O'), notes)

        assert outcome.reason == 'Unknown'
        assert notes[-1] == ('error', 'Save failed. Try again.')


class TestOverlappingWrites:

    def test_newer_write_wins_when_older_resolves_last(self, fake_remote):
        notes = []

        async def steps(session):
            fake_remote.hold_writes = True
            first = asyncio.create_task(session.apply_choice(1, MONDAY, 'N'))
            await _settle()
            second = asyncio.create_task(session.apply_choice(1, MONDAY, 'O'))
            await _settle()
            assert session.display(1, MONDAY) == 'O'
            assert len(fake_remote.gates) == 2

            fake_remote.release(1)
            newer = await second
            fake_remote.release(0)
            older = await first
            return older, newer

        session, (older, newer) = _run(fake_remote, steps, notes)

        assert newer.committed and not newer.stale
        assert older.committed and older.stale
        assert session.display(1, MONDAY) == 'O'
        assert session.cache.committed_value(KEY) == CellValue('O')
        assert notes == [('info', 'Saved (1_2026-11-02) = O')]

    def test_stale_success_updates_confirmed_value_under_newer_pending(self, fake_remote):
        notes = []

        async def steps(session):
            fake_remote.hold_writes = True
            first = asyncio.create_task(session.apply_choice(1, MONDAY, 'N'))
            await _settle()
            fake_remote.fail_next(RemoteError(RemoteErrorKind.UNKNOWN, 'timeout'))
            second = asyncio.create_task(session.apply_choice(1, MONDAY, 'O'))
            await _settle()

            fake_remote.release(0)
            await first
            shown_while_pending = session.display(1, MONDAY)
            fake_remote.release(1)
            await second
            return shown_while_pending

        session, shown_while_pending = _run(fake_remote, steps, notes)

        assert shown_while_pending == 'O'
        # The older write did reach the server, so it is what remains
        assert session.display(1, MONDAY) == 'N'
        assert notes == [('error', 'Save failed. Try again.')]

    def test_stale_failure_is_only_logged(self, fake_remote, caplog):
        caplog.set_level(logging.WARNING, logger='rota_requests.editor.autosave')
        notes = []

        async def steps(session):
            fake_remote.hold_writes = True
            fake_remote.fail_next(RemoteError(RemoteErrorKind.UNKNOWN, 'timeout'))
            first = asyncio.create_task(session.apply_choice(1, MONDAY, 'N'))
            await _settle()
            second = asyncio.create_task(session.apply_choice(1, MONDAY, 'O'))
            await _settle()

            fake_remote.release(1)
            await second
            fake_remote.release(0)
            return await first

        session, older = _run(fake_remote, steps, notes)

        assert older.reverted and older.stale
        assert session.display(1, MONDAY) == 'O'
        assert notes == [('info', 'Saved (1_2026-11-02) = O')]
        assert 'Stale save' in caplog.text

    def test_reload_discards_in_flight_write(self, fake_remote):
        notes = []

        async def steps(session):
            fake_remote.hold_writes = True
            task = asyncio.create_task(session.apply_choice(1, MONDAY, 'O'))
            await _settle()
            fake_remote.requests = [_record(MONDAY, 'N')]
            await session.reload()
            assert session.display(1, MONDAY) == 'N'

            fake_remote.release()
            return await task

        session, outcome = _run(fake_remote, steps, notes)

        assert outcome.stale is True
        assert session.display(1, MONDAY) == 'N'
        assert notes == []
        assert session.autosave.phase(KEY) == SavePhase.IDLE

    def test_stale_resolution_keeps_newer_write_saving(self, fake_remote):
        async def steps(session):
            fake_remote.hold_writes = True
            first = asyncio.create_task(session.apply_choice(1, MONDAY, 'N'))
            await _settle()
            second = asyncio.create_task(session.apply_choice(1, MONDAY, 'O'))
            await _settle()

            fake_remote.release(0)
            await first
            while_newer_in_flight = session.autosave.phase(KEY)
            fake_remote.release(1)
            await second
            return while_newer_in_flight

        session, while_newer_in_flight = _run(fake_remote, steps)

        assert while_newer_in_flight == SavePhase.REMOTE_WRITE
        assert session.autosave.phase(KEY) == SavePhase.IDLE
