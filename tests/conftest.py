"""
Pytest configuration and fixtures for Rota Requests tests.

This module provides shared fixtures for:
- Flask application with test configuration
- Database setup and teardown
- Model factories for creating test data
- A fake remote store for driving the editing engine without a server
"""
import asyncio
import pytest
from datetime import date, datetime, timedelta

from rota_requests import create_app
from rota_requests.extensions import db as _db
from rota_requests.integrations.request_api.remote_store import RemoteStore


# First Sunday of the test period; every test date is derived from it
PERIOD_START = date(2026, 11, 1)


@pytest.fixture(scope='session')
def app():
    """
    Create application for the tests.

    Uses TestingConfig with in-memory SQLite database.
    Scope is 'session' to reuse the same app across all tests.
    """
    app = create_app('testing')
    app.config.update({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'WTF_CSRF_ENABLED': False,
        'RATELIMIT_ENABLED': False,
        'MAX_REQUESTS_PER_WEEK': 5,
    })

    return app


@pytest.fixture(scope='function')
def db(app):
    """
    Create database for the tests.

    Creates all tables before each test function and drops them after.
    """
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope='function')
def client(app, db):
    """Test client for the JSON API."""
    with app.test_client() as client:
        with app.app_context():
            yield client


@pytest.fixture(scope='function')
def models(app, db):
    """All model classes from the model registry."""
    from rota_requests.models import get_models
    return dict(get_models())


@pytest.fixture
def store(db, models, app):
    """RequestStore bound to the test session."""
    from rota_requests.services.request_store import RequestStore
    return RequestStore(db.session, models, app.config['MAX_REQUESTS_PER_WEEK'])


# =============================================================================
# Model Factories
# =============================================================================

@pytest.fixture
def user_factory(models, db):
    """
    Factory for creating User instances with a PIN.

    Usage:
        nurse = user_factory(name='Ana')
        admin = user_factory(name='Boss', is_admin=True, pin='9999')
    """
    counter = [0]

    def _create_user(pin='1234', **kwargs):
        User = models['User']
        counter[0] += 1
        defaults = {
            'name': f'Test User {counter[0]}',
            'role_id': 2,
            'is_admin': False,
            'is_active': True,
            'display_order': counter[0],
            'preferred_lang': 'en',
        }
        defaults.update(kwargs)
        user = User(**defaults)
        user.set_pin(pin)
        db.session.add(user)
        db.session.commit()
        return user

    return _create_user


@pytest.fixture
def period_factory(models, db):
    """
    Factory for a rota period with its weeks and dates.

    Usage:
        period = period_factory()                       # 5 open weeks
        period = period_factory(week_flags=[(False, False)])
        period = period_factory(closes_at=datetime(2026, 10, 20, 12, 0))
    """
    def _create_period(start_date=PERIOD_START, weeks=5, week_flags=None, **kwargs):
        RotaPeriod = models['RotaPeriod']
        RotaWeek = models['RotaWeek']
        RotaDate = models['RotaDate']

        defaults = {
            'name': f'Period from {start_date.isoformat()}',
            'start_date': start_date,
            'end_date': start_date + timedelta(days=7 * weeks - 1),
            'is_active': True,
            'is_hidden': False,
            'closes_at': None,
        }
        defaults.update(kwargs)
        period = RotaPeriod(**defaults)
        db.session.add(period)
        db.session.flush()

        for index in range(weeks):
            is_open, open_after_close = (True, False)
            if week_flags and index < len(week_flags):
                is_open, open_after_close = week_flags[index]
            week = RotaWeek(
                period_id=period.id,
                week_start=start_date + timedelta(days=7 * index),
                open=is_open,
                open_after_close=open_after_close,
            )
            db.session.add(week)
            db.session.flush()
            for offset in range(7):
                db.session.add(RotaDate(
                    date=week.week_start + timedelta(days=offset),
                    week_id=week.id,
                    period_id=period.id,
                ))

        db.session.commit()
        return period

    return _create_period


@pytest.fixture
def request_factory(models, db):
    """Factory for stored RequestCell rows."""
    def _create_request(user, day, value='O', important_rank=None):
        RequestCell = models['RequestCell']
        cell = RequestCell(user_id=user.id, date=day, value=value, important_rank=important_rank)
        db.session.add(cell)
        db.session.commit()
        return cell

    return _create_request


@pytest.fixture
def lock_factory(models, db):
    """Factory for CellLock rows."""
    def _create_lock(user, day, reason_en=None, reason_es=None, locked_by=None):
        CellLock = models['CellLock']
        lock = CellLock(user_id=user.id, date=day, reason_en=reason_en, reason_es=reason_es,
                        locked_by=locked_by.id if locked_by is not None else None)
        db.session.add(lock)
        db.session.commit()
        return lock

    return _create_lock


@pytest.fixture
def notice_factory(models, db):
    """Factory for Notice rows."""
    counter = [0]

    def _create_notice(**kwargs):
        Notice = models['Notice']
        counter[0] += 1
        defaults = {
            'title': f'Notice {counter[0]}',
            'body_en': 'Please read the new rota rules.',
            'body_es': 'Lee las nuevas normas del turno.',
            'version': 1,
            'target_all': True,
            'target_roles': None,
            'is_active': True,
            'is_mandatory': True,
        }
        defaults.update(kwargs)
        notice = Notice(**defaults)
        db.session.add(notice)
        db.session.commit()
        return notice

    return _create_notice


# =============================================================================
# Editing engine helpers
# =============================================================================

def period_rows(start=PERIOD_START, weeks=5, week_flags=None, week_id_base=100):
    """Flat date rows shaped like GET /api/periods/<id>/dates."""
    rows = []
    for index in range(weeks):
        is_open, open_after_close = (True, False)
        if week_flags and index < len(week_flags):
            is_open, open_after_close = week_flags[index]
        for offset in range(7):
            rows.append({
                'date': (start + timedelta(days=7 * index + offset)).isoformat(),
                'week_id': week_id_base + index,
                'week_open': is_open,
                'week_open_after_close': open_after_close,
            })
    return rows


class FakeRemoteStore(RemoteStore):
    """
    In-memory RemoteStore for engine tests.

    Writes can be held until a test releases them by setting
    ``hold_writes`` and resolving the gates with ``release``; failures are
    queued per call with ``fail_next``.
    """

    def __init__(self, users=None, periods=None, dates=None, requests=None, locks=None,
                 notices=None, pins=None):
        self.users = users or []
        self.periods = periods or []
        self.dates = dates or []
        self.requests = list(requests or [])
        self.locks = list(locks or [])
        self.notices = list(notices or [])
        self.pins = pins or {}
        self.calls = []
        self.acks = []
        self.comments = {}
        self.hold_writes = False
        self.gates = []
        self._failures = []
        self.fail_notices = False

    def fail_next(self, error):
        self._failures.append(error)

    def release(self, index=None):
        """Let held writes finish: all of them, or the one at ``index``."""
        gates = self.gates if index is None else [self.gates[index]]
        for gate in gates:
            gate.set()

    async def _gate(self):
        failure = self._failures.pop(0) if self._failures else None
        if self.hold_writes:
            gate = asyncio.Event()
            self.gates.append(gate)
            await gate.wait()
        else:
            await asyncio.sleep(0)
        if failure is not None:
            raise failure

    # -- read models -----------------------------------------------------

    async def fetch_users(self):
        return list(self.users)

    async def fetch_periods(self):
        return list(self.periods)

    async def fetch_rota_dates(self, period_id):
        return list(self.dates)

    async def fetch_requests(self, start, end):
        return [r for r in self.requests if start.isoformat() <= r['date'] <= end.isoformat()]

    async def fetch_locks(self, start, end):
        return list(self.locks)

    async def fetch_notices(self, user_id):
        if self.fail_notices:
            raise RuntimeError('notices endpoint down')
        return list(self.notices)

    async def verify_pin(self, user_id, pin):
        return self.pins.get(int(user_id)) == pin

    # -- writes ----------------------------------------------------------

    async def set_cell(self, actor_id, pin, target_user_id, day, value, rank=None):
        self.calls.append(('set_cell', actor_id, self._target(actor_id, target_user_id),
                           day, value, rank))
        await self._gate()
        return {'id': len(self.calls), 'user_id': target_user_id, 'date': day.isoformat(),
                'value': value, 'important_rank': rank}

    async def clear_cell(self, actor_id, pin, target_user_id, day):
        self.calls.append(('clear_cell', actor_id, self._target(actor_id, target_user_id), day))
        await self._gate()

    async def set_lock(self, actor_id, pin, target_user_id, day, reason_en=None, reason_es=None):
        self.calls.append(('set_lock', actor_id, target_user_id, day))
        await self._gate()
        lock = {'user_id': target_user_id, 'date': day.isoformat(), 'reason_en': reason_en,
                'reason_es': reason_es, 'locked_by': actor_id}
        self.locks.append(lock)
        return lock

    async def clear_lock(self, actor_id, pin, target_user_id, day):
        self.calls.append(('clear_lock', actor_id, target_user_id, day))
        await self._gate()
        self.locks = [l for l in self.locks
                      if not (l['user_id'] == target_user_id and l['date'] == day.isoformat())]

    async def acknowledge_notice(self, actor_id, notice_id, version):
        self.acks.append((actor_id, notice_id, version))
        for notice in self.notices:
            if notice['id'] == notice_id:
                notice['acknowledged_at'] = datetime(2026, 10, 17, 9, 0).isoformat()
                notice['ack_version'] = version

    async def fetch_week_comments(self, week_id, user_id, pin):
        return list(self.comments.get(week_id, []))

    async def save_week_comment(self, week_id, actor_id, pin, comment, target_user_id=None):
        row = {'week_id': week_id, 'user_id': target_user_id or actor_id, 'comment': comment}
        self.comments.setdefault(week_id, []).append(row)
        return row


@pytest.fixture
def fake_remote():
    """FakeRemoteStore with a staff nurse (1, PIN 1111), an admin (9, PIN 9999) and one open period."""
    return FakeRemoteStore(
        users=[
            {'id': 1, 'name': 'Ana', 'role_id': 2, 'is_admin': False, 'display_order': 1},
            {'id': 2, 'name': 'Luis', 'role_id': 2, 'is_admin': False, 'display_order': 2},
            {'id': 9, 'name': 'Marta', 'role_id': 1, 'is_admin': True, 'display_order': 1},
        ],
        periods=[{'id': 7, 'start_date': PERIOD_START.isoformat(),
                  'end_date': (PERIOD_START + timedelta(days=34)).isoformat(),
                  'is_active': True, 'closes_at': None}],
        dates=period_rows(),
        pins={1: '1111', 2: '2222', 9: '9999'},
    )
