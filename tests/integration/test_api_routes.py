"""
Integration tests for the JSON API blueprints.

Tests cover:
- Health probes
- Read models (users, periods, dates, weeks, requests, locks, notices)
- Writes with their tagged error bodies
- Admin endpoints
"""
import pytest
from datetime import timedelta

from conftest import PERIOD_START

pytestmark = pytest.mark.integration

MONDAY = PERIOD_START + timedelta(days=1)


@pytest.fixture
def nurse(user_factory):
    return user_factory(name='Ana', pin='1111')


@pytest.fixture
def admin(user_factory):
    return user_factory(name='Marta', pin='9999', role_id=1, is_admin=True)


@pytest.fixture
def period(period_factory):
    return period_factory()


def _cell(client, actor, pin, day=MONDAY, value='O', **extra):
    body = {'actor_id': actor.id, 'pin': pin, 'date': day.isoformat(), 'value': value}
    body.update(extra)
    return client.post('/api/requests/cell', json=body)


class TestHealth:

    def test_ping(self, client):
        response = client.get('/health/ping')
        assert response.status_code == 200
        assert response.get_json()['message'] == 'pong'

    def test_live(self, client):
        data = client.get('/health/live').get_json()
        assert data['status'] == 'alive'
        assert 'pid' in data

    def test_ready(self, client):
        response = client.get('/health/ready')
        assert response.status_code == 200
        assert response.get_json()['status'] == 'ready'


class TestReadModels:

    def test_users(self, client, nurse, admin):
        response = client.get('/api/users')

        assert response.status_code == 200
        assert response.headers['Cache-Control'] == 'no-store'
        users = response.get_json()['users']
        assert [u['name'] for u in users] == ['Marta', 'Ana']
        assert 'pin_hash' not in users[0]

    def test_periods_report_active_one(self, client, period):
        data = client.get('/api/periods').get_json()

        assert data['active_period_id'] == period.id
        assert data['periods'][0]['start_date'] == PERIOD_START.isoformat()

    def test_dates_and_weeks(self, client, period):
        dates = client.get(f'/api/periods/{period.id}/dates').get_json()['dates']
        weeks = client.get(f'/api/periods/{period.id}/weeks').get_json()['weeks']

        assert len(dates) == 35
        assert len(weeks) == 5
        assert dates[0]['week_id'] == weeks[0]['id']

    def test_unknown_period_is_404(self, client, db):
        response = client.get('/api/periods/404/dates')

        assert response.status_code == 404
        assert response.get_json()['error'] == 'NotFound'

    def test_requests_range(self, client, nurse, request_factory):
        request_factory(nurse, MONDAY, 'O', important_rank=1)

        data = client.get('/api/requests', query_string={
            'start': PERIOD_START.isoformat(),
            'end': (PERIOD_START + timedelta(days=6)).isoformat(),
        }).get_json()

        assert data['requests'] == [{'id': data['requests'][0]['id'], 'user_id': nurse.id,
                                     'date': MONDAY.isoformat(), 'value': 'O', 'important_rank': 1}]

    def test_requests_need_valid_dates(self, client, db):
        response = client.get('/api/requests', query_string={'start': 'soon', 'end': '2026-11-07'})

        assert response.status_code == 400
        assert response.get_json()['error'] == 'ValidationError'


class TestAuth:

    def test_verify_pin(self, client, nurse):
        good = client.post('/api/auth/verify-pin', json={'user_id': nurse.id, 'pin': '1111'})
        bad = client.post('/api/auth/verify-pin', json={'user_id': nurse.id, 'pin': '0000'})

        assert good.get_json() == {'success': True, 'valid': True}
        assert bad.get_json()['valid'] is False

    def test_verify_pin_format(self, client, nurse):
        response = client.post('/api/auth/verify-pin', json={'user_id': nurse.id, 'pin': '12'})
        assert response.status_code == 400

    def test_missing_fields(self, client, db):
        response = client.post('/api/auth/verify-pin', json={})
        assert response.status_code == 400

    def test_change_pin_and_language(self, client, nurse):
        changed = client.post('/api/auth/change-pin',
                              json={'user_id': nurse.id, 'old_pin': '1111', 'new_pin': '2468'})
        assert changed.status_code == 200

        lang = client.post('/api/auth/language', json={'user_id': nurse.id, 'pin': '2468', 'lang': 'es'})
        assert lang.get_json()['preferred_lang'] == 'es'

        stale = client.post('/api/auth/language', json={'user_id': nurse.id, 'pin': '1111', 'lang': 'en'})
        assert stale.status_code == 401
        assert stale.get_json()['error'] == 'AuthenticationError'


class TestCellWrites:

    def test_save_and_clear(self, client, nurse, period):
        saved = _cell(client, nurse, '1111', important_rank=1)

        assert saved.status_code == 200
        assert saved.get_json()['request']['important_rank'] == 1

        cleared = client.post('/api/requests/cell/clear',
                              json={'actor_id': nurse.id, 'pin': '1111', 'date': MONDAY.isoformat()})
        assert cleared.status_code == 200

        listed = client.get('/api/requests', query_string={'start': MONDAY.isoformat(),
                                                           'end': MONDAY.isoformat()})
        assert listed.get_json()['requests'] == []

    def test_quota_rejection_is_tagged(self, client, nurse, period, request_factory):
        for offset in range(5):
            request_factory(nurse, PERIOD_START + timedelta(days=offset))

        response = _cell(client, nurse, '1111', day=PERIOD_START + timedelta(days=5))

        assert response.status_code == 409
        body = response.get_json()
        assert body['success'] is False
        assert body['error'] == 'QuotaExceeded'
        assert body['limit'] == 5

    def test_priority_rejection_is_tagged(self, client, nurse, period, request_factory):
        request_factory(nurse, MONDAY + timedelta(days=1), 'O', important_rank=2)

        response = _cell(client, nurse, '1111', important_rank=2)

        assert response.status_code == 409
        assert response.get_json()['error'] == 'PrioritySlotExhausted'

    def test_locked_cell_returns_reasons(self, client, nurse, admin, period, lock_factory):
        lock_factory(nurse, MONDAY, reason_en='Night cover', reason_es='Cobertura nocturna')

        response = _cell(client, nurse, '1111')

        assert response.status_code == 403
        body = response.get_json()
        assert body['error'] == 'CellLocked'
        assert body['message'] == 'Night cover'
        assert body['reason_es'] == 'Cobertura nocturna'

    def test_closed_week(self, client, nurse, period_factory):
        period_factory(week_flags=[(False, False)])

        response = _cell(client, nurse, '1111')

        assert response.status_code == 403
        assert response.get_json()['error'] == 'WeekClosed'

    def test_staff_target_other_user(self, client, nurse, admin, period):
        response = _cell(client, nurse, '1111', target_user_id=admin.id)

        assert response.status_code == 403
        assert response.get_json()['error'] == 'AuthorizationError'

    def test_admin_target_other_user(self, client, nurse, admin, period):
        response = _cell(client, admin, '9999', target_user_id=nurse.id, value='N')

        assert response.get_json()['request']['user_id'] == nurse.id

    def test_rejected_write_leaves_nothing(self, client, db, models, nurse, period):
        response = _cell(client, nurse, '1111', value='N', important_rank=1)

        assert response.status_code == 400
        assert models['RequestCell'].query.count() == 0


class TestLocks:

    def test_lock_list_and_unlock(self, client, nurse, admin, period):
        body = {'admin_id': admin.id, 'pin': '9999', 'target_user_id': nurse.id,
                'date': MONDAY.isoformat(), 'reason_en': 'Training'}

        locked = client.post('/api/locks', json=body)
        assert locked.get_json()['lock']['reason_en'] == 'Training'

        listed = client.get('/api/locks', query_string={'start': PERIOD_START.isoformat(),
                                                        'end': MONDAY.isoformat()})
        assert len(listed.get_json()['locks']) == 1

        unlocked = client.post('/api/locks/clear', json=body)
        assert unlocked.status_code == 200

        listed = client.get('/api/locks', query_string={'start': PERIOD_START.isoformat(),
                                                        'end': MONDAY.isoformat()})
        assert listed.get_json()['locks'] == []

    def test_staff_cannot_lock(self, client, nurse, period):
        response = client.post('/api/locks', json={'admin_id': nurse.id, 'pin': '1111',
                                                   'target_user_id': nurse.id,
                                                   'date': MONDAY.isoformat()})
        assert response.status_code == 403


class TestNotices:

    def test_fetch_ack_and_count(self, client, nurse, admin, notice_factory):
        notice = notice_factory(version=3)

        rows = client.get('/api/notices', query_string={'user_id': nurse.id}).get_json()['notices']
        assert rows[0]['ack_version'] is None

        ack = client.post(f'/api/notices/{notice.id}/ack', json={'user_id': nurse.id, 'version': 3})
        assert ack.status_code == 200

        rows = client.get('/api/notices', query_string={'user_id': nurse.id}).get_json()['notices']
        assert rows[0]['ack_version'] == 3

        counts = client.post('/api/notices/ack-counts',
                             json={'admin_id': admin.id, 'pin': '9999', 'notice_ids': [notice.id]})
        assert counts.get_json()['counts'] == [{'notice_id': notice.id, 'acked': 1, 'total': 2}]

    def test_notices_need_user(self, client, db):
        assert client.get('/api/notices').status_code == 400


class TestWeekComments:

    def test_comments_need_credentials_header(self, client, period):
        week_id = period.weeks[0].id

        response = client.get(f'/api/weeks/{week_id}/comments')

        assert response.status_code == 401
        assert response.get_json()['error'] == 'AuthenticationError'

    def test_save_and_read_comment(self, client, nurse, period):
        week_id = period.weeks[0].id

        saved = client.put(f'/api/weeks/{week_id}/comments',
                           json={'actor_id': nurse.id, 'pin': '1111', 'comment': 'Prefer nights'})
        assert saved.get_json()['comment']['comment'] == 'Prefer nights'

        comments = client.get(f'/api/weeks/{week_id}/comments',
                              headers={'X-Rota-User': str(nurse.id), 'X-Rota-Pin': '1111'})
        assert [c['comment'] for c in comments.get_json()['comments']] == ['Prefer nights']


class TestAdmin:

    def test_closes_at(self, client, admin, period):
        response = client.post(f'/api/admin/periods/{period.id}/closes-at',
                               json={'admin_id': admin.id, 'pin': '9999',
                                     'closes_at': '2026-10-20T14:00:00+02:00'})

        assert response.get_json()['period']['closes_at'] == '2026-10-20T12:00:00'

    def test_closes_at_rejects_garbage(self, client, admin, period):
        response = client.post(f'/api/admin/periods/{period.id}/closes-at',
                               json={'admin_id': admin.id, 'pin': '9999', 'closes_at': 'tomorrow'})
        assert response.status_code == 400

    def test_week_flags(self, client, admin, period):
        week_id = period.weeks[0].id

        response = client.post(f'/api/admin/weeks/{week_id}/flags',
                               json={'admin_id': admin.id, 'pin': '9999', 'open': False})

        assert response.get_json()['week']['open'] is False

    def test_reset_weeks(self, client, admin, period):
        response = client.post(f'/api/admin/periods/{period.id}/reset-weeks',
                               json={'admin_id': admin.id, 'pin': '9999', 'mode': 'closed'})

        weeks = response.get_json()['weeks']
        assert len(weeks) == 5
        assert not any(w['open'] or w['open_after_close'] for w in weeks)

    def test_hide_and_activate(self, client, admin, period, period_factory):
        later = period_factory(start_date=PERIOD_START + timedelta(days=35), is_active=False)

        hidden = client.post(f'/api/admin/periods/{period.id}/toggle-hidden',
                             json={'admin_id': admin.id, 'pin': '9999'})
        assert hidden.get_json()['period']['is_hidden'] is True

        client.post(f'/api/admin/periods/{later.id}/activate', json={'admin_id': admin.id, 'pin': '9999'})
        data = client.get('/api/periods').get_json()
        assert data['active_period_id'] == later.id
        assert [p['id'] for p in data['periods']] == [later.id]

    def test_admin_endpoints_reject_staff(self, client, nurse, period):
        response = client.post(f'/api/admin/periods/{period.id}/reset-weeks',
                               json={'admin_id': nurse.id, 'pin': '1111'})
        assert response.status_code == 403
