"""
HTTP remote store - talks to the Rota Requests JSON API with requests

Blocking requests calls run on a single worker thread that owns the
requests Session, so a slow save only suspends the coroutine that made it
and writes reach the server in the order they were issued. There are no
automatic retries: a failed write is reported once and the engine rolls it
back.
"""
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from functools import partial
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .remote_store import RemoteError, RemoteErrorKind, RemoteStore


class HttpRemoteStore(RemoteStore):
    """RemoteStore backed by the /api blueprints of a running server"""

    def __init__(self, base_url: Optional[str] = None, timeout: int = 15, app=None,
                 session: Optional[requests.Session] = None):
        self.logger = logging.getLogger(__name__)
        self.base_url = base_url
        self.timeout = timeout
        self.session = session
        # All use of the Session is confined to this one worker thread
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='rota-http')

        if app is not None:
            self.init_app(app)
        if self.session is None:
            self._setup_session()

    def close(self):
        """Stop the worker thread and release pooled connections"""
        self._executor.shutdown(wait=True)
        self.session.close()

    def init_app(self, app):
        """Read the API location from the Flask app config"""
        self.base_url = self.base_url or app.config.get('REQUEST_API_BASE_URL', 'http://localhost:8000')
        self.timeout = app.config.get('REQUEST_API_TIMEOUT', self.timeout)

    def _setup_session(self):
        """Setup requests session without retries"""
        self.session = requests.Session()

        adapter = HTTPAdapter(max_retries=Retry(total=0, raise_on_status=False))
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        self.session.headers.update({
            "accept": "application/json",
            "user-agent": "rota-requests-client/1.0 (+requests)",
        })

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        """Blocking request; returns the JSON body or raises RemoteError."""
        url = f"{(self.base_url or '').rstrip('/')}/{endpoint.lstrip('/')}"
        try:
            response = self.session.request(method=method, url=url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Request failed: {method} {url} - {str(e)}")
            raise RemoteError(RemoteErrorKind.UNKNOWN, f"Request failed: {str(e)}")

        self.logger.info(f"{method} {url} - Status: {response.status_code}")
        payload = self._safe_json(response)

        if response.status_code >= 400 or (payload is not None and payload.get('success') is False):
            raise RemoteError.from_payload(payload, status_code=response.status_code,
                                           fallback_message=response.text[:200])
        return payload or {}

    async def _call(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        loop = asyncio.get_running_loop()
        call = partial(self._request, method, endpoint, **kwargs)
        return await loop.run_in_executor(self._executor, call)

    @staticmethod
    def _safe_json(response: requests.Response) -> Optional[Dict[str, Any]]:
        try:
            data = response.json()
        except ValueError:
            return None
        return data if isinstance(data, dict) else None

    @staticmethod
    def _auth_headers(user_id: int, pin: str) -> Dict[str, str]:
        return {'X-Rota-User': str(user_id), 'X-Rota-Pin': str(pin)}

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    async def fetch_users(self) -> List[Dict[str, Any]]:
        return (await self._call('GET', '/api/users')).get('users', [])

    async def fetch_periods(self) -> List[Dict[str, Any]]:
        return (await self._call('GET', '/api/periods')).get('periods', [])

    async def fetch_rota_dates(self, period_id: int) -> List[Dict[str, Any]]:
        return (await self._call('GET', f'/api/periods/{int(period_id)}/dates')).get('dates', [])

    async def fetch_requests(self, start: date, end: date) -> List[Dict[str, Any]]:
        params = {'start': start.isoformat(), 'end': end.isoformat()}
        return (await self._call('GET', '/api/requests', params=params)).get('requests', [])

    async def fetch_locks(self, start: date, end: date) -> List[Dict[str, Any]]:
        params = {'start': start.isoformat(), 'end': end.isoformat()}
        return (await self._call('GET', '/api/locks', params=params)).get('locks', [])

    async def fetch_notices(self, user_id: int) -> List[Dict[str, Any]]:
        params = {'user_id': int(user_id)}
        return (await self._call('GET', '/api/notices', params=params)).get('notices', [])

    async def verify_pin(self, user_id: int, pin: str) -> bool:
        data = await self._call('POST', '/api/auth/verify-pin', json={'user_id': int(user_id), 'pin': pin})
        return data.get('valid') is True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def set_cell(self, actor_id, pin, target_user_id, day, value, rank=None):
        body = {
            'actor_id': int(actor_id),
            'pin': pin,
            'target_user_id': self._target(actor_id, target_user_id),
            'date': day.isoformat(),
            'value': value,
            'important_rank': rank,
        }
        return (await self._call('POST', '/api/requests/cell', json=body)).get('request')

    async def clear_cell(self, actor_id, pin, target_user_id, day):
        body = {
            'actor_id': int(actor_id),
            'pin': pin,
            'target_user_id': self._target(actor_id, target_user_id),
            'date': day.isoformat(),
        }
        await self._call('POST', '/api/requests/cell/clear', json=body)

    async def set_lock(self, actor_id, pin, target_user_id, day, reason_en=None, reason_es=None):
        body = {
            'admin_id': int(actor_id),
            'pin': pin,
            'target_user_id': int(target_user_id),
            'date': day.isoformat(),
            'reason_en': reason_en,
            'reason_es': reason_es,
        }
        return (await self._call('POST', '/api/locks', json=body)).get('lock')

    async def clear_lock(self, actor_id, pin, target_user_id, day):
        body = {
            'admin_id': int(actor_id),
            'pin': pin,
            'target_user_id': int(target_user_id),
            'date': day.isoformat(),
        }
        await self._call('POST', '/api/locks/clear', json=body)

    async def acknowledge_notice(self, actor_id, notice_id, version):
        body = {'user_id': int(actor_id), 'version': int(version)}
        await self._call('POST', f'/api/notices/{int(notice_id)}/ack', json=body)

    # ------------------------------------------------------------------
    # Week comments
    # ------------------------------------------------------------------

    async def fetch_week_comments(self, week_id, user_id, pin):
        data = await self._call('GET', f'/api/weeks/{int(week_id)}/comments',
                                headers=self._auth_headers(user_id, pin))
        return data.get('comments', [])

    async def save_week_comment(self, week_id, actor_id, pin, comment, target_user_id=None):
        body = {
            'actor_id': int(actor_id),
            'pin': pin,
            'target_user_id': self._target(actor_id, target_user_id),
            'comment': comment or '',
        }
        return (await self._call('PUT', f'/api/weeks/{int(week_id)}/comments', json=body)).get('comment')
