"""
In-process remote store - calls RequestStore inside a Flask app context

Used when the editing engine is embedded in the same process as the server
(tests, command line tools). Each call runs in its own transaction and
server rejections are translated to RemoteError exactly as the HTTP client
would see them.
"""
import asyncio
import logging
from typing import Any, Callable

from rota_requests.error_handlers.exceptions import AppException
from rota_requests.extensions import db
from rota_requests.models import get_models
from rota_requests.services.request_store import RequestStore

from .remote_store import RemoteError, RemoteErrorKind, RemoteStore


logger = logging.getLogger(__name__)


class InProcessRemoteStore(RemoteStore):

    def __init__(self, app):
        self.app = app

    async def _run(self, operation: Callable[[RequestStore], Any], commit: bool = False) -> Any:
        # Yield once so callers observe the same suspension point as over HTTP
        await asyncio.sleep(0)
        with self.app.app_context():
            store = RequestStore(db.session, get_models(),
                                 self.app.config.get('MAX_REQUESTS_PER_WEEK'))
            try:
                result = operation(store)
                if commit:
                    db.session.commit()
                return result
            except AppException as e:
                db.session.rollback()
                raise RemoteError.from_payload(e.to_dict(), status_code=e.status_code)
            except Exception as e:
                db.session.rollback()
                logger.error(f"In-process store call failed: {e}", exc_info=True)
                raise RemoteError(RemoteErrorKind.UNKNOWN, str(e))

    # -- read models -----------------------------------------------------

    async def fetch_users(self):
        return await self._run(lambda s: s.list_users())

    async def fetch_periods(self):
        return await self._run(lambda s: s.list_periods())

    async def fetch_rota_dates(self, period_id):
        return await self._run(lambda s: s.rota_dates(period_id))

    async def fetch_requests(self, start, end):
        return await self._run(lambda s: s.list_requests(start, end))

    async def fetch_locks(self, start, end):
        return await self._run(lambda s: s.list_locks(start, end))

    async def fetch_notices(self, user_id):
        return await self._run(lambda s: s.notices_for_user(user_id))

    async def verify_pin(self, user_id, pin):
        return await self._run(lambda s: s.verify_pin(user_id, pin))

    # -- writes ----------------------------------------------------------

    async def set_cell(self, actor_id, pin, target_user_id, day, value, rank=None):
        target = self._target(actor_id, target_user_id)
        return await self._run(lambda s: s.set_cell(actor_id, pin, target, day, value, rank), commit=True)

    async def clear_cell(self, actor_id, pin, target_user_id, day):
        target = self._target(actor_id, target_user_id)
        await self._run(lambda s: s.clear_cell(actor_id, pin, target, day), commit=True)

    async def set_lock(self, actor_id, pin, target_user_id, day, reason_en=None, reason_es=None):
        return await self._run(
            lambda s: s.set_lock(actor_id, pin, target_user_id, day, reason_en, reason_es), commit=True
        )

    async def clear_lock(self, actor_id, pin, target_user_id, day):
        await self._run(lambda s: s.clear_lock(actor_id, pin, target_user_id, day), commit=True)

    async def acknowledge_notice(self, actor_id, notice_id, version):
        await self._run(lambda s: s.acknowledge_notice(actor_id, notice_id, version), commit=True)

    # -- week comments ---------------------------------------------------

    async def fetch_week_comments(self, week_id, user_id, pin):
        return await self._run(lambda s: s.week_comments(week_id, user_id, pin))

    async def save_week_comment(self, week_id, actor_id, pin, comment, target_user_id=None):
        target = self._target(actor_id, target_user_id)
        return await self._run(
            lambda s: s.save_week_comment(week_id, actor_id, pin, comment, target), commit=True
        )
