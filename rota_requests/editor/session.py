"""
Editing session and client-held session state

EditingSession is the one object a rendering layer talks to: it owns the
logged-in actor, the loaded period, the cell cache, locks and notices, and
routes picker choices through the auto-save controller. Changes are
announced to subscribers instead of redrawing anything itself.

ClientSessionStore keeps what a browser would keep between page loads: the
last logged-in user id (durable), each user's PIN (session only, in memory)
and a signed carrier for handing the login to another page of the same
origin.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, MutableMapping, Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from rota_requests import rules
from rota_requests.editor.autosave import AutoSaveController, EditOutcome
from rota_requests.editor.calendar_builder import group_dates_into_weeks, group_users
from rota_requests.editor.cell_cache import CellCache
from rota_requests.editor.editability import EditDecision, check_edit, grid
from rota_requests.editor.lock_registry import LockRegistry
from rota_requests.editor.messages import t
from rota_requests.editor.notice_gate import NoticeGate
from rota_requests.editor.open_state import ClosingState, close_status, status_text
from rota_requests.editor.types import Actor, CalendarWeek, CellKey, NoticeInfo, PeriodInfo
from rota_requests.error_handlers.exceptions import AuthorizationException, ValidationException
from rota_requests.integrations.request_api.remote_store import RemoteError
from rota_requests.utils.timezone import utcnow
from rota_requests.utils.validators import PIN_PATTERN


logger = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]


def log_notifier(message: str, level: str = 'info') -> None:
    """Default notifier: user feedback goes to the log."""
    logging.getLogger('rota_requests.notify').log(
        getattr(logging, level.upper(), logging.INFO), message
    )


class ClientSessionStore:
    """
    Client-side login state.

    Args:
        secret_key: Application secret used to sign carriers
        durable: Mapping that survives restarts (defaults to a plain dict)
        max_age: Carrier lifetime in seconds
    """

    LAST_USER_KEY = 'rota_requests.last_user_id'
    CARRIER_SALT = 'rota-requests-carrier'

    def __init__(self, secret_key: str, durable: Optional[MutableMapping[str, Any]] = None,
                 max_age: int = 8 * 3600):
        self.durable = durable if durable is not None else {}
        self.max_age = max_age
        self._pins: Dict[int, str] = {}
        self._serializer = URLSafeTimedSerializer(secret_key, salt=self.CARRIER_SALT)

    # -- last user (durable) ---------------------------------------------

    def remember_user(self, user_id: int) -> None:
        self.durable[self.LAST_USER_KEY] = str(int(user_id))

    def last_user_id(self) -> Optional[int]:
        raw = self.durable.get(self.LAST_USER_KEY)
        try:
            return int(raw) if raw is not None else None
        except (TypeError, ValueError):
            return None

    def forget_user(self) -> None:
        self.durable.pop(self.LAST_USER_KEY, None)

    # -- PINs (session only) ---------------------------------------------

    def set_pin(self, user_id: int, pin: str) -> None:
        if not PIN_PATTERN.match(pin or ''):
            raise ValidationException('PIN must be 4 digits')
        self._pins[int(user_id)] = pin

    def get_pin(self, user_id: int) -> Optional[str]:
        return self._pins.get(int(user_id))

    def clear_pin(self, user_id: int) -> None:
        self._pins.pop(int(user_id), None)

    def restore_user(self) -> Optional[int]:
        """
        User to log back in on reload.

        Only restored when that user's PIN is still held for this session;
        otherwise the remembered id is dropped.
        """
        user_id = self.last_user_id()
        if user_id is None:
            return None
        if self.get_pin(user_id) is None:
            self.forget_user()
            return None
        return user_id

    # -- cross-page carrier ----------------------------------------------

    def make_carrier(self, user_id: int) -> str:
        pin = self.get_pin(user_id)
        if pin is None:
            raise ValidationException('No session PIN to carry')
        return self._serializer.dumps({'uid': int(user_id), 'pin': pin})

    def accept_carrier(self, token: str) -> Optional[int]:
        """Adopt the login carried by ``token``. Returns the user id, or None if invalid or expired."""
        try:
            data = self._serializer.loads(token, max_age=self.max_age)
        except SignatureExpired:
            logger.warning("Session carrier expired")
            return None
        except BadSignature:
            logger.warning("Session carrier signature invalid")
            return None
        try:
            user_id = int(data['uid'])
            self.set_pin(user_id, str(data['pin']))
        except (KeyError, TypeError, ValueError, ValidationException):
            logger.warning("Session carrier payload malformed")
            return None
        self.remember_user(user_id)
        return user_id

    def logout(self, user_id: Optional[int]) -> None:
        if user_id is not None:
            self.clear_pin(user_id)
        self.forget_user()


class EditingSession:
    """
    State and operations of one user's editing session.

    Args:
        remote: RemoteStore implementation
        notifier: Callback receiving (message, level) for user feedback
        client_store: ClientSessionStore holding PINs; a private one is
            created when omitted
        max_requests_per_week: Weekly request limit enforced locally
        clock: Callable returning the current naive UTC time
    """

    def __init__(self, remote, notifier: Optional[Notifier] = None,
                 client_store: Optional[ClientSessionStore] = None,
                 max_requests_per_week: int = rules.MAX_REQUESTS_PER_WEEK,
                 clock: Optional[Callable[[], datetime]] = None):
        self.remote = remote
        self.notifier = notifier or log_notifier
        self.client_store = client_store or ClientSessionStore(secret_key='local-session')
        self.max_requests_per_week = max_requests_per_week
        self.clock = clock or utcnow

        self.real_actor: Optional[Actor] = None
        self.viewing_as: Optional[Actor] = None
        self.users: List[Actor] = []
        self.periods: List[PeriodInfo] = []
        self.period: Optional[PeriodInfo] = None
        self.weeks: List[CalendarWeek] = []
        self.cache = CellCache()
        self.locks = LockRegistry()
        self.notices = NoticeGate()
        self.autosave = AutoSaveController(self)
        self._subscribers: List[Callable[..., None]] = []

    # ------------------------------------------------------------------
    # Subscribers and feedback
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[..., None]) -> Callable[[], None]:
        """
        Register ``callback(event, **data)``; returns an unsubscribe function.

        Events: ``phase``, ``rejected``, ``reload``, ``login``, ``logout``,
        ``locks``, ``notices``, ``view_as``.
        """
        self._subscribers.append(callback)
        return lambda: self._subscribers.remove(callback)

    def publish(self, event: str, **data) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event, **data)
            except Exception:
                logger.exception(f"Subscriber failed on {event}")

    def notify(self, message: str, level: str = 'info') -> None:
        self.notifier(message, level)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def actor(self) -> Optional[Actor]:
        """Whose perspective edits are gated from (the viewed user while viewing as)."""
        return self.viewing_as or self.real_actor

    @property
    def pin(self) -> Optional[str]:
        if self.real_actor is None:
            return None
        return self.client_store.get_pin(self.real_actor.id)

    @property
    def lang(self) -> str:
        actor = self.real_actor
        return actor.preferred_lang if actor else rules.DEFAULT_LANGUAGE

    def now(self) -> datetime:
        return self.clock()

    def _user(self, user_id: int) -> Optional[Actor]:
        return next((u for u in self.users if u.id == int(user_id)), None)

    async def login(self, user_id: int, pin: str) -> bool:
        """Verify the PIN remotely and make the user the session's actor."""
        if not PIN_PATTERN.match(pin or ''):
            self.notify(t('pin_format', self.lang), level='warning')
            return False
        try:
            ok = await self.remote.verify_pin(user_id, pin)
        except RemoteError as e:
            logger.error(f"PIN verification failed for user {user_id}: {e.message}")
            ok = False
        if not ok:
            self.notify(t('pin_wrong', self.lang), level='warning')
            return False

        if not self.users:
            self.users = [Actor.from_dict(u) for u in await self.remote.fetch_users()]
        user = self._user(user_id)
        if user is None:
            self.notify(t('not_logged_in', self.lang), level='warning')
            return False

        self.client_store.set_pin(user.id, pin)
        self.client_store.remember_user(user.id)
        self.real_actor = user
        self.viewing_as = None
        await self.notices.refresh(user, self.remote)
        self.publish('login', actor=user)
        logger.info(f"User {user.id} logged in")
        return True

    async def restore(self) -> bool:
        """Log the remembered user back in if their session PIN survived."""
        user_id = self.client_store.restore_user()
        if user_id is None:
            return False
        return await self.login(user_id, self.client_store.get_pin(user_id))

    def logout(self) -> None:
        user = self.real_actor
        self.client_store.logout(user.id if user else None)
        self.real_actor = None
        self.viewing_as = None
        self.notices.clear()
        self.publish('logout')

    def view_as(self, user_id: Optional[int]) -> None:
        """
        Administrators can see the rota as another user does. Writes still go
        out under the administrator's own credentials. ``None`` returns to
        the administrator's own view.
        """
        if self.real_actor is None or not self.real_actor.is_admin:
            raise AuthorizationException('Admin access required')
        self.viewing_as = self._user(user_id) if user_id is not None else None
        self.publish('view_as', actor=self.actor)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _pick_period(self, period_id: Optional[int]) -> Optional[PeriodInfo]:
        if period_id is not None:
            return next((p for p in self.periods if p.id == int(period_id)), None)
        visible = [p for p in self.periods if not p.is_hidden]
        return next((p for p in visible if p.is_active), None) or (visible[0] if visible else None)

    async def load(self, period_id: Optional[int] = None) -> None:
        """
        Full reload from the store: users, periods, dates, requests, locks
        and notices. Discards every pending edit.
        """
        self.users = [Actor.from_dict(u) for u in await self.remote.fetch_users()]
        self.periods = [PeriodInfo.from_dict(p) for p in await self.remote.fetch_periods()]
        self.period = self._pick_period(period_id)

        if self.period is None:
            self.weeks = []
            self.cache.load([])
            self.locks.replace_all([])
        else:
            self.weeks = group_dates_into_weeks(await self.remote.fetch_rota_dates(self.period.id))
            if self.weeks:
                start, end = self.weeks[0].week_start, self.weeks[-1].week_end
                self.cache.load(await self.remote.fetch_requests(start, end))
                self.locks.replace_all(await self.remote.fetch_locks(start, end))
            else:
                self.cache.load([])
                self.locks.replace_all([])

        # A reloaded user list may carry a changed role or language
        if self.real_actor is not None:
            self.real_actor = self._user(self.real_actor.id) or self.real_actor
        await self.notices.refresh(self.real_actor, self.remote)
        self.publish('reload', period=self.period)

    async def reload(self) -> None:
        await self.load(self.period.id if self.period else None)

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def check_edit(self, key: CellKey) -> EditDecision:
        return check_edit(self.actor, key, self.weeks, self.period, self.locks, self.notices,
                          now=self.now())

    def grid(self):
        return grid(self.actor, self.users, self.weeks, self.period, self.cache, self.locks,
                    self.notices, now=self.now())

    def sections(self):
        return group_users(self.users)

    def display(self, user_id: int, day) -> str:
        return self.cache.display_value(CellKey.of(user_id, day)).display()

    async def apply_choice(self, user_id: int, day, choice) -> EditOutcome:
        return await self.autosave.apply_choice(user_id, day, choice)

    def close_status(self) -> ClosingState:
        return close_status(self.period, self.now())

    def close_status_text(self, tz_name: str = 'Europe/Madrid') -> str:
        return status_text(self.close_status(), self.lang, tz_name)

    def lock_reason(self, user_id: int, day) -> Optional[str]:
        return self.locks.reason_for(CellKey.of(user_id, day), self.lang)

    # ------------------------------------------------------------------
    # Locks
    # ------------------------------------------------------------------

    async def toggle_lock(self, user_id: int, day, reason: Optional[str] = None) -> Optional[bool]:
        """
        Lock or unlock a cell (administrators only), then reload.

        Returns the new locked state, or None when nothing changed.
        """
        actor = self.real_actor
        if actor is None or not actor.is_admin:
            self.notify(t('admin_only', self.lang), level='warning')
            return None
        if not self.pin:
            self.notify(t('log_in_again', self.lang), level='warning')
            return None
        try:
            locked = await self.locks.toggle(actor, self.pin, self.remote, user_id, day, reason)
        except RemoteError as e:
            logger.error(f"Lock toggle failed for {user_id}_{day}: {e!r}")
            self.notify(t('lock_failed', self.lang), level='error')
            return None
        self.publish('locks', key=CellKey.of(user_id, day), locked=locked)
        await self.reload()
        return locked

    # ------------------------------------------------------------------
    # Notices
    # ------------------------------------------------------------------

    async def refresh_notices(self) -> bool:
        ok = await self.notices.refresh(self.real_actor, self.remote)
        self.publish('notices', blocking=self.notices.is_blocking)
        return ok

    async def acknowledge_notice(self, notice: NoticeInfo) -> bool:
        if self.real_actor is None:
            self.notify(t('not_logged_in', self.lang), level='warning')
            return False
        try:
            await self.notices.acknowledge(self.real_actor, notice, self.remote)
        except RemoteError as e:
            logger.error(f"Acknowledging notice {notice.id} failed: {e!r}")
            self.notify(t('ack_failed', self.lang), level='error')
            return False
        self.publish('notices', blocking=self.notices.is_blocking)
        return True

    async def acknowledge_all(self) -> bool:
        if self.real_actor is None:
            return False
        try:
            await self.notices.acknowledge_all(self.real_actor, self.remote)
        except RemoteError as e:
            logger.error(f"Acknowledging notices failed: {e!r}")
            self.notify(t('ack_failed', self.lang), level='error')
            return False
        self.publish('notices', blocking=self.notices.is_blocking)
        return True

    # ------------------------------------------------------------------
    # Week comments
    # ------------------------------------------------------------------

    async def week_comments(self, week_id: int) -> List[Dict[str, Any]]:
        if self.real_actor is None or not self.pin:
            self.notify(t('log_in_again', self.lang), level='warning')
            return []
        try:
            return await self.remote.fetch_week_comments(week_id, self.real_actor.id, self.pin)
        except RemoteError as e:
            logger.error(f"Loading comments for week {week_id} failed: {e!r}")
            self.notify(t('failed_load_week_comments', self.lang), level='error')
            return []

    async def save_week_comment(self, week_id: int, comment: str,
                                user_id: Optional[int] = None) -> Optional[Dict[str, Any]]:
        if self.real_actor is None or not self.pin:
            self.notify(t('log_in_again', self.lang), level='warning')
            return None
        try:
            return await self.remote.save_week_comment(week_id, self.real_actor.id, self.pin,
                                                       comment, user_id)
        except RemoteError as e:
            logger.error(f"Saving comment for week {week_id} failed: {e!r}")
            self.notify(t('failed_save_week_comment', self.lang), level='error')
            return None
