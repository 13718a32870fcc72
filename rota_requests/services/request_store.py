"""
Request Store Service - server of record for request cells

Every write a client can make goes through this service. The client engine
checks the same rules before it writes optimistically, but only the checks
made here are authoritative: a client that lost a race (another tab used the
last quota slot, an administrator locked the cell or closed the week) is
rejected with a tagged exception and reverts its optimistic change.

Used by:
- JSON API blueprints under /api
- InProcessRemoteStore (embedded clients and tests)
"""
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from rota_requests import rules
from rota_requests.editor.open_state import effective_open
from rota_requests.error_handlers.exceptions import (
    AuthenticationException,
    AuthorizationException,
    CellLockedException,
    PrioritySlotExhaustedException,
    QuotaExceededException,
    ResourceNotFoundException,
    ValidationException,
    WeekClosedException,
)
from rota_requests.error_handlers.logging import log_rejected_operation, log_write_operation
from rota_requests.utils.timezone import utcnow
from rota_requests.utils.validators import (
    validate_pin_format,
    validate_rank,
    validate_request_value,
)


logger = logging.getLogger(__name__)


class RequestStore:
    """
    Validated access to users, rota periods, request cells, locks, notices
    and week comments.

    Methods do not commit. Callers own the transaction (the blueprints wrap
    writes in @with_db_transaction), so a rejected write leaves nothing
    behind.
    """

    # Week reset modes accepted by reset_period_weeks
    RESET_MODES = {
        'open': (True, True),
        'closed': (False, False),
        'after_close': (True, False),
        'default': (True, True),
    }

    def __init__(self, db_session: Session, models: dict,
                 max_requests_per_week: int = rules.MAX_REQUESTS_PER_WEEK):
        """
        Initialize RequestStore.

        Args:
            db_session: SQLAlchemy database session
            models: Dictionary of model classes from the model registry
            max_requests_per_week: Weekly distinct-day request limit
        """
        self.db = db_session
        self.User = models['User']
        self.RotaPeriod = models['RotaPeriod']
        self.RotaWeek = models['RotaWeek']
        self.RotaDate = models['RotaDate']
        self.RequestCell = models['RequestCell']
        self.CellLock = models['CellLock']
        self.Notice = models['Notice']
        self.NoticeAcknowledgment = models['NoticeAcknowledgment']
        self.WeekComment = models['WeekComment']
        self.max_requests_per_week = max_requests_per_week

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def _get_user(self, user_id):
        user = self.db.get(self.User, int(user_id))
        if not user:
            raise ResourceNotFoundException(f'User {user_id} not found')
        return user

    def authenticate(self, user_id, pin):
        """
        Return the active user whose PIN matches.

        Raises:
            AuthenticationException: unknown or inactive user, or wrong PIN
        """
        if not pin:
            raise AuthenticationException('Missing session PIN. Log in again.')
        user = self.db.get(self.User, int(user_id))
        if not user or not user.is_active or not user.check_pin(pin):
            raise AuthenticationException('Invalid PIN')
        return user

    def _authenticate_admin(self, admin_id, pin):
        admin = self.authenticate(admin_id, pin)
        if not admin.is_admin:
            raise AuthorizationException('Admin access required')
        return admin

    def verify_pin(self, user_id, pin) -> bool:
        """True when ``pin`` is the PIN of active user ``user_id``."""
        user = self.db.get(self.User, int(user_id))
        ok = bool(user and user.is_active and user.check_pin(pin))
        if not ok:
            log_rejected_operation('verify_pin', 'PIN mismatch', {'user_id': user_id})
        return ok

    def change_pin(self, user_id, old_pin, new_pin):
        user = self.authenticate(user_id, old_pin)
        new_pin = validate_pin_format(new_pin)
        if new_pin == old_pin:
            raise ValidationException('New PIN must be different')
        user.set_pin(new_pin)
        log_write_operation('change_pin', {'user_id': user.id})
        return user

    def set_language(self, user_id, pin, lang):
        user = self.authenticate(user_id, pin)
        if lang not in rules.SUPPORTED_LANGUAGES:
            raise ValidationException(f"lang must be one of {', '.join(rules.SUPPORTED_LANGUAGES)}")
        user.preferred_lang = lang
        return user.language

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    def list_users(self, include_inactive=False) -> List[Dict[str, Any]]:
        query = self.db.query(self.User)
        if not include_inactive:
            query = query.filter(self.User.is_active.is_(True))
        users = query.order_by(self.User.role_id, self.User.display_order, self.User.name).all()
        return [u.to_dict() for u in users]

    def list_periods(self, include_hidden=False) -> List[Dict[str, Any]]:
        query = self.db.query(self.RotaPeriod)
        if not include_hidden:
            query = query.filter(self.RotaPeriod.is_hidden.is_(False))
        return [p.to_dict() for p in query.order_by(self.RotaPeriod.start_date).all()]

    def active_period(self) -> Optional[Dict[str, Any]]:
        period = self.db.query(self.RotaPeriod).filter_by(is_active=True).first()
        return period.to_dict() if period else None

    def _get_period(self, period_id):
        period = self.db.get(self.RotaPeriod, int(period_id))
        if not period:
            raise ResourceNotFoundException(f'Period {period_id} not found')
        return period

    def rota_dates(self, period_id) -> List[Dict[str, Any]]:
        """Flat ``{date, week_id, week_open, week_open_after_close}`` rows, date order."""
        self._get_period(period_id)
        rows = (self.db.query(self.RotaDate)
                .filter_by(period_id=int(period_id))
                .order_by(self.RotaDate.date)
                .all())
        return [r.to_row() for r in rows]

    def list_weeks(self, period_id) -> List[Dict[str, Any]]:
        period = self._get_period(period_id)
        return [w.to_dict() for w in period.weeks]

    def list_requests(self, start: date, end: date, user_id=None) -> List[Dict[str, Any]]:
        query = self.db.query(self.RequestCell).filter(
            self.RequestCell.date >= start,
            self.RequestCell.date <= end,
        )
        if user_id is not None:
            query = query.filter(self.RequestCell.user_id == int(user_id))
        return [c.to_dict() for c in query.order_by(self.RequestCell.date).all()]

    def list_locks(self, start: date, end: date) -> List[Dict[str, Any]]:
        locks = self.db.query(self.CellLock).filter(
            self.CellLock.date >= start,
            self.CellLock.date <= end,
        ).order_by(self.CellLock.date).all()
        return [lock.to_dict() for lock in locks]

    # ------------------------------------------------------------------
    # Write guards
    # ------------------------------------------------------------------

    def _resolve_actor_and_target(self, actor_id, pin, target_user_id):
        actor = self.authenticate(actor_id, pin)
        target_id = int(target_user_id) if target_user_id is not None else actor.id
        if target_id != actor.id and not actor.is_admin:
            raise AuthorizationException('You can only edit your own requests')
        target = self._get_user(target_id)
        return actor, target

    def _week_for_date(self, day: date):
        rota_date = self.db.query(self.RotaDate).filter_by(date=day).first()
        if not rota_date or rota_date.week is None:
            return None, None
        return rota_date.week, rota_date.week.period

    def _ensure_week_open(self, day: date, now: Optional[datetime] = None):
        week, period = self._week_for_date(day)
        if week is None:
            raise WeekClosedException(f'{day.isoformat()} is not part of a rota week')
        if not effective_open(week, period, now=now):
            raise WeekClosedException('This week is closed for requests')
        return week

    def _ensure_not_locked(self, actor, target_id, day: date):
        if actor.is_admin:
            return
        lock = self.CellLock.get_lock(target_id, day)
        if lock:
            reason = (getattr(lock, f'reason_{actor.language}', None) or lock.reason_en
                      or 'This day is locked by management.')
            raise CellLockedException(reason, details={'reason_en': lock.reason_en,
                                                       'reason_es': lock.reason_es})

    def _week_cells(self, user_id, day: date):
        start = rules.week_start(day)
        return self.db.query(self.RequestCell).filter(
            self.RequestCell.user_id == user_id,
            self.RequestCell.date >= start,
            self.RequestCell.date <= start + timedelta(days=6),
        ).all()

    def _ensure_quota(self, user_id, day: date, week_cells):
        if any(c.date == day for c in week_cells):
            return
        used = len({c.date for c in week_cells if c.value})
        if used >= self.max_requests_per_week:
            raise QuotaExceededException(
                f'Weekly request limit reached (max {self.max_requests_per_week} per week)',
                details={'count': used, 'limit': self.max_requests_per_week},
            )

    def _ensure_rank_free(self, day: date, rank, week_cells):
        if rank is None:
            return
        for cell in week_cells:
            if cell.date != day and rules.rank_is_meaningful(cell.value, cell.important_rank) \
                    and cell.important_rank == rank:
                raise PrioritySlotExhaustedException(
                    f'Priority {rank} already used this week (max 2 per week)',
                    details={'taken_by': cell.date.isoformat()},
                )

    # ------------------------------------------------------------------
    # Request cells
    # ------------------------------------------------------------------

    def set_cell(self, actor_id, pin, target_user_id, day, value, rank=None,
                 now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Upsert the request for (target user, day).

        Args:
            actor_id: Acting user (owner of the cell or an administrator)
            pin: Actor's PIN
            target_user_id: Cell owner, None for the actor's own cell
            day: Request date
            value: Preference code or ``O``
            rank: Strong preference rank, only with ``O``

        Returns:
            The stored request as a dict

        Raises:
            AuthenticationException, AuthorizationException, CellLockedException,
            WeekClosedException, QuotaExceededException,
            PrioritySlotExhaustedException, ValidationException
        """
        day = rules.as_date(day)
        value = validate_request_value(value)
        rank = validate_rank(value, rank)
        try:
            actor, target = self._resolve_actor_and_target(actor_id, pin, target_user_id)
            self._ensure_week_open(day, now)
            self._ensure_not_locked(actor, target.id, day)

            week_cells = self._week_cells(target.id, day)
            self._ensure_quota(target.id, day, week_cells)
            self._ensure_rank_free(day, rank, week_cells)
        except (AuthenticationException, AuthorizationException, ValidationException) as e:
            log_rejected_operation('set_cell', e, {'actor': actor_id, 'target': target_user_id,
                                                   'date': day.isoformat(), 'value': value})
            raise

        cell = next((c for c in week_cells if c.date == day), None)
        if cell is None:
            cell = self.RequestCell(user_id=target.id, date=day, value=value, important_rank=rank)
            self.db.add(cell)
        else:
            cell.value = value
            cell.important_rank = rank
            cell.updated_at = utcnow()
        self.db.flush()

        log_write_operation('set_cell', {'actor': actor.id, 'target': target.id,
                                         'date': day.isoformat(), 'value': value, 'rank': rank})
        return cell.to_dict()

    def clear_cell(self, actor_id, pin, target_user_id, day,
                   now: Optional[datetime] = None) -> None:
        """Delete the request for (target user, day). Clearing an empty cell is a no-op."""
        day = rules.as_date(day)
        try:
            actor, target = self._resolve_actor_and_target(actor_id, pin, target_user_id)
            self._ensure_week_open(day, now)
            self._ensure_not_locked(actor, target.id, day)
        except (AuthenticationException, AuthorizationException) as e:
            log_rejected_operation('clear_cell', e, {'actor': actor_id, 'target': target_user_id,
                                                     'date': day.isoformat()})
            raise

        cell = self.db.query(self.RequestCell).filter_by(user_id=target.id, date=day).first()
        if cell:
            self.db.delete(cell)
            self.db.flush()
        log_write_operation('clear_cell', {'actor': actor.id, 'target': target.id,
                                           'date': day.isoformat()})

    # ------------------------------------------------------------------
    # Locks
    # ------------------------------------------------------------------

    def set_lock(self, admin_id, pin, target_user_id, day,
                 reason_en=None, reason_es=None) -> Dict[str, Any]:
        """Lock (target user, day). Re-locking replaces the reasons."""
        day = rules.as_date(day)
        admin = self._authenticate_admin(admin_id, pin)
        target = self._get_user(target_user_id)

        lock = self.CellLock.get_lock(target.id, day)
        if lock is None:
            lock = self.CellLock(user_id=target.id, date=day)
            self.db.add(lock)
        lock.reason_en = (reason_en or '').strip() or None
        lock.reason_es = (reason_es or '').strip() or None
        lock.locked_by = admin.id
        lock.locked_at = utcnow()
        self.db.flush()

        log_write_operation('set_lock', {'admin': admin.id, 'target': target.id,
                                         'date': day.isoformat()})
        return lock.to_dict()

    def clear_lock(self, admin_id, pin, target_user_id, day) -> None:
        day = rules.as_date(day)
        admin = self._authenticate_admin(admin_id, pin)
        lock = self.CellLock.get_lock(int(target_user_id), day)
        if lock:
            self.db.delete(lock)
            self.db.flush()
        log_write_operation('clear_lock', {'admin': admin.id, 'target': target_user_id,
                                           'date': day.isoformat()})

    # ------------------------------------------------------------------
    # Notices
    # ------------------------------------------------------------------

    def notices_for_user(self, user_id) -> List[Dict[str, Any]]:
        """Active notices targeted at the user, each with their acknowledgment state."""
        user = self._get_user(user_id)
        notices = (self.db.query(self.Notice)
                   .filter(self.Notice.is_active.is_(True))
                   .order_by(self.Notice.updated_at.desc())
                   .all())
        acks = {
            a.notice_id: a
            for a in self.db.query(self.NoticeAcknowledgment).filter_by(user_id=user.id).all()
        }

        result = []
        for notice in notices:
            if not notice.targets_role(user.role_id):
                continue
            row = notice.to_dict()
            ack = acks.get(notice.id)
            row['acknowledged_at'] = ack.acknowledged_at.isoformat() if ack else None
            row['ack_version'] = ack.version if ack else None
            result.append(row)
        return result

    def acknowledge_notice(self, user_id, notice_id, version) -> None:
        """Record that the user read ``version`` of the notice."""
        user = self._get_user(user_id)
        notice = self.db.get(self.Notice, int(notice_id))
        if not notice:
            raise ResourceNotFoundException(f'Notice {notice_id} not found')

        ack = self.db.query(self.NoticeAcknowledgment).filter_by(
            notice_id=notice.id, user_id=user.id
        ).first()
        if ack is None:
            ack = self.NoticeAcknowledgment(notice_id=notice.id, user_id=user.id)
            self.db.add(ack)
        ack.version = int(version)
        ack.acknowledged_at = utcnow()
        self.db.flush()
        log_write_operation('acknowledge_notice', {'user': user.id, 'notice': notice.id,
                                                   'version': version})

    def notice_ack_counts(self, admin_id, pin, notice_ids: Iterable[int]) -> List[Dict[str, Any]]:
        """Admin view: how many targeted active users acknowledged the current version."""
        self._authenticate_admin(admin_id, pin)
        users = self.db.query(self.User).filter(self.User.is_active.is_(True)).all()
        counts = []
        for notice_id in notice_ids:
            notice = self.db.get(self.Notice, int(notice_id))
            if not notice:
                continue
            targeted = [u for u in users if notice.targets_role(u.role_id)]
            acked = self.db.query(self.NoticeAcknowledgment).filter_by(
                notice_id=notice.id, version=notice.version
            ).filter(self.NoticeAcknowledgment.user_id.in_([u.id for u in targeted] or [0])).count()
            counts.append({'notice_id': notice.id, 'acked': acked, 'total': len(targeted)})
        return counts

    # ------------------------------------------------------------------
    # Week comments
    # ------------------------------------------------------------------

    def _get_week(self, week_id):
        week = self.db.get(self.RotaWeek, int(week_id))
        if not week:
            raise ResourceNotFoundException(f'Week {week_id} not found')
        return week

    def week_comments(self, week_id, user_id, pin) -> List[Dict[str, Any]]:
        """The user's own comment for the week; administrators see everyone's."""
        user = self.authenticate(user_id, pin)
        week = self._get_week(week_id)
        query = self.db.query(self.WeekComment).filter_by(week_id=week.id)
        if not user.is_admin:
            query = query.filter_by(user_id=user.id)
        return [c.to_dict() for c in query.order_by(self.WeekComment.user_id).all()]

    def save_week_comment(self, week_id, actor_id, pin, comment, target_user_id=None,
                          now: Optional[datetime] = None) -> Dict[str, Any]:
        actor, target = self._resolve_actor_and_target(actor_id, pin, target_user_id)
        week = self._get_week(week_id)
        if not actor.is_admin and not effective_open(week, week.period, now=now):
            raise WeekClosedException('This week is closed for requests')

        row = self.db.query(self.WeekComment).filter_by(week_id=week.id, user_id=target.id).first()
        if row is None:
            row = self.WeekComment(week_id=week.id, user_id=target.id)
            self.db.add(row)
        row.comment = (comment or '').strip()
        row.updated_at = utcnow()
        self.db.flush()
        log_write_operation('save_week_comment', {'actor': actor.id, 'target': target.id,
                                                  'week': week.id})
        return row.to_dict()

    # ------------------------------------------------------------------
    # Period and week administration
    # ------------------------------------------------------------------

    def set_period_closes_at(self, admin_id, pin, period_id, closes_at: Optional[datetime]):
        """Set or clear (``None``) the request deadline of a period."""
        self._authenticate_admin(admin_id, pin)
        period = self._get_period(period_id)
        period.closes_at = closes_at
        self.db.flush()
        log_write_operation('set_period_closes_at', {'period': period.id, 'closes_at': closes_at})
        return period.to_dict()

    def set_week_flags(self, admin_id, pin, week_id, open_=None, open_after_close=None):
        self._authenticate_admin(admin_id, pin)
        week = self._get_week(week_id)
        if open_ is not None:
            week.open = bool(open_)
        if open_after_close is not None:
            week.open_after_close = bool(open_after_close)
        self.db.flush()
        log_write_operation('set_week_flags', week.to_dict())
        return week.to_dict()

    def reset_period_weeks(self, admin_id, pin, period_id, mode) -> List[Dict[str, Any]]:
        """
        Bulk-set the open flags of every week of a period.

        Modes:
            open: editable before and after the deadline
            closed: never editable
            after_close: editable until the deadline only
            default: same as open
        """
        self._authenticate_admin(admin_id, pin)
        if mode not in self.RESET_MODES:
            raise ValidationException(f"mode must be one of {', '.join(self.RESET_MODES)}")
        period = self._get_period(period_id)
        open_, open_after_close = self.RESET_MODES[mode]
        for week in period.weeks:
            week.open = open_
            week.open_after_close = open_after_close
        self.db.flush()
        log_write_operation('reset_period_weeks', {'period': period.id, 'mode': mode})
        return [w.to_dict() for w in period.weeks]

    def set_active_period(self, admin_id, pin, period_id):
        self._authenticate_admin(admin_id, pin)
        period = self._get_period(period_id)
        self.db.query(self.RotaPeriod).filter(self.RotaPeriod.id != period.id).update(
            {'is_active': False}, synchronize_session='fetch'
        )
        period.is_active = True
        self.db.flush()
        log_write_operation('set_active_period', {'period': period.id})
        return period.to_dict()

    def toggle_period_hidden(self, admin_id, pin, period_id):
        self._authenticate_admin(admin_id, pin)
        period = self._get_period(period_id)
        period.is_hidden = not period.is_hidden
        self.db.flush()
        log_write_operation('toggle_period_hidden', {'period': period.id, 'hidden': period.is_hidden})
        return period.to_dict()
