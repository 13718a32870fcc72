"""
Effective-open resolution and period deadline status

Works on anything shaped like a week (``open``, ``open_after_close``) and a
period (``closes_at``): the client's CalendarWeek/PeriodInfo values and the
server's RotaWeek/RotaPeriod rows alike, so both sides agree on when a week
accepts requests.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from rota_requests import rules
from rota_requests.editor.messages import t
from rota_requests.utils.timezone import to_local_time, utcnow


class CloseState(str, Enum):
    OPEN = 'open'                  # no deadline set
    CLOSING = 'closing'
    CLOSING_SOON = 'closing_soon'
    CLOSED = 'closed'


@dataclass(frozen=True)
class ClosingState:
    state: CloseState
    closes_at: Optional[datetime] = None
    time_left: Optional[timedelta] = None

    @property
    def label(self) -> str:
        return format_time_left(self.time_left) if self.time_left is not None else ''


def is_period_closed(period, now: Optional[datetime] = None) -> bool:
    """A period is closed once its deadline has passed. No deadline means never."""
    closes_at = getattr(period, 'closes_at', None) if period is not None else None
    if closes_at is None:
        return False
    return (now or utcnow()) >= closes_at


def effective_open(week, period, now: Optional[datetime] = None) -> bool:
    """
    Whether the week accepts edits right now.

    Before the deadline the week's ``open`` flag decides, after it the
    ``open_after_close`` flag. Without a period only ``open`` is consulted.
    """
    if period is None:
        return bool(week.open)
    if is_period_closed(period, now):
        return bool(week.open_after_close)
    return bool(week.open)


def format_time_left(delta: timedelta) -> str:
    """Render a remaining duration as ``1d 2h 5m``, ``3h 0m`` or ``45m``."""
    minutes = max(0, int(delta.total_seconds() // 60))
    days, minutes = divmod(minutes, 24 * 60)
    hours, minutes = divmod(minutes, 60)
    if days:
        return f'{days}d {hours}h {minutes}m'
    if hours:
        return f'{hours}h {minutes}m'
    return f'{minutes}m'


def close_status(period, now: Optional[datetime] = None,
                 soon_hours: int = rules.CLOSE_SOON_HOURS) -> ClosingState:
    closes_at = getattr(period, 'closes_at', None) if period is not None else None
    if closes_at is None:
        return ClosingState(CloseState.OPEN)

    now = now or utcnow()
    left = closes_at - now
    if left <= timedelta(0):
        return ClosingState(CloseState.CLOSED, closes_at, timedelta(0))
    if left <= timedelta(hours=soon_hours):
        return ClosingState(CloseState.CLOSING_SOON, closes_at, left)
    return ClosingState(CloseState.CLOSING, closes_at, left)


def status_text(status: ClosingState, lang: str = rules.DEFAULT_LANGUAGE,
                tz_name: str = 'Europe/Madrid') -> str:
    """Banner line for the deadline, e.g. ``Requests close soon · 3h 0m left``."""
    if status.state == CloseState.OPEN:
        return t('req_open', lang)
    if status.state == CloseState.CLOSED:
        when = to_local_time(status.closes_at, tz_name=tz_name)
        return f"{t('req_closed', lang)} · {t('closed_at', lang, when=when)}"
    key = 'req_close_soon' if status.state == CloseState.CLOSING_SOON else 'req_close'
    return f"{t(key, lang)} · {t('time_left', lang, left=status.label)}"
