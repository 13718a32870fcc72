"""
Editability gate

Decides, from the current session state, whether the actor may edit a cell,
and builds the per-cell view state a rendering layer draws from. Nothing here
is cached: every call recomputes from cache, locks, notices and week state.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from rota_requests.editor.calendar_builder import group_users, week_for_date
from rota_requests.editor.cell_cache import CellCache
from rota_requests.editor.lock_registry import LockRegistry
from rota_requests.editor.messages import t
from rota_requests.editor.notice_gate import NoticeGate
from rota_requests.editor.open_state import effective_open
from rota_requests.editor.types import Actor, CalendarWeek, CellKey, PeriodInfo


class EditDenial(str, Enum):
    NOT_LOGGED_IN = 'not_logged_in'
    NOT_OWNER = 'not_owner'
    WEEK_CLOSED = 'week_closed'
    NOTICES_BLOCKING = 'notices_blocking'
    CELL_LOCKED = 'cell_locked'


@dataclass(frozen=True)
class EditDecision:
    allowed: bool
    reason: Optional[EditDenial] = None
    message: Optional[str] = None

    def __bool__(self):
        return self.allowed


ALLOWED = EditDecision(True)


def row_unlocked(actor: Optional[Actor], user_id: int) -> bool:
    return actor is not None and (actor.is_admin or actor.id == int(user_id))


def check_edit(actor: Optional[Actor], key: CellKey, weeks: Sequence[CalendarWeek],
               period: Optional[PeriodInfo], locks: LockRegistry, notices: NoticeGate,
               now: Optional[datetime] = None) -> EditDecision:
    """
    Whether ``actor`` may edit ``key`` right now.

    Checks run in order: logged in, owner or admin, week effectively open,
    no blocking notices, and for non-admins no lock on the cell. The first
    failing check names the denial.
    """
    if actor is None:
        return EditDecision(False, EditDenial.NOT_LOGGED_IN, t('not_logged_in'))
    lang = actor.preferred_lang
    if not row_unlocked(actor, key.user_id):
        return EditDecision(False, EditDenial.NOT_OWNER, t('not_owner', lang))

    week = week_for_date(weeks, key.date)
    if week is None or not effective_open(week, period, now=now):
        return EditDecision(False, EditDenial.WEEK_CLOSED, t('week_closed', lang))

    if notices.is_blocking:
        return EditDecision(False, EditDenial.NOTICES_BLOCKING, t('notices_blocking', lang))

    if not actor.is_admin and locks.is_locked(key):
        return EditDecision(False, EditDenial.CELL_LOCKED, locks.reason_for(key, lang))

    return ALLOWED


@dataclass(frozen=True)
class CellView:
    key: CellKey
    text: str
    editable: bool
    closed: bool
    pending: bool = False
    locked_admin: bool = False


@dataclass(frozen=True)
class RowView:
    user: Actor
    unlocked: bool
    cells: List[CellView] = field(default_factory=list)


@dataclass(frozen=True)
class SectionView:
    label: str
    rows: List[RowView] = field(default_factory=list)


def grid(actor: Optional[Actor], users: Iterable, weeks: Sequence[CalendarWeek],
         period: Optional[PeriodInfo], cache: CellCache, locks: LockRegistry,
         notices: NoticeGate, now: Optional[datetime] = None) -> List[SectionView]:
    """
    View state for every user row and every day of the window.

    A cell is editable when its row is unlocked, its week is effectively open
    and no notice blocks. Locked cells stay editable here for administrators
    and are flagged ``locked_admin`` for them; staff are stopped by
    check_edit when they touch one.
    """
    week_open = {w.week_start: effective_open(w, period, now=now) for w in weeks}
    blocking = notices.is_blocking
    is_admin = bool(actor and actor.is_admin)

    sections = []
    for section in group_users(users):
        rows = []
        for user in section.members:
            unlocked = row_unlocked(actor, user.id)
            cells = []
            for week in weeks:
                for day in week.dates:
                    key = CellKey(user.id, day)
                    is_open = week_open[week.week_start]
                    cells.append(CellView(
                        key=key,
                        text=cache.display_value(key).display(),
                        editable=unlocked and is_open and not blocking,
                        closed=not is_open,
                        pending=cache.has_pending(key),
                        locked_admin=is_admin and locks.is_locked(key),
                    ))
            rows.append(RowView(user=user, unlocked=unlocked, cells=cells))
        sections.append(SectionView(label=section.label, rows=rows))
    return sections
