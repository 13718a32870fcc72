"""
Client editing engine

Pure decision functions (calendar windows, effective-open, rank allocation,
quota, locks, notices, editability) plus the EditingSession that ties them to
a remote store and the auto-save controller.
"""
from .types import (
    BLOCKED,
    Actor,
    CalendarWeek,
    CellKey,
    CellValue,
    EditChoice,
    LockInfo,
    NoticeInfo,
    PendingEdit,
    PeriodInfo,
    RequestRecord,
    RosterSection,
    RotaDateRow,
)
from .calendar_builder import group_dates_into_weeks, group_users
from .open_state import close_status, effective_open, format_time_left, is_period_closed, status_text
from .priority import next_rank, taken_ranks
from .quota import check_quota
from .cell_cache import CellCache
from .lock_registry import LockRegistry
from .notice_gate import NoticeGate
from .editability import EditDenial, check_edit
from .autosave import AutoSaveController, EditOutcome, SavePhase
from .session import ClientSessionStore, EditingSession

__all__ = [
    'BLOCKED',
    'Actor',
    'CalendarWeek',
    'CellKey',
    'CellValue',
    'EditChoice',
    'LockInfo',
    'NoticeInfo',
    'PendingEdit',
    'PeriodInfo',
    'RequestRecord',
    'RosterSection',
    'RotaDateRow',
    'group_dates_into_weeks',
    'group_users',
    'close_status',
    'effective_open',
    'format_time_left',
    'is_period_closed',
    'status_text',
    'next_rank',
    'taken_ranks',
    'check_quota',
    'CellCache',
    'LockRegistry',
    'NoticeGate',
    'EditDenial',
    'check_edit',
    'AutoSaveController',
    'EditOutcome',
    'SavePhase',
    'ClientSessionStore',
    'EditingSession',
]
