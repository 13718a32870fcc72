"""
Data classes shared by the client editing engine

Everything the engine decides on is a plain frozen value built from the
request API's JSON rows, so the decision functions can be tested without a
server or a rendering surface.
"""
import json
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional, Tuple

from rota_requests import rules
from rota_requests.utils.timezone import to_naive_utc


class _Blocked:
    """Sentinel returned by the rank allocator when no rank is left."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return 'BLOCKED'

    def __bool__(self):
        return False


BLOCKED = _Blocked()


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp from the wire into naive UTC."""
    if value in (None, ''):
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    return to_naive_utc(datetime.fromisoformat(str(value).replace('Z', '+00:00')))


def parse_optional_bool(value: Any) -> Optional[bool]:
    """Keep unknown flags unknown; only real booleans count."""
    return value if isinstance(value, bool) else None


def parse_target_roles(raw: Any) -> Tuple[int, ...]:
    """
    Normalize notice targeting to a tuple of role ids.

    Accepts a list of ints, a Postgres array literal ``{1,2}``, a JSON list
    string ``[1,2]``, a single number or a comma separated string.
    """
    if raw is None:
        return ()
    if isinstance(raw, (list, tuple, set)):
        items = list(raw)
    elif isinstance(raw, (int, float)):
        items = [raw]
    else:
        text = str(raw).strip()
        if text.startswith('{') and text.endswith('}'):
            items = text[1:-1].split(',')
        else:
            try:
                parsed = json.loads(text)
                items = parsed if isinstance(parsed, list) else [parsed]
            except ValueError:
                items = text.split(',')
    roles = []
    for item in items:
        try:
            role = int(str(item).strip())
        except ValueError:
            continue
        if role:
            roles.append(role)
    return tuple(roles)


class CellKey(NamedTuple):
    """Identity of a request cell: (user, date)."""
    user_id: int
    date: date

    @classmethod
    def of(cls, user_id, day) -> 'CellKey':
        return cls(int(user_id), rules.as_date(day))

    @property
    def week_start(self) -> date:
        return rules.week_start(self.date)

    def __str__(self):
        return f'{self.user_id}_{self.date.isoformat()}'


@dataclass(frozen=True)
class CellValue:
    """What a cell holds: a code or ``O`` with an optional strong rank."""
    value: Optional[str] = None
    important_rank: Optional[int] = None

    EMPTY = None  # set below

    @property
    def is_empty(self) -> bool:
        return not self.value

    @property
    def rank(self) -> Optional[int]:
        """Rank that actually counts (only on off requests)."""
        return self.important_rank if rules.rank_is_meaningful(self.value, self.important_rank) else None

    def display(self) -> str:
        if self.is_empty:
            return ''
        if self.value == rules.OFF_CODE and self.rank == 1:
            return 'O¹'
        if self.value == rules.OFF_CODE and self.rank == 2:
            return 'O²'
        return self.value


CellValue.EMPTY = CellValue()


@dataclass(frozen=True)
class RequestRecord:
    """Authoritative request row as returned by the store."""
    id: Optional[int]
    user_id: int
    date: date
    value: str
    important_rank: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RequestRecord':
        return cls(
            id=data.get('id'),
            user_id=int(data['user_id']),
            date=rules.as_date(data['date']),
            value=data['value'],
            important_rank=data.get('important_rank'),
        )

    @property
    def key(self) -> CellKey:
        return CellKey(self.user_id, self.date)

    def as_value(self) -> CellValue:
        return CellValue(self.value, self.important_rank)


@dataclass(frozen=True)
class PendingEdit:
    """Speculative value between optimistic write and remote resolution."""
    key: CellKey
    value: CellValue
    token: int


@dataclass(frozen=True)
class Actor:
    """The logged-in user as the engine sees them."""
    id: int
    name: str = ''
    role_id: int = rules.RoleTier.STAFF_NURSE
    is_admin: bool = False
    is_active: bool = True
    display_order: int = 0
    preferred_lang: str = rules.DEFAULT_LANGUAGE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Actor':
        return cls(
            id=int(data['id']),
            name=data.get('name') or '',
            role_id=int(data.get('role_id') or rules.RoleTier.STAFF_NURSE),
            is_admin=bool(data.get('is_admin')),
            is_active=data.get('is_active') is not False,
            display_order=int(data.get('display_order') or 0),
            preferred_lang=rules.normalize_language(data.get('preferred_lang')),
        )


@dataclass(frozen=True)
class PeriodInfo:
    id: int
    start_date: date
    end_date: date
    is_active: bool = False
    is_hidden: bool = False
    closes_at: Optional[datetime] = None
    name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PeriodInfo':
        return cls(
            id=int(data['id']),
            start_date=rules.as_date(data['start_date']),
            end_date=rules.as_date(data['end_date']),
            is_active=bool(data.get('is_active')),
            is_hidden=bool(data.get('is_hidden')),
            closes_at=parse_datetime(data.get('closes_at')),
            name=data.get('name'),
        )


@dataclass(frozen=True)
class RotaDateRow:
    """One row of the flat per-period date read model."""
    date: date
    week_id: Optional[int] = None
    week_open: Optional[bool] = None
    week_open_after_close: Optional[bool] = None
    synthetic: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RotaDateRow':
        week = data.get('rota_weeks') or {}
        return cls(
            date=rules.as_date(data['date']),
            week_id=data.get('week_id') or week.get('id'),
            week_open=parse_optional_bool(data.get('week_open', week.get('open'))),
            week_open_after_close=parse_optional_bool(
                data.get('week_open_after_close', week.get('open_after_close'))
            ),
        )


@dataclass(frozen=True)
class CalendarWeek:
    """A Sunday-anchored 7-day window with resolved open flags."""
    week_start: date
    week_end: date
    week_id: Optional[int]
    open: bool
    open_after_close: bool
    days: Tuple[RotaDateRow, ...] = field(default_factory=tuple)

    def contains(self, day: date) -> bool:
        return self.week_start <= day <= self.week_end

    @property
    def dates(self) -> Tuple[date, ...]:
        return tuple(self.week_start + timedelta(days=i) for i in range(7))


@dataclass(frozen=True)
class RosterSection:
    """One role section of the rota, members in display order."""
    label: str
    members: Tuple['Actor', ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class LockInfo:
    user_id: int
    date: date
    reason_en: Optional[str] = None
    reason_es: Optional[str] = None
    locked_by: Optional[int] = None
    locked_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LockInfo':
        return cls(
            user_id=int(data['user_id']),
            date=rules.as_date(data['date']),
            reason_en=data.get('reason_en'),
            reason_es=data.get('reason_es'),
            locked_by=data.get('locked_by'),
            locked_at=parse_datetime(data.get('locked_at')),
        )

    @property
    def key(self) -> CellKey:
        return CellKey(self.user_id, self.date)


@dataclass(frozen=True)
class NoticeInfo:
    id: int
    version: int
    title: str = ''
    body_en: Optional[str] = None
    body_es: Optional[str] = None
    target_all: Optional[bool] = True
    target_roles: Tuple[int, ...] = ()
    is_active: bool = True
    is_mandatory: bool = True
    updated_at: Optional[datetime] = None
    acknowledged_at: Optional[datetime] = None
    ack_version: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NoticeInfo':
        ack_version = data.get('ack_version')
        return cls(
            id=int(data['id']),
            version=int(data.get('version') or 1),
            title=data.get('title') or '',
            body_en=data.get('body_en'),
            body_es=data.get('body_es'),
            target_all=data.get('target_all'),
            target_roles=parse_target_roles(data.get('target_roles')),
            is_active=data.get('is_active') is not False,
            is_mandatory=data.get('is_mandatory') is not False,
            updated_at=parse_datetime(data.get('updated_at')),
            acknowledged_at=parse_datetime(data.get('acknowledged_at')),
            ack_version=int(ack_version) if ack_version is not None else None,
        )


class EditChoice(str, Enum):
    """Non-code choices offered by the request picker."""
    OFF = rules.OFF_CODE
    STRONG_OFF = rules.STRONG_OFF_CHOICE
    CLEAR = rules.CLEAR_CHOICE
