"""
Remote store contract used by the client editing engine

Writes are narrow, server-validated operations; the engine never writes rows
directly. Every failure surfaces as RemoteError carrying a classified kind so
the engine can pick the right message and roll back.
"""
from abc import ABC, abstractmethod
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional


class RemoteErrorKind(str, Enum):
    QUOTA_EXCEEDED = 'QuotaExceeded'
    PRIORITY_SLOT_EXHAUSTED = 'PrioritySlotExhausted'
    UNAUTHORIZED = 'Unauthorized'
    UNKNOWN = 'Unknown'


# Server error tags (AppException.error_type) and the kind each maps to
_TAG_KINDS = {
    'QuotaExceeded': RemoteErrorKind.QUOTA_EXCEEDED,
    'PrioritySlotExhausted': RemoteErrorKind.PRIORITY_SLOT_EXHAUSTED,
    'AuthenticationError': RemoteErrorKind.UNAUTHORIZED,
    'AuthorizationError': RemoteErrorKind.UNAUTHORIZED,
    'CellLocked': RemoteErrorKind.UNAUTHORIZED,
    'WeekClosed': RemoteErrorKind.UNAUTHORIZED,
}


def classify_remote_error(tag: Optional[str], message: Optional[str]) -> RemoteErrorKind:
    """
    Classify a rejected write.

    The server's error tag wins. Untagged errors fall back to matching the
    message text the way older servers phrased their rejections.
    """
    if tag in _TAG_KINDS:
        return _TAG_KINDS[tag]
    text = (message or '').lower()
    if 'max 5' in text:
        return RemoteErrorKind.QUOTA_EXCEEDED
    if 'priority' in text or 'max 2' in text:
        return RemoteErrorKind.PRIORITY_SLOT_EXHAUSTED
    return RemoteErrorKind.UNKNOWN


class RemoteError(Exception):
    """Failure of a remote store call"""

    def __init__(self, kind: RemoteErrorKind, message: str, tag: Optional[str] = None,
                 status_code: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        self.kind = kind
        self.message = message
        self.tag = tag
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]], status_code: Optional[int] = None,
                     fallback_message: str = '') -> 'RemoteError':
        """Build from an ``AppException.to_dict()`` style error body."""
        payload = payload or {}
        tag = payload.get('error')
        message = payload.get('message') or fallback_message or str(tag or 'Request failed')
        details = {k: v for k, v in payload.items()
                   if k not in ('success', 'error', 'message', 'status_code')}
        return cls(classify_remote_error(tag, message), message, tag=tag,
                   status_code=status_code or payload.get('status_code'), details=details)

    def __repr__(self):
        return f"<RemoteError {self.kind.value} ({self.tag}): {self.message}>"


class RemoteStore(ABC):
    """Asynchronous contract between the editing engine and the server of record"""

    # -- read models -----------------------------------------------------

    @abstractmethod
    async def fetch_users(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def fetch_periods(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def fetch_rota_dates(self, period_id: int) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def fetch_requests(self, start: date, end: date) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def fetch_locks(self, start: date, end: date) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def fetch_notices(self, user_id: int) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def verify_pin(self, user_id: int, pin: str) -> bool:
        ...

    # -- writes ----------------------------------------------------------

    @abstractmethod
    async def set_cell(self, actor_id: int, pin: str, target_user_id: Optional[int], day: date,
                       value: str, rank: Optional[int] = None) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def clear_cell(self, actor_id: int, pin: str, target_user_id: Optional[int], day: date) -> None:
        ...

    @abstractmethod
    async def set_lock(self, actor_id: int, pin: str, target_user_id: int, day: date,
                       reason_en: Optional[str] = None, reason_es: Optional[str] = None) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def clear_lock(self, actor_id: int, pin: str, target_user_id: int, day: date) -> None:
        ...

    @abstractmethod
    async def acknowledge_notice(self, actor_id: int, notice_id: int, version: int) -> None:
        ...

    # -- week comments ---------------------------------------------------

    @abstractmethod
    async def fetch_week_comments(self, week_id: int, user_id: int, pin: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def save_week_comment(self, week_id: int, actor_id: int, pin: str, comment: str,
                                target_user_id: Optional[int] = None) -> Dict[str, Any]:
        ...

    @staticmethod
    def _target(actor_id: int, target_user_id: Optional[int]) -> Optional[int]:
        """Only send a target when editing someone else's cell."""
        if target_user_id is None or int(target_user_id) == int(actor_id):
            return None
        return int(target_user_id)
