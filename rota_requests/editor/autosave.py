"""
Auto-save / rollback controller

Applies a picker choice to one request cell:

    IDLE -> VALIDATING -> OPTIMISTIC_WRITE -> REMOTE_WRITE -> COMMITTED | REVERTED -> IDLE

Local rejections (gate, quota, rank) return to IDLE without touching the
cell or the network. Accepted choices are shown immediately as a pending
edit, then written through the remote store. On success the confirmed record
replaces the authoritative value before the pending edit is dropped; on
failure the pending edit is dropped and the cell shows its last confirmed
value again.

Resolutions carry the generation token of the write that started them. Only
the latest write for a key may change what the cell shows or notify the
user; an older success still updates the authoritative side unless a newer
success already did, and an older failure is only logged.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Union

from rota_requests import rules
from rota_requests.editor.messages import t
from rota_requests.editor.priority import current_rank, next_rank, taken_ranks
from rota_requests.editor.quota import check_quota
from rota_requests.editor.types import BLOCKED, CellKey, CellValue, EditChoice, RequestRecord
from rota_requests.integrations.request_api.remote_store import RemoteError, RemoteErrorKind


logger = logging.getLogger(__name__)


class SavePhase(str, Enum):
    IDLE = 'idle'
    VALIDATING = 'validating'
    OPTIMISTIC_WRITE = 'optimistic_write'
    REMOTE_WRITE = 'remote_write'
    COMMITTED = 'committed'
    REVERTED = 'reverted'


class LocalRejection(str, Enum):
    QUOTA_EXCEEDED = 'quota_exceeded'
    PRIORITY_EXHAUSTED = 'priority_exhausted'
    INVALID_VALUE = 'invalid_value'


@dataclass(frozen=True)
class EditOutcome:
    """Result of one apply_choice call"""
    key: CellKey
    phase: SavePhase
    value: CellValue
    reason: Optional[str] = None
    message: Optional[str] = None
    token: Optional[int] = None
    stale: bool = False

    @property
    def committed(self) -> bool:
        return self.phase == SavePhase.COMMITTED

    @property
    def rejected(self) -> bool:
        return self.phase == SavePhase.IDLE

    @property
    def reverted(self) -> bool:
        return self.phase == SavePhase.REVERTED


def _normalize_choice(choice: Union[str, EditChoice]) -> str:
    if isinstance(choice, EditChoice):
        return choice.value
    return (choice or '').strip()


class AutoSaveController:
    """
    Per-cell save state machine for one editing session.

    Args:
        session: EditingSession providing actor, credentials, cache, remote
            store, editability gate and notifier
    """

    def __init__(self, session):
        self.session = session
        self._phases: Dict[CellKey, SavePhase] = {}

    def phase(self, key: CellKey) -> SavePhase:
        return self._phases.get(key, SavePhase.IDLE)

    def _enter(self, key: CellKey, phase: SavePhase, token: Optional[int] = None):
        self._phases[key] = phase
        self.session.publish('phase', key=key, phase=phase, token=token)

    def _settle(self, key: CellKey, outcome: EditOutcome) -> EditOutcome:
        self._enter(key, outcome.phase, outcome.token)
        if outcome.phase != SavePhase.IDLE:
            self._enter(key, SavePhase.IDLE, outcome.token)
        return outcome

    def _release_stale(self, key: CellKey, outcome: EditOutcome) -> EditOutcome:
        # A newer write still in flight owns the phase
        if not self.session.cache.has_pending(key):
            self._enter(key, SavePhase.IDLE, outcome.token)
        return outcome

    def _reject(self, key: CellKey, reason, message: str) -> EditOutcome:
        self.session.notify(message, level='warning')
        outcome = EditOutcome(key, SavePhase.IDLE, self.session.cache.display_value(key),
                              reason=getattr(reason, 'value', reason), message=message)
        self._enter(key, SavePhase.IDLE)
        self.session.publish('rejected', key=key, outcome=outcome)
        return outcome

    # ------------------------------------------------------------------

    def _resolve_value(self, key: CellKey, choice: str):
        """Turn a picker choice into the value to write, or a local rejection."""
        session = self.session
        cache = session.cache
        lang = session.lang

        if choice != rules.CLEAR_CHOICE:
            quota = check_quota(cache, key.user_id, key.date, session.max_requests_per_week)
            if not quota.allowed:
                return None, (LocalRejection.QUOTA_EXCEEDED,
                              t('quota_exceeded', lang, limit=quota.limit))

        if choice == rules.CLEAR_CHOICE:
            return CellValue.EMPTY, None
        if choice == rules.STRONG_OFF_CHOICE:
            rank = next_rank(current_rank(cache, key), taken_ranks(cache, key.user_id, key.date, key))
            if rank is BLOCKED:
                return None, (LocalRejection.PRIORITY_EXHAUSTED, t('priority_exhausted', lang))
            return CellValue(rules.OFF_CODE, rank), None
        if choice == rules.OFF_CODE:
            return CellValue(rules.OFF_CODE, None), None
        if not choice or len(choice) > rules.MAX_CODE_LENGTH:
            return None, (LocalRejection.INVALID_VALUE, t('save_failed', lang))
        return CellValue(choice, None), None

    async def apply_choice(self, user_id: int, day, choice: Union[str, EditChoice]) -> EditOutcome:
        """
        Validate, optimistically apply and save one choice.

        Returns:
            EditOutcome whose phase is IDLE for a local rejection, COMMITTED
            or REVERTED once the remote write resolved
        """
        session = self.session
        cache = session.cache
        key = CellKey.of(user_id, day)
        choice = _normalize_choice(choice)

        # VALIDATING
        self._enter(key, SavePhase.VALIDATING)
        decision = session.check_edit(key)
        if not decision.allowed:
            return self._reject(key, decision.reason, decision.message)

        value, rejection = self._resolve_value(key, choice)
        if rejection is not None:
            return self._reject(key, *rejection)

        # OPTIMISTIC_WRITE
        token = cache.next_token(key)
        cache.put_pending(key, value, token)
        self._enter(key, SavePhase.OPTIMISTIC_WRITE, token)

        # REMOTE_WRITE
        self._enter(key, SavePhase.REMOTE_WRITE, token)
        try:
            record = await self._write(key, value)
        except RemoteError as e:
            return self._on_failure(key, token, e)
        except Exception as e:
            logger.error(f"Auto-save failed for {key}: {e}", exc_info=True)
            return self._on_failure(key, token, RemoteError(RemoteErrorKind.UNKNOWN, str(e)))
        return self._on_success(key, token, value, record)

    async def _write(self, key: CellKey, value: CellValue) -> Optional[RequestRecord]:
        session = self.session
        writer = session.real_actor
        pin = session.pin
        if writer is None or not pin:
            raise RemoteError(RemoteErrorKind.UNAUTHORIZED, t('log_in_again', session.lang),
                              tag='AuthenticationError')

        if value.is_empty:
            await session.remote.clear_cell(writer.id, pin, key.user_id, key.date)
            return None

        data = await session.remote.set_cell(writer.id, pin, key.user_id, key.date,
                                             value.value, value.rank)
        if isinstance(data, dict) and data.get('value'):
            return RequestRecord.from_dict(data)
        return RequestRecord(None, key.user_id, key.date, value.value, value.rank)

    def _on_success(self, key: CellKey, token: int, value: CellValue,
                    record: Optional[RequestRecord]) -> EditOutcome:
        cache = self.session.cache
        latest = cache.is_latest(key, token)

        # Authoritative side first, then the pending edit
        cache.commit(key, record, token)
        cache.drop_pending(key, token)

        if not latest:
            logger.debug(f"Stale save for {key} resolved (token {token}); display left to newer write")
            outcome = EditOutcome(key, SavePhase.COMMITTED, cache.display_value(key),
                                  token=token, stale=True)
            return self._release_stale(key, outcome)

        lang = self.session.lang
        if value.is_empty:
            message = t('cleared', lang, key=str(key))
        else:
            message = t('saved', lang, key=str(key), value=value.display())
        self.session.notify(message, level='info')
        logger.info(message)
        return self._settle(key, EditOutcome(key, SavePhase.COMMITTED, cache.display_value(key),
                                             message=message, token=token))

    def _on_failure(self, key: CellKey, token: int, error: RemoteError) -> EditOutcome:
        cache = self.session.cache
        latest = cache.is_latest(key, token)
        cache.drop_pending(key, token)

        if not latest:
            logger.warning(f"Stale save for {key} failed (token {token}): {error.message}")
            outcome = EditOutcome(key, SavePhase.REVERTED, cache.display_value(key),
                                  reason=error.kind.value, message=error.message,
                                  token=token, stale=True)
            return self._release_stale(key, outcome)

        logger.error(f"Auto-save failed for {key}: {error!r}")
        message = self._failure_message(error)
        self.session.notify(message, level='error')
        return self._settle(key, EditOutcome(key, SavePhase.REVERTED, cache.display_value(key),
                                             reason=error.kind.value, message=message, token=token))

    def _failure_message(self, error: RemoteError) -> str:
        lang = self.session.lang
        if error.kind == RemoteErrorKind.QUOTA_EXCEEDED:
            return t('quota_exceeded', lang, limit=self.session.max_requests_per_week)
        if error.kind == RemoteErrorKind.PRIORITY_SLOT_EXHAUSTED:
            return t('priority_exhausted', lang)
        if error.kind == RemoteErrorKind.UNAUTHORIZED:
            if error.tag == 'AuthenticationError':
                return t('log_in_again', lang)
            return error.message or t('save_failed', lang)
        return t('save_failed', lang)
