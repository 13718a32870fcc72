"""
Lock registry

Client-side set of administrator locks on request cells. Mutations go through
the remote store and are admin-only; the registry refuses them up front so a
non-admin never reaches the network.
"""
import logging
from typing import Dict, Iterable, Optional

from rota_requests import rules
from rota_requests.editor.messages import t
from rota_requests.editor.types import Actor, CellKey, LockInfo
from rota_requests.error_handlers.exceptions import AuthorizationException


logger = logging.getLogger(__name__)


class LockRegistry:

    def __init__(self, locks: Iterable = ()):
        self._locks: Dict[CellKey, LockInfo] = {}
        self.replace_all(locks)

    def replace_all(self, locks: Iterable) -> None:
        """Reload from the store's lock list."""
        self._locks = {}
        for lock in locks:
            if not isinstance(lock, LockInfo):
                lock = LockInfo.from_dict(lock)
            self._locks[lock.key] = lock

    def get(self, key: CellKey) -> Optional[LockInfo]:
        return self._locks.get(key)

    def is_locked(self, key: CellKey) -> bool:
        return key in self._locks

    def __len__(self):
        return len(self._locks)

    def __contains__(self, key):
        return key in self._locks

    def reason_for(self, key: CellKey, lang: str = rules.DEFAULT_LANGUAGE) -> Optional[str]:
        """
        Reason shown to staff who touch a locked cell.

        Preferred language first, then English, then the default text.
        Returns None when the cell is not locked.
        """
        lock = self._locks.get(key)
        if lock is None:
            return None
        lang = rules.normalize_language(lang)
        preferred = lock.reason_es if lang == 'es' else lock.reason_en
        return preferred or lock.reason_en or lock.reason_es or t('locked_default', lang)

    async def lock(self, actor: Actor, pin: str, remote, target_user_id: int, day,
                   reason_en: Optional[str] = None, reason_es: Optional[str] = None) -> LockInfo:
        """
        Lock (target user, day) through the remote store and record it.

        Raises:
            AuthorizationException: actor is not an administrator
            RemoteError: the store rejected the lock
        """
        self._require_admin(actor)
        key = CellKey.of(target_user_id, day)
        data = await remote.set_lock(actor.id, pin, key.user_id, key.date, reason_en, reason_es)
        lock = LockInfo.from_dict(data) if isinstance(data, dict) else LockInfo(
            key.user_id, key.date, reason_en, reason_es, actor.id)
        self._locks[key] = lock
        logger.info(f"Locked {key} by admin {actor.id}")
        return lock

    async def unlock(self, actor: Actor, pin: str, remote, target_user_id: int, day) -> None:
        self._require_admin(actor)
        key = CellKey.of(target_user_id, day)
        await remote.clear_lock(actor.id, pin, key.user_id, key.date)
        self._locks.pop(key, None)
        logger.info(f"Unlocked {key} by admin {actor.id}")

    async def toggle(self, actor: Actor, pin: str, remote, target_user_id: int, day,
                     reason: Optional[str] = None) -> bool:
        """
        Lock an unlocked cell or unlock a locked one. The reason is stored
        in the actor's language. Returns True when the cell ends up locked.
        """
        key = CellKey.of(target_user_id, day)
        if key in self._locks:
            await self.unlock(actor, pin, remote, target_user_id, day)
            return False
        if actor.preferred_lang == 'es':
            await self.lock(actor, pin, remote, target_user_id, day, reason_es=reason)
        else:
            await self.lock(actor, pin, remote, target_user_id, day, reason_en=reason)
        return True

    @staticmethod
    def _require_admin(actor: Optional[Actor]):
        if actor is None or not actor.is_admin:
            raise AuthorizationException('Admin access required')
