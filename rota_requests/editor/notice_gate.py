"""
Notice gate

Tracks which notices the logged-in user has not acknowledged at their current
version. Unread mandatory notices block editing until acknowledged.
"""
import logging
from datetime import datetime
from typing import Any, Iterable, List, Optional

from rota_requests import rules
from rota_requests.editor.types import Actor, NoticeInfo


logger = logging.getLogger(__name__)


def is_notice_acked(notice: NoticeInfo) -> bool:
    """Acknowledged unless never acked or acked at a different version."""
    if notice.acknowledged_at is None:
        return False
    return notice.ack_version is None or notice.ack_version == notice.version


def dedupe_notices(rows: Iterable[Any]) -> List[NoticeInfo]:
    """One entry per notice id, keeping the most recently updated row; newest first."""
    latest = {}
    for row in rows:
        notice = row if isinstance(row, NoticeInfo) else NoticeInfo.from_dict(row)
        prev = latest.get(notice.id)
        if prev is None or (notice.updated_at or datetime.min) > (prev.updated_at or datetime.min):
            latest[notice.id] = notice
    return sorted(latest.values(), key=lambda n: n.updated_at or datetime.min, reverse=True)


def targets(notice: NoticeInfo, actor: Actor) -> bool:
    if notice.target_all is True or notice.target_all is None:
        return True
    if not notice.target_roles:
        return True
    return actor.role_id in notice.target_roles


def filter_notices_for_user(notices: Iterable[NoticeInfo], actor: Optional[Actor]) -> List[NoticeInfo]:
    if actor is None:
        return []
    return [n for n in notices if targets(n, actor)]


def notice_body(notice: NoticeInfo, lang: str = rules.DEFAULT_LANGUAGE) -> str:
    if rules.normalize_language(lang) == 'es' and notice.body_es:
        return notice.body_es
    return notice.body_en or notice.body_es or ''


class NoticeGate:
    """
    Notice state for one editing session.

    ``notices`` are the active notices visible to the actor, ``unread`` those
    not acknowledged at their current version and ``blocking`` the mandatory
    subset of ``unread``.
    """

    def __init__(self):
        self.notices: List[NoticeInfo] = []
        self.unread: List[NoticeInfo] = []
        self.blocking: List[NoticeInfo] = []

    def apply(self, rows: Iterable[Any], actor: Optional[Actor]) -> None:
        visible = filter_notices_for_user(dedupe_notices(rows), actor)
        self.notices = [n for n in visible if n.is_active]
        self.unread = [n for n in self.notices if not is_notice_acked(n)]
        self.blocking = [n for n in self.unread if n.is_mandatory]

    def clear(self) -> None:
        self.apply([], None)

    @property
    def unread_count(self) -> int:
        return len(self.unread)

    @property
    def is_blocking(self) -> bool:
        return bool(self.blocking)

    async def refresh(self, actor: Optional[Actor], remote) -> bool:
        """
        Re-fetch the actor's notices.

        A failed fetch is logged and leaves the current state in place.
        Returns whether the fetch succeeded.
        """
        if actor is None:
            self.clear()
            return True
        try:
            rows = await remote.fetch_notices(actor.id)
        except Exception as e:
            logger.error(f"Notices load failed for user {actor.id}: {e}")
            return False
        self.apply(rows, actor)
        return True

    async def acknowledge(self, actor: Actor, notice: NoticeInfo, remote) -> None:
        """Acknowledge one notice at its current version, then re-fetch."""
        await remote.acknowledge_notice(actor.id, notice.id, notice.version)
        await self.refresh(actor, remote)

    async def acknowledge_all(self, actor: Actor, remote) -> None:
        """Acknowledge every unread notice, mandatory or not, then re-fetch."""
        for notice in list(self.unread):
            await remote.acknowledge_notice(actor.id, notice.id, notice.version)
        await self.refresh(actor, remote)
