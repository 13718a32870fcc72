"""
Request cell cache

Holds two maps keyed by CellKey: the authoritative side (last values the
store confirmed) and the pending side (optimistic values whose remote write
has not resolved). The displayed value of a cell is its pending value when
one exists, otherwise its authoritative value.

Every optimistic write takes a new, strictly increasing token and records
it as the latest for its key. Resolutions compare their token with the
latest one so that an older write finishing after a newer one cannot clobber
it. A reload raises the floor below which every token is stale.
"""
import logging
from datetime import timedelta
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from rota_requests import rules
from rota_requests.editor.types import CellKey, CellValue, PendingEdit, RequestRecord


logger = logging.getLogger(__name__)


class CellCache:

    def __init__(self):
        self._committed: Dict[CellKey, RequestRecord] = {}
        self._pending: Dict[CellKey, PendingEdit] = {}
        self._latest: Dict[CellKey, int] = {}
        self._committed_generation: Dict[CellKey, int] = {}
        self._counter = 0
        self._floor = 0

    # -- loading ---------------------------------------------------------

    def load(self, records: Iterable) -> None:
        """
        Replace the whole cache with a fresh read from the store.

        Discards every pending edit. Tokens handed out before the reload
        are ignored when they resolve.
        """
        self._committed.clear()
        self._pending.clear()
        self._latest.clear()
        self._committed_generation.clear()
        self._floor = self._counter
        for record in records:
            if not isinstance(record, RequestRecord):
                record = RequestRecord.from_dict(record)
            if record.value:
                self._committed[record.key] = record

    # -- reads -----------------------------------------------------------

    def committed(self, key: CellKey) -> Optional[RequestRecord]:
        return self._committed.get(key)

    def committed_value(self, key: CellKey) -> CellValue:
        record = self._committed.get(key)
        return record.as_value() if record else CellValue.EMPTY

    def pending(self, key: CellKey) -> Optional[PendingEdit]:
        return self._pending.get(key)

    def has_pending(self, key: CellKey) -> bool:
        return key in self._pending

    def display_value(self, key: CellKey) -> CellValue:
        edit = self._pending.get(key)
        if edit is not None:
            return edit.value
        return self.committed_value(key)

    def is_occupied(self, key: CellKey) -> bool:
        """A key counts against the quota if either side holds a value."""
        edit = self._pending.get(key)
        return bool((edit is not None and not edit.value.is_empty) or key in self._committed)

    def week_keys(self, user_id: int, day) -> List[CellKey]:
        """Keys of the user's Sunday-anchored week containing ``day``."""
        start = rules.week_start(day)
        return [CellKey(int(user_id), start + timedelta(days=i)) for i in range(7)]

    def week_entries(self, user_id: int, day) -> Iterator[Tuple[CellKey, CellValue]]:
        """
        Every value the user holds in the week, committed and pending.

        A key with both a committed and a pending value yields both.
        """
        for key in self.week_keys(user_id, day):
            record = self._committed.get(key)
            if record is not None:
                yield key, record.as_value()
            edit = self._pending.get(key)
            if edit is not None:
                yield key, edit.value

    def keys(self) -> List[CellKey]:
        return sorted(set(self._committed) | set(self._pending))

    # -- generations -----------------------------------------------------

    def next_token(self, key: CellKey) -> int:
        self._counter += 1
        self._latest[key] = self._counter
        return self._counter

    def latest_token(self, key: CellKey) -> int:
        return self._latest.get(key, 0)

    def is_latest(self, key: CellKey, token: int) -> bool:
        return token > self._floor and token == self._latest.get(key)

    # -- writes ----------------------------------------------------------

    def put_pending(self, key: CellKey, value: CellValue, token: int) -> PendingEdit:
        edit = PendingEdit(key=key, value=value, token=token)
        self._pending[key] = edit
        return edit

    def drop_pending(self, key: CellKey, token: int) -> bool:
        """Remove the pending edit only if it belongs to ``token``."""
        edit = self._pending.get(key)
        if edit is not None and edit.token == token:
            del self._pending[key]
            return True
        return False

    def commit(self, key: CellKey, record: Optional[RequestRecord], token: int) -> bool:
        """
        Apply a confirmed write to the authoritative side.

        ``record`` of None means the cell was cleared. Ignored when a newer
        token has already been committed for the key.
        """
        if token <= max(self._floor, self._committed_generation.get(key, 0)):
            logger.debug(f"Ignoring stale commit for {key} (token {token})")
            return False
        self._committed_generation[key] = token
        if record is None or not record.value:
            self._committed.pop(key, None)
        else:
            self._committed[key] = record
        return True
