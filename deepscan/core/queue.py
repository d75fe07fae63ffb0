import dataclasses
import logging
import threading
import uuid
from typing import Iterable, List, Optional, Tuple

from ..data.schemas import FileRef, ScanItem, ScanStatus

logger = logging.getLogger(__name__)


class ScanQueue:
    """
    Ordered collection of submitted files, most recent submission first.

    Items are immutable snapshots; every mutation swaps in a new list so
    readers (e.g. request handlers on the threadpool) never observe a
    half-applied change.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._items: Tuple[ScanItem, ...] = ()
        self._revision = 0

    @property
    def revision(self) -> int:
        """Incremented on every mutation."""
        return self._revision

    def __len__(self):
        return len(self._items)

    def items(self) -> Tuple[ScanItem, ...]:
        return self._items

    def enqueue(self, files: Iterable[FileRef]) -> List[ScanItem]:
        new_items = [ScanItem(id=uuid.uuid4().hex, file=f) for f in files]
        if not new_items:
            return []

        with self._lock:
            self._items = tuple(new_items) + self._items
            self._revision += 1

        logger.info(f"Queued {len(new_items)} file(s): {', '.join(i.file.name for i in new_items)}")
        return new_items

    def update_item(self, item_id: str, **fields) -> Optional[ScanItem]:
        """
        Replace the given fields of one item. Unknown ids are ignored
        and return None.
        """
        with self._lock:
            for idx, item in enumerate(self._items):
                if item.id == item_id:
                    updated = dataclasses.replace(item, **fields)
                    self._items = self._items[:idx] + (updated,) + self._items[idx + 1:]
                    self._revision += 1
                    return updated
        return None

    def find(self, item_id: str) -> Optional[ScanItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def active(self) -> Optional[ScanItem]:
        """The item currently scanning or analyzing, if any."""
        for item in self._items:
            if item.status.is_active:
                return item
        return None

    def count_by_status(self, status: ScanStatus) -> int:
        return sum(1 for item in self._items if item.status == status)
