import logging
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List

from ..config import Config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    id: str
    message: str
    created_at: float

    def to_dict(self):
        return {'id': self.id, 'message': self.message, 'created_at': self.created_at}


class NotificationSink(ABC):
    """Fire-and-forget receiver for short user-facing messages."""

    @abstractmethod
    def notify(self, message: str) -> None:
        ...


class ToastBoard(NotificationSink):
    """Keeps messages visible for a fixed time, then drops them."""

    def __init__(self, ttl: float = None, clock: Callable[[], float] = time.monotonic):
        self.ttl = Config.NOTIFICATION_TTL if ttl is None else ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._items: List[Notification] = []

    def notify(self, message: str) -> None:
        logger.info(f"Notification: {message}")
        note = Notification(id=uuid.uuid4().hex, message=message, created_at=self._clock())
        with self._lock:
            self._prune()
            self._items.append(note)

    def active(self) -> List[Notification]:
        with self._lock:
            self._prune()
            return list(self._items)

    def dismiss(self, notification_id: str) -> bool:
        with self._lock:
            before = len(self._items)
            self._items = [n for n in self._items if n.id != notification_id]
            return len(self._items) != before

    def _prune(self):
        cutoff = self._clock() - self.ttl
        self._items = [n for n in self._items if n.created_at > cutoff]
