from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Deque, List

SUCCESS = "success"
ERROR = "error"


@dataclass(frozen=True)
class Notification:
    level: str
    message: str
    created_at: datetime = field(default_factory=datetime.now)


class Notifier:
    """
    One-shot user notifications. Each message is delivered once: drain()
    returns everything queued so far and empties the queue. The oldest
    entries are dropped beyond maxlen.
    """

    def __init__(self, maxlen: int = 50) -> None:
        self._lock = Lock()
        self._queue: Deque[Notification] = deque(maxlen=maxlen)

    def success(self, message: str) -> None:
        self._push(Notification(SUCCESS, message))

    def error(self, message: str) -> None:
        self._push(Notification(ERROR, message))

    def _push(self, notification: Notification) -> None:
        with self._lock:
            self._queue.append(notification)

    def drain(self) -> List[Notification]:
        with self._lock:
            items = list(self._queue)
            self._queue.clear()
            return items

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)
