"""
Board notifications: an explicit in-process publish/subscribe bus.

Repositories receive a `BoardEventBus` instance and publish one
`BoardNotification` per successful board mutation, after the commit.
Delivery is synchronous to the handlers registered at publish time; nothing
is queued or replayed for late subscribers.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Any, Callable, Dict, List, Tuple

from fakebusters.db import models, schemas

logger = logging.getLogger(__name__)

# Single logical channel for every board event
BOARDS_TOPIC = "fakebusters.boards"


class BoardEvent(str, Enum):
    CREATED = "board_created"
    UPDATED = "board_updated"
    DELETED = "board_deleted"


@dataclass(frozen=True)
class BoardNotification:
    source: str
    event: BoardEvent
    board: models.Board

    def as_tuple(self) -> Tuple[str, str, models.Board]:
        return (self.source, self.event.value, self.board)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-friendly form for subscribers that forward notifications elsewhere."""
        return {
            "source": self.source,
            "event": self.event.value,
            "board": schemas.Board.model_validate(self.board).model_dump(mode="json"),
        }


BoardEventHandler = Callable[[BoardNotification], None]


class BoardEventBus:
    """
    Publish/subscribe hub for board notifications.

    Usage:
        bus = BoardEventBus()
        bus.subscribe(handle_board_event)
        repo = BoardRepository(db, event_bus=bus)
    """

    def __init__(self, topic: str = BOARDS_TOPIC):
        self.topic = topic
        self._subscribers: List[BoardEventHandler] = []
        self._lock = Lock()

    def subscribe(self, handler: BoardEventHandler) -> None:
        with self._lock:
            if handler not in self._subscribers:
                self._subscribers.append(handler)

    def unsubscribe(self, handler: BoardEventHandler) -> None:
        with self._lock:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: BoardEvent | str, board: models.Board) -> BoardNotification:
        """
        Deliver a notification to every current subscriber.

        A handler that raises is logged and skipped; the remaining handlers
        still receive the notification and the publisher never sees the error.
        """
        notification = BoardNotification(source=self.topic, event=BoardEvent(event), board=board)
        with self._lock:
            handlers = list(self._subscribers)
        for handler in handlers:
            try:
                handler(notification)
            except Exception:
                logger.exception(
                    f"Board event handler {handler!r} failed for {notification.event.value} on board {board.id}"
                )
        return notification
