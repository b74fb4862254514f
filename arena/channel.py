"""In-process notifications for debate viewers."""

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any, Protocol

from pydantic import BaseModel

from .models import Turn


logger = logging.getLogger("arena:channel")

Subscriber = Callable[[dict[str, Any]], None]


def turn_event(debate_id: str) -> str:
    """Event name announcing a new turn in a debate."""
    return f"debate:{debate_id}:turn"


class TurnEvent(BaseModel):
    """Payload published when a turn is added."""

    debate_id: str
    turn: Turn
    is_complete: bool = False


class NotificationChannel(Protocol):
    """Broadcasts events to viewers of a debate."""

    def publish(self, event: str, payload: dict[str, Any]) -> None: ...


class LocalChannel:
    """Delivers events to callables subscribed in the same process."""

    def __init__(self) -> None:
        """Initialize the channel with no subscribers."""
        self._subscribers: defaultdict[str, list[Subscriber]] = defaultdict(list)

    def subscribe(self, event: str, callback: Subscriber) -> None:
        """Call callback with the payload of every future event."""
        self._subscribers[event].append(callback)

    def unsubscribe(self, event: str, callback: Subscriber) -> None:
        """Stop calling callback for event."""
        if callback in self._subscribers[event]:
            self._subscribers[event].remove(callback)

    def publish(self, event: str, payload: dict[str, Any]) -> None:
        """Send payload to every subscriber of event.

        A subscriber that raises is logged and skipped.
        """
        subscribers = list(self._subscribers.get(event, []))
        logger.debug(f"Publishing {event} to {len(subscribers)} subscribers")
        for callback in subscribers:
            try:
                callback(payload)
            except Exception as error:
                logger.error(f"Error delivering {event}: {error}")
