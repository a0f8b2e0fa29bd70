"""Output multiplexer — routes session events to at most one live subscriber."""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel

logger = logging.getLogger(__name__)


@runtime_checkable
class Subscriber(Protocol):
    """A live delivery channel, e.g. one browser WebSocket connection."""

    def deliver(self, message: dict[str, Any]) -> None:
        """Hand *message* to the transport.  Must not block."""
        ...


class OutputMultiplexer:
    """Per-session fan-out point with a single-consumer policy.

    Attaching a subscriber replaces whoever was attached before; the
    replaced subscriber simply stops receiving events.  Events published
    while nobody is attached are dropped, not queued.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, Subscriber] = {}

    def attach(self, session_id: str, subscriber: Subscriber) -> None:
        """Make *subscriber* the sole receiver for *session_id*."""
        previous = self._subscribers.get(session_id)
        self._subscribers[session_id] = subscriber
        if previous is not None and previous is not subscriber:
            logger.debug("%s: subscriber replaced", session_id)

    def detach(self, session_id: str) -> None:
        """Remove the subscriber for *session_id*, if any."""
        self._subscribers.pop(session_id, None)

    def detach_subscriber(self, subscriber: Subscriber) -> list[str]:
        """Detach *subscriber* from every session it receives.

        Returns the affected session ids.
        """
        affected = [sid for sid, sub in self._subscribers.items() if sub is subscriber]
        for sid in affected:
            del self._subscribers[sid]
        return affected

    def rekey(self, old_id: str, new_id: str) -> None:
        """Move the attachment from *old_id* to *new_id*."""
        subscriber = self._subscribers.pop(old_id, None)
        if subscriber is not None:
            self._subscribers[new_id] = subscriber

    def subscriber_for(self, session_id: str) -> Subscriber | None:
        return self._subscribers.get(session_id)

    def publish(self, session_id: str, event: BaseModel) -> bool:
        """Deliver *event* to the current subscriber of *session_id*.

        Returns ``False`` when the event was dropped because nobody is
        attached.  A subscriber whose transport fails is detached.
        """
        subscriber = self._subscribers.get(session_id)
        if subscriber is None:
            logger.debug("%s: no subscriber, dropping %s", session_id, _kind(event))
            return False
        message = event.model_dump(by_alias=True, mode="json")
        try:
            subscriber.deliver(message)
        except Exception:
            logger.exception("%s: subscriber failed, detaching", session_id)
            if self._subscribers.get(session_id) is subscriber:
                del self._subscribers[session_id]
            return False
        return True

    def __len__(self) -> int:
        return len(self._subscribers)


def _kind(event: BaseModel) -> str:
    return str(getattr(event, "type", type(event).__name__))
