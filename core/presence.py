"""
Peer presence for the Agora forum layer

Relays advisory "someone is typing" and "someone posted" signals between
sessions viewing the same thread. Presence never touches persistent state.

Publishers may run on any thread; listeners are invoked on the publisher's
thread and must hand the update over to their own view loop.
"""

import itertools
import logging
import threading
from enum import Enum
from typing import Callable, Dict, List, Optional
from dataclasses import dataclass

from models.entities import Post, User


logger = logging.getLogger(__name__)


class PresenceKind(Enum):
    """Types of presence events."""
    TYPING = "typing"
    AUTHORED = "authored"


@dataclass
class PresenceEvent:
    """A presence signal for one thread."""
    kind: PresenceKind
    thread_id: int
    user: Optional[User] = None
    post: Optional[Post] = None


@dataclass(frozen=True)
class Subscription:
    """Handle returned by ``PresenceHub.subscribe``."""
    token: int
    thread_id: int


class PresenceHub:
    """
    Thread-safe publish/subscribe of presence events keyed by thread ID.

    Events are delivered to every subscriber of the thread except the one
    that published them.
    """

    def __init__(self):
        """Initialize an empty hub."""
        self._lock = threading.Lock()
        self._listeners: Dict[int, Dict[int, Callable[[PresenceEvent], None]]] = {}
        self._tokens = itertools.count(1)

    def subscribe(self, thread_id: int, listener: Callable[[PresenceEvent], None]) -> Subscription:
        """
        Register a listener for a thread.

        Args:
            thread_id: Thread identifier
            listener: Function(event: PresenceEvent)

        Returns:
            Subscription handle, also used as the publishing origin
        """
        with self._lock:
            token = next(self._tokens)
            self._listeners.setdefault(thread_id, {})[token] = listener
        logger.debug(f"Subscription {token} added for thread {thread_id}")
        return Subscription(token=token, thread_id=thread_id)

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a listener. Unknown subscriptions are ignored."""
        with self._lock:
            listeners = self._listeners.get(subscription.thread_id)
            if listeners is None:
                return
            listeners.pop(subscription.token, None)
            if not listeners:
                del self._listeners[subscription.thread_id]
        logger.debug(f"Subscription {subscription.token} removed")

    def subscriber_count(self, thread_id: int) -> int:
        with self._lock:
            return len(self._listeners.get(thread_id, {}))

    def publish_typing(self, thread_id: int, user: User, origin: Optional[Subscription] = None) -> int:
        """Tell other viewers of a thread that ``user`` is typing."""
        event = PresenceEvent(kind=PresenceKind.TYPING, thread_id=thread_id, user=user)
        return self._publish(event, origin)

    def publish_authored(self, thread_id: int, post: Post, origin: Optional[Subscription] = None) -> int:
        """Tell other viewers of a thread that ``post`` was added."""
        event = PresenceEvent(
            kind=PresenceKind.AUTHORED,
            thread_id=thread_id,
            user=post.author,
            post=post
        )
        return self._publish(event, origin)

    def _publish(self, event: PresenceEvent, origin: Optional[Subscription]) -> int:
        """
        Deliver an event outside the lock.

        Returns:
            Number of listeners the event was delivered to
        """
        with self._lock:
            targets: List[Callable[[PresenceEvent], None]] = [
                listener
                for token, listener in self._listeners.get(event.thread_id, {}).items()
                if origin is None or token != origin.token
            ]

        delivered = 0
        for listener in targets:
            try:
                listener(event)
                delivered += 1
            except Exception as e:
                # Listener failures never reach the publisher
                logger.warning(f"Presence listener failed for thread {event.thread_id}: {e}")
        return delivered
