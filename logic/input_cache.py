"""
Per-session cache of unfinished replies, keyed by thread topic.
"""

import threading
from typing import Dict, Optional


class InputCache:
    """Remembers reply text the user typed but has not sent."""

    def __init__(self):
        self._drafts: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, topic: str) -> Optional[str]:
        with self._lock:
            return self._drafts.get(topic)

    def put(self, topic: str, text: str) -> None:
        """Store the draft for a topic; an empty text clears it."""
        with self._lock:
            if text:
                self._drafts[topic] = text
            else:
                self._drafts.pop(topic, None)

    def remove(self, topic: str) -> Optional[str]:
        with self._lock:
            return self._drafts.pop(topic, None)

    def __contains__(self, topic: str) -> bool:
        with self._lock:
            return topic in self._drafts

    def __len__(self) -> int:
        with self._lock:
            return len(self._drafts)
