"""
Per-conversation hand-off of graph updates between summarization and memory extraction.

The inbox file written by GraphInboxWriter is the durable record; this mailbox
only carries the most recent update to the next memory extraction call of the
same conversation.
"""

import threading
from typing import Dict, Optional

from ..models.core import GraphUpdate


class PendingGraphMailbox:
    """Single-slot mailbox per conversation id.

    The producer offers (replacing any unconsumed update), the consumer takes
    (dequeue and clear). Safe to use from several threads.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Dict[str, GraphUpdate] = {}

    def offer(self, chat_id: str, update: GraphUpdate) -> None:
        with self._lock:
            self._pending[chat_id] = update

    def take(self, chat_id: str) -> Optional[GraphUpdate]:
        with self._lock:
            return self._pending.pop(chat_id, None)

    def discard(self, chat_id: str) -> None:
        with self._lock:
            self._pending.pop(chat_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)
