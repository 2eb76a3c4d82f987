"""In-memory topic fan-out for order status updates (one topic per order id)."""
import logging
import threading
from typing import Any, Dict, List, Protocol, Set

logger = logging.getLogger(__name__)


class Connection(Protocol):
    async def send_json(self, data: Any) -> None:
        ...


def order_topic(order_id: str) -> str:
    return f"order-{order_id}"


class Broadcaster:
    """
    Groups live connections by topic. Nothing is persisted or replayed: a
    connection that joins after an emit simply misses it.
    """

    def __init__(self):
        self._topics: Dict[str, Set[Connection]] = {}
        self._lock = threading.Lock()

    def join(self, topic: str, conn: Connection) -> None:
        with self._lock:
            self._topics.setdefault(topic, set()).add(conn)

    def leave(self, topic: str, conn: Connection) -> None:
        with self._lock:
            members = self._topics.get(topic)
            if not members:
                return
            members.discard(conn)
            if not members:
                del self._topics[topic]

    def leave_all(self, conn: Connection) -> None:
        with self._lock:
            for topic in [t for t, members in self._topics.items() if conn in members]:
                self._topics[topic].discard(conn)
                if not self._topics[topic]:
                    del self._topics[topic]

    def subscribers(self, topic: str) -> List[Connection]:
        with self._lock:
            return list(self._topics.get(topic, ()))

    async def emit(self, topic: str, event: str, payload: Dict[str, Any]) -> int:
        """
        Send `payload` to every connection currently in `topic`.
        Connections that fail are dropped. Returns how many deliveries succeeded.
        """
        delivered = 0
        message = {"event": event, "data": payload}
        for conn in self.subscribers(topic):
            try:
                await conn.send_json(message)
                delivered += 1
            except Exception:
                logger.warning("Dropping subscriber on %s after failed send", topic, exc_info=True)
                self.leave_all(conn)
        logger.info("Emitted %s to %d subscriber(s) on %s", event, delivered, topic)
        return delivered
