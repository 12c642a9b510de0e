"""
Live broadcast hub.

Routes publish events after their database commit; WebSocket connections
(routes/live.py) subscribe and drain an asyncio queue each. publish() is
synchronous and fire-and-forget: it may be called from the sync route
threadpool, messages are handed to each subscriber's event loop with
call_soon_threadsafe, and a failed delivery drops that subscriber without
raising into the caller.

Events carrying a "mat_id" in their payload are only delivered to
subscribers watching that mat (or watching every mat).
"""
import asyncio
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)

EVENT_BOUTS = "combats:update"
EVENT_BOUT_FINISHED = "combat:termine"
EVENT_MATS = "tatamis:update"
EVENT_POOLS = "poules:update"
EVENT_STANDINGS = "classement:update"
EVENT_BRACKET = "tableau:update"
EVENT_TEAMS = "equipes:update"
EVENT_ATHLETES = "combattants:update"


@dataclass(eq=False)
class Subscription:
    loop: asyncio.AbstractEventLoop
    queue: "asyncio.Queue[Dict[str, Any]]" = field(default_factory=asyncio.Queue)
    mat_id: Optional[int] = None

    def wants(self, payload: Any) -> bool:
        if self.mat_id is None or not isinstance(payload, dict):
            return True
        target = payload.get("mat_id")
        return target is None or target == self.mat_id


class BroadcastHub:
    def __init__(self) -> None:
        self._subscribers: List[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, mat_id: Optional[int] = None) -> Subscription:
        """Register a subscriber on the running event loop."""
        subscription = Subscription(loop=asyncio.get_running_loop(), mat_id=mat_id)
        with self._lock:
            self._subscribers.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: str, payload: Any = None) -> int:
        """Queue ``event`` for every interested subscriber. Returns the delivery count."""
        message = {
            "event": event,
            "data": jsonable_encoder(payload),
            "timestamp": datetime.utcnow().isoformat(),
        }
        with self._lock:
            subscribers = list(self._subscribers)

        delivered = 0
        dropped = []
        for subscription in subscribers:
            if not subscription.wants(message["data"]):
                continue
            try:
                subscription.loop.call_soon_threadsafe(subscription.queue.put_nowait, message)
                delivered += 1
            except RuntimeError as exc:
                # Loop already closed: the connection is gone
                logger.warning("Dropping subscriber after failed delivery of %s: %s", event, exc)
                dropped.append(subscription)

        for subscription in dropped:
            self.unsubscribe(subscription)
        return delivered


hub = BroadcastHub()


def get_hub() -> BroadcastHub:
    """FastAPI dependency returning the process-wide hub."""
    return hub
