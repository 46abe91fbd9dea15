from dataclasses import dataclass
from typing import Callable, Dict, List, Any, Optional
import asyncio

from tierboard.services.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PlacementCommitted:
    """Emitted after a placement and its recomputed total are committed."""

    player_id: int
    ign: str
    gamemode: str
    new_tier: str
    new_global_points: int
    new_rank: Optional[int]


@dataclass(frozen=True)
class PlacementRemoved:
    player_id: int
    ign: str
    gamemode: str
    new_global_points: int


@dataclass(frozen=True)
class PlayerDeleted:
    player_id: int
    ign: str


class EventBus:
    """Simple async pub/sub event bus for ranking events."""

    _listeners: Dict[str, List[Callable[[Any], Any]]] = {}

    @classmethod
    def subscribe(cls, event_name: str, callback: Callable[[Any], Any]):
        cls._listeners.setdefault(event_name, []).append(callback)

    @classmethod
    def unsubscribe(cls, event_name: str, callback: Callable[[Any], Any]):
        listeners = cls._listeners.get(event_name, [])
        if callback in listeners:
            listeners.remove(callback)

    @classmethod
    def clear(cls):
        cls._listeners = {}

    @classmethod
    async def publish(cls, event_name: str, data: Any):
        # Listener failures are logged and never reach the publisher: the
        # change they describe is already committed.
        listeners = list(cls._listeners.get(event_name, []))
        for listener in listeners:
            try:
                if asyncio.iscoroutinefunction(listener):
                    await listener(data)
                else:
                    listener(data)
            except Exception as e:
                logger.error(f"[EventBus] Error in listener for {event_name}: {e}", exc_info=True)
