"""
Event system for engine lifecycle events.

Listeners observe committed operations only; the engine queues events
while an operation runs and publishes them after it commits.
"""
from typing import Dict, List, Callable, Any
import logging

logger = logging.getLogger(__name__)

# Event names
REGISTERED = "registered"
STAKED = "staked"
UNSTAKED = "unstaked"
REWARDS_WITHDRAWN = "rewards_withdrawn"
CHECKPOINT = "checkpoint"
OWNERSHIP_TRANSFERRED = "ownership_transferred"
EMERGENCY_WITHDRAW = "emergency_withdraw"


class EventBus:
    """
    Simple synchronous pub/sub.

    A failing listener is logged and skipped; it never aborts the operation
    that produced the event.
    """

    def __init__(self):
        self.listeners: Dict[str, List[Callable]] = {}

    def subscribe(self, event_type: str, callback: Callable) -> None:
        self.listeners.setdefault(event_type, []).append(callback)
        logger.debug(f"Subscribed to event: {event_type}")

    def unsubscribe(self, event_type: str, callback: Callable) -> None:
        if event_type in self.listeners:
            try:
                self.listeners[event_type].remove(callback)
            except ValueError:
                logger.warning(f"Callback not found for event: {event_type}")

    def emit(self, event_type: str, **data: Any) -> None:
        listeners = self.listeners.get(event_type, [])
        if not listeners:
            logger.debug(f"No listeners for event: {event_type}")
            return

        for callback in list(listeners):
            try:
                callback(**data)
            except Exception as e:
                logger.error(f"Error in event callback for {event_type}: {e}", exc_info=True)

    def clear(self, event_type: str = None) -> None:
        if event_type:
            self.listeners.pop(event_type, None)
        else:
            self.listeners.clear()


# Global event bus instance
event_bus = EventBus()
