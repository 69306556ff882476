"""
Events

Notifications best-effort du noyau:
- Publication non bloquante (EVT_001)
- Fan-out borné par abonné (EVT_002)
"""

from .interfaces import (
    # Enums
    EventType,
    # Data classes
    CoreEvent,
    # Types
    EventHandler,
    # Interfaces
    IEventPublisher,
)
from .event_bus import EventBus, EventBusStats, Subscription

__all__ = [
    "EventType",
    "CoreEvent",
    "EventHandler",
    "IEventPublisher",
    "EventBus",
    "EventBusStats",
    "Subscription",
]
