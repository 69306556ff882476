"""
Events - Event Bus

Publication/abonnement en mémoire avec fan-out borné.

Invariants:
    EVT_001: Notifications best-effort, jamais bloquantes
    EVT_002: File bornée par abonné, surplus abandonné et compté
"""

import asyncio
import inspect
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from ..logging import IStructuredLogger, LogConfig, StructuredLogger
from .interfaces import CoreEvent, EventHandler, EventType, IEventPublisher


@dataclass
class Subscription:
    """État d'un abonné: sa file, son worker et ses compteurs."""

    subscription_id: str
    handler: EventHandler
    event_types: Optional[FrozenSet[EventType]]
    queue: "asyncio.Queue[CoreEvent]"
    worker: Optional["asyncio.Task[None]"] = None
    delivered: int = 0
    dropped: int = 0
    failed: int = 0

    def accepts(self, event_type: EventType) -> bool:
        return self.event_types is None or event_type in self.event_types


@dataclass
class EventBusStats:
    """Compteurs agrégés du bus."""

    published: int = 0
    delivered: int = 0
    dropped: int = 0
    failed: int = 0
    per_subscriber: Dict[str, Dict[str, int]] = field(default_factory=dict)


class EventBus(IEventPublisher):
    """
    Bus d'événements en mémoire.

    Chaque abonné possède sa propre file bornée, vidée par sa propre
    tâche: un abonné lent ou en échec ne retarde ni le publieur ni les
    autres abonnés (EVT_001). Une file pleine abandonne l'événement et
    incrémente le compteur `dropped` (EVT_002).

    Example:
        bus = EventBus()
        bus.subscribe(on_status, [EventType.ENDPOINT_STATUS_CHANGED])
        bus.publish(EventType.ENDPOINT_STATUS_CHANGED, "crm", {"status": "connected"})
    """

    DEFAULT_MAX_PENDING: int = 100

    def __init__(
        self,
        max_pending: Optional[int] = None,
        logger: Optional[IStructuredLogger] = None,
    ) -> None:
        """
        Args:
            max_pending: Taille par défaut de la file de chaque abonné
            logger: Logger structuré (défaut: composant "events")
        """
        self._max_pending = max_pending or self.DEFAULT_MAX_PENDING
        if self._max_pending < 1:
            raise ValueError("max_pending must be >= 1")
        self._logger = logger or StructuredLogger("event_bus", LogConfig(default_component="events"))
        self._subscriptions: Dict[str, Subscription] = {}
        self._published = 0
        self._closed = False

    def publish(
        self,
        event_type: EventType,
        subject_id: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> CoreEvent:
        """
        EVT_001: Publie sans attendre; ne lève jamais à cause d'un abonné.
        """
        event = CoreEvent(
            event_id=str(uuid.uuid4()),
            event_type=event_type,
            timestamp=datetime.now(timezone.utc),
            subject_id=subject_id,
            data=dict(data or {}),
        )
        self._published += 1

        if self._closed:
            return event

        for subscription in list(self._subscriptions.values()):
            if not subscription.accepts(event_type):
                continue
            self._ensure_worker(subscription)
            try:
                subscription.queue.put_nowait(event)
            except asyncio.QueueFull:
                # EVT_002: surplus abandonné
                subscription.dropped += 1
                self._logger.warn(
                    "Subscriber queue full, event dropped",
                    subscription_id=subscription.subscription_id,
                    event_type=event_type.value,
                    dropped=subscription.dropped,
                )

        return event

    def subscribe(
        self,
        handler: EventHandler,
        event_types: Optional[Iterable[EventType]] = None,
        max_pending: Optional[int] = None,
    ) -> str:
        """
        Abonne un handler sync ou async.

        Returns:
            Identifiant d'abonnement

        Raises:
            ValueError: Si max_pending < 1
        """
        size = max_pending or self._max_pending
        if size < 1:
            raise ValueError("max_pending must be >= 1")

        subscription = Subscription(
            subscription_id=str(uuid.uuid4()),
            handler=handler,
            event_types=frozenset(event_types) if event_types is not None else None,
            queue=asyncio.Queue(maxsize=size),
        )
        self._subscriptions[subscription.subscription_id] = subscription
        self._ensure_worker(subscription)
        return subscription.subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Retire un abonnement et arrête son worker."""
        subscription = self._subscriptions.pop(subscription_id, None)
        if subscription is None:
            return False
        if subscription.worker is not None:
            subscription.worker.cancel()
        return True

    def _ensure_worker(self, subscription: Subscription) -> None:
        """Démarre le worker de l'abonné si une boucle tourne."""
        if subscription.worker is not None and not subscription.worker.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Pas de boucle: les événements attendent dans la file
            return
        subscription.worker = loop.create_task(self._run_worker(subscription))

    async def _run_worker(self, subscription: Subscription) -> None:
        while True:
            event = await subscription.queue.get()
            try:
                result = subscription.handler(event)
                if inspect.isawaitable(result):
                    await result
                subscription.delivered += 1
            except asyncio.CancelledError:
                subscription.queue.task_done()
                raise
            except Exception as e:
                subscription.failed += 1
                self._logger.error(
                    "Event handler failed",
                    subscription_id=subscription.subscription_id,
                    event_type=event.event_type.value,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            subscription.queue.task_done()

    async def drain(self) -> None:
        """Attend que toutes les files d'abonnés soient vidées."""
        for subscription in list(self._subscriptions.values()):
            self._ensure_worker(subscription)
            await subscription.queue.join()

    async def close(self) -> None:
        """Arrête tous les workers; les publications suivantes sont ignorées."""
        self._closed = True
        workers: List["asyncio.Task[None]"] = []
        for subscription in self._subscriptions.values():
            if subscription.worker is not None:
                subscription.worker.cancel()
                workers.append(subscription.worker)
        if workers:
            await asyncio.gather(*workers, return_exceptions=True)
        self._subscriptions.clear()

    def get_stats(self) -> EventBusStats:
        """Retourne les compteurs du bus."""
        stats = EventBusStats(published=self._published)
        for sub_id, subscription in self._subscriptions.items():
            stats.delivered += subscription.delivered
            stats.dropped += subscription.dropped
            stats.failed += subscription.failed
            stats.per_subscriber[sub_id] = {
                "delivered": subscription.delivered,
                "dropped": subscription.dropped,
                "failed": subscription.failed,
                "pending": subscription.queue.qsize(),
            }
        return stats

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)
