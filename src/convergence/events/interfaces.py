"""
Events - Interfaces

Contrats des notifications publiées par le noyau (changements de statut
d'endpoint, issues de synchronisation et de conflit).

Invariants:
    EVT_001: Notifications best-effort, jamais bloquantes
    EVT_002: File bornée par abonné, surplus abandonné et compté
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Union


class EventType(Enum):
    """Types d'événements publiés."""

    # Supervision
    ENDPOINT_STATUS_CHANGED = "endpoint.status_changed"
    RECONNECT_SCHEDULED = "endpoint.reconnect_scheduled"
    RECONNECT_CANCELLED = "endpoint.reconnect_cancelled"

    # Synchronisation
    SYNC_COMPLETED = "sync.completed"
    SYNC_FAILED = "sync.failed"
    CONFLICT_DETECTED = "sync.conflict_detected"
    CONFLICT_RESOLVED = "sync.conflict_resolved"


@dataclass(frozen=True)
class CoreEvent:
    """
    Notification immuable.

    subject_id désigne l'endpoint ou l'instance concernée.
    """

    event_id: str
    event_type: EventType
    timestamp: datetime
    subject_id: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "subject_id": self.subject_id,
            "data": dict(self.data),
        }


EventHandler = Callable[[CoreEvent], Union[None, Awaitable[None]]]


class IEventPublisher(ABC):
    """
    Interface publication d'événements.

    Responsabilités:
        - Publication non bloquante (EVT_001)
        - Fan-out borné par abonné (EVT_002)
    """

    @abstractmethod
    def publish(
        self,
        event_type: EventType,
        subject_id: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> CoreEvent:
        """
        Publie un événement sans attendre les abonnés.

        Args:
            event_type: Type d'événement
            subject_id: Endpoint ou instance concernée
            data: Données additionnelles

        Returns:
            Événement publié
        """
        pass

    @abstractmethod
    def subscribe(
        self,
        handler: EventHandler,
        event_types: Optional[Iterable[EventType]] = None,
        max_pending: Optional[int] = None,
    ) -> str:
        """
        Abonne un handler (sync ou async).

        Args:
            handler: Fonction appelée pour chaque événement
            event_types: Filtre (None = tous)
            max_pending: Taille de la file de l'abonné

        Returns:
            Identifiant d'abonnement
        """
        pass

    @abstractmethod
    def unsubscribe(self, subscription_id: str) -> bool:
        """Retire un abonnement. True si trouvé."""
        pass
