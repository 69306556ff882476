"""
Supervision - Interfaces

Contrats pour la supervision de connectivité des endpoints:
- Machine d'état connected / disconnected / error
- Planification idempotente des reconnexions
- Sondes de transport fournies par les intégrations

Invariants:
    SUP_001-008: Voir convergence.invariants.rules
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional


class EndpointStatus(Enum):
    """États de connectivité d'un endpoint."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"  # absence réseau
    ERROR = "error"  # réponse d'erreur applicative


@dataclass
class Endpoint:
    """
    Intégration joignable de l'extérieur.

    Mutée uniquement par le superviseur.
    """

    id: str
    status: EndpointStatus = EndpointStatus.DISCONNECTED
    last_checked_at: Optional[datetime] = None
    consecutive_failures: int = 0
    last_error: Optional[str] = None
    registered_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "last_checked_at": self.last_checked_at.isoformat() if self.last_checked_at else None,
            "consecutive_failures": self.consecutive_failures,
            "last_error": self.last_error,
        }


@dataclass(frozen=True, order=True)
class ReconnectSchedule:
    """
    Reconnexion en attente pour un endpoint.

    Valeur comparable (endpoint_id, generation): un timer n'agit que si
    son schedule est toujours le schedule courant de l'endpoint (SUP_007).
    """

    endpoint_id: str
    generation: int
    due_at: datetime = field(compare=False)
    attempt: int = field(compare=False)
    delay: float = field(compare=False)


@dataclass(frozen=True)
class ProbeResult:
    """Résultat opaque d'une sonde de transport."""

    success: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "ProbeResult":
        return cls(success=True)

    @classmethod
    def failed(cls, reason: str) -> "ProbeResult":
        return cls(success=False, reason=reason)


# Sonde fournie par l'intégration: probe(endpoint_id) -> ProbeResult
TransportProbe = Callable[[str], Awaitable[ProbeResult]]


class IEndpointStore(ABC):
    """
    Stockage des endpoints, indexé par id.

    Création et lecture simples: la persistance réelle est déléguée à
    l'application hôte.
    """

    @abstractmethod
    def create(self, endpoint: Endpoint) -> Endpoint:
        """Ajoute un endpoint. Lève DuplicateEndpointError si l'id existe."""
        pass

    @abstractmethod
    def get(self, endpoint_id: str) -> Optional[Endpoint]:
        """Retourne l'endpoint ou None."""
        pass

    @abstractmethod
    def delete(self, endpoint_id: str) -> bool:
        """Supprime un endpoint. True si trouvé."""
        pass

    @abstractmethod
    def list(self) -> List[Endpoint]:
        """Liste tous les endpoints."""
        pass


class IReconnectionSupervisor(ABC):
    """
    Interface superviseur de reconnexion.

    Responsabilités:
        - Machine d'état par endpoint (SUP_001, SUP_005)
        - Planification idempotente (SUP_002, SUP_003, SUP_007)
        - Sweep périodique sans double probe (SUP_004)
        - Jamais d'exception vers l'appelant sur échec de probe (SUP_006)
    """

    @abstractmethod
    def register_endpoint(self, endpoint_id: str, metadata: Optional[Dict[str, Any]] = None) -> Endpoint:
        """
        Enregistre un endpoint (état initial: disconnected).

        Raises:
            DuplicateEndpointError: Si l'id existe déjà
        """
        pass

    @abstractmethod
    async def unregister_endpoint(self, endpoint_id: str) -> bool:
        """
        SUP_008: Annule le timer en attente puis supprime l'endpoint.
        """
        pass

    @abstractmethod
    def get_endpoint_status(self, endpoint_id: str) -> Optional[Endpoint]:
        """Retourne une copie de l'état courant, ou None."""
        pass

    @abstractmethod
    def update_status(
        self, endpoint_id: str, status: EndpointStatus, error: Optional[str] = None
    ) -> Endpoint:
        """
        Transition signalée par l'appelant (ex: test de connexion externe).
        """
        pass

    @abstractmethod
    def schedule_reconnection(self, endpoint_id: str) -> Optional[ReconnectSchedule]:
        """
        SUP_002: Planifie une reconnexion; no-op si une est déjà en attente.
        """
        pass

    @abstractmethod
    async def attempt_reconnection(self, endpoint_id: str) -> Optional[EndpointStatus]:
        """Tente une reconnexion (probe via retry). Ne lève jamais."""
        pass

    @abstractmethod
    async def check_health(self, endpoint_id: str) -> Optional[EndpointStatus]:
        """SUP_005: Health check léger. Ne lève jamais."""
        pass

    @abstractmethod
    async def sweep(self) -> Dict[str, EndpointStatus]:
        """Un passage du sweep périodique."""
        pass
