"""
Supervision

Connectivité des endpoints externes:
- Machine d'état connected / disconnected / error
- Reconnexion planifiée, idempotente, à backoff plafonné
- Sweep périodique avec health checks des endpoints en erreur
"""

from .interfaces import (
    # Enums
    EndpointStatus,
    # Data classes
    Endpoint,
    ReconnectSchedule,
    ProbeResult,
    # Types
    TransportProbe,
    # Interfaces
    IEndpointStore,
    IReconnectionSupervisor,
)
from .endpoint_store import (
    InMemoryEndpointStore,
    EndpointNotFoundError,
    DuplicateEndpointError,
)
from .reconnection_supervisor import ReconnectionSupervisor, ProbeFailedError

__all__ = [
    # Enums
    "EndpointStatus",
    # Data classes
    "Endpoint",
    "ReconnectSchedule",
    "ProbeResult",
    # Types
    "TransportProbe",
    # Interfaces
    "IEndpointStore",
    "IReconnectionSupervisor",
    # Implementations
    "InMemoryEndpointStore",
    "ReconnectionSupervisor",
    # Exceptions
    "EndpointNotFoundError",
    "DuplicateEndpointError",
    "ProbeFailedError",
]
