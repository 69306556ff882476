"""
Sync

Protocole de synchronisation temporelle entre instances:
- Chaîne d'états hachée, append-only, par instance cible
- Conflits détectés sur tête non résolue, résolus par stratégie
- Refus de synchroniser vers un endpoint hors ligne
"""

from .interfaces import (
    # Enums
    SyncStatus,
    SyncType,
    InstanceType,
    ConflictType,
    ConflictResolution,
    # Data classes
    SyncInstance,
    TemporalStateEntry,
    SyncConflict,
    SyncOperation,
    # Types
    SyncTransport,
    # Interfaces
    IConflictResolver,
    ITemporalChainStore,
    ISyncProtocol,
)
from .temporal_chain import TemporalChainStore, ChainIntegrityError
from .conflict_resolution import (
    SourceWinsResolver,
    TargetWinsResolver,
    ManualResolver,
    ConflictResolverRegistry,
    build_resolver,
    apply_resolution,
    ConflictAlreadyResolvedError,
    NoResolverError,
)
from .sync_protocol import (
    TemporalSyncProtocol,
    InstanceNotFoundError,
    DuplicateInstanceError,
    ConflictNotFoundError,
    OperationAlreadyTerminalError,
    EndpointUnavailableError,
    SyncTransportError,
)

__all__ = [
    # Enums
    "SyncStatus",
    "SyncType",
    "InstanceType",
    "ConflictType",
    "ConflictResolution",
    # Data classes
    "SyncInstance",
    "TemporalStateEntry",
    "SyncConflict",
    "SyncOperation",
    # Types
    "SyncTransport",
    # Interfaces
    "IConflictResolver",
    "ITemporalChainStore",
    "ISyncProtocol",
    # Implementations
    "TemporalChainStore",
    "SourceWinsResolver",
    "TargetWinsResolver",
    "ManualResolver",
    "ConflictResolverRegistry",
    "TemporalSyncProtocol",
    "build_resolver",
    "apply_resolution",
    # Exceptions
    "ChainIntegrityError",
    "ConflictAlreadyResolvedError",
    "NoResolverError",
    "InstanceNotFoundError",
    "DuplicateInstanceError",
    "ConflictNotFoundError",
    "OperationAlreadyTerminalError",
    "EndpointUnavailableError",
    "SyncTransportError",
]
