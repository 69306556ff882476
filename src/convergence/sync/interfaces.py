"""
Sync - Interfaces

Contrats du protocole de synchronisation temporelle:
- Chaîne d'états hachée, append-only, par instance distante
- Détection de conflit sur tête non résolue
- Résolution pluggable par type de conflit

Invariants:
    SYNC_001-008: Voir convergence.invariants.rules
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple


class SyncStatus(Enum):
    """Statut d'une opération de synchronisation."""

    SYNCING = "syncing"
    SYNCED = "synced"
    CONFLICT = "conflict"  # résolution manuelle requise
    FAILED = "failed"  # échec du transport, chaîne inchangée

    @property
    def is_terminal(self) -> bool:
        return self != SyncStatus.SYNCING


class SyncType(Enum):
    """Nature des données poussées."""

    KNOWLEDGE = "knowledge"
    EXPERIENCE = "experience"
    MODELS = "models"
    CONFIG = "config"
    FULL = "full"


class InstanceType(Enum):
    """Catégorie d'instance distante."""

    CORE = "core"
    PRIVATE_CLOUD = "private_cloud"
    ENTERPRISE = "enterprise"
    PARTNER = "partner"
    RESEARCH = "research"


class ConflictType(Enum):
    """
    Types de conflit.

    Seul VALUE est détecté par le noyau; les autres sont réservés aux
    politiques de résolution plus riches.
    """

    VALUE = "value"
    STRUCTURE = "structure"
    TIMESTAMP = "timestamp"
    VERSION = "version"


class ConflictResolution(Enum):
    """Issue d'une résolution de conflit."""

    SOURCE_WINS = "source_wins"
    TARGET_WINS = "target_wins"
    MERGE = "merge"
    MANUAL = "manual"


@dataclass
class SyncInstance:
    """Pair distant participant à la synchronisation."""

    id: str
    instance_type: InstanceType
    name: str
    endpoint_id: Optional[str] = None
    version: str = "1.0.0"
    last_sync_at: Optional[datetime] = None
    sync_count: int = 0
    conflict_count: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "instance_type": self.instance_type.value,
            "name": self.name,
            "endpoint_id": self.endpoint_id,
            "version": self.version,
            "last_sync_at": self.last_sync_at.isoformat() if self.last_sync_at else None,
            "sync_count": self.sync_count,
            "conflict_count": self.conflict_count,
        }


@dataclass(frozen=True)
class TemporalStateEntry:
    """
    Maillon immuable de la chaîne d'une instance.

    previous_state_hash est None pour le premier maillon uniquement.
    sequence départage deux maillons de même timestamp.
    """

    entry_id: str
    instance_id: str
    sequence: int
    timestamp: datetime
    state_hash: str
    previous_state_hash: Optional[str]
    unresolved_conflict_ids: Tuple[str, ...] = ()
    resolved: bool = True
    operation_id: Optional[str] = None


@dataclass
class SyncConflict:
    """
    Divergence entre un payload entrant et une tête non résolue.

    resolution est fixée une seule fois (SYNC_004). Le payload source
    est conservé pour une résolution manuelle ultérieure; il n'est
    jamais journalisé.
    """

    id: str
    operation_id: str
    instance_id: str
    conflict_type: ConflictType
    source_hash: str
    target_hash: str
    target_entry_id: str
    detected_at: datetime
    source_payload: Any = field(default=None, repr=False)
    resolution: Optional[ConflictResolution] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.resolution is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "operation_id": self.operation_id,
            "instance_id": self.instance_id,
            "conflict_type": self.conflict_type.value,
            "source_hash": self.source_hash,
            "target_hash": self.target_hash,
            "resolution": self.resolution.value if self.resolution else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "resolved_by": self.resolved_by,
        }


@dataclass
class SyncOperation:
    """
    Une tentative de synchronisation.

    Terminale dès qu'elle quitte syncing (SYNC_006).
    """

    id: str
    source_instance_id: str
    target_instance_id: str
    sync_type: SyncType
    timestamp: datetime
    payload_hash: str
    status: SyncStatus = SyncStatus.SYNCING
    conflict_id: Optional[str] = None
    conflict_resolution: Optional[ConflictResolution] = None
    synced_at: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source_instance_id": self.source_instance_id,
            "target_instance_id": self.target_instance_id,
            "sync_type": self.sync_type.value,
            "timestamp": self.timestamp.isoformat(),
            "payload_hash": self.payload_hash,
            "status": self.status.value,
            "conflict_id": self.conflict_id,
            "conflict_resolution": (
                self.conflict_resolution.value if self.conflict_resolution else None
            ),
            "synced_at": self.synced_at.isoformat() if self.synced_at else None,
            "error": self.error,
        }


# Transport fourni par l'application: push(target, sync_type, payload)
SyncTransport = Callable[[SyncInstance, SyncType, Any], Awaitable[Any]]


class IConflictResolver(ABC):
    """Stratégie de résolution d'un conflit (SYNC_005)."""

    @abstractmethod
    def resolve(self, conflict: SyncConflict) -> ConflictResolution:
        """
        Décide de l'issue d'un conflit.

        Args:
            conflict: Conflit détecté, non encore résolu

        Returns:
            Résolution à appliquer
        """
        pass


class ITemporalChainStore(ABC):
    """
    Stockage des chaînes d'états, une par instance.

    Responsabilités:
        - Append-only avec adjacence vérifiée (SYNC_001)
        - Lecture vérifiée (SYNC_007)
    """

    @abstractmethod
    def get_latest(self, instance_id: str) -> Optional[TemporalStateEntry]:
        """Retourne la tête de la chaîne, ou None."""
        pass

    @abstractmethod
    def append(self, entry: TemporalStateEntry) -> TemporalStateEntry:
        """
        Ajoute un maillon.

        Raises:
            ChainIntegrityError: Si le maillon ne suit pas la tête
        """
        pass

    @abstractmethod
    def get_history(self, instance_id: str, limit: Optional[int] = None) -> List[TemporalStateEntry]:
        """Historique, plus récent en premier, adjacence vérifiée."""
        pass

    @abstractmethod
    def verify_chain(self, instance_id: str) -> bool:
        """Vérifie la chaîne complète."""
        pass


class ISyncProtocol(ABC):
    """
    Interface protocole de synchronisation temporelle.

    Responsabilités:
        - Lecture tête et ajout atomiques par cible (SYNC_002)
        - Conflit sur tête non résolue divergente (SYNC_003)
        - Pas de synchronisation vers un endpoint hors ligne (SYNC_008)
    """

    @abstractmethod
    def register_instance(
        self,
        instance_type: InstanceType,
        name: str,
        endpoint_id: Optional[str] = None,
        version: str = "1.0.0",
        metadata: Optional[Dict[str, Any]] = None,
        instance_id: Optional[str] = None,
    ) -> SyncInstance:
        """Enregistre une instance distante."""
        pass

    @abstractmethod
    async def synchronize(
        self,
        source_instance_id: str,
        target_instance_id: str,
        sync_type: SyncType,
        payload: Any,
    ) -> SyncOperation:
        """
        Pousse un payload de la source vers la cible.

        Raises:
            InstanceNotFoundError: Si une instance est inconnue
            EndpointUnavailableError: Si l'endpoint de la cible est hors ligne
        """
        pass

    @abstractmethod
    async def observe_remote_state(self, instance_id: str, payload: Any) -> TemporalStateEntry:
        """Enregistre un état écrit par le pair lui-même (tête non résolue)."""
        pass

    @abstractmethod
    async def resolve_conflict(
        self,
        conflict_id: str,
        resolution: ConflictResolution,
        resolved_by: str,
    ) -> SyncConflict:
        """Résolution manuelle d'un conflit en attente (SYNC_004)."""
        pass
