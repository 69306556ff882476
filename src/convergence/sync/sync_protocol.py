"""
Sync - Temporal Synchronization Protocol

Pousse un payload d'une instance source vers une instance cible en
détectant et résolvant les divergences contre la chaîne de la cible.

Invariants:
    SYNC_002: Lecture tête et ajout atomiques par instance cible
    SYNC_003: Hash différent d'une tête non résolue = conflit
    SYNC_004: Résolution d'un conflit fixée une seule fois
    SYNC_005: Stratégie de résolution par type de conflit, source_wins par défaut
    SYNC_006: Opération terminale dès qu'elle quitte syncing
    SYNC_008: Pas de synchronisation vers un endpoint connu hors ligne
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from ..core.interfaces import IStateHasher
from ..core.state_hasher import StateHasher
from ..events import EventType, IEventPublisher
from ..logging import IStructuredLogger, LogConfig, StructuredLogger
from ..resilience import RetryExecutor, RetryPolicy, TimeoutManager, TimeoutType
from ..supervision import EndpointStatus, ReconnectionSupervisor
from .conflict_resolution import (
    ConflictAlreadyResolvedError,
    ConflictResolverRegistry,
    SourceWinsResolver,
    apply_resolution,
)
from .interfaces import (
    ConflictResolution,
    ConflictType,
    InstanceType,
    ISyncProtocol,
    SyncConflict,
    SyncInstance,
    SyncOperation,
    SyncStatus,
    SyncTransport,
    SyncType,
    TemporalStateEntry,
)
from .temporal_chain import TemporalChainStore


class InstanceNotFoundError(KeyError):
    """Instance inconnue."""

    def __init__(self, instance_id: str) -> None:
        self.instance_id = instance_id
        super().__init__(f"Instance not found: {instance_id}")


class DuplicateInstanceError(ValueError):
    """Instance déjà enregistrée."""

    def __init__(self, instance_id: str) -> None:
        self.instance_id = instance_id
        super().__init__(f"Instance already registered: {instance_id}")


class ConflictNotFoundError(KeyError):
    """Conflit inconnu."""

    def __init__(self, conflict_id: str) -> None:
        self.conflict_id = conflict_id
        super().__init__(f"Conflict not found: {conflict_id}")


class OperationAlreadyTerminalError(Exception):
    """Transition interdite depuis un statut terminal - SYNC_006."""

    def __init__(self, operation_id: str, status: SyncStatus) -> None:
        self.operation_id = operation_id
        self.status = status
        super().__init__(f"Operation {operation_id} is already terminal ({status.value})")


class EndpointUnavailableError(Exception):
    """Endpoint de la cible hors ligne - SYNC_008."""

    def __init__(self, instance_id: str, endpoint_id: str, status: EndpointStatus) -> None:
        self.instance_id = instance_id
        self.endpoint_id = endpoint_id
        self.status = status
        super().__init__(
            f"Endpoint {endpoint_id} of instance {instance_id} is {status.value}, sync refused"
        )


class SyncTransportError(Exception):
    """Échec du push vers la cible lors d'une résolution manuelle."""

    def __init__(self, instance_id: str, cause: Exception) -> None:
        self.instance_id = instance_id
        self.cause = cause
        super().__init__(f"Push to {instance_id} failed: {cause}")


class TemporalSyncProtocol(ISyncProtocol):
    """
    Protocole de synchronisation temporelle.

    Étapes de synchronize, sous le verrou de la chaîne cible (SYNC_002):
        1. Lecture de la tête de la cible
        2. Hash du payload entrant
        3. Tête non résolue et hash différent: conflit, stratégie appliquée
        4. Push via le retry executor
        5. Ajout du maillon
        6. Statut terminal de l'opération
        7. Compteurs de la cible

    Le conflit et les compteurs ne sont enregistrés qu'après un push
    réussi: un échec de transport laisse la chaîne inchangée.

    Example:
        protocol = TemporalSyncProtocol(transport=client.push)
        src = protocol.register_instance(InstanceType.CORE, "core")
        tgt = protocol.register_instance(InstanceType.PARTNER, "acme")
        op = await protocol.synchronize(src.id, tgt.id, SyncType.CONFIG, {"v": 1})
    """

    DEFAULT_HISTORY_LIMIT: int = 100

    def __init__(
        self,
        transport: Optional[SyncTransport] = None,
        supervisor: Optional[ReconnectionSupervisor] = None,
        retry_executor: Optional[RetryExecutor] = None,
        push_policy: Optional[RetryPolicy] = None,
        resolvers: Optional[ConflictResolverRegistry] = None,
        chain: Optional[TemporalChainStore] = None,
        hasher: Optional[IStateHasher] = None,
        publisher: Optional[IEventPublisher] = None,
        logger: Optional[IStructuredLogger] = None,
        timeout_manager: Optional[TimeoutManager] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        """
        Args:
            transport: Push réel vers la cible (None = aucun transport, push no-op)
            supervisor: Source du signal de santé des endpoints (SYNC_008)
            retry_executor: Exécuteur de retry pour le push
            push_policy: Politique de retry du push
            resolvers: Stratégies par type de conflit (défaut: source_wins)
            chain: Stockage des chaînes d'états
            hasher: Empreinte des payloads (défaut: SHA-256)
            publisher: Bus d'événements (optionnel)
            logger: Logger structuré (défaut: composant "sync")
            timeout_manager: Timeout par tentative de push
            history_limit: Taille par défaut des lectures d'historique
        """
        self._transport = transport
        self._supervisor = supervisor
        self._logger = logger or StructuredLogger("sync_protocol", LogConfig(default_component="sync"))
        self._retry = retry_executor or RetryExecutor(logger=self._logger)
        self._push_policy = push_policy
        self._resolvers = resolvers or ConflictResolverRegistry(SourceWinsResolver())
        self._chain = chain or TemporalChainStore()
        self._hasher = hasher or StateHasher()
        self._publisher = publisher
        self._timeouts = timeout_manager or TimeoutManager()
        self._history_limit = history_limit

        self._instances: Dict[str, SyncInstance] = {}
        self._operations: Dict[str, SyncOperation] = {}
        self._conflicts: Dict[str, SyncConflict] = {}

    @property
    def resolvers(self) -> ConflictResolverRegistry:
        return self._resolvers

    # =========================================================================
    # INSTANCES
    # =========================================================================

    def register_instance(
        self,
        instance_type: InstanceType,
        name: str,
        endpoint_id: Optional[str] = None,
        version: str = "1.0.0",
        metadata: Optional[Dict[str, Any]] = None,
        instance_id: Optional[str] = None,
    ) -> SyncInstance:
        """
        Enregistre une instance distante.

        Args:
            instance_type: Catégorie d'instance
            name: Nom lisible
            endpoint_id: Endpoint supervisé porté par l'instance
            version: Version annoncée par l'instance
            metadata: Métadonnées libres
            instance_id: Identifiant imposé (défaut: UUID)

        Raises:
            DuplicateInstanceError: Si l'identifiant existe déjà
        """
        instance_id = instance_id or str(uuid.uuid4())
        if instance_id in self._instances:
            raise DuplicateInstanceError(instance_id)

        instance = SyncInstance(
            id=instance_id,
            instance_type=InstanceType(instance_type),
            name=name,
            endpoint_id=endpoint_id,
            version=version,
            metadata=dict(metadata or {}),
            created_at=datetime.now(timezone.utc),
        )
        self._instances[instance_id] = instance
        self._logger.info(
            "Instance registered",
            instance_id=instance_id,
            instance_type=instance.instance_type.value,
            endpoint_id=endpoint_id,
        )
        return instance

    def get_instance(self, instance_id: str) -> Optional[SyncInstance]:
        return self._instances.get(instance_id)

    def list_instances(self, instance_type: Optional[InstanceType] = None) -> List[SyncInstance]:
        """Instances, dernière synchronisation en premier (jamais synchronisées à la fin)."""
        instances = [
            i for i in self._instances.values() if instance_type is None or i.instance_type == instance_type
        ]
        synced = sorted(
            (i for i in instances if i.last_sync_at is not None),
            key=lambda i: i.last_sync_at,
            reverse=True,
        )
        return synced + [i for i in instances if i.last_sync_at is None]

    def _require_instance(self, instance_id: str) -> SyncInstance:
        instance = self._instances.get(instance_id)
        if instance is None:
            raise InstanceNotFoundError(instance_id)
        return instance

    def _check_endpoint(self, instance: SyncInstance) -> None:
        """SYNC_008: Refuse une cible dont l'endpoint est connu hors ligne."""
        if self._supervisor is None or instance.endpoint_id is None:
            return
        endpoint = self._supervisor.get_endpoint_status(instance.endpoint_id)
        if endpoint is None or endpoint.status == EndpointStatus.CONNECTED:
            return

        self._logger.warn(
            "Sync refused, endpoint unavailable",
            instance_id=instance.id,
            endpoint_id=instance.endpoint_id,
            endpoint_status=endpoint.status.value,
        )
        raise EndpointUnavailableError(instance.id, instance.endpoint_id, endpoint.status)

    # =========================================================================
    # SYNCHRONISATION
    # =========================================================================

    async def synchronize(
        self,
        source_instance_id: str,
        target_instance_id: str,
        sync_type: Union[SyncType, str],
        payload: Any,
    ) -> SyncOperation:
        """
        Pousse un payload de la source vers la cible.

        Returns:
            Opération terminale: synced, conflict (résolution manuelle
            requise) ou failed (transport en échec, chaîne inchangée)

        Raises:
            InstanceNotFoundError: Si une instance est inconnue
            EndpointUnavailableError: Si l'endpoint de la cible est hors ligne
        """
        self._require_instance(source_instance_id)
        target = self._require_instance(target_instance_id)
        sync_type = SyncType(sync_type)
        self._check_endpoint(target)

        incoming_hash = self._hasher.hash_payload(payload)
        operation = SyncOperation(
            id=str(uuid.uuid4()),
            source_instance_id=source_instance_id,
            target_instance_id=target_instance_id,
            sync_type=sync_type,
            timestamp=datetime.now(timezone.utc),
            payload_hash=incoming_hash,
        )
        self._operations[operation.id] = operation
        log = self._logger.with_context(correlation_id=operation.id)

        # SYNC_002: étapes 1 à 5 atomiques pour la cible
        async with self._chain.lock_for(target_instance_id):
            head = self._chain.get_latest(target_instance_id)

            conflict: Optional[SyncConflict] = None
            resolution: Optional[ConflictResolution] = None
            if head is not None and not head.resolved and head.state_hash != incoming_hash:
                # SYNC_003
                conflict = SyncConflict(
                    id=str(uuid.uuid4()),
                    operation_id=operation.id,
                    instance_id=target_instance_id,
                    conflict_type=ConflictType.VALUE,
                    source_hash=incoming_hash,
                    target_hash=head.state_hash,
                    target_entry_id=head.entry_id,
                    detected_at=datetime.now(timezone.utc),
                    source_payload=payload,
                )
                resolution = self._resolvers.resolve(conflict)
                log.info(
                    "Conflict detected",
                    conflict_id=conflict.id,
                    target_instance_id=target_instance_id,
                    resolution=resolution.value,
                )

            if resolution == ConflictResolution.TARGET_WINS and head is not None:
                entry_hash, resolved = head.state_hash, True
            elif resolution in (None, ConflictResolution.SOURCE_WINS):
                try:
                    await self._push(target, sync_type, payload)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self._finish(operation, SyncStatus.FAILED, error=str(e))
                    log.error(
                        "Sync failed, chain unchanged",
                        target_instance_id=target_instance_id,
                        sync_type=sync_type.value,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    self._publish(
                        EventType.SYNC_FAILED,
                        target_instance_id,
                        {"operation_id": operation.id, "error": str(e)},
                    )
                    return operation
                entry_hash, resolved = incoming_hash, True
            else:
                # manual, ou stratégie sans issue automatique
                entry_hash, resolved = incoming_hash, False

            entry = self._chain.build_entry(
                target_instance_id,
                entry_hash,
                unresolved_conflict_ids=(conflict.id,) if conflict else (),
                resolved=resolved,
                operation_id=operation.id,
            )
            self._chain.append(entry)

            if conflict is not None:
                self._conflicts[conflict.id] = conflict
                operation.conflict_id = conflict.id
                operation.conflict_resolution = resolution
                if resolved and resolution is not None:
                    apply_resolution(conflict, resolution, resolved_by="system")

            now = datetime.now(timezone.utc)
            target.sync_count += 1
            target.last_sync_at = now
            if conflict is not None:
                target.conflict_count += 1

            self._finish(operation, SyncStatus.SYNCED if resolved else SyncStatus.CONFLICT, synced_at=now)

        log.info(
            "Sync completed",
            source_instance_id=source_instance_id,
            target_instance_id=target_instance_id,
            sync_type=sync_type.value,
            status=operation.status.value,
            state_hash=entry_hash,
            sequence=entry.sequence,
        )
        self._notify_outcome(operation, conflict)
        return operation

    async def _push(self, target: SyncInstance, sync_type: SyncType, payload: Any) -> None:
        if self._transport is None:
            self._logger.debug("No transport configured, push skipped", target_instance_id=target.id)
            return
        timeout = self._timeouts.get_timeout(TimeoutType.PUSH, target.endpoint_id)
        await self._retry.execute_with_retry(
            self._transport,
            target,
            sync_type,
            payload,
            policy=self._push_policy,
            timeout=timeout,
        )

    def _finish(
        self,
        operation: SyncOperation,
        status: SyncStatus,
        synced_at: Optional[datetime] = None,
        error: Optional[str] = None,
    ) -> None:
        """SYNC_006: Une opération ne quitte syncing qu'une fois."""
        if operation.status.is_terminal:
            raise OperationAlreadyTerminalError(operation.id, operation.status)
        operation.status = status
        operation.error = error
        if status == SyncStatus.SYNCED:
            operation.synced_at = synced_at

    def _notify_outcome(self, operation: SyncOperation, conflict: Optional[SyncConflict]) -> None:
        if conflict is not None:
            self._publish(
                EventType.CONFLICT_DETECTED,
                conflict.instance_id,
                {"conflict_id": conflict.id, "operation_id": operation.id},
            )
            if conflict.is_resolved:
                self._publish(
                    EventType.CONFLICT_RESOLVED,
                    conflict.instance_id,
                    {"conflict_id": conflict.id, "resolution": conflict.resolution.value},
                )
        self._publish(
            EventType.SYNC_COMPLETED,
            operation.target_instance_id,
            {"operation_id": operation.id, "status": operation.status.value},
        )

    # =========================================================================
    # DIVERGENCE ET RÉSOLUTION
    # =========================================================================

    async def observe_remote_state(self, instance_id: str, payload: Any) -> TemporalStateEntry:
        """
        Enregistre un état écrit hors protocole par le pair lui-même.

        Le maillon ajouté est non résolu: c'est la divergence contre
        laquelle la prochaine synchronisation est comparée.

        Raises:
            InstanceNotFoundError: Si l'instance est inconnue
        """
        self._require_instance(instance_id)
        state_hash = self._hasher.hash_payload(payload)

        async with self._chain.lock_for(instance_id):
            entry = self._chain.build_entry(instance_id, state_hash, resolved=False)
            self._chain.append(entry)

        self._logger.info(
            "Remote state observed",
            instance_id=instance_id,
            state_hash=state_hash,
            sequence=entry.sequence,
        )
        return entry

    async def resolve_conflict(
        self,
        conflict_id: str,
        resolution: Union[ConflictResolution, str],
        resolved_by: str,
    ) -> SyncConflict:
        """
        Résolution manuelle d'un conflit en attente.

        source_wins pousse à nouveau le payload retenu; target_wins
        conserve l'état de la cible. Un maillon résolu est ajouté dans
        les deux cas. L'opération d'origine reste dans son statut
        terminal.

        Raises:
            ConflictNotFoundError: Si le conflit est inconnu
            ConflictAlreadyResolvedError: Si une résolution est déjà fixée
            ValueError: Si la résolution n'est ni source_wins ni target_wins
            SyncTransportError: Si le push échoue (conflit laissé ouvert)
        """
        conflict = self._conflicts.get(conflict_id)
        if conflict is None:
            raise ConflictNotFoundError(conflict_id)

        resolution = ConflictResolution(resolution)
        if resolution not in (ConflictResolution.SOURCE_WINS, ConflictResolution.TARGET_WINS):
            raise ValueError(f"Unsupported manual resolution: {resolution.value}")

        async with self._chain.lock_for(conflict.instance_id):
            # SYNC_004: vérifié sous le verrou, avant tout effet
            if conflict.resolution is not None:
                raise ConflictAlreadyResolvedError(conflict.id, conflict.resolution)

            if resolution == ConflictResolution.SOURCE_WINS:
                target = self._require_instance(conflict.instance_id)
                sync_type = self._operations[conflict.operation_id].sync_type
                try:
                    await self._push(target, sync_type, conflict.source_payload)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self._logger.error(
                        "Conflict resolution push failed",
                        conflict_id=conflict_id,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    raise SyncTransportError(conflict.instance_id, e) from e
                state_hash = conflict.source_hash
            else:
                state_hash = conflict.target_hash

            entry = self._chain.build_entry(
                conflict.instance_id,
                state_hash,
                unresolved_conflict_ids=(conflict.id,),
                resolved=True,
            )
            self._chain.append(entry)
            apply_resolution(conflict, resolution, resolved_by)

        self._logger.info(
            "Conflict resolved",
            conflict_id=conflict_id,
            resolution=resolution.value,
            resolved_by=resolved_by,
            sequence=entry.sequence,
        )
        self._publish(
            EventType.CONFLICT_RESOLVED,
            conflict.instance_id,
            {"conflict_id": conflict.id, "resolution": resolution.value, "resolved_by": resolved_by},
        )
        return conflict

    # =========================================================================
    # REQUÊTES
    # =========================================================================

    def get_operation(self, operation_id: str) -> Optional[SyncOperation]:
        return self._operations.get(operation_id)

    def get_sync_operations(
        self,
        source_instance_id: Optional[str] = None,
        target_instance_id: Optional[str] = None,
        status: Optional[SyncStatus] = None,
    ) -> List[SyncOperation]:
        """Opérations filtrées, plus récente en premier."""
        operations = [
            op
            for op in self._operations.values()
            if (source_instance_id is None or op.source_instance_id == source_instance_id)
            and (target_instance_id is None or op.target_instance_id == target_instance_id)
            and (status is None or op.status == status)
        ]
        # À timestamp égal, la plus récemment créée en premier
        return list(reversed(sorted(operations, key=lambda op: op.timestamp)))

    def get_conflict(self, conflict_id: str) -> Optional[SyncConflict]:
        return self._conflicts.get(conflict_id)

    def get_conflicts(
        self, instance_id: Optional[str] = None, unresolved_only: bool = False
    ) -> List[SyncConflict]:
        return [
            c
            for c in self._conflicts.values()
            if (instance_id is None or c.instance_id == instance_id)
            and (not unresolved_only or not c.is_resolved)
        ]

    def get_latest_state(self, instance_id: str) -> Optional[TemporalStateEntry]:
        return self._chain.get_latest(instance_id)

    def get_history(self, instance_id: str, limit: Optional[int] = None) -> List[TemporalStateEntry]:
        """Historique vérifié (SYNC_007), plus récent en premier."""
        return self._chain.get_history(instance_id, self._history_limit if limit is None else limit)

    def verify_chain(self, instance_id: str) -> bool:
        return self._chain.verify_chain(instance_id)

    def _publish(self, event_type: EventType, subject_id: str, data: Dict[str, Any]) -> None:
        if self._publisher is not None:
            self._publisher.publish(event_type, subject_id, data)
