"""
Sync - Conflict Resolution

Stratégies de résolution sélectionnées par type de conflit.

Invariants:
    SYNC_004: Résolution d'un conflit fixée une seule fois
    SYNC_005: Stratégie de résolution par type de conflit, source_wins par défaut
"""

from datetime import datetime, timezone
from typing import Dict, Optional

from .interfaces import ConflictResolution, ConflictType, IConflictResolver, SyncConflict


class ConflictAlreadyResolvedError(Exception):
    """Résolution déjà fixée - SYNC_004."""

    def __init__(self, conflict_id: str, resolution: ConflictResolution) -> None:
        self.conflict_id = conflict_id
        self.resolution = resolution
        super().__init__(f"Conflict {conflict_id} already resolved ({resolution.value})")


class NoResolverError(LookupError):
    """Aucune stratégie pour ce type de conflit."""

    def __init__(self, conflict_type: ConflictType) -> None:
        self.conflict_type = conflict_type
        super().__init__(f"No resolver registered for conflict type: {conflict_type.value}")


class SourceWinsResolver(IConflictResolver):
    """L'écriture entrante remplace la tête non résolue."""

    def resolve(self, conflict: SyncConflict) -> ConflictResolution:
        return ConflictResolution.SOURCE_WINS


class TargetWinsResolver(IConflictResolver):
    """L'état de la cible est conservé; le push est abandonné."""

    def resolve(self, conflict: SyncConflict) -> ConflictResolution:
        return ConflictResolution.TARGET_WINS


class ManualResolver(IConflictResolver):
    """Le conflit reste ouvert jusqu'à une résolution explicite."""

    def resolve(self, conflict: SyncConflict) -> ConflictResolution:
        return ConflictResolution.MANUAL


_RESOLVERS_BY_NAME = {
    ConflictResolution.SOURCE_WINS: SourceWinsResolver,
    ConflictResolution.TARGET_WINS: TargetWinsResolver,
    ConflictResolution.MANUAL: ManualResolver,
}


def build_resolver(resolution: ConflictResolution) -> IConflictResolver:
    """
    Construit la stratégie intégrée correspondant à une résolution.

    Raises:
        ValueError: Si aucune stratégie intégrée n'existe (ex: merge)
    """
    resolver_cls = _RESOLVERS_BY_NAME.get(resolution)
    if resolver_cls is None:
        raise ValueError(f"No built-in resolver for: {resolution.value}")
    return resolver_cls()


class ConflictResolverRegistry:
    """
    Registre des stratégies, indexé par ConflictType.

    Un type sans stratégie dédiée utilise la stratégie par défaut; sans
    défaut, il lève NoResolverError.

    Example:
        registry = ConflictResolverRegistry(SourceWinsResolver())
        registry.register(ConflictType.VERSION, ManualResolver())
    """

    def __init__(self, default: Optional[IConflictResolver] = None) -> None:
        self._default = default
        self._resolvers: Dict[ConflictType, IConflictResolver] = {}

    @classmethod
    def from_name(cls, name: str) -> "ConflictResolverRegistry":
        """Registre dont la stratégie par défaut est désignée par son nom."""
        return cls(default=build_resolver(ConflictResolution(name)))

    def register(self, conflict_type: ConflictType, resolver: IConflictResolver) -> None:
        self._resolvers[conflict_type] = resolver

    def unregister(self, conflict_type: ConflictType) -> bool:
        return self._resolvers.pop(conflict_type, None) is not None

    def get(self, conflict_type: ConflictType) -> IConflictResolver:
        """
        Raises:
            NoResolverError: Si aucune stratégie n'est disponible
        """
        resolver = self._resolvers.get(conflict_type, self._default)
        if resolver is None:
            raise NoResolverError(conflict_type)
        return resolver

    def resolve(self, conflict: SyncConflict) -> ConflictResolution:
        """Applique la stratégie du type de conflit, sans muter le conflit."""
        return self.get(conflict.conflict_type).resolve(conflict)


def apply_resolution(
    conflict: SyncConflict,
    resolution: ConflictResolution,
    resolved_by: str,
) -> SyncConflict:
    """
    SYNC_004: Fixe la résolution d'un conflit, une seule fois.

    Raises:
        ConflictAlreadyResolvedError: Si une résolution est déjà fixée
        ValueError: Si resolution vaut manual (ce n'est pas une issue)
    """
    if conflict.resolution is not None:
        raise ConflictAlreadyResolvedError(conflict.id, conflict.resolution)
    if resolution == ConflictResolution.MANUAL:
        raise ValueError("manual is not a final resolution")

    conflict.resolution = resolution
    conflict.resolved_at = datetime.now(timezone.utc)
    conflict.resolved_by = resolved_by
    return conflict
