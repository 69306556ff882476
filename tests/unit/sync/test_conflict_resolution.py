"""
Tests unitaires Sync - Conflict Resolution

Tests des invariants:
- SYNC_004: Résolution d'un conflit fixée une seule fois
- SYNC_005: Stratégie par type de conflit, source_wins par défaut
"""

from datetime import datetime, timezone

import pytest

from convergence.sync import (
    ConflictAlreadyResolvedError,
    ConflictResolution,
    ConflictResolverRegistry,
    ConflictType,
    ManualResolver,
    NoResolverError,
    SourceWinsResolver,
    SyncConflict,
    TargetWinsResolver,
    apply_resolution,
    build_resolver,
)


def make_conflict(conflict_type: ConflictType = ConflictType.VALUE) -> SyncConflict:
    return SyncConflict(
        id="c-1",
        operation_id="op-1",
        instance_id="tgt",
        conflict_type=conflict_type,
        source_hash="aaa",
        target_hash="bbb",
        target_entry_id="e-1",
        detected_at=datetime.now(timezone.utc),
    )


class TestSYNC005ResolverRegistry:
    """Tests SYNC_005: Stratégie par type de conflit."""

    def test_SYNC_005_default_strategy(self) -> None:
        registry = ConflictResolverRegistry(SourceWinsResolver())
        assert registry.resolve(make_conflict()) == ConflictResolution.SOURCE_WINS

    def test_SYNC_005_per_type_override(self) -> None:
        registry = ConflictResolverRegistry(SourceWinsResolver())
        registry.register(ConflictType.VERSION, ManualResolver())

        assert registry.resolve(make_conflict(ConflictType.VERSION)) == ConflictResolution.MANUAL
        assert registry.resolve(make_conflict(ConflictType.VALUE)) == ConflictResolution.SOURCE_WINS

        assert registry.unregister(ConflictType.VERSION) is True
        assert registry.unregister(ConflictType.VERSION) is False
        assert registry.resolve(make_conflict(ConflictType.VERSION)) == ConflictResolution.SOURCE_WINS

    def test_SYNC_005_no_default_raises(self) -> None:
        registry = ConflictResolverRegistry()
        registry.register(ConflictType.VALUE, TargetWinsResolver())

        assert registry.resolve(make_conflict()) == ConflictResolution.TARGET_WINS
        with pytest.raises(NoResolverError) as exc_info:
            registry.get(ConflictType.STRUCTURE)
        assert exc_info.value.conflict_type == ConflictType.STRUCTURE

    def test_SYNC_005_from_name(self) -> None:
        registry = ConflictResolverRegistry.from_name("target_wins")
        assert registry.resolve(make_conflict()) == ConflictResolution.TARGET_WINS

    def test_SYNC_005_build_resolver(self) -> None:
        assert isinstance(build_resolver(ConflictResolution.MANUAL), ManualResolver)
        with pytest.raises(ValueError):
            build_resolver(ConflictResolution.MERGE)
        with pytest.raises(ValueError):
            ConflictResolverRegistry.from_name("last_write_wins")

    def test_SYNC_005_resolver_does_not_mutate(self) -> None:
        conflict = make_conflict()
        ConflictResolverRegistry(TargetWinsResolver()).resolve(conflict)
        assert conflict.resolution is None


class TestSYNC004SetOnce:
    """Tests SYNC_004: Résolution fixée une seule fois."""

    def test_SYNC_004_apply_once(self) -> None:
        conflict = apply_resolution(make_conflict(), ConflictResolution.SOURCE_WINS, "alice")

        assert conflict.is_resolved
        assert conflict.resolved_by == "alice"
        assert conflict.resolved_at is not None

    def test_SYNC_004_second_resolution_rejected(self) -> None:
        conflict = apply_resolution(make_conflict(), ConflictResolution.TARGET_WINS, "system")

        with pytest.raises(ConflictAlreadyResolvedError) as exc_info:
            apply_resolution(conflict, ConflictResolution.SOURCE_WINS, "bob")

        assert exc_info.value.resolution == ConflictResolution.TARGET_WINS
        assert conflict.resolution == ConflictResolution.TARGET_WINS
        assert conflict.resolved_by == "system"

    def test_SYNC_004_manual_is_not_an_outcome(self) -> None:
        conflict = make_conflict()
        with pytest.raises(ValueError):
            apply_resolution(conflict, ConflictResolution.MANUAL, "alice")
        assert conflict.resolution is None

    def test_conflict_to_dict_hides_payload(self) -> None:
        conflict = make_conflict()
        conflict.source_payload = {"secret": "x"}

        assert "source_payload" not in conflict.to_dict()
        assert "secret" not in repr(conflict)
