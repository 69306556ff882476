"""
Tests unitaires Sync - TemporalChainStore

Tests des invariants:
- SYNC_001: Chaîne append-only, previous_state_hash = hash de la tête
- SYNC_007: Adjacence de la chaîne vérifiée à la lecture
"""

import dataclasses
from datetime import timedelta

import pytest

from convergence.sync import ChainIntegrityError, ITemporalChainStore, TemporalChainStore


def _grow(store: TemporalChainStore, instance_id: str, hashes: list) -> list:
    entries = []
    for state_hash in hashes:
        entries.append(store.append(store.build_entry(instance_id, state_hash)))
    return entries


class TestSYNC001AppendOnlyChain:
    """Tests SYNC_001: Chaque maillon pointe sur la tête précédente."""

    def test_SYNC_001_first_entry_has_no_previous(self) -> None:
        store = TemporalChainStore()
        entry = store.append(store.build_entry("tgt", "h0"))

        assert entry.sequence == 0
        assert entry.previous_state_hash is None
        assert store.get_latest("tgt") == entry

    def test_SYNC_001_entries_linked(self) -> None:
        store = TemporalChainStore()
        first, second, third = _grow(store, "tgt", ["h0", "h1", "h2"])

        assert second.previous_state_hash == "h0"
        assert third.previous_state_hash == "h1"
        assert [e.sequence for e in (first, second, third)] == [0, 1, 2]
        assert third.timestamp >= second.timestamp >= first.timestamp

    def test_SYNC_001_stale_entry_rejected(self) -> None:
        """SYNC_001: Un maillon construit sur une ancienne tête est refusé."""
        store = TemporalChainStore()
        _grow(store, "tgt", ["h0"])
        stale = store.build_entry("tgt", "h1")
        store.append(store.build_entry("tgt", "other"))

        with pytest.raises(ChainIntegrityError) as exc_info:
            store.append(stale)
        assert exc_info.value.instance_id == "tgt"

    def test_SYNC_001_first_entry_with_previous_rejected(self) -> None:
        store = TemporalChainStore()
        entry = dataclasses.replace(store.build_entry("tgt", "h0"), previous_state_hash="ghost")

        with pytest.raises(ChainIntegrityError):
            store.append(entry)

    def test_SYNC_001_backwards_timestamp_rejected(self) -> None:
        store = TemporalChainStore()
        (first,) = _grow(store, "tgt", ["h0"])
        entry = store.build_entry("tgt", "h1")
        entry = dataclasses.replace(entry, timestamp=first.timestamp - timedelta(seconds=1))

        with pytest.raises(ChainIntegrityError, match="backwards"):
            store.append(entry)

    def test_SYNC_001_chains_are_independent(self) -> None:
        store = TemporalChainStore()
        _grow(store, "a", ["h0", "h1"])
        (entry,) = _grow(store, "b", ["x0"])

        assert entry.sequence == 0
        assert sorted(store.instance_ids()) == ["a", "b"]
        assert len(store) == 3

    def test_SYNC_001_entry_is_immutable(self) -> None:
        store = TemporalChainStore()
        (entry,) = _grow(store, "tgt", ["h0"])

        with pytest.raises(dataclasses.FrozenInstanceError):
            entry.state_hash = "tampered"  # type: ignore[misc]


class TestSYNC007VerifiedReads:
    """Tests SYNC_007: Lecture vérifiée."""

    def test_SYNC_007_history_newest_first(self) -> None:
        store = TemporalChainStore()
        _grow(store, "tgt", ["h0", "h1", "h2", "h3"])

        history = store.get_history("tgt", limit=2)

        assert [e.state_hash for e in history] == ["h3", "h2"]
        assert [e.state_hash for e in store.get_history("tgt")] == ["h3", "h2", "h1", "h0"]

    def test_SYNC_007_tampered_chain_detected(self) -> None:
        store = TemporalChainStore()
        _grow(store, "tgt", ["h0", "h1", "h2"])
        chain = store._chains["tgt"]
        chain[1] = dataclasses.replace(chain[1], state_hash="tampered")

        with pytest.raises(ChainIntegrityError):
            store.get_history("tgt")
        with pytest.raises(ChainIntegrityError):
            store.verify_chain("tgt")

    def test_SYNC_007_verification_can_be_disabled(self) -> None:
        store = TemporalChainStore(verify_on_read=False)
        _grow(store, "tgt", ["h0", "h1"])
        chain = store._chains["tgt"]
        chain[0] = dataclasses.replace(chain[0], state_hash="tampered")

        assert len(store.get_history("tgt")) == 2

    def test_SYNC_007_empty_and_invalid_limit(self) -> None:
        store = TemporalChainStore()

        assert store.get_history("ghost") == []
        assert store.get_latest("ghost") is None
        assert store.verify_chain("ghost") is True
        with pytest.raises(ValueError):
            store.get_history("ghost", limit=-1)

    def test_SYNC_007_zero_limit(self) -> None:
        store = TemporalChainStore()
        _grow(store, "tgt", ["h0"])
        assert store.get_history("tgt", limit=0) == []

    def test_implements_interface(self) -> None:
        assert isinstance(TemporalChainStore(), ITemporalChainStore)
