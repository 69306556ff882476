"""
Sync - Temporal Chain

Chaîne d'états append-only par instance, liée par previous_state_hash.

Invariants:
    SYNC_001: Chaîne append-only, previous_state_hash = hash de la tête
    SYNC_002: Lecture tête et ajout atomiques par instance cible
    SYNC_007: Adjacence de la chaîne vérifiée à la lecture
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from .interfaces import ITemporalChainStore, TemporalStateEntry


class ChainIntegrityError(Exception):
    """Chaîne rompue - SYNC_001 / SYNC_007."""

    def __init__(self, instance_id: str, sequence: int, reason: str) -> None:
        self.instance_id = instance_id
        self.sequence = sequence
        self.reason = reason
        super().__init__(f"Chain integrity violation for {instance_id} at #{sequence}: {reason}")


class TemporalChainStore(ITemporalChainStore):
    """
    Chaînes d'états en mémoire, une liste par instance.

    Chaque instance a son propre asyncio.Lock: l'appelant le tient de la
    lecture de la tête jusqu'à l'ajout (SYNC_002). L'ajout vérifie en
    plus que le maillon suit exactement la tête courante.

    Example:
        store = TemporalChainStore()
        async with store.lock_for("tgt"):
            entry = store.build_entry("tgt", state_hash)
            store.append(entry)
    """

    def __init__(self, verify_on_read: bool = True) -> None:
        """
        Args:
            verify_on_read: Vérifier l'adjacence à chaque lecture d'historique
        """
        self._chains: Dict[str, List[TemporalStateEntry]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._verify_on_read = verify_on_read

    def lock_for(self, instance_id: str) -> asyncio.Lock:
        """Verrou de la chaîne d'une instance."""
        lock = self._locks.get(instance_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[instance_id] = lock
        return lock

    def get_latest(self, instance_id: str) -> Optional[TemporalStateEntry]:
        chain = self._chains.get(instance_id)
        return chain[-1] if chain else None

    def build_entry(
        self,
        instance_id: str,
        state_hash: str,
        unresolved_conflict_ids: Sequence[str] = (),
        resolved: bool = True,
        operation_id: Optional[str] = None,
    ) -> TemporalStateEntry:
        """
        Construit le maillon suivant la tête courante.

        Le timestamp n'est jamais antérieur à celui de la tête.
        """
        head = self.get_latest(instance_id)
        now = datetime.now(timezone.utc)
        if head is not None and now < head.timestamp:
            now = head.timestamp

        return TemporalStateEntry(
            entry_id=str(uuid.uuid4()),
            instance_id=instance_id,
            sequence=head.sequence + 1 if head else 0,
            timestamp=now,
            state_hash=state_hash,
            previous_state_hash=head.state_hash if head else None,
            unresolved_conflict_ids=tuple(unresolved_conflict_ids),
            resolved=resolved,
            operation_id=operation_id,
        )

    def append(self, entry: TemporalStateEntry) -> TemporalStateEntry:
        """
        SYNC_001: Ajoute un maillon qui suit exactement la tête.

        Raises:
            ChainIntegrityError: Si previous_state_hash ou sequence ne
                correspondent pas à la tête courante
        """
        chain = self._chains.setdefault(entry.instance_id, [])
        head = chain[-1] if chain else None
        self._check_link(entry.instance_id, head, entry)
        chain.append(entry)
        return entry

    def get_history(self, instance_id: str, limit: Optional[int] = None) -> List[TemporalStateEntry]:
        """
        Historique d'une instance, plus récent en premier.

        SYNC_007: chaque maillon retourné est vérifié contre son
        prédécesseur.

        Raises:
            ChainIntegrityError: Si un lien est rompu
        """
        if limit is not None and limit < 0:
            raise ValueError("limit must be >= 0")

        chain = self._chains.get(instance_id, [])
        start = 0 if limit is None else max(0, len(chain) - limit)

        if self._verify_on_read:
            for index in range(start, len(chain)):
                previous = chain[index - 1] if index > 0 else None
                self._check_link(instance_id, previous, chain[index])

        return list(reversed(chain[start:]))

    def verify_chain(self, instance_id: str) -> bool:
        """
        Vérifie la chaîne complète d'une instance.

        Returns:
            True si la chaîne est intègre (ou vide)

        Raises:
            ChainIntegrityError: Au premier lien rompu
        """
        previous: Optional[TemporalStateEntry] = None
        for entry in self._chains.get(instance_id, []):
            self._check_link(instance_id, previous, entry)
            previous = entry
        return True

    def instance_ids(self) -> List[str]:
        return list(self._chains.keys())

    def __len__(self) -> int:
        return sum(len(chain) for chain in self._chains.values())

    @staticmethod
    def _check_link(
        instance_id: str,
        previous: Optional[TemporalStateEntry],
        entry: TemporalStateEntry,
    ) -> None:
        if entry.instance_id != instance_id:
            raise ChainIntegrityError(
                instance_id, entry.sequence, f"entry belongs to {entry.instance_id}"
            )

        if previous is None:
            if entry.previous_state_hash is not None:
                raise ChainIntegrityError(
                    instance_id, entry.sequence, "first entry must have no previous hash"
                )
            if entry.sequence != 0:
                raise ChainIntegrityError(instance_id, entry.sequence, "first entry must be #0")
            return

        if entry.previous_state_hash != previous.state_hash:
            raise ChainIntegrityError(
                instance_id,
                entry.sequence,
                f"previous hash {entry.previous_state_hash} != head hash {previous.state_hash}",
            )
        if entry.sequence != previous.sequence + 1:
            raise ChainIntegrityError(
                instance_id,
                entry.sequence,
                f"sequence does not follow #{previous.sequence}",
            )
        if entry.timestamp < previous.timestamp:
            raise ChainIntegrityError(instance_id, entry.sequence, "timestamp goes backwards")
