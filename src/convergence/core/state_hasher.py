"""
CONVERGENCE Core - State Hasher
Empreinte SHA-256 des payloads synchronisés.
"""

import hashlib
import json
from typing import Any

from .interfaces import IStateHasher


class StateHasher(IStateHasher):
    """
    Hash de contenu des payloads.

    La forme canonique trie les clés et supprime les espaces: deux
    payloads égaux en valeur ont la même empreinte quel que soit
    l'ordre d'insertion. Pas de signature ni de clé: l'empreinte
    détecte la divergence, pas la falsification.
    """

    def canonicalize(self, payload: Any) -> bytes:
        return json.dumps(
            self._normalize_keys(payload),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            default=str,
        ).encode("utf-8")

    def hash_payload(self, payload: Any) -> str:
        """
        Calcule l'empreinte SHA-256 du payload canonique.

        Returns:
            Hash hex string (64 caractères)
        """
        return hashlib.sha256(self.canonicalize(payload)).hexdigest()

    def _normalize_keys(self, value: Any) -> Any:
        """Clés de dict en str, récursivement: tri possible sur clés mixtes."""
        if isinstance(value, dict):
            return {str(k): self._normalize_keys(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._normalize_keys(v) for v in value]
        return value
