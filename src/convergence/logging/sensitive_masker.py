"""
Logging - Sensitive Masker

Masquage automatique des données sensibles et des payloads synchronisés.

Invariant:
    LOG_005: Données sensibles et payloads JAMAIS en clair
"""

from typing import Any, Dict, List, Optional

from .interfaces import ISensitiveMasker


class SensitiveMasker(ISensitiveMasker):
    """
    Masquage récursif des clés sensibles.

    Example:
        masker = SensitiveMasker()
        masker.mask({"api_token": "abc", "endpoint_id": "crm"})
        # {"api_token": "***MASKED***", "endpoint_id": "crm"}
    """

    def __init__(self, additional_patterns: Optional[List[str]] = None) -> None:
        """
        Args:
            additional_patterns: Patterns supplémentaires à masquer
        """
        self._patterns: List[str] = [p.lower() for p in self.SENSITIVE_PATTERNS]
        for pattern in additional_patterns or []:
            if pattern and pattern.lower() not in self._patterns:
                self._patterns.append(pattern.lower())

    @property
    def patterns(self) -> List[str]:
        """Retourne les patterns sensibles configurés."""
        return list(self._patterns)

    def mask(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        LOG_005: Masque récursivement toutes les données sensibles.

        Comportement:
            - Clés contenant patterns sensibles → valeur masquée
            - Valeurs dict → récursion
            - Valeurs list → masque chaque élément
        """
        if not isinstance(data, dict):
            return data

        result: Dict[str, Any] = {}

        for key, value in data.items():
            if self.is_sensitive_key(str(key)):
                result[key] = self.MASK_VALUE
            elif isinstance(value, dict):
                result[key] = self.mask(value)
            elif isinstance(value, list):
                result[key] = self._mask_list(value)
            else:
                result[key] = value

        return result

    def _mask_list(self, items: List[Any]) -> List[Any]:
        result = []
        for item in items:
            if isinstance(item, dict):
                result.append(self.mask(item))
            elif isinstance(item, list):
                result.append(self._mask_list(item))
            else:
                result.append(item)
        return result

    def is_sensitive_key(self, key: str) -> bool:
        """
        Vérifie si clé contient un pattern sensible (case-insensitive).
        """
        if not key:
            return False

        key_lower = key.lower()
        return any(pattern in key_lower for pattern in self._patterns)

    def add_pattern(self, pattern: str) -> None:
        """
        Ajoute pattern sensible personnalisé.

        Raises:
            ValueError: Si pattern vide
        """
        if not pattern or not pattern.strip():
            raise ValueError("Pattern cannot be empty")

        pattern_lower = pattern.lower().strip()
        if pattern_lower not in self._patterns:
            self._patterns.append(pattern_lower)

    def remove_pattern(self, pattern: str) -> bool:
        """
        Retire un pattern de la liste.

        Returns:
            True si pattern retiré, False si non trouvé
        """
        pattern_lower = pattern.lower().strip()
        if pattern_lower in self._patterns:
            self._patterns.remove(pattern_lower)
            return True
        return False
