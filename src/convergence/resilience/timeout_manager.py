"""
Resilience - Timeout Manager

Gestion centralisée des timeouts par tentative.

Invariant:
    RETRY_006: Timeout par tentative distinct du délai de retry
"""

from typing import Dict, List, Optional

from .interfaces import ITimeoutManager, TimeoutConfig, TimeoutType


class AttemptTimeoutError(TimeoutError):
    """Une tentative a dépassé son timeout - RETRY_006."""

    def __init__(self, timeout: float, operation: str = "") -> None:
        self.timeout = timeout
        self.operation = operation
        label = f" ({operation})" if operation else ""
        super().__init__(f"Attempt timeout after {timeout}s{label}")


class InvalidTimeoutError(ValueError):
    """Configuration timeout invalide."""

    pass


class TimeoutManager(ITimeoutManager):
    """
    Gestion centralisée des timeouts par tentative.

    Chaque appel réseau (probe, health check, push) a sa propre borne,
    éventuellement spécifique à un endpoint.
    """

    MAX_PROBE_TIMEOUT: float = 60.0
    MAX_HEALTH_CHECK_TIMEOUT: float = 30.0
    MAX_PUSH_TIMEOUT: float = 300.0

    def __init__(self, default_config: Optional[TimeoutConfig] = None) -> None:
        """
        Args:
            default_config: Configuration par défaut (optionnel)
        """
        self._default = default_config or TimeoutConfig()
        self._endpoint_configs: Dict[str, TimeoutConfig] = {}

        self._validate_config(self._default)

    def _limits(self) -> Dict[TimeoutType, float]:
        return {
            TimeoutType.PROBE: self.MAX_PROBE_TIMEOUT,
            TimeoutType.HEALTH_CHECK: self.MAX_HEALTH_CHECK_TIMEOUT,
            TimeoutType.PUSH: self.MAX_PUSH_TIMEOUT,
        }

    def _validate_config(self, config: TimeoutConfig) -> None:
        """
        Valide une configuration complète.

        Raises:
            InvalidTimeoutError: Si une valeur est nulle, négative ou hors limite
        """
        values = {
            TimeoutType.PROBE: config.probe_timeout,
            TimeoutType.HEALTH_CHECK: config.health_check_timeout,
            TimeoutType.PUSH: config.push_timeout,
        }
        for timeout_type, value in values.items():
            if value <= 0:
                raise InvalidTimeoutError(f"{timeout_type.value}_timeout must be positive")
            limit = self._limits()[timeout_type]
            if value > limit:
                raise InvalidTimeoutError(
                    f"{timeout_type.value}_timeout ({value}s) exceeds maximum ({limit}s)"
                )

    def get_timeout(self, timeout_type: TimeoutType, endpoint: Optional[str] = None) -> float:
        """
        Retourne timeout configuré (endpoint-specific ou default).

        Args:
            timeout_type: Type d'appel
            endpoint: Endpoint pour config spécifique (optionnel)

        Returns:
            Valeur du timeout en secondes
        """
        config = self._default
        if endpoint and endpoint in self._endpoint_configs:
            config = self._endpoint_configs[endpoint]

        if timeout_type == TimeoutType.PROBE:
            return config.probe_timeout
        elif timeout_type == TimeoutType.HEALTH_CHECK:
            return config.health_check_timeout
        elif timeout_type == TimeoutType.PUSH:
            return config.push_timeout
        else:
            raise ValueError(f"Unknown timeout type: {timeout_type}")

    def set_endpoint_timeout(self, endpoint: str, config: TimeoutConfig) -> None:
        """
        Configure timeout spécifique par endpoint.

        Raises:
            InvalidTimeoutError: Si configuration invalide
            ValueError: Si endpoint vide
        """
        if not endpoint or not endpoint.strip():
            raise ValueError("endpoint cannot be empty")

        self._validate_config(config)
        self._endpoint_configs[endpoint] = config

    def validate_timeout(self, timeout_type: TimeoutType, value: float) -> bool:
        """Vérifie qu'une valeur respecte les limites du type."""
        if value <= 0:
            return False
        return value <= self._limits().get(timeout_type, 0)

    def remove_endpoint_config(self, endpoint: str) -> bool:
        """
        Supprime la configuration d'un endpoint.

        Returns:
            True si supprimé, False si non trouvé
        """
        if endpoint in self._endpoint_configs:
            del self._endpoint_configs[endpoint]
            return True
        return False

    def get_all_endpoints(self) -> List[str]:
        """Liste les endpoints avec configuration spécifique."""
        return list(self._endpoint_configs.keys())

    def get_default_config(self) -> TimeoutConfig:
        """Retourne la configuration par défaut."""
        return self._default
