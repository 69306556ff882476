"""
Resilience - Interfaces

Contrats pour l'exécution résiliente des appels réseau:
- Politique de retry avec backoff exponentiel (RETRY_001-005)
- Timeouts par tentative (RETRY_006)

Invariants:
    RETRY_001: Délai = min(max_delay, initial * multiplier^tentative), saturé
    RETRY_002: Erreur non retryable propagée immédiatement
    RETRY_003: Classification par sous-chaîne insensible à la casse
    RETRY_004: Échec terminal annoté avec le nombre de tentatives
    RETRY_005: Politique validée: max_attempts >= 1, multiplier > 1
    RETRY_006: Timeout par tentative distinct du délai de retry
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, FrozenSet, Optional, TypeVar

T = TypeVar("T")


DEFAULT_RETRYABLE_PATTERNS: FrozenSet[str] = frozenset(
    {
        "timeout",
        "network",
        "connection",
        "ECONNRESET",
        "ETIMEDOUT",
        "ENOTFOUND",
        "rate limit",
        "429",
        "503",
        "502",
        "500",
    }
)


class InvalidRetryPolicyError(ValueError):
    """Politique de retry invalide - RETRY_005."""

    pass


class ErrorKind(Enum):
    """Classification d'une erreur."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"


class TimeoutType(Enum):
    """Types d'appels réseau bornés par un timeout."""

    PROBE = "probe"
    HEALTH_CHECK = "health_check"
    PUSH = "push"


@dataclass(frozen=True)
class RetryPolicy:
    """
    Politique de retry immuable.

    Invariant:
        RETRY_005: max_attempts >= 1, backoff_multiplier > 1
    """

    max_attempts: int = 4
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    retryable_patterns: FrozenSet[str] = DEFAULT_RETRYABLE_PATTERNS

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise InvalidRetryPolicyError(
                f"max_attempts must be >= 1, got {self.max_attempts} - RETRY_005"
            )
        if self.backoff_multiplier <= 1:
            raise InvalidRetryPolicyError(
                f"backoff_multiplier must be > 1, got {self.backoff_multiplier} - RETRY_005"
            )
        if self.initial_delay < 0 or self.max_delay < 0:
            raise InvalidRetryPolicyError("delays must be non-negative")
        if self.initial_delay > self.max_delay:
            raise InvalidRetryPolicyError(
                f"initial_delay ({self.initial_delay}s) exceeds max_delay ({self.max_delay}s)"
            )
        # Accepte list/set en entrée, stocke toujours un frozenset
        if not isinstance(self.retryable_patterns, frozenset):
            object.__setattr__(self, "retryable_patterns", frozenset(self.retryable_patterns))


@dataclass
class TimeoutConfig:
    """
    Timeouts par tentative.

    Invariant:
        RETRY_006: Borne la durée d'UNE tentative, indépendamment du backoff
    """

    probe_timeout: float = 10.0
    health_check_timeout: float = 5.0
    push_timeout: float = 30.0


@dataclass
class RetryResult:
    """Résultat d'une opération avec retry."""

    success: bool
    result: Optional[Any]
    attempts: int
    total_delay: float
    last_error: Optional[Exception]
    permanent: bool = False
    delays: list = field(default_factory=list)


class IErrorClassifier(ABC):
    """Interface classification des erreurs."""

    @abstractmethod
    def classify(self, error: BaseException, policy: RetryPolicy) -> ErrorKind:
        """
        RETRY_003: Classe une erreur transitoire ou permanente.

        Args:
            error: Exception levée par l'opération
            policy: Politique portant les patterns retryables

        Returns:
            ErrorKind.TRANSIENT si un pattern correspond
        """
        pass


class ITimeoutManager(ABC):
    """Interface gestion timeouts par tentative."""

    @abstractmethod
    def get_timeout(self, timeout_type: TimeoutType, endpoint: Optional[str] = None) -> float:
        """
        Retourne timeout configuré.

        Args:
            timeout_type: Type d'appel
            endpoint: Endpoint optionnel pour config spécifique

        Returns:
            Valeur du timeout en secondes
        """
        pass

    @abstractmethod
    def set_endpoint_timeout(self, endpoint: str, config: TimeoutConfig) -> None:
        """Configure un timeout spécifique pour un endpoint."""
        pass


class IRetryExecutor(ABC):
    """Interface exécuteur avec retry."""

    @abstractmethod
    async def execute_with_retry(
        self,
        func: Callable[..., T],
        *args: Any,
        policy: Optional[RetryPolicy] = None,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> Any:
        """
        Exécute func avec retry; retourne le résultat ou lève l'erreur.

        Raises:
            Exception: L'erreur originale si non retryable (RETRY_002)
            RetryExhaustedError: Si tentatives épuisées (RETRY_004)
        """
        pass

    @abstractmethod
    async def attempt_with_retry(
        self,
        func: Callable[..., T],
        *args: Any,
        policy: Optional[RetryPolicy] = None,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> RetryResult:
        """
        Variante sans exception: retourne toujours un RetryResult.
        """
        pass

    @abstractmethod
    def calculate_delay(self, attempt: int, policy: RetryPolicy) -> float:
        """
        RETRY_001: Calcule délai backoff exponentiel.

        Args:
            attempt: Numéro de tentative (0-indexed)
            policy: Politique de retry

        Returns:
            Délai en secondes
        """
        pass
