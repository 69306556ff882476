"""
Resilience

Exécution résiliente des appels réseau avec:
- Retry classifié et backoff exponentiel saturé (RETRY_001-005)
- Timeouts par tentative (RETRY_006)

Invariants couverts:
- RETRY_001: Délai = min(max_delay, initial * multiplier^tentative), saturé
- RETRY_002: Erreur non retryable propagée immédiatement
- RETRY_003: Classification par sous-chaîne insensible à la casse
- RETRY_004: Échec terminal annoté avec le nombre de tentatives
- RETRY_005: Politique validée: max_attempts >= 1, multiplier > 1
- RETRY_006: Timeout par tentative distinct du délai de retry
"""

from .interfaces import (
    # Constantes
    DEFAULT_RETRYABLE_PATTERNS,
    # Enums
    ErrorKind,
    TimeoutType,
    # Data classes
    RetryPolicy,
    RetryResult,
    TimeoutConfig,
    # Interfaces
    IErrorClassifier,
    IRetryExecutor,
    ITimeoutManager,
    # Exceptions
    InvalidRetryPolicyError,
)
from .error_classifier import ErrorClassifier
from .timeout_manager import (
    TimeoutManager,
    AttemptTimeoutError,
    InvalidTimeoutError,
)
from .retry_executor import (
    RetryExecutor,
    RetryExhaustedError,
    with_retry,
)

__all__ = [
    "DEFAULT_RETRYABLE_PATTERNS",
    # Enums
    "ErrorKind",
    "TimeoutType",
    # Data classes
    "RetryPolicy",
    "RetryResult",
    "TimeoutConfig",
    # Interfaces
    "IErrorClassifier",
    "IRetryExecutor",
    "ITimeoutManager",
    # Implementations
    "ErrorClassifier",
    "TimeoutManager",
    "RetryExecutor",
    # Decorators
    "with_retry",
    # Exceptions
    "InvalidRetryPolicyError",
    "AttemptTimeoutError",
    "InvalidTimeoutError",
    "RetryExhaustedError",
]
