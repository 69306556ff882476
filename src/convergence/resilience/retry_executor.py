"""
Resilience - Retry Executor

Exécution des appels réseau avec retry classifié et backoff exponentiel.

Invariants:
    RETRY_001: Délai = min(max_delay, initial * multiplier^tentative), saturé
    RETRY_002: Erreur non retryable propagée immédiatement
    RETRY_004: Échec terminal annoté avec le nombre de tentatives
    RETRY_006: Timeout par tentative distinct du délai de retry
"""

import asyncio
import functools
import inspect
import math
from typing import Any, Callable, Dict, Optional, TypeVar

from ..logging import IStructuredLogger, LogConfig, StructuredLogger
from .error_classifier import ErrorClassifier
from .interfaces import ErrorKind, IErrorClassifier, IRetryExecutor, RetryPolicy, RetryResult
from .timeout_manager import AttemptTimeoutError

T = TypeVar("T")


class RetryExhaustedError(Exception):
    """Tentatives épuisées - RETRY_004."""

    def __init__(self, attempts: int, last_error: Exception) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Retries exhausted after {attempts} attempts: {last_error}")


class RetryExecutor(IRetryExecutor):
    """
    Exécuteur avec retry classifié et backoff exponentiel.

    Une erreur est retentée uniquement si elle correspond à un pattern de
    la politique (RETRY_003). Une erreur permanente sort immédiatement,
    sans délai ni nouvelle tentative.

    Example:
        executor = RetryExecutor()
        data = await executor.execute_with_retry(client.fetch, "crm", timeout=10.0)
    """

    def __init__(
        self,
        default_policy: Optional[RetryPolicy] = None,
        classifier: Optional[IErrorClassifier] = None,
        logger: Optional[IStructuredLogger] = None,
    ) -> None:
        """
        Args:
            default_policy: Politique par défaut du processus
            classifier: Classificateur d'erreurs (défaut: patterns de la politique)
            logger: Logger structuré (défaut: composant "resilience")
        """
        self._default_policy = default_policy or RetryPolicy()
        self._classifier = classifier or ErrorClassifier()
        self._logger = logger or StructuredLogger(
            "retry_executor", LogConfig(default_component="resilience")
        )
        self._retry_stats: Dict[str, int] = self._empty_stats()

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {
            "total_retries": 0,
            "successful_retries": 0,
            "failed_retries": 0,
            "permanent_failures": 0,
        }

    @property
    def default_policy(self) -> RetryPolicy:
        return self._default_policy

    async def execute_with_retry(
        self,
        func: Callable[..., T],
        *args: Any,
        policy: Optional[RetryPolicy] = None,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> Any:
        """
        Exécute func et retourne son résultat.

        Args:
            func: Fonction à exécuter (sync ou async), appelée avec *args/**kwargs
            policy: Politique de retry (défaut: politique du processus)
            timeout: Timeout d'UNE tentative en secondes (RETRY_006)

        Returns:
            Résultat de func

        Raises:
            Exception: L'erreur originale si permanente (RETRY_002)
            RetryExhaustedError: Si tentatives épuisées, chaînée à la dernière erreur
        """
        result = await self.attempt_with_retry(func, *args, policy=policy, timeout=timeout, **kwargs)

        if result.success:
            return result.result

        error = result.last_error
        if error is None:
            raise RuntimeError("Retry failed without a recorded error")
        if result.permanent:
            raise error

        raise RetryExhaustedError(result.attempts, error) from error

    async def attempt_with_retry(
        self,
        func: Callable[..., T],
        *args: Any,
        policy: Optional[RetryPolicy] = None,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> RetryResult:
        """
        Exécute func avec backoff; ne lève jamais pour un échec de func.

        Backoff: delay = min(initial * (multiplier ^ attempt), max_delay)
        - Attempt 0: 1s
        - Attempt 1: 2s
        - Attempt 2: 4s

        Returns:
            RetryResult avec succès/échec, tentatives et délais appliqués
        """
        retry_policy = policy or self._default_policy
        last_error: Optional[Exception] = None
        total_delay: float = 0.0
        delays = []

        for attempt in range(retry_policy.max_attempts):
            try:
                result = await self._run_attempt(func, args, kwargs, timeout)

                if attempt > 0:
                    self._retry_stats["successful_retries"] += 1

                return RetryResult(
                    success=True,
                    result=result,
                    attempts=attempt + 1,
                    total_delay=total_delay,
                    last_error=None,
                    delays=delays,
                )

            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e

                # RETRY_002: permanent = sortie immédiate
                if self._classifier.classify(e, retry_policy) == ErrorKind.PERMANENT:
                    self._retry_stats["permanent_failures"] += 1
                    self._logger.error(
                        "Permanent failure, not retried",
                        operation=self._name_of(func),
                        attempt=attempt + 1,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    return RetryResult(
                        success=False,
                        result=None,
                        attempts=attempt + 1,
                        total_delay=total_delay,
                        last_error=e,
                        permanent=True,
                        delays=delays,
                    )

                if attempt < retry_policy.max_attempts - 1:
                    delay = self.calculate_delay(attempt, retry_policy)
                    self._retry_stats["total_retries"] += 1
                    self._logger.warn(
                        f"Retry attempt {attempt + 1}/{retry_policy.max_attempts - 1} after {delay}s",
                        operation=self._name_of(func),
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    total_delay += delay
                    delays.append(delay)
                    await asyncio.sleep(delay)

        self._retry_stats["failed_retries"] += 1
        self._logger.error(
            f"Max attempts ({retry_policy.max_attempts}) exceeded",
            operation=self._name_of(func),
            attempts=retry_policy.max_attempts,
            error=str(last_error),
        )

        return RetryResult(
            success=False,
            result=None,
            attempts=retry_policy.max_attempts,
            total_delay=total_delay,
            last_error=last_error,
            delays=delays,
        )

    async def _run_attempt(
        self,
        func: Callable[..., Any],
        args: tuple,
        kwargs: Dict[str, Any],
        timeout: Optional[float],
    ) -> Any:
        """Exécute UNE tentative, bornée par timeout si fourni (RETRY_006)."""
        if inspect.iscoroutinefunction(func):
            coro = func(*args, **kwargs)
        else:
            value = func(*args, **kwargs)
            # Callable sync retournant un awaitable (lambda, partial...)
            if not inspect.isawaitable(value):
                return value
            coro = value

        if timeout is None:
            return await coro

        try:
            return await asyncio.wait_for(coro, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise AttemptTimeoutError(timeout, self._name_of(func)) from e

    def calculate_delay(self, attempt: int, policy: RetryPolicy) -> float:
        """
        RETRY_001: Calcule délai backoff exponentiel, saturé à max_delay.

        Le calcul passe par le logarithme pour ne jamais évaluer une
        puissance qui déborderait: dès que l'exposant dépasse le point
        de saturation, max_delay est retourné.

        Args:
            attempt: Numéro de tentative (0-indexed)
            policy: Politique de retry

        Returns:
            Délai en secondes
        """
        if attempt < 0:
            raise ValueError("attempt must be >= 0")
        if policy.initial_delay <= 0:
            return 0.0
        if policy.initial_delay >= policy.max_delay:
            return policy.max_delay

        saturation = math.log(policy.max_delay / policy.initial_delay, policy.backoff_multiplier)
        if attempt >= saturation:
            return policy.max_delay

        delay = policy.initial_delay * (policy.backoff_multiplier**attempt)
        return min(delay, policy.max_delay)

    def is_retryable(self, error: Exception, policy: Optional[RetryPolicy] = None) -> bool:
        """Vérifie si une erreur serait retentée sous la politique."""
        return self._classifier.classify(error, policy or self._default_policy) == ErrorKind.TRANSIENT

    def get_retry_stats(self) -> Dict[str, int]:
        """
        Retourne les statistiques de retry.

        Returns:
            Dict avec total_retries, successful_retries, failed_retries, permanent_failures
        """
        return dict(self._retry_stats)

    def reset_stats(self) -> None:
        """Remet les statistiques à zéro."""
        self._retry_stats = self._empty_stats()

    @staticmethod
    def _name_of(func: Callable[..., Any]) -> str:
        if isinstance(func, functools.partial):
            func = func.func
        return getattr(func, "__qualname__", None) or getattr(func, "__name__", None) or repr(func)


def with_retry(
    policy: Optional[RetryPolicy] = None,
    timeout: Optional[float] = None,
    executor: Optional[RetryExecutor] = None,
) -> Callable:
    """
    Decorator pour retry automatique d'une coroutine.

    Usage:
        @with_retry(RetryPolicy(max_attempts=3), timeout=5.0)
        async def call_api():
            ...

    Raises:
        Exception: Erreur permanente d'origine
        RetryExhaustedError: Si tentatives épuisées
    """

    def decorator(func: Callable[..., T]) -> Callable[..., Any]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            runner = executor or RetryExecutor()
            return await runner.execute_with_retry(func, *args, policy=policy, timeout=timeout, **kwargs)

        return wrapper

    return decorator
