"""
CONVERGENCE Core - Interfaces
Contrats et modèles de configuration du noyau.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from ..logging.interfaces import LogConfig, LogLevel
from ..resilience.interfaces import DEFAULT_RETRYABLE_PATTERNS, RetryPolicy, TimeoutConfig


# ══════════════════════════════════════════════════════════════════════════════
# TYPES
# ══════════════════════════════════════════════════════════════════════════════


class ValidationSeverity(Enum):
    BLOCKING = "blocking"
    WARNING = "warning"
    INFO = "info"


class ValidationError(BaseModel):
    """Erreur de validation d'un invariant."""

    rule_id: str
    message: str
    location: str
    value: Optional[str] = None
    severity: ValidationSeverity = ValidationSeverity.BLOCKING


class ValidationResult(BaseModel):
    """Résultat de validation d'une configuration."""

    valid: bool
    errors: list[ValidationError] = []
    warnings: list[ValidationError] = []
    checked_at: datetime


class RetrySettings(BaseModel):
    """Politique de retry par défaut du processus."""

    max_attempts: int = 4
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    retryable_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_RETRYABLE_PATTERNS))

    def to_policy(self) -> RetryPolicy:
        """Construit la RetryPolicy immuable correspondante."""
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            backoff_multiplier=self.backoff_multiplier,
            retryable_patterns=frozenset(self.retryable_patterns),
        )


class TimeoutSettings(BaseModel):
    """Timeouts par tentative (distincts des délais de retry)."""

    probe_timeout: float = 10.0
    health_check_timeout: float = 5.0
    push_timeout: float = 30.0

    def to_timeout_config(self) -> TimeoutConfig:
        """Construit la TimeoutConfig correspondante."""
        return TimeoutConfig(
            probe_timeout=self.probe_timeout,
            health_check_timeout=self.health_check_timeout,
            push_timeout=self.push_timeout,
        )


class SupervisorSettings(BaseModel):
    """Paramètres du superviseur de reconnexion."""

    sweep_interval: float = 30.0
    base_delay: float = 5.0
    cap_delay: float = 300.0


class SyncSettings(BaseModel):
    """Paramètres du protocole de synchronisation."""

    default_resolution: str = "source_wins"
    verify_on_read: bool = True
    history_limit: int = 100


class EventSettings(BaseModel):
    """Paramètres du bus d'événements."""

    max_pending_per_subscriber: int = 100


class LogSettings(BaseModel):
    """Paramètres du logger structuré."""

    min_level: str = "INFO"
    mask_sensitive: bool = True

    def to_log_config(self, component: Optional[str] = None) -> LogConfig:
        """Construit la LogConfig d'un composant."""
        return LogConfig(
            min_level=LogLevel.from_name(self.min_level),
            mask_sensitive=self.mask_sensitive,
            default_component=component,
        )


class ConvergenceSettings(BaseModel):
    """Configuration complète du noyau."""

    retry: RetrySettings = Field(default_factory=RetrySettings)
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)
    supervisor: SupervisorSettings = Field(default_factory=SupervisorSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    events: EventSettings = Field(default_factory=EventSettings)
    logging: LogSettings = Field(default_factory=LogSettings)


# ══════════════════════════════════════════════════════════════════════════════
# INTERFACES
# ══════════════════════════════════════════════════════════════════════════════


class IConfigLoader(ABC):
    """Charge la configuration du noyau et vérifie sa cohérence."""

    @abstractmethod
    async def load(self, name: str) -> ConvergenceSettings:
        """
        Charge une configuration nommée.

        Raises:
            ConfigIntegrityError: Si fichier absent, illisible ou invalide
        """
        pass


class IConfigValidator(ABC):
    """Valide une configuration contre les invariants CFG."""

    @abstractmethod
    def validate(self, config: dict[str, Any]) -> ValidationResult:
        """
        Valide une config contre TOUS les invariants.
        Retourne TOUTES les erreurs (pas fail-fast).
        """
        pass

    @abstractmethod
    def validate_rule(self, rule_id: str, config: dict[str, Any]) -> Optional[ValidationError]:
        """Valide UNE règle spécifique."""
        pass


class IStateHasher(ABC):
    """Empreinte déterministe des payloads synchronisés."""

    @abstractmethod
    def hash_payload(self, payload: Any) -> str:
        """
        Calcule l'empreinte SHA-256 de la forme canonique du payload.

        Returns:
            Hash hex string (64 caractères)
        """
        pass

    @abstractmethod
    def canonicalize(self, payload: Any) -> bytes:
        """Sérialise le payload de façon stable (clés triées)."""
        pass
