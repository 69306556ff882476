"""
CONVERGENCE Core

Configuration et empreintes du noyau:
- Modèles de configuration pydantic
- Chargement YAML avec surcharges d'environnement
- Validation des invariants CFG (toutes les erreurs)
- Empreinte SHA-256 des payloads synchronisés
"""

from .interfaces import (
    # Enums
    ValidationSeverity,
    # Models
    ValidationError,
    ValidationResult,
    RetrySettings,
    TimeoutSettings,
    SupervisorSettings,
    SyncSettings,
    EventSettings,
    LogSettings,
    ConvergenceSettings,
    # Interfaces
    IConfigLoader,
    IConfigValidator,
    IStateHasher,
)
from .config_validator import ConfigValidator
from .config_loader import ConfigLoader, ConfigIntegrityError
from .state_hasher import StateHasher

__all__ = [
    # Enums
    "ValidationSeverity",
    # Models
    "ValidationError",
    "ValidationResult",
    "RetrySettings",
    "TimeoutSettings",
    "SupervisorSettings",
    "SyncSettings",
    "EventSettings",
    "LogSettings",
    "ConvergenceSettings",
    # Interfaces
    "IConfigLoader",
    "IConfigValidator",
    "IStateHasher",
    # Implementations
    "ConfigValidator",
    "ConfigLoader",
    "StateHasher",
    # Exceptions
    "ConfigIntegrityError",
]
