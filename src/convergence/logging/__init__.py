"""
Logging

Module de logging structuré du noyau avec:
- Format JSON structuré (LOG_001)
- Champs obligatoires (LOG_002)
- Timestamp ISO 8601 UTC (LOG_003)
- Niveaux standard (LOG_004)
- Masquage données sensibles et payloads (LOG_005)
"""

from .interfaces import (
    # Enums
    LogLevel,
    # Dataclasses
    LogEntry,
    LogConfig,
    # Interfaces
    IStructuredLogger,
    ISensitiveMasker,
)
from .sensitive_masker import SensitiveMasker
from .structured_logger import (
    StructuredLogger,
    ContextualLogger,
    MissingRequiredFieldError,
)

__all__ = [
    # Enums
    "LogLevel",
    # Dataclasses
    "LogEntry",
    "LogConfig",
    # Interfaces
    "IStructuredLogger",
    "ISensitiveMasker",
    # Implementations
    "SensitiveMasker",
    "StructuredLogger",
    "ContextualLogger",
    # Exceptions
    "MissingRequiredFieldError",
]
