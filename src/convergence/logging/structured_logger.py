"""
Logging - Structured Logger

Logger JSON structuré avec champs obligatoires.

Invariants:
    LOG_001: Format JSON structuré obligatoire
    LOG_002: Champs obligatoires: timestamp, level, correlation_id, component, message
    LOG_003: Timestamp format ISO 8601 avec timezone UTC
    LOG_004: Niveaux: DEBUG, INFO, WARN, ERROR, CRITICAL
    LOG_005: Données sensibles et payloads JAMAIS en clair
"""

import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Optional

from .interfaces import (
    ISensitiveMasker,
    IStructuredLogger,
    LogConfig,
    LogEntry,
    LogLevel,
)
from .sensitive_masker import SensitiveMasker


class MissingRequiredFieldError(Exception):
    """Champ obligatoire manquant - LOG_002."""

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"Required field missing: {field_name} - LOG_002")


class StructuredLogger(IStructuredLogger):
    """
    Logger JSON structuré avec champs obligatoires.

    Chaque composant du noyau reçoit un logger injectable; par défaut il
    crée le sien avec `default_component` renseigné.

    Example:
        logger = StructuredLogger("supervisor", LogConfig(default_component="supervision"))
        logger.info("Endpoint connected", endpoint_id="crm")
    """

    # Les entrées capturées sont bornées pour un process long
    MAX_CAPTURED_ENTRIES: int = 10000

    def __init__(
        self,
        name: str,
        config: Optional[LogConfig] = None,
        masker: Optional[ISensitiveMasker] = None,
        output_handler: Optional[Callable[[str], None]] = None,
    ) -> None:
        """
        Initialise le logger structuré.

        Args:
            name: Nom du logger (identifiant module)
            config: Configuration optionnelle
            masker: Masker pour données sensibles (LOG_005)
            output_handler: Handler personnalisé pour output (stdout, fichier, tests)

        Raises:
            ValueError: Si name vide
        """
        if not name or not name.strip():
            raise ValueError("Logger name cannot be empty")

        self._name = name.strip()
        self._config = config or LogConfig(default_component=self._name)
        self._masker = masker or SensitiveMasker()
        self._output_handler = output_handler
        self._entries: Deque[LogEntry] = deque(maxlen=self.MAX_CAPTURED_ENTRIES)
        self._default_component: Optional[str] = self._config.default_component
        self._default_correlation_id: Optional[str] = self._config.default_correlation_id

    @property
    def name(self) -> str:
        """Retourne le nom du logger."""
        return self._name

    @property
    def config(self) -> LogConfig:
        """Retourne la configuration."""
        return self._config

    def set_default_component(self, component: str) -> None:
        """Définit le composant par défaut."""
        self._default_component = component

    def set_default_correlation(self, correlation_id: str) -> None:
        """Définit correlation_id par défaut."""
        self._default_correlation_id = correlation_id

    def clear_defaults(self) -> None:
        """Efface les valeurs par défaut."""
        self._default_component = None
        self._default_correlation_id = None

    def log(
        self,
        level: LogLevel,
        message: str,
        correlation_id: Optional[str] = None,
        component: Optional[str] = None,
        **extra: Any,
    ) -> Optional[LogEntry]:
        """
        LOG_001-005: Crée log structuré JSON.

        Processus:
            1. Vérifie niveau >= min_level
            2. Résout correlation_id et component
            3. Masque données sensibles dans extra (LOG_005)
            4. Crée LogEntry horodaté (LOG_002, LOG_003)
            5. Output JSON (LOG_001)

        Returns:
            LogEntry créé ou None si filtré

        Raises:
            MissingRequiredFieldError: Si component ou message manquant
        """
        if not self._should_log(level):
            return None

        resolved_correlation = correlation_id or self._default_correlation_id
        if not resolved_correlation:
            resolved_correlation = str(uuid.uuid4())

        resolved_component = component or self._default_component
        if not resolved_component:
            raise MissingRequiredFieldError("component")

        if not message:
            raise MissingRequiredFieldError("message")

        masked_extra: Dict[str, Any] = {}
        if extra and self._config.include_extra:
            if self._config.mask_sensitive:
                masked_extra = self._masker.mask(dict(extra))
            else:
                masked_extra = dict(extra)

        entry = LogEntry(
            timestamp=self._generate_timestamp(),
            level=level,
            correlation_id=resolved_correlation,
            component=resolved_component,
            message=message,
            extra=masked_extra,
            logger_name=self._name,
        )

        self._entries.append(entry)

        if self._output_handler:
            self._output_handler(entry.to_json())

        return entry

    def _generate_timestamp(self) -> str:
        """
        LOG_003: Timestamp ISO 8601 UTC avec millisecondes.

        Format: 2024-12-04T14:30:00.123Z
        """
        now = datetime.now(timezone.utc)
        return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"

    def _should_log(self, level: LogLevel) -> bool:
        return LogLevel.get_priority(level) >= LogLevel.get_priority(self._config.min_level)

    def debug(self, message: str, **extra: Any) -> Optional[LogEntry]:
        """Log niveau DEBUG."""
        return self.log(LogLevel.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any) -> Optional[LogEntry]:
        """Log niveau INFO."""
        return self.log(LogLevel.INFO, message, **extra)

    def warn(self, message: str, **extra: Any) -> Optional[LogEntry]:
        """Log niveau WARN."""
        return self.log(LogLevel.WARN, message, **extra)

    def error(self, message: str, **extra: Any) -> Optional[LogEntry]:
        """Log niveau ERROR."""
        return self.log(LogLevel.ERROR, message, **extra)

    def critical(self, message: str, **extra: Any) -> Optional[LogEntry]:
        """Log niveau CRITICAL."""
        return self.log(LogLevel.CRITICAL, message, **extra)

    def get_entries(self) -> List[LogEntry]:
        """Retourne les entrées de log capturées."""
        return list(self._entries)

    def clear_entries(self) -> None:
        """Efface les entrées capturées."""
        self._entries.clear()

    def get_entries_by_level(self, level: LogLevel) -> List[LogEntry]:
        """Filtre les entrées par niveau."""
        return [e for e in self._entries if e.level == level]

    def get_entries_by_correlation(self, correlation_id: str) -> List[LogEntry]:
        """Filtre les entrées par correlation_id."""
        return [e for e in self._entries if e.correlation_id == correlation_id]

    def with_context(
        self,
        correlation_id: Optional[str] = None,
        component: Optional[str] = None,
    ) -> "ContextualLogger":
        """
        Crée un logger avec contexte pré-défini.

        Utilisé par le protocole de synchronisation: une opération = un
        correlation_id commun à tous ses logs.
        """
        return ContextualLogger(
            self,
            correlation_id=correlation_id or self._default_correlation_id,
            component=component or self._default_component,
        )


class ContextualLogger:
    """
    Logger avec contexte pré-défini.

    Wrapper qui fixe correlation_id et component.
    """

    def __init__(
        self,
        logger: StructuredLogger,
        correlation_id: Optional[str] = None,
        component: Optional[str] = None,
    ) -> None:
        self._logger = logger
        self._correlation_id = correlation_id
        self._component = component

    @property
    def correlation_id(self) -> Optional[str]:
        return self._correlation_id

    def log(self, level: LogLevel, message: str, **extra: Any) -> Optional[LogEntry]:
        """Log avec contexte."""
        return self._logger.log(
            level,
            message,
            correlation_id=self._correlation_id,
            component=self._component,
            **extra,
        )

    def debug(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, message, **extra)

    def info(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, message, **extra)

    def warn(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, message, **extra)

    def error(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.ERROR, message, **extra)

    def critical(self, message: str, **extra: Any) -> Optional[LogEntry]:
        return self.log(LogLevel.CRITICAL, message, **extra)
