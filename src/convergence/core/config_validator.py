"""
CONVERGENCE Core - Config Validator Implementation
Valide la configuration contre les invariants CFG.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .interfaces import IConfigValidator, ValidationError, ValidationResult, ValidationSeverity

KNOWN_RESOLUTIONS = ("source_wins", "target_wins", "manual")


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = config.get(name) or {}
    return section if isinstance(section, dict) else {}


def _number(value: Any) -> Optional[float]:
    """Valeur numérique ou None (les chaînes viennent de l'environnement)."""
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class ConfigValidator(IConfigValidator):
    """Validation des configurations contre les invariants CFG."""

    def __init__(self):
        self._validators: Dict[str, Callable[[Dict[str, Any]], Optional[ValidationError]]] = {
            "CFG_001": self._validate_cfg_001,
            "CFG_002": self._validate_cfg_002,
            "CFG_003": self._validate_cfg_003,
            "CFG_004": self._validate_cfg_004,
            "CFG_005": self._validate_cfg_005,
            "CFG_006": self._validate_cfg_006,
        }

    def validate(self, config: Dict[str, Any]) -> ValidationResult:
        """
        Valide une config contre TOUS les invariants.
        Retourne TOUTES les erreurs (pas fail-fast).
        """
        errors = []
        warnings = []

        for rule_id in self._validators:
            error = self.validate_rule(rule_id, config)
            if error:
                if error.severity == ValidationSeverity.BLOCKING:
                    errors.append(error)
                elif error.severity == ValidationSeverity.WARNING:
                    warnings.append(error)

        return ValidationResult(
            valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
            checked_at=datetime.now(timezone.utc),
        )

    def validate_rule(self, rule_id: str, config: Dict[str, Any]) -> Optional[ValidationError]:
        """Valide UNE règle spécifique."""
        if rule_id not in self._validators:
            return ValidationError(
                rule_id=rule_id,
                message=f"Règle inconnue: {rule_id}",
                location="config",
                severity=ValidationSeverity.BLOCKING,
            )

        return self._validators[rule_id](config)

    def _validate_cfg_001(self, config: Dict[str, Any]) -> Optional[ValidationError]:
        """CFG_001: backoff_multiplier strictement supérieur à 1."""
        value = _section(config, "retry").get("backoff_multiplier")
        if value is None:
            return None

        multiplier = _number(value)
        if multiplier is None or multiplier <= 1:
            return ValidationError(
                rule_id="CFG_001",
                message=f"backoff_multiplier {value} doit être strictement supérieur à 1",
                location="retry.backoff_multiplier",
                value=str(value),
                severity=ValidationSeverity.BLOCKING,
            )

        return None

    def _validate_cfg_002(self, config: Dict[str, Any]) -> Optional[ValidationError]:
        """CFG_002: max_attempts supérieur ou égal à 1."""
        value = _section(config, "retry").get("max_attempts")
        if value is None:
            return None

        attempts = _number(value)
        if attempts is None or attempts < 1 or attempts != int(attempts):
            return ValidationError(
                rule_id="CFG_002",
                message=f"max_attempts {value} doit être un entier supérieur ou égal à 1",
                location="retry.max_attempts",
                value=str(value),
                severity=ValidationSeverity.BLOCKING,
            )

        return None

    def _validate_cfg_003(self, config: Dict[str, Any]) -> Optional[ValidationError]:
        """CFG_003: initial_delay inférieur ou égal à max_delay."""
        retry = _section(config, "retry")
        initial = _number(retry.get("initial_delay", 1.0))
        maximum = _number(retry.get("max_delay", 10.0))

        if initial is None or maximum is None or initial < 0 or initial > maximum:
            return ValidationError(
                rule_id="CFG_003",
                message=f"initial_delay {retry.get('initial_delay', 1.0)} doit être positif et <= max_delay {retry.get('max_delay', 10.0)}",
                location="retry.initial_delay",
                value=str(retry.get("initial_delay")),
                severity=ValidationSeverity.BLOCKING,
            )

        return None

    def _validate_cfg_004(self, config: Dict[str, Any]) -> Optional[ValidationError]:
        """CFG_004: base_delay de reconnexion inférieur ou égal au cap."""
        supervisor = _section(config, "supervisor")
        base = _number(supervisor.get("base_delay", 5.0))
        cap = _number(supervisor.get("cap_delay", 300.0))

        if base is None or cap is None or base <= 0 or base > cap:
            return ValidationError(
                rule_id="CFG_004",
                message=f"base_delay {supervisor.get('base_delay', 5.0)} doit être > 0 et <= cap_delay {supervisor.get('cap_delay', 300.0)}",
                location="supervisor.base_delay",
                value=str(supervisor.get("base_delay")),
                severity=ValidationSeverity.BLOCKING,
            )

        return None

    def _validate_cfg_005(self, config: Dict[str, Any]) -> Optional[ValidationError]:
        """CFG_005: Timeouts et intervalles strictement positifs."""
        checked: List[tuple] = [
            ("timeouts", "probe_timeout"),
            ("timeouts", "health_check_timeout"),
            ("timeouts", "push_timeout"),
            ("supervisor", "sweep_interval"),
            ("events", "max_pending_per_subscriber"),
        ]

        for section_name, field in checked:
            value = _section(config, section_name).get(field)
            if value is None:
                continue
            number = _number(value)
            if number is None or number <= 0:
                return ValidationError(
                    rule_id="CFG_005",
                    message=f"{field} {value} doit être strictement positif",
                    location=f"{section_name}.{field}",
                    value=str(value),
                    severity=ValidationSeverity.BLOCKING,
                )

        return None

    def _validate_cfg_006(self, config: Dict[str, Any]) -> Optional[ValidationError]:
        """CFG_006: Résolution de conflit par défaut connue."""
        value = _section(config, "sync").get("default_resolution")
        if value is None:
            return None

        if value not in KNOWN_RESOLUTIONS:
            return ValidationError(
                rule_id="CFG_006",
                message=f"Résolution inconnue '{value}' (attendu: {', '.join(KNOWN_RESOLUTIONS)})",
                location="sync.default_resolution",
                value=str(value),
                severity=ValidationSeverity.BLOCKING,
            )

        return None
