"""
CONVERGENCE Core - Config Loader Implementation
Charge la configuration depuis fichiers YAML et variables d'environnement.
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from .config_validator import ConfigValidator
from .interfaces import ConvergenceSettings, IConfigLoader


class ConfigIntegrityError(Exception):
    """Erreur d'intégrité de configuration."""

    pass


ENV_PREFIX = "CONVERGENCE_"
ENV_SEPARATOR = "__"

# Champs de type liste: valeur d'environnement séparée par des virgules
_LIST_FIELDS = {("retry", "retryable_patterns")}


class ConfigLoader(IConfigLoader):
    """
    Chargement des configurations depuis fichiers YAML.

    Ordre de priorité: environnement > fichier > valeurs par défaut.
    Une variable CONVERGENCE_RETRY__MAX_ATTEMPTS=6 remplace
    retry.max_attempts.
    """

    def __init__(
        self,
        configs_path: str = "fixtures/configs",
        environ: Optional[Mapping[str, str]] = None,
        validator: Optional[ConfigValidator] = None,
    ):
        self.configs_path = Path(configs_path)
        self._environ = environ if environ is not None else os.environ
        self._validator = validator or ConfigValidator()

    async def load(self, name: str) -> ConvergenceSettings:
        """
        Charge une configuration nommée.

        Args:
            name: Nom du fichier sans extension

        Returns:
            Configuration validée

        Raises:
            ConfigIntegrityError: Si fichier inexistant, structure invalide
                ou invariant CFG violé
        """
        config_file = self.configs_path / f"{name}.yaml"

        if not config_file.exists():
            raise ConfigIntegrityError(f"Configuration non trouvée: {name}")

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigIntegrityError(f"Erreur de parsing YAML: {e}")
        except OSError as e:
            raise ConfigIntegrityError(f"Erreur de lecture fichier: {e}")

        if config is None:
            config = {}
        if not isinstance(config, dict):
            raise ConfigIntegrityError("Configuration doit être un objet YAML")

        return self.from_dict(config)

    def from_dict(self, config: Dict[str, Any]) -> ConvergenceSettings:
        """
        Construit la configuration depuis un dictionnaire, environnement appliqué.

        Raises:
            ConfigIntegrityError: Si la structure ou un invariant CFG est invalide
        """
        merged = self._apply_env_overrides(config)

        for section, values in merged.items():
            if not isinstance(values, dict):
                raise ConfigIntegrityError(f"Section '{section}' doit être un objet")

        result = self._validator.validate(merged)
        if not result.valid:
            details = "; ".join(f"{e.rule_id} {e.location}: {e.message}" for e in result.errors)
            raise ConfigIntegrityError(f"Configuration invalide: {details}")

        try:
            return ConvergenceSettings.model_validate(merged)
        except PydanticValidationError as e:
            raise ConfigIntegrityError(f"Configuration invalide: {e}")

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        merged: Dict[str, Any] = {
            section: dict(values) if isinstance(values, dict) else values
            for section, values in config.items()
        }

        for key, raw in self._environ.items():
            if not key.startswith(ENV_PREFIX):
                continue
            path = key[len(ENV_PREFIX):].lower().split(ENV_SEPARATOR)
            if len(path) != 2 or not all(path):
                continue

            section, field = path
            value: Any = raw
            if (section, field) in _LIST_FIELDS:
                value = [item.strip() for item in raw.split(",") if item.strip()]

            target = merged.setdefault(section, {})
            if not isinstance(target, dict):
                raise ConfigIntegrityError(f"Section '{section}' doit être un objet")
            target[field] = value

        return merged
