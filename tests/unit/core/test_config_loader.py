"""
Tests unitaires pour ConfigLoader.
"""

import pytest

from convergence.core import ConfigIntegrityError, ConfigLoader, ConvergenceSettings
from convergence.logging import LogLevel
from convergence.resilience import DEFAULT_RETRYABLE_PATTERNS


class TestConfigLoader:
    """Tests pour ConfigLoader."""

    @pytest.fixture(autouse=True)
    def setup_loader(self, configs_path):
        """Setup avant chaque test (environnement isolé)."""
        self.configs_path = configs_path
        self.loader = ConfigLoader(str(configs_path), environ={})

    @pytest.mark.asyncio
    async def test_load_default_config(self):
        """Le chargement de la config de référence doit réussir."""
        settings = await self.loader.load("default")

        assert isinstance(settings, ConvergenceSettings)
        assert settings.retry.max_attempts == 4
        assert settings.supervisor.cap_delay == 300.0
        assert settings.sync.default_resolution == "source_wins"
        assert set(settings.retry.retryable_patterns) == set(DEFAULT_RETRYABLE_PATTERNS)

    @pytest.mark.asyncio
    async def test_load_nonexistent_raises(self):
        """Une configuration absente lève ConfigIntegrityError."""
        with pytest.raises(ConfigIntegrityError) as exc_info:
            await self.loader.load("nonexistent")

        assert "Configuration non trouvée" in str(exc_info.value)
        assert "nonexistent" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_load_invalid_lists_every_violation(self):
        """Toutes les violations CFG sont rapportées, pas seulement la première."""
        with pytest.raises(ConfigIntegrityError) as exc_info:
            await self.loader.load("invalid")

        message = str(exc_info.value)
        for rule_id in ("CFG_001", "CFG_002", "CFG_004", "CFG_006"):
            assert rule_id in message

    @pytest.mark.asyncio
    async def test_load_non_mapping_rejected(self):
        with pytest.raises(ConfigIntegrityError, match="objet YAML"):
            await self.loader.load("not_a_mapping")

    @pytest.mark.asyncio
    async def test_load_malformed_yaml(self, tmp_path):
        (tmp_path / "broken.yaml").write_text("retry: [unclosed\n", encoding="utf-8")
        loader = ConfigLoader(str(tmp_path), environ={})

        with pytest.raises(ConfigIntegrityError, match="parsing YAML"):
            await loader.load("broken")

    @pytest.mark.asyncio
    async def test_load_empty_file_uses_defaults(self, tmp_path):
        (tmp_path / "empty.yaml").write_text("", encoding="utf-8")
        loader = ConfigLoader(str(tmp_path), environ={})

        settings = await loader.load("empty")

        assert settings == ConvergenceSettings()

    def test_from_dict_partial(self):
        settings = self.loader.from_dict({"supervisor": {"base_delay": 1.0, "cap_delay": 10.0}})

        assert settings.supervisor.base_delay == 1.0
        assert settings.retry.max_attempts == 4

    def test_from_dict_section_must_be_mapping(self):
        with pytest.raises(ConfigIntegrityError, match="Section 'retry'"):
            self.loader.from_dict({"retry": 3})

    def test_from_dict_wrong_type_wrapped(self):
        """Erreur de type pydantic convertie en ConfigIntegrityError."""
        with pytest.raises(ConfigIntegrityError):
            self.loader.from_dict({"sync": {"verify_on_read": "maybe"}})


class TestEnvironmentOverrides:
    """Environnement > fichier > défauts."""

    @pytest.mark.asyncio
    async def test_env_overrides_file(self, configs_path):
        loader = ConfigLoader(
            str(configs_path),
            environ={
                "CONVERGENCE_RETRY__MAX_ATTEMPTS": "6",
                "CONVERGENCE_LOGGING__MIN_LEVEL": "debug",
                "CONVERGENCE_SYNC__VERIFY_ON_READ": "false",
                "OTHER_RETRY__MAX_ATTEMPTS": "99",
            },
        )

        settings = await loader.load("default")

        assert settings.retry.max_attempts == 6
        assert settings.sync.verify_on_read is False
        assert settings.logging.to_log_config("sync").min_level == LogLevel.DEBUG

    def test_env_list_split_on_commas(self):
        loader = ConfigLoader(environ={"CONVERGENCE_RETRY__RETRYABLE_PATTERNS": "busy, 503 ,,throttled"})

        settings = loader.from_dict({})

        assert settings.retry.retryable_patterns == ["busy", "503", "throttled"]
        assert settings.retry.to_policy().retryable_patterns == frozenset({"busy", "503", "throttled"})

    def test_env_values_validated(self):
        """Une surcharge d'environnement passe par les invariants CFG."""
        loader = ConfigLoader(environ={"CONVERGENCE_RETRY__BACKOFF_MULTIPLIER": "0.5"})

        with pytest.raises(ConfigIntegrityError, match="CFG_001"):
            loader.from_dict({})

    def test_env_malformed_keys_ignored(self):
        loader = ConfigLoader(
            environ={"CONVERGENCE_RETRY": "x", "CONVERGENCE_A__B__C": "y", "CONVERGENCE___X": "z"}
        )
        assert loader.from_dict({}) == ConvergenceSettings()

    def test_env_does_not_mutate_input(self):
        loader = ConfigLoader(environ={"CONVERGENCE_RETRY__MAX_ATTEMPTS": "2"})
        config = {"retry": {"max_attempts": 5}}

        loader.from_dict(config)

        assert config == {"retry": {"max_attempts": 5}}


class TestSettingsConversion:
    """Passage des modèles de configuration aux objets du noyau."""

    def test_to_policy_and_timeouts(self):
        settings = ConvergenceSettings()

        policy = settings.retry.to_policy()
        timeouts = settings.timeouts.to_timeout_config()

        assert policy.max_attempts == 4
        assert policy.backoff_multiplier == 2.0
        assert timeouts.push_timeout == 30.0
