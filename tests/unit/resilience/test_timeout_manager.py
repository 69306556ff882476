"""
Tests unitaires Resilience - TimeoutManager

Tests de l'invariant:
- RETRY_006: Timeout par tentative distinct du délai de retry
"""

import pytest

from convergence.resilience import (
    AttemptTimeoutError,
    InvalidTimeoutError,
    TimeoutConfig,
    TimeoutManager,
    TimeoutType,
)


class TestRETRY006TimeoutConfiguration:
    """Tests RETRY_006: Bornes par type d'appel et par endpoint."""

    def test_RETRY_006_defaults(self) -> None:
        manager = TimeoutManager()

        assert manager.get_timeout(TimeoutType.PROBE) == 10.0
        assert manager.get_timeout(TimeoutType.HEALTH_CHECK) == 5.0
        assert manager.get_timeout(TimeoutType.PUSH) == 30.0

    def test_RETRY_006_endpoint_override(self) -> None:
        manager = TimeoutManager()
        manager.set_endpoint_timeout("crm", TimeoutConfig(probe_timeout=3.0))

        assert manager.get_timeout(TimeoutType.PROBE, "crm") == 3.0
        assert manager.get_timeout(TimeoutType.PROBE, "erp") == 10.0
        assert manager.get_all_endpoints() == ["crm"]

    def test_RETRY_006_remove_endpoint_config(self) -> None:
        manager = TimeoutManager()
        manager.set_endpoint_timeout("crm", TimeoutConfig(push_timeout=60.0))

        assert manager.remove_endpoint_config("crm") is True
        assert manager.remove_endpoint_config("crm") is False
        assert manager.get_timeout(TimeoutType.PUSH, "crm") == 30.0

    def test_RETRY_006_above_limit_rejected(self) -> None:
        with pytest.raises(InvalidTimeoutError):
            TimeoutManager(TimeoutConfig(probe_timeout=120.0))

    def test_RETRY_006_non_positive_rejected(self) -> None:
        manager = TimeoutManager()
        with pytest.raises(InvalidTimeoutError):
            manager.set_endpoint_timeout("crm", TimeoutConfig(health_check_timeout=0))

    def test_RETRY_006_empty_endpoint_rejected(self) -> None:
        with pytest.raises(ValueError):
            TimeoutManager().set_endpoint_timeout(" ", TimeoutConfig())

    def test_RETRY_006_validate_timeout(self) -> None:
        manager = TimeoutManager()

        assert manager.validate_timeout(TimeoutType.PUSH, 300.0) is True
        assert manager.validate_timeout(TimeoutType.PUSH, 301.0) is False
        assert manager.validate_timeout(TimeoutType.PROBE, -1) is False

    def test_RETRY_006_attempt_timeout_error_is_timeout(self) -> None:
        """RETRY_006: AttemptTimeoutError reste un TimeoutError."""
        error = AttemptTimeoutError(2.5, "probe")

        assert isinstance(error, TimeoutError)
        assert error.timeout == 2.5
        assert "2.5" in str(error)
