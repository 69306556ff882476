"""
CONVERGENCE - Pytest Configuration
Fixtures partagées pour tous les tests.
"""

from pathlib import Path
from typing import Callable, Dict, List

import pytest

from convergence.events import CoreEvent
from convergence.logging import LogConfig, LogLevel, StructuredLogger
from convergence.resilience import RetryExecutor, RetryPolicy
from convergence.supervision import ProbeResult


@pytest.fixture
def fixtures_path() -> Path:
    """Chemin vers le dossier fixtures."""
    return Path(__file__).parent.parent / "fixtures"


@pytest.fixture
def configs_path(fixtures_path: Path) -> Path:
    return fixtures_path / "configs"


@pytest.fixture
def all_invariants() -> dict:
    """Retourne tous les invariants."""
    from convergence.invariants.rules import ALL_INVARIANTS

    return ALL_INVARIANTS


@pytest.fixture
def captured_output() -> List[str]:
    """Lignes JSON émises par les loggers de test."""
    return []


@pytest.fixture
def test_logger(captured_output: List[str]) -> StructuredLogger:
    """Logger DEBUG qui capture sa sortie au lieu d'écrire sur stdout."""
    return StructuredLogger(
        "test",
        LogConfig(min_level=LogLevel.DEBUG, default_component="test"),
        output_handler=captured_output.append,
    )


@pytest.fixture
def fast_policy() -> RetryPolicy:
    """Une seule tentative: aucun délai de retry dans les tests."""
    return RetryPolicy(max_attempts=1)


@pytest.fixture
def fast_executor(test_logger: StructuredLogger, fast_policy: RetryPolicy) -> RetryExecutor:
    return RetryExecutor(default_policy=fast_policy, logger=test_logger)


class ScriptedProbe:
    """
    Sonde de test: rejoue une suite de résultats, puis le dernier.

    Un élément peut être un ProbeResult ou une exception à lever.
    """

    def __init__(self, *outcomes) -> None:
        self.outcomes = list(outcomes) or [ProbeResult.ok()]
        self.calls: List[str] = []

    async def __call__(self, endpoint_id: str) -> ProbeResult:
        self.calls.append(endpoint_id)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def scripted_probe() -> Callable[..., ScriptedProbe]:
    return ScriptedProbe


@pytest.fixture
def event_sink() -> Dict[str, List[CoreEvent]]:
    """Collecte des événements reçus, par type."""
    return {}


@pytest.fixture
def record_event(event_sink: Dict[str, List[CoreEvent]]) -> Callable[[CoreEvent], None]:
    def handler(event: CoreEvent) -> None:
        event_sink.setdefault(event.event_type.value, []).append(event)

    return handler
