"""
CONVERGENCE - Runtime

Assemble les composants du noyau depuis une configuration.
"""

from dataclasses import dataclass
from typing import Optional

from .core import ConvergenceSettings
from .events import EventBus
from .logging import StructuredLogger
from .resilience import RetryExecutor, TimeoutManager
from .supervision import ReconnectionSupervisor, TransportProbe
from .sync import ConflictResolverRegistry, SyncTransport, TemporalChainStore, TemporalSyncProtocol


@dataclass
class ConvergenceRuntime:
    """Composants partagés d'un processus."""

    settings: ConvergenceSettings
    events: EventBus
    retry_executor: RetryExecutor
    timeouts: TimeoutManager
    supervisor: ReconnectionSupervisor
    sync: TemporalSyncProtocol

    async def start(self) -> None:
        await self.supervisor.start()

    async def stop(self) -> None:
        """Arrête le sweep et les timers, puis vide et ferme le bus."""
        await self.supervisor.stop()
        await self.events.drain()
        await self.events.close()


def build_runtime(
    settings: ConvergenceSettings,
    probe: TransportProbe,
    transport: Optional[SyncTransport] = None,
    health_check: Optional[TransportProbe] = None,
) -> ConvergenceRuntime:
    """
    Construit les composants depuis la configuration.

    Args:
        settings: Configuration validée
        probe: Sonde de reconnexion des endpoints
        transport: Push réel vers les instances cibles
        health_check: Sonde légère des endpoints en erreur

    Returns:
        Runtime non démarré
    """
    log = settings.logging
    policy = settings.retry.to_policy()
    timeouts = TimeoutManager(settings.timeouts.to_timeout_config())

    events = EventBus(
        max_pending=settings.events.max_pending_per_subscriber,
        logger=StructuredLogger("event_bus", log.to_log_config("events")),
    )
    retry_executor = RetryExecutor(
        default_policy=policy,
        logger=StructuredLogger("retry_executor", log.to_log_config("resilience")),
    )
    supervisor = ReconnectionSupervisor(
        probe=probe,
        health_check=health_check,
        retry_executor=retry_executor,
        probe_policy=policy,
        publisher=events,
        logger=StructuredLogger("reconnection_supervisor", log.to_log_config("supervision")),
        timeout_manager=timeouts,
        sweep_interval=settings.supervisor.sweep_interval,
        base_delay=settings.supervisor.base_delay,
        cap_delay=settings.supervisor.cap_delay,
    )
    sync = TemporalSyncProtocol(
        transport=transport,
        supervisor=supervisor,
        retry_executor=retry_executor,
        push_policy=policy,
        resolvers=ConflictResolverRegistry.from_name(settings.sync.default_resolution),
        chain=TemporalChainStore(verify_on_read=settings.sync.verify_on_read),
        publisher=events,
        logger=StructuredLogger("sync_protocol", log.to_log_config("sync")),
        timeout_manager=timeouts,
        history_limit=settings.sync.history_limit,
    )

    return ConvergenceRuntime(
        settings=settings,
        events=events,
        retry_executor=retry_executor,
        timeouts=timeouts,
        supervisor=supervisor,
        sync=sync,
    )
