"""
Supervision - Reconnection Supervisor

Machine d'état de connectivité par endpoint et reconnexion planifiée.

Invariants:
    SUP_001: Probe réussie = connected, échecs remis à zéro, timer annulé
    SUP_002: Planification de reconnexion idempotente par endpoint
    SUP_003: Délai reconnexion = min(cap, base * 2^échecs consécutifs)
    SUP_004: Jamais deux probes simultanées pour un même endpoint
    SUP_005: Endpoint en erreur = health check léger, pas de reconnexion
    SUP_006: Échec de probe jamais fatal, uniquement transition d'état
    SUP_007: Timer vérifie sa génération avant d'agir
    SUP_008: Suppression endpoint annule d'abord le timer
"""

import asyncio
import dataclasses
import itertools
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Set

from ..events import EventType, IEventPublisher
from ..logging import IStructuredLogger, LogConfig, StructuredLogger
from ..resilience import (
    RetryExecutor,
    RetryPolicy,
    RetryResult,
    TimeoutManager,
    TimeoutType,
)
from .endpoint_store import InMemoryEndpointStore
from .interfaces import (
    Endpoint,
    EndpointStatus,
    IReconnectionSupervisor,
    ProbeResult,
    ReconnectSchedule,
    TransportProbe,
)


class ProbeFailedError(Exception):
    """
    Probe négative convertie en exception pour le classificateur.

    Le message est la seule raison fournie par la sonde: elle seule
    décide si l'échec est transitoire ou permanent, jamais l'id.
    """

    def __init__(self, endpoint_id: str, reason: Optional[str]) -> None:
        self.endpoint_id = endpoint_id
        self.reason = reason or "probe failed"
        super().__init__(self.reason)


# Générations globales et strictement croissantes (SUP_007)
_generations = itertools.count(1)


class ReconnectionSupervisor(IReconnectionSupervisor):
    """
    Superviseur de reconnexion.

    Chaque endpoint a son propre verrou: une probe en vol empêche toute
    autre probe sur le même endpoint (SUP_004) sans bloquer les autres.
    Un schedule en attente est une valeur (endpoint_id, generation); le
    timer qui le porte ne fait rien si le schedule a été annulé ou
    remplacé entre-temps (SUP_007).

    Example:
        supervisor = ReconnectionSupervisor(probe=crm_client.ping)
        supervisor.register_endpoint("crm")
        await supervisor.attempt_reconnection("crm")
        await supervisor.start()
    """

    DEFAULT_SWEEP_INTERVAL: float = 30.0
    DEFAULT_BASE_DELAY: float = 5.0
    DEFAULT_CAP_DELAY: float = 300.0

    def __init__(
        self,
        probe: TransportProbe,
        health_check: Optional[TransportProbe] = None,
        retry_executor: Optional[RetryExecutor] = None,
        probe_policy: Optional[RetryPolicy] = None,
        publisher: Optional[IEventPublisher] = None,
        logger: Optional[IStructuredLogger] = None,
        timeout_manager: Optional[TimeoutManager] = None,
        store: Optional[InMemoryEndpointStore] = None,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        base_delay: float = DEFAULT_BASE_DELAY,
        cap_delay: float = DEFAULT_CAP_DELAY,
    ) -> None:
        """
        Args:
            probe: Sonde de reconnexion (passe par le retry executor)
            health_check: Sonde légère pour les endpoints en erreur (défaut: probe)
            retry_executor: Exécuteur de retry partagé
            probe_policy: Politique appliquée aux probes de reconnexion
            publisher: Bus d'événements (optionnel)
            logger: Logger structuré (défaut: composant "supervision")
            timeout_manager: Timeouts par tentative, par endpoint
            store: Stockage des endpoints
            sweep_interval: Intervalle fixe du sweep en secondes
            base_delay: Délai de base du backoff de reconnexion
            cap_delay: Plafond du délai de reconnexion

        Raises:
            ValueError: Si les délais sont incohérents
        """
        if sweep_interval <= 0:
            raise ValueError("sweep_interval must be > 0")
        if base_delay <= 0 or cap_delay < base_delay:
            raise ValueError("Require 0 < base_delay <= cap_delay")

        self._probe = probe
        self._health_check = health_check or probe
        self._logger = logger or StructuredLogger(
            "reconnection_supervisor", LogConfig(default_component="supervision")
        )
        self._retry = retry_executor or RetryExecutor(logger=self._logger)
        self._probe_policy = probe_policy or self._retry.default_policy
        # SUP_005: health check = une seule tentative
        self._health_policy = dataclasses.replace(self._probe_policy, max_attempts=1)
        self._publisher = publisher
        self._timeouts = timeout_manager or TimeoutManager()
        self._store = store or InMemoryEndpointStore()

        self._sweep_interval = sweep_interval
        self._base_delay = base_delay
        self._cap_delay = cap_delay

        self._schedules: Dict[str, ReconnectSchedule] = {}
        self._timers: Dict[str, "asyncio.Task[Any]"] = {}
        self._sweep_task: Optional["asyncio.Task[None]"] = None
        # Timers dont la probe est en cours, hors de _timers
        self._inflight: Set["asyncio.Task[Any]"] = set()
        self._stopped = False

    # =========================================================================
    # REGISTRE
    # =========================================================================

    def register_endpoint(self, endpoint_id: str, metadata: Optional[Dict[str, Any]] = None) -> Endpoint:
        endpoint = Endpoint(
            id=endpoint_id,
            registered_at=datetime.now(timezone.utc),
            metadata=dict(metadata or {}),
        )
        self._store.create(endpoint)
        self._logger.info("Endpoint registered", endpoint_id=endpoint_id)
        return dataclasses.replace(endpoint)

    async def unregister_endpoint(self, endpoint_id: str) -> bool:
        if endpoint_id not in self._store:
            return False

        # SUP_008: timer annulé avant suppression
        self.cancel_schedule(endpoint_id)
        self._timeouts.remove_endpoint_config(endpoint_id)
        self._store.delete(endpoint_id)
        self._logger.info("Endpoint unregistered", endpoint_id=endpoint_id)
        return True

    def get_endpoint_status(self, endpoint_id: str) -> Optional[Endpoint]:
        endpoint = self._store.get(endpoint_id)
        return dataclasses.replace(endpoint) if endpoint else None

    def get_all_endpoints(self) -> List[Endpoint]:
        return [dataclasses.replace(e) for e in self._store.list()]

    def get_endpoints_by_status(self, status: EndpointStatus) -> List[Endpoint]:
        return [dataclasses.replace(e) for e in self._store.list() if e.status == status]

    def get_pending_schedule(self, endpoint_id: str) -> Optional[ReconnectSchedule]:
        return self._schedules.get(endpoint_id)

    def is_probe_in_flight(self, endpoint_id: str) -> bool:
        return endpoint_id in self._store and self._store.lock_for(endpoint_id).locked()

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def update_status(
        self, endpoint_id: str, status: EndpointStatus, error: Optional[str] = None
    ) -> Endpoint:
        """
        Transition signalée par l'appelant.

        disconnected planifie une reconnexion si aucune n'est en attente;
        error annule le schedule (les health checks du sweep prennent le
        relais); connected remet les échecs à zéro.

        Raises:
            EndpointNotFoundError: Si l'endpoint est inconnu
        """
        endpoint = self._store.require(endpoint_id)

        if status == EndpointStatus.CONNECTED:
            self._mark_connected(endpoint)
        else:
            if status == EndpointStatus.DISCONNECTED:
                self.schedule_reconnection(endpoint_id)
            else:
                self.cancel_schedule(endpoint_id)
            self._mark_failed(endpoint, status, error)

        return dataclasses.replace(endpoint)

    def _mark_connected(self, endpoint: Endpoint) -> None:
        """SUP_001: connected, échecs à zéro, schedule annulé."""
        previous = endpoint.status
        endpoint.status = EndpointStatus.CONNECTED
        endpoint.consecutive_failures = 0
        endpoint.last_error = None
        endpoint.last_checked_at = datetime.now(timezone.utc)
        self.cancel_schedule(endpoint.id)
        self._notify_transition(endpoint, previous)

    def _mark_failed(self, endpoint: Endpoint, status: EndpointStatus, error: Optional[str]) -> None:
        previous = endpoint.status
        endpoint.status = status
        endpoint.consecutive_failures += 1
        endpoint.last_error = error
        endpoint.last_checked_at = datetime.now(timezone.utc)
        self._notify_transition(endpoint, previous)

    def _notify_transition(self, endpoint: Endpoint, previous: EndpointStatus) -> None:
        if previous == endpoint.status:
            self._logger.debug(
                "Endpoint status unchanged",
                endpoint_id=endpoint.id,
                status=endpoint.status.value,
                consecutive_failures=endpoint.consecutive_failures,
            )
            return

        self._logger.info(
            "Endpoint status changed",
            endpoint_id=endpoint.id,
            previous_status=previous.value,
            status=endpoint.status.value,
            consecutive_failures=endpoint.consecutive_failures,
        )
        self._publish(
            EventType.ENDPOINT_STATUS_CHANGED,
            endpoint.id,
            {
                "previous_status": previous.value,
                "status": endpoint.status.value,
                "last_error": endpoint.last_error,
            },
        )

    # =========================================================================
    # PLANIFICATION
    # =========================================================================

    def calculate_reconnect_delay(self, consecutive_failures: int) -> float:
        """
        SUP_003: min(cap, base * 2^échecs), sans débordement.

        Args:
            consecutive_failures: Échecs consécutifs au moment de planifier

        Returns:
            Délai en secondes
        """
        if consecutive_failures < 0:
            raise ValueError("consecutive_failures must be >= 0")
        if consecutive_failures >= math.log2(self._cap_delay / self._base_delay):
            return self._cap_delay
        return min(self._cap_delay, self._base_delay * (2**consecutive_failures))

    def schedule_reconnection(self, endpoint_id: str) -> Optional[ReconnectSchedule]:
        """
        SUP_002: Planifie la prochaine reconnexion.

        Le délai est calculé sur les échecs consécutifs au moment de la
        planification. Sans boucle asyncio active, ou après stop(), rien
        n'est planifié: l'endpoint reste disconnected et le sweep le
        reprendra.

        Returns:
            Nouveau schedule, ou None si rien n'a été planifié

        Raises:
            EndpointNotFoundError: Si l'endpoint est inconnu
        """
        endpoint = self._store.require(endpoint_id)

        if endpoint_id in self._schedules:
            self._logger.debug(
                "Reconnection already scheduled",
                endpoint_id=endpoint_id,
                generation=self._schedules[endpoint_id].generation,
            )
            return None

        if self._stopped:
            self._logger.debug("Supervisor stopped, reconnection not scheduled", endpoint_id=endpoint_id)
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._logger.warn(
                "No running event loop, reconnection left to sweep", endpoint_id=endpoint_id
            )
            return None

        delay = self.calculate_reconnect_delay(endpoint.consecutive_failures)
        schedule = ReconnectSchedule(
            endpoint_id=endpoint_id,
            generation=next(_generations),
            due_at=datetime.now(timezone.utc) + timedelta(seconds=delay),
            attempt=endpoint.consecutive_failures + 1,
            delay=delay,
        )
        self._schedules[endpoint_id] = schedule
        self._timers[endpoint_id] = loop.create_task(self._run_timer(schedule))

        self._logger.debug(
            f"Reconnection scheduled in {delay}s",
            endpoint_id=endpoint_id,
            generation=schedule.generation,
            attempt=schedule.attempt,
        )
        self._publish(
            EventType.RECONNECT_SCHEDULED,
            endpoint_id,
            {"delay": delay, "attempt": schedule.attempt, "due_at": schedule.due_at.isoformat()},
        )
        return schedule

    def cancel_schedule(self, endpoint_id: str) -> bool:
        """Annule le schedule en attente. True si un schedule existait."""
        schedule = self._schedules.pop(endpoint_id, None)
        timer = self._timers.pop(endpoint_id, None)
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()
        if schedule is None:
            return False

        self._logger.debug(
            "Reconnection cancelled", endpoint_id=endpoint_id, generation=schedule.generation
        )
        self._publish(
            EventType.RECONNECT_CANCELLED, endpoint_id, {"generation": schedule.generation}
        )
        return True

    async def _run_timer(self, schedule: ReconnectSchedule) -> None:
        await asyncio.sleep(schedule.delay)
        await self._on_timer(schedule)

    async def _on_timer(self, schedule: ReconnectSchedule) -> Optional[EndpointStatus]:
        """SUP_007: N'agit que si le schedule est toujours courant."""
        if self._schedules.get(schedule.endpoint_id) != schedule:
            self._logger.debug(
                "Stale reconnection timer ignored",
                endpoint_id=schedule.endpoint_id,
                generation=schedule.generation,
            )
            return None

        del self._schedules[schedule.endpoint_id]
        current = asyncio.current_task()
        timer = self._timers.pop(schedule.endpoint_id, None)
        if timer is not None and timer is not current:
            timer.cancel()

        # stop() doit encore voir ce timer pendant sa probe
        tracked = timer is not None and timer is current
        if tracked:
            self._inflight.add(timer)
        try:
            return await self.attempt_reconnection(schedule.endpoint_id)
        finally:
            if tracked:
                self._inflight.discard(timer)

    # =========================================================================
    # PROBES
    # =========================================================================

    async def attempt_reconnection(self, endpoint_id: str) -> Optional[EndpointStatus]:
        """
        Tente une reconnexion via le retry executor.

        - Succès: connected (SUP_001)
        - Échec permanent: error, plus de reconnexion planifiée
        - Échec transitoire épuisé: disconnected, prochaine tentative planifiée

        Returns:
            Statut après la tentative, None si l'endpoint est inconnu
        """
        if endpoint_id not in self._store:
            return None

        lock = self._store.lock_for(endpoint_id)
        if lock.locked():
            # SUP_004: probe déjà en vol
            self._logger.debug("Probe already in flight, skipped", endpoint_id=endpoint_id)
            return self._store.require(endpoint_id).status

        async with lock:
            probed = self._store.require(endpoint_id)
            timeout = self._timeouts.get_timeout(TimeoutType.PROBE, endpoint_id)
            result = await self._guarded_probe(
                self._probe, endpoint_id, self._probe_policy, timeout
            )

            endpoint = self._store.get(endpoint_id)
            if endpoint is not probed:
                # Supprimé ou réenregistré pendant la probe
                return None

            if result.success:
                self._mark_connected(endpoint)
            elif result.permanent:
                self._mark_failed(endpoint, EndpointStatus.ERROR, self._reason_of(result))
                self.cancel_schedule(endpoint_id)
            else:
                # Délai calculé sur les échecs avant incrément
                self.schedule_reconnection(endpoint_id)
                self._mark_failed(endpoint, EndpointStatus.DISCONNECTED, self._reason_of(result))

            return endpoint.status

    async def check_health(self, endpoint_id: str) -> Optional[EndpointStatus]:
        """
        SUP_005: Health check d'un endpoint, une seule tentative.

        Succès: connected et last_error effacé. Échec: le statut reste
        inchangé, seuls les compteurs et l'erreur sont mis à jour.
        """
        if endpoint_id not in self._store:
            return None

        lock = self._store.lock_for(endpoint_id)
        if lock.locked():
            self._logger.debug("Probe already in flight, skipped", endpoint_id=endpoint_id)
            return self._store.require(endpoint_id).status

        async with lock:
            probed = self._store.require(endpoint_id)
            timeout = self._timeouts.get_timeout(TimeoutType.HEALTH_CHECK, endpoint_id)
            result = await self._guarded_probe(
                self._health_check, endpoint_id, self._health_policy, timeout
            )

            endpoint = self._store.get(endpoint_id)
            if endpoint is not probed:
                return None

            if result.success:
                self._mark_connected(endpoint)
            else:
                self._mark_failed(endpoint, endpoint.status, self._reason_of(result))

            return endpoint.status

    async def _guarded_probe(
        self,
        probe: TransportProbe,
        endpoint_id: str,
        policy: RetryPolicy,
        timeout: float,
    ) -> RetryResult:
        """SUP_006: Aucune exception de sonde ne remonte."""

        async def run_probe() -> ProbeResult:
            outcome = await probe(endpoint_id)
            if not outcome.success:
                raise ProbeFailedError(endpoint_id, outcome.reason)
            return outcome

        try:
            return await self._retry.attempt_with_retry(run_probe, policy=policy, timeout=timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._logger.error(
                "Probe execution failed",
                endpoint_id=endpoint_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return RetryResult(
                success=False, result=None, attempts=1, total_delay=0.0, last_error=e
            )

    @staticmethod
    def _reason_of(result: RetryResult) -> str:
        error = result.last_error
        if isinstance(error, ProbeFailedError):
            return error.reason
        return str(error) if error is not None else "unknown error"

    # =========================================================================
    # SWEEP
    # =========================================================================

    async def sweep(self) -> Dict[str, EndpointStatus]:
        """
        Un passage du sweep.

        disconnected sans schedule: reconnexion. error: health check.
        Les endpoints sont traités en parallèle, jamais deux fois chacun.

        Returns:
            Statut résultant par endpoint traité
        """
        targets: Dict[str, Any] = {}
        for endpoint in self._store.list():
            if endpoint.status == EndpointStatus.DISCONNECTED:
                if endpoint.id not in self._schedules:
                    targets[endpoint.id] = self.attempt_reconnection(endpoint.id)
            elif endpoint.status == EndpointStatus.ERROR:
                targets[endpoint.id] = self.check_health(endpoint.id)

        if not targets:
            return {}

        statuses = await asyncio.gather(*targets.values())
        return {
            endpoint_id: status
            for endpoint_id, status in zip(targets.keys(), statuses)
            if status is not None
        }

    async def start(self) -> None:
        """Démarre le sweep périodique (idempotent)."""
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        self._stopped = False
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())
        self._logger.info("Supervisor started", sweep_interval=self._sweep_interval)

    async def stop(self) -> None:
        """
        Arrête le sweep et annule tous les timers.

        Les timers dont la probe est en cours sont aussi annulés et
        attendus. Plus aucune reconnexion n'est planifiée jusqu'au
        prochain start().
        """
        self._stopped = True
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            await asyncio.gather(self._sweep_task, return_exceptions=True)
            self._sweep_task = None

        current = asyncio.current_task()
        timers = [
            t for t in list(self._timers.values()) + list(self._inflight) if t is not current
        ]
        for endpoint_id in list(self._schedules.keys()):
            self.cancel_schedule(endpoint_id)
        for timer in timers:
            timer.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)
        self._inflight.clear()
        self._logger.info("Supervisor stopped")

    @property
    def is_running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def _sweep_loop(self) -> None:
        while True:
            try:
                await self.sweep()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._logger.error("Sweep failed", error=str(e), error_type=type(e).__name__)
            await asyncio.sleep(self._sweep_interval)

    def _publish(self, event_type: EventType, subject_id: str, data: Dict[str, Any]) -> None:
        if self._publisher is not None:
            self._publisher.publish(event_type, subject_id, data)
