"""
Tests unitaires Events - EventBus

Tests des invariants:
- EVT_001: Notifications best-effort, jamais bloquantes
- EVT_002: File bornée par abonné, surplus abandonné et compté
"""

import asyncio

import pytest

from convergence.events import CoreEvent, EventBus, EventType, IEventPublisher
from convergence.logging import LogLevel


class TestEVT001NonBlocking:
    """Tests EVT_001: Publication jamais bloquante."""

    @pytest.mark.asyncio
    async def test_EVT_001_publish_returns_before_delivery(self) -> None:
        """EVT_001: publish ne rend pas la main au handler."""
        bus = EventBus()
        received = []
        bus.subscribe(received.append)

        event = bus.publish(EventType.SYNC_COMPLETED, "inst-1", {"operation_id": "op"})

        assert received == []
        await bus.drain()
        assert received == [event]
        await bus.close()

    @pytest.mark.asyncio
    async def test_EVT_001_failing_handler_isolated(self, test_logger) -> None:
        """EVT_001: Un handler en échec ne touche ni le publieur ni les autres."""
        bus = EventBus(logger=test_logger)
        received = []

        def broken(event: CoreEvent) -> None:
            raise RuntimeError("handler bug")

        bus.subscribe(broken)
        bus.subscribe(received.append)

        bus.publish(EventType.SYNC_FAILED, "inst-1")
        await bus.drain()

        stats = bus.get_stats()
        assert len(received) == 1
        assert stats.failed == 1
        assert stats.delivered == 1
        assert len(test_logger.get_entries_by_level(LogLevel.ERROR)) == 1
        await bus.close()

    @pytest.mark.asyncio
    async def test_EVT_001_slow_subscriber_does_not_delay_others(self) -> None:
        bus = EventBus()
        release = asyncio.Event()
        fast = []

        async def slow(event: CoreEvent) -> None:
            await release.wait()

        bus.subscribe(slow)
        bus.subscribe(fast.append)

        bus.publish(EventType.CONFLICT_DETECTED, "inst-1")
        for _ in range(10):
            await asyncio.sleep(0)

        assert len(fast) == 1
        release.set()
        await bus.drain()
        await bus.close()

    @pytest.mark.asyncio
    async def test_EVT_001_filter_by_type(self) -> None:
        bus = EventBus()
        received = []
        bus.subscribe(received.append, [EventType.CONFLICT_RESOLVED])

        bus.publish(EventType.SYNC_COMPLETED, "inst-1")
        bus.publish(EventType.CONFLICT_RESOLVED, "inst-1")
        await bus.drain()

        assert [e.event_type for e in received] == [EventType.CONFLICT_RESOLVED]
        await bus.close()

    def test_EVT_001_publish_without_loop(self) -> None:
        """EVT_001: Sans boucle, l'événement attend dans la file."""
        bus = EventBus()
        bus.subscribe(lambda event: None)

        bus.publish(EventType.SYNC_COMPLETED, "inst-1")

        assert bus.get_stats().published == 1
        assert list(bus.get_stats().per_subscriber.values())[0]["pending"] == 1


class TestEVT002BoundedQueues:
    """Tests EVT_002: File bornée, surplus compté."""

    @pytest.mark.asyncio
    async def test_EVT_002_overflow_dropped_and_counted(self, test_logger) -> None:
        bus = EventBus(logger=test_logger)
        release = asyncio.Event()
        handled = []

        async def blocked(event: CoreEvent) -> None:
            await release.wait()
            handled.append(event)

        bus.subscribe(blocked, max_pending=2)
        await asyncio.sleep(0)

        for i in range(5):
            bus.publish(EventType.ENDPOINT_STATUS_CHANGED, f"ep-{i}")
        await asyncio.sleep(0)

        stats = bus.get_stats()
        assert stats.dropped >= 2
        assert stats.published == 5
        assert len(test_logger.get_entries_by_level(LogLevel.WARN)) == stats.dropped

        release.set()
        await bus.drain()
        assert len(handled) + bus.get_stats().dropped == 5
        await bus.close()

    def test_EVT_002_invalid_queue_size(self) -> None:
        with pytest.raises(ValueError):
            EventBus(max_pending=-1)


class TestEventBusLifecycle:
    """Abonnement et fermeture."""

    @pytest.mark.asyncio
    async def test_unsubscribe(self) -> None:
        bus = EventBus()
        received = []
        sub_id = bus.subscribe(received.append)

        assert bus.unsubscribe(sub_id) is True
        assert bus.unsubscribe(sub_id) is False

        bus.publish(EventType.SYNC_COMPLETED, "inst-1")
        await bus.drain()
        assert received == []
        await bus.close()

    @pytest.mark.asyncio
    async def test_close_ignores_later_publications(self) -> None:
        bus = EventBus()
        bus.subscribe(lambda event: None)
        await bus.close()

        event = bus.publish(EventType.SYNC_COMPLETED, "inst-1")

        assert event.subject_id == "inst-1"
        assert bus.subscriber_count == 0

    def test_event_to_dict(self) -> None:
        bus = EventBus()
        event = bus.publish(EventType.RECONNECT_SCHEDULED, "crm", {"delay": 5.0})

        data = event.to_dict()
        assert data["event_type"] == "endpoint.reconnect_scheduled"
        assert data["data"] == {"delay": 5.0}
        assert isinstance(bus, IEventPublisher)
