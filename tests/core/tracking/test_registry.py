# tests/core/tracking/test_registry.py
"""
Тесты реестра сессий трекинга.
"""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest

from src.common.constants import SessionState
from src.core.tracking.errors import DuplicateSession, SessionNotFound
from src.core.tracking.geo import destination_point
from src.core.tracking.models import GeoPoint
from src.core.tracking.registry import SessionRegistry


@pytest.fixture
def registry(mock_route_service, mock_sink, tracking_config, clock) -> SessionRegistry:
    return SessionRegistry(mock_route_service, sink=mock_sink, config=tracking_config, clock=clock)


async def _start(registry: SessionRegistry, ride_id: str, destination: GeoPoint):
    return await registry.start(ride_id, f"driver-{ride_id}", f"rider-{ride_id}", destination)


class TestSessionRegistry:
    """Тесты SessionRegistry."""

    @pytest.mark.asyncio
    async def test_start_and_get(self, registry, destination) -> None:
        session = await _start(registry, "ride-1", destination)

        assert registry.get("ride-1") is session
        assert "ride-1" in registry
        assert len(registry) == 1
        assert registry.active_ride_ids() == ["ride-1"]
        assert session.state == SessionState.STARTING

    @pytest.mark.asyncio
    async def test_duplicate_start(self, registry, destination) -> None:
        await _start(registry, "ride-1", destination)

        with pytest.raises(DuplicateSession):
            await _start(registry, "ride-1", destination)

    @pytest.mark.asyncio
    async def test_unknown_ride(self, registry) -> None:
        with pytest.raises(SessionNotFound):
            registry.get("missing")
        with pytest.raises(SessionNotFound):
            await registry.subscribe("missing")
        with pytest.raises(SessionNotFound):
            await registry.stop("missing")

    @pytest.mark.asyncio
    async def test_dispatch_unknown_ride(self, registry, make_sample) -> None:
        with pytest.raises(SessionNotFound):
            await registry.dispatch("missing", make_sample())

    @pytest.mark.asyncio
    async def test_dispatch_routes_to_session(self, registry, destination, make_sample) -> None:
        session = await _start(registry, "ride-1", destination)

        update = await registry.dispatch("ride-1", make_sample())

        assert update is not None
        assert len(session.buffer) == 1

    @pytest.mark.asyncio
    async def test_stop_removes_session(self, registry, destination, make_sample) -> None:
        session = await _start(registry, "ride-1", destination)

        await registry.stop("ride-1")

        assert session.state == SessionState.STOPPED
        assert "ride-1" not in registry
        with pytest.raises(SessionNotFound):
            await registry.stop("ride-1")
        with pytest.raises(SessionNotFound):
            await registry.dispatch("ride-1", make_sample())

    @pytest.mark.asyncio
    async def test_session_stopped_directly_is_forgotten(self, registry, destination) -> None:
        session = await _start(registry, "ride-1", destination)

        await session.stop()

        assert "ride-1" not in registry
        assert registry.stopped_count == 1

    @pytest.mark.asyncio
    async def test_restart_after_stop(self, registry, destination) -> None:
        first = await _start(registry, "ride-1", destination)
        await registry.stop("ride-1")

        second = await _start(registry, "ride-1", destination)

        assert second is not first
        assert registry.get("ride-1") is second

    @pytest.mark.asyncio
    async def test_rides_are_independent(self, registry, destination, make_sample, clock) -> None:
        """Отметки одной поездки не влияют на другую."""
        ride_a = await _start(registry, "ride-a", destination)
        ride_b = await _start(registry, "ride-b", destination)
        sub_a = await registry.subscribe("ride-a")
        sub_b = await registry.subscribe("ride-b")

        for i in range(3):
            clock.advance(3)
            lat, lng = destination_point(50.4501, 30.5234, 0.0, 20.0 * i)
            await registry.dispatch("ride-a", make_sample(latitude=lat, longitude=lng))

        assert len(ride_a.buffer) == 3
        assert len(ride_b.buffer) == 0
        assert ride_b.cumulative_distance_meters == 0.0
        assert sub_a.pending == 3
        assert sub_b.pending == 0

        await registry.stop("ride-a")
        assert ride_b.state == SessionState.ACTIVE
        update = await registry.dispatch("ride-b", make_sample())
        assert update is not None
        assert sub_b.pending == 1

        await registry.stop_all()

    @pytest.mark.asyncio
    async def test_concurrent_start_single_winner(self, registry, destination) -> None:
        results = await asyncio.gather(
            _start(registry, "ride-1", destination),
            _start(registry, "ride-1", destination),
            return_exceptions=True,
        )

        assert sum(isinstance(r, DuplicateSession) for r in results) == 1
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_stop_all(self, registry, destination, make_sample, mock_sink) -> None:
        sessions = [await _start(registry, f"ride-{i}", destination) for i in range(3)]
        for s in sessions:
            await s.subscribe()
            await s.ingest(make_sample())
            await s.refresh_metrics()

        await registry.stop_all()

        assert len(registry) == 0
        assert all(s.state == SessionState.STOPPED for s in sessions)
        assert mock_sink.write_metrics.await_count == 3

    @pytest.mark.asyncio
    async def test_stop_all_empty(self, registry) -> None:
        await registry.stop_all()

    @pytest.mark.asyncio
    async def test_get_stats(self, registry, destination, make_sample) -> None:
        await _start(registry, "ride-1", destination)
        await registry.dispatch("ride-1", make_sample())
        await registry.dispatch("ride-1", make_sample(accuracy_meters=500.0))

        stats = registry.get_stats()

        assert stats["active_sessions"] == 1
        assert stats["started"] == 1
        assert stats["sessions"][0]["accepted"] == 1
        assert stats["sessions"][0]["rejected"] == {"low_accuracy": 1}

    def test_default_config_from_settings(self, mock_route_service) -> None:
        with patch("src.config.settings") as mock_settings:
            mock_settings.tracking.BUFFER_CAPACITY = 7
            registry = SessionRegistry(mock_route_service)

        assert registry._config.BUFFER_CAPACITY == 7
