# src/core/tracking/registry.py
"""
Реестр активных сессий трекинга.

Одна сессия на ride_id. Реестр маршрутизирует отметки в сессии и
управляет их жизненным циклом; сами сессии независимы друг от друга.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Callable

from src.common.logger import log_info
from src.config.loader import TrackingSettings
from src.core.tracking.errors import DuplicateSession, SessionNotFound
from src.core.tracking.interfaces import NullPersistenceSink, PersistenceSink, RouteService
from src.core.tracking.models import GeoPoint, PositionSample, RideTrackingSession, TrackingUpdate
from src.core.tracking.session import TrackingSession
from src.core.tracking.subscription import Subscription
from src.core.tracking.validator import utc_now


class SessionRegistry:
    """Индекс ride_id -> TrackingSession."""

    def __init__(
        self,
        route_service: RouteService,
        sink: PersistenceSink | None = None,
        config: TrackingSettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if config is None:
            from src.config import settings
            config = settings.tracking

        self._route_service = route_service
        self._sink = sink or NullPersistenceSink()
        self._config = config
        self._clock = clock
        self._sessions: dict[str, TrackingSession] = {}
        self._lock = asyncio.Lock()

        # Статистика
        self.started_count = 0
        self.stopped_count = 0

    # =========================================================================
    # ЖИЗНЕННЫЙ ЦИКЛ
    # =========================================================================

    async def start(
        self,
        ride_id: str,
        driver_id: str,
        rider_id: str,
        destination: GeoPoint,
        initial_polyline: str = "",
    ) -> TrackingSession:
        """
        Создать сессию трекинга поездки.

        Raises:
            DuplicateSession: для ride_id уже есть живая сессия
        """
        async with self._lock:
            if ride_id in self._sessions:
                raise DuplicateSession(ride_id)

            session = TrackingSession(
                ride_id,
                driver_id,
                rider_id,
                destination,
                initial_polyline,
                route_service=self._route_service,
                sink=self._sink,
                config=self._config,
                clock=self._clock,
            )
            session.add_stop_callback(self._forget)
            self._sessions[ride_id] = session
            self.started_count += 1

        await log_info(
            f"Трекинг поездки {ride_id} запущен (водитель {driver_id}, пассажир {rider_id})",
            extra={"ride_id": ride_id, "active_sessions": len(self._sessions)},
        )
        return session

    def _forget(self, session: TrackingSession) -> None:
        # Удаляем только ту сессию, что остановилась
        if self._sessions.get(session.ride_id) is session:
            del self._sessions[session.ride_id]
            self.stopped_count += 1

    async def stop(self, ride_id: str) -> None:
        """
        Остановить сессию поездки.

        Raises:
            SessionNotFound: сессии для ride_id нет
        """
        session = self._sessions.get(ride_id)
        if session is None:
            raise SessionNotFound(ride_id)
        await session.stop()

    async def stop_all(self) -> None:
        """Остановить все сессии и дождаться отложенных записей (shutdown сервиса)."""
        sessions = list(self._sessions.values())
        if not sessions:
            return

        await asyncio.gather(*(s.stop() for s in sessions))
        await asyncio.gather(*(s.flush() for s in sessions))
        await log_info(f"Остановлено сессий трекинга: {len(sessions)}")

    # =========================================================================
    # ДОСТУП
    # =========================================================================

    def get(self, ride_id: str) -> TrackingSession:
        """
        Raises:
            SessionNotFound: сессии для ride_id нет
        """
        session = self._sessions.get(ride_id)
        if session is None:
            raise SessionNotFound(ride_id)
        return session

    def snapshot(self, ride_id: str) -> RideTrackingSession:
        return self.get(ride_id).snapshot()

    async def dispatch(self, ride_id: str, sample: PositionSample) -> TrackingUpdate | None:
        """
        Передать отметку в сессию поездки.

        Returns:
            Событие трекинга или None, если отметка отклонена валидатором

        Raises:
            SessionNotFound: сессии для ride_id нет
        """
        return await self.get(ride_id).ingest(sample)

    async def subscribe(self, ride_id: str) -> Subscription:
        """
        Raises:
            SessionNotFound: сессии для ride_id нет
        """
        return await self.get(ride_id).subscribe()

    def active_ride_ids(self) -> list[str]:
        return list(self._sessions)

    def __contains__(self, ride_id: str) -> bool:
        return ride_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get_stats(self) -> dict[str, Any]:
        """Статистика реестра."""
        return {
            "active_sessions": len(self._sessions),
            "started": self.started_count,
            "stopped": self.stopped_count,
            "sessions": [s.get_stats() for s in self._sessions.values()],
        }
