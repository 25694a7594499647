# src/core/tracking/route_refresh.py
"""
Периодический пересчёт оставшегося маршрута.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from src.common.logger import log_debug, log_warning
from src.core.tracking.interfaces import RouteService
from src.core.tracking.models import GeoPoint, RouteResult
from src.core.tracking.scheduling import run_every


class RouteRefreshScheduler:
    """
    Раз в interval_seconds запрашивает маршрут от сглаженной позиции до точки назначения.

    - Успех: результат передаётся в on_route (сессия заменяет polyline и уведомляет подписчиков)
    - Ошибка или таймаут: логируется, прежний polyline остаётся в силе
    - Одновременно выполняется не больше одного запроса на сессию
    """

    def __init__(
        self,
        ride_id: str,
        route_service: RouteService,
        destination: GeoPoint,
        origin_provider: Callable[[], GeoPoint | None],
        on_route: Callable[[RouteResult], Awaitable[None]],
        interval_seconds: float = 15.0,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._ride_id = ride_id
        self._route_service = route_service
        self._destination = destination
        self._origin_provider = origin_provider
        self._on_route = on_route
        self._interval = interval_seconds
        self._timeout = timeout_seconds
        self._in_flight = False

        # Статистика
        self.success_count = 0
        self.failure_count = 0

    @property
    def in_flight(self) -> bool:
        """Выполняется ли сейчас запрос маршрута."""
        return self._in_flight

    async def refresh_once(self) -> RouteResult | None:
        """
        Один цикл обновления маршрута.

        Returns:
            Новый маршрут или None (нет позиции, запрос уже идёт, ошибка сервиса)
        """
        if self._in_flight:
            return None

        origin = self._origin_provider()
        if origin is None:
            await log_debug(f"Поездка {self._ride_id}: позиции ещё нет, маршрут не обновляем")
            return None

        self._in_flight = True
        try:
            route = await asyncio.wait_for(
                self._route_service.get_route(origin, self._destination),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            self.failure_count += 1
            await log_warning(
                f"Поездка {self._ride_id}: таймаут сервиса маршрутов ({self._timeout} c), "
                f"оставляем прежний маршрут",
                extra={"ride_id": self._ride_id},
            )
            return None
        except Exception as e:
            self.failure_count += 1
            await log_warning(
                f"Поездка {self._ride_id}: ошибка сервиса маршрутов: {e}, оставляем прежний маршрут",
                extra={"ride_id": self._ride_id, "error": type(e).__name__},
            )
            return None
        finally:
            self._in_flight = False

        self.success_count += 1
        await self._on_route(route)
        return route

    async def run(self) -> None:
        """Цикл обновления до отмены задачи."""
        await run_every(
            self._interval,
            self.refresh_once,
            job_name="route_refresh",
            ride_id=self._ride_id,
        )
