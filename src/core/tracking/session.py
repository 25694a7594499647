# src/core/tracking/session.py
"""
Сессия трекинга одной поездки.

Сессия - единица конкурентности: владеет буфером отметок, сглаженной
позицией, пройденным расстоянием и двумя фоновыми задачами (метрики и
обновление маршрута). Приём отметок, цикл метрик и применение нового
маршрута сериализуются одним asyncio.Lock с короткими критическими секциями;
сетевой запрос маршрута выполняется вне блокировки.
"""

from __future__ import annotations

import asyncio
import math
from collections import deque
from datetime import datetime
from typing import Any, Awaitable, Callable

from src.common.constants import RejectReason, SessionState
from src.common.logger import log_debug, log_info, log_warning
from src.config.loader import TrackingSettings
from src.core.tracking.buffer import SessionBuffer
from src.core.tracking.errors import InvalidSample, SessionNotFound
from src.core.tracking.geo import haversine_distance_km, haversine_distance_m
from src.core.tracking.interfaces import NullPersistenceSink, PersistenceSink, RouteService
from src.core.tracking.metrics import MetricsAggregator
from src.core.tracking.models import (
    GeoPoint,
    PositionSample,
    RideTrackingSession,
    RouteResult,
    SmoothedPosition,
    TrackingMetrics,
    TrackingUpdate,
)
from src.core.tracking.route_refresh import RouteRefreshScheduler
from src.core.tracking.scheduling import run_every
from src.core.tracking.smoothing import smooth
from src.core.tracking.subscription import Subscription
from src.core.tracking.validator import SampleValidator, utc_now


class TrackingSession:
    """
    Состояния: STARTING -> ACTIVE -> STOPPED.

    - STARTING: буфер выделен, отметки уже принимаются, фоновые задачи не запущены
    - ACTIVE: с первой подпиской запускаются циклы метрик и обновления маршрута
    - STOPPED: терминальное; после возврата из stop() событий больше нет
    """

    def __init__(
        self,
        ride_id: str,
        driver_id: str,
        rider_id: str,
        destination: GeoPoint,
        initial_polyline: str = "",
        *,
        route_service: RouteService,
        sink: PersistenceSink | None = None,
        config: TrackingSettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.ride_id = ride_id
        self.driver_id = driver_id
        self.rider_id = rider_id
        self.destination = destination

        self._config = config or TrackingSettings()
        self._sink = sink or NullPersistenceSink()
        self._clock = clock
        self.started_at = clock()

        self._state = SessionState.STARTING
        self._lock = asyncio.Lock()
        self._stopped = asyncio.Event()

        self._buffer = SessionBuffer(self._config.BUFFER_CAPACITY)
        self._validator = SampleValidator(
            max_accuracy_meters=self._config.MAX_ACCURACY_METERS,
            max_age_seconds=self._config.MAX_SAMPLE_AGE_SECONDS,
            max_clock_skew_seconds=self._config.MAX_CLOCK_SKEW_SECONDS,
            max_speed_kmh=self._config.MAX_SPEED_KMH,
            clock=clock,
        )
        self._aggregator = MetricsAggregator(
            moving_speed_threshold_kmh=self._config.MOVING_SPEED_THRESHOLD_KMH,
            nominal_sample_interval_ms=self._config.NOMINAL_SAMPLE_INTERVAL_MS,
            clock=clock,
        )
        self._route_refresher = RouteRefreshScheduler(
            ride_id=ride_id,
            route_service=route_service,
            destination=destination,
            origin_provider=self._current_point,
            on_route=self._apply_route,
            interval_seconds=self._config.ROUTE_REFRESH_INTERVAL_SECONDS,
            timeout_seconds=self._config.ROUTE_REQUEST_TIMEOUT_SECONDS,
        )

        self._last_accepted: PositionSample | None = None
        self._smoothed: SmoothedPosition | None = None
        self._cumulative_distance_m = 0.0
        self._trail: deque[GeoPoint] = deque(maxlen=self._config.TRAIL_MAX_POINTS)
        self._polyline = initial_polyline
        self._route: RouteResult | None = None
        self._route_received_at: datetime | None = None
        self._metrics = TrackingMetrics.empty()

        self._subscribers: list[Subscription] = []
        self._tasks: list[asyncio.Task] = []
        self._pending_writes: set[asyncio.Task] = set()
        self._stop_callbacks: list[Callable[["TrackingSession"], None]] = []

        # Статистика
        self.accepted_count = 0
        self.rejected_counts: dict[RejectReason, int] = {}

    # =========================================================================
    # СВОЙСТВА
    # =========================================================================

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_stopped(self) -> bool:
        return self._state == SessionState.STOPPED

    @property
    def smoothed_position(self) -> SmoothedPosition | None:
        return self._smoothed

    @property
    def cumulative_distance_meters(self) -> float:
        return self._cumulative_distance_m

    @property
    def current_polyline(self) -> str:
        return self._polyline

    @property
    def buffer(self) -> SessionBuffer:
        return self._buffer

    @property
    def metrics(self) -> TrackingMetrics:
        return self._metrics

    @property
    def route_refresher(self) -> RouteRefreshScheduler:
        return self._route_refresher

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def add_stop_callback(self, callback: Callable[["TrackingSession"], None]) -> None:
        """Зарегистрировать обработчик остановки (реестр убирает сессию из индекса)."""
        self._stop_callbacks.append(callback)

    # =========================================================================
    # ПРИЁМ ОТМЕТОК
    # =========================================================================

    async def ingest(self, sample: PositionSample) -> TrackingUpdate | None:
        """
        Обработать сырую отметку.

        Отклонённые отметки молча отбрасываются: не меняют буфер, расстояние
        и не порождают событий.

        Returns:
            Событие трекинга или None, если отметка отклонена
        """
        rejected: RejectReason | None = None

        async with self._lock:
            if self.is_stopped:
                return None
            try:
                self._validator.ensure_valid(sample, self._last_accepted)
            except InvalidSample as e:
                rejected = e.reason
                self.rejected_counts[rejected] = self.rejected_counts.get(rejected, 0) + 1
                update = None
            else:
                update = self._accept(sample)

        if rejected is not None:
            await log_debug(
                f"Поездка {self.ride_id}: отметка отклонена ({rejected.value})",
                extra={"ride_id": self.ride_id, "source": sample.source_tag},
            )
        return update

    def _accept(self, sample: PositionSample) -> TrackingUpdate:
        """Обновить состояние принятой отметкой. Вызывается под блокировкой."""
        self._buffer.push(sample)
        self._last_accepted = sample
        self.accepted_count += 1

        window = self._config.SMOOTHING_WINDOW
        smoothed = smooth(self._buffer.recent(window), window)

        # Расстояние между сглаженными позициями, а не сырыми отметками
        previous = self._smoothed
        if previous is not None:
            self._cumulative_distance_m += haversine_distance_m(
                previous.latitude, previous.longitude,
                smoothed.latitude, smoothed.longitude,
            )

        self._smoothed = smoothed
        self._trail.append(smoothed.point)

        update = self._build_update(smoothed)
        self._emit(update)
        return update

    # =========================================================================
    # ПОДПИСКИ
    # =========================================================================

    async def subscribe(self) -> Subscription:
        """
        Подписаться на поток событий поездки.
        Первая подписка переводит сессию в ACTIVE и запускает фоновые задачи.

        Raises:
            SessionNotFound: сессия уже остановлена
        """
        async with self._lock:
            if self.is_stopped:
                raise SessionNotFound(self.ride_id)

            subscription = Subscription(
                self.ride_id,
                maxsize=self._config.SUBSCRIBER_QUEUE_SIZE,
                on_close=self._detach,
            )
            self._subscribers.append(subscription)

            # Новый подписчик сразу получает текущее положение
            if self._smoothed is not None:
                subscription.publish(self._build_update(self._smoothed))

            activated = self._state == SessionState.STARTING
            if activated:
                self._activate()

        if activated:
            await log_info(
                f"Поездка {self.ride_id}: трекинг активен",
                extra={"ride_id": self.ride_id, "driver_id": self.driver_id},
            )
        return subscription

    def _detach(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    def _activate(self) -> None:
        """Запустить фоновые задачи. Вызывается под блокировкой."""
        self._state = SessionState.ACTIVE
        self._tasks = [
            asyncio.create_task(
                run_every(
                    self._config.METRICS_INTERVAL_SECONDS,
                    self.refresh_metrics,
                    job_name="metrics",
                    ride_id=self.ride_id,
                ),
                name=f"tracking-metrics-{self.ride_id}",
            ),
            asyncio.create_task(
                self._route_refresher.run(),
                name=f"tracking-route-{self.ride_id}",
            ),
        ]

    def _emit(self, update: TrackingUpdate) -> None:
        """Разослать событие всем подписчикам. Вызывается под блокировкой."""
        for subscription in list(self._subscribers):
            subscription.publish(update)

    # =========================================================================
    # ФОНОВЫЕ ЦИКЛЫ
    # =========================================================================

    async def refresh_metrics(self) -> TrackingMetrics:
        """Пересчитать метрики из буфера и отправить их в хранилище."""
        async with self._lock:
            if self.is_stopped:
                return self._metrics
            metrics = self._aggregator.compute(
                self._buffer.snapshot(),
                self._cumulative_distance_m,
                self.started_at,
            )
            self._metrics = metrics

        self._persist(self._sink.write_metrics(self.ride_id, metrics), "метрики")
        return metrics

    async def refresh_route(self) -> RouteResult | None:
        """Внеочередное обновление маршрута (не пересекается с плановым)."""
        return await self._route_refresher.refresh_once()

    def _current_point(self) -> GeoPoint | None:
        return self._smoothed.point if self._smoothed is not None else None

    async def _apply_route(self, route: RouteResult) -> None:
        """Применить новый маршрут; результат, пришедший после stop(), отбрасывается."""
        async with self._lock:
            if self.is_stopped:
                return
            self._polyline = route.encoded_polyline
            self._route = route
            self._route_received_at = self._clock()
            if self._smoothed is not None:
                self._emit(self._build_update(self._smoothed))

        self._persist(self._sink.write_polyline(self.ride_id, route.encoded_polyline), "маршрут")

    # =========================================================================
    # ХРАНИЛИЩЕ (FIRE-AND-FORGET)
    # =========================================================================

    def _persist(self, write: Awaitable[Any], what: str) -> None:
        task = asyncio.create_task(self._guarded_write(write, what))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _guarded_write(self, write: Awaitable[Any], what: str) -> None:
        try:
            await write
        except Exception as e:
            await log_warning(
                f"Поездка {self.ride_id}: не удалось сохранить {what}: {e}",
                extra={"ride_id": self.ride_id},
            )

    async def flush(self) -> None:
        """Дождаться завершения отправленных записей в хранилище."""
        if self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    # =========================================================================
    # ETA И СОБЫТИЯ
    # =========================================================================

    def _estimate_eta_minutes(self, position: SmoothedPosition) -> int:
        """
        Оставшееся время в минутах.

        Если есть маршрут - его длительность за вычетом времени с момента расчёта.
        Иначе - расстояние по прямой до точки назначения при текущей скорости
        (или скорости по умолчанию, если автомобиль стоит).
        """
        if self._route is not None and self._route_received_at is not None:
            elapsed = (self._clock() - self._route_received_at).total_seconds()
            remaining_seconds = max(0.0, self._route.duration_seconds - elapsed)
            return math.ceil(remaining_seconds / 60)

        remaining_km = haversine_distance_km(
            position.latitude, position.longitude,
            self.destination.latitude, self.destination.longitude,
        )
        speed_kmh = position.speed_kmh
        if speed_kmh <= self._config.MOVING_SPEED_THRESHOLD_KMH:
            speed_kmh = self._config.DEFAULT_SPEED_KMH
        return math.ceil(remaining_km / speed_kmh * 60)

    def _build_update(self, position: SmoothedPosition) -> TrackingUpdate:
        return TrackingUpdate(
            ride_id=self.ride_id,
            smoothed_position=position,
            distance_traveled=self._cumulative_distance_m,
            eta_minutes=self._estimate_eta_minutes(position),
            polyline_points=tuple(self._trail),
            accuracy=position.accuracy_meters,
            timestamp=position.timestamp,
            encoded_polyline=self._polyline,
        )

    # =========================================================================
    # ОСТАНОВКА
    # =========================================================================

    async def stop(self) -> bool:
        """
        Остановить сессию. Идемпотентна.

        После возврата: фоновые задачи отменены и завершены, потоки подписчиков
        закрыты, поздние ответы сервиса маршрутов отбрасываются.

        Returns:
            True, если сессию остановил этот вызов
        """
        async with self._lock:
            already_stopping = self.is_stopped
            if not already_stopping:
                self._state = SessionState.STOPPED
                subscribers = list(self._subscribers)
                self._subscribers.clear()
                tasks = list(self._tasks)
                self._tasks.clear()

        if already_stopping:
            await self._stopped.wait()
            return False

        for subscription in subscribers:
            subscription.terminate()

        for task in tasks:
            task.cancel()
        try:
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            # Даже если остановку прервали, остальные вызовы stop() не зависнут
            for callback in self._stop_callbacks:
                callback(self)
            self._stopped.set()

        await log_info(
            f"Поездка {self.ride_id}: трекинг остановлен, "
            f"пройдено {self._cumulative_distance_m:.0f} м",
            extra={"ride_id": self.ride_id, "accepted": self.accepted_count},
        )
        return True

    # =========================================================================
    # СНИМОК
    # =========================================================================

    def snapshot(self) -> RideTrackingSession:
        """Текущее состояние сессии для API."""
        return RideTrackingSession(
            ride_id=self.ride_id,
            driver_id=self.driver_id,
            rider_id=self.rider_id,
            started_at=self.started_at,
            destination=self.destination,
            state=self._state,
            smoothed_position=self._smoothed,
            cumulative_distance_meters=self._cumulative_distance_m,
            current_route_polyline=self._polyline,
            buffer_size=len(self._buffer),
            subscribers=len(self._subscribers),
            metrics=self._metrics,
        )

    def get_stats(self) -> dict[str, Any]:
        """Статистика сессии."""
        return {
            "ride_id": self.ride_id,
            "state": self._state.value,
            "accepted": self.accepted_count,
            "rejected": {reason.value: count for reason, count in self.rejected_counts.items()},
            "route_refresh_success": self._route_refresher.success_count,
            "route_refresh_failure": self._route_refresher.failure_count,
            "subscribers": len(self._subscribers),
        }
