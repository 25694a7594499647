# src/services/realtime_tracking/app.py
"""
FastAPI приложение для Realtime Tracking.

REST endpoints:
- GET /health - проверка здоровья
- GET /stats - статистика сессий
- POST /api/v1/rides/{ride_id}/tracking - начать трекинг поездки
- GET /api/v1/rides/{ride_id}/tracking - снимок сессии
- DELETE /api/v1/rides/{ride_id}/tracking - остановить трекинг
- GET /api/v1/rides/{ride_id}/summary - сохранённые итоги поездки
- POST /api/v1/rides/{ride_id}/samples - отметка GPS от водителя

WebSocket endpoints:
- /ws/rides/{ride_id} - поток событий трекинга (tracking_update, gap)
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field, field_validator
from starlette.websockets import WebSocketState

from src.common.logger import log_info, log_warning, setup_logging
from src.core.geo.service import GeoService
from src.core.tracking.errors import DuplicateSession, SessionNotFound
from src.core.tracking.interfaces import NullPersistenceSink, PersistenceSink
from src.core.tracking.models import GeoPoint, PositionSample
from src.core.tracking.registry import SessionRegistry
from src.core.tracking.subscription import Subscription
from src.infra.redis_client import RedisClient, close_redis, init_redis
from src.infra.tracking_sink import RedisTrackingSink
from src.shared.models.common import HealthStatus


SERVICE_NAME = "realtime_tracking"
SERVICE_VERSION = "1.0.0"

# Коды закрытия WebSocket
WS_CLOSE_NORMAL = 1000
WS_CLOSE_RIDE_NOT_FOUND = 4404


# === MODELS ===

class PointModel(BaseModel):
    """Точка на карте."""
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class StartTrackingRequest(BaseModel):
    """Запрос на старт трекинга поездки."""
    driver_id: str
    rider_id: str
    destination: PointModel
    initial_polyline: str = ""


class SampleRequest(BaseModel):
    """
    Отметка GPS от устройства водителя.
    Диапазон координат не ограничивается здесь: неправдоподобные
    отметки отсекает валидатор сессии.
    """
    lat: float
    lng: float
    accuracy: float = Field(..., ge=0)  # метры
    speed: float = Field(default=0.0, ge=0)  # м/с
    bearing: float = 0.0  # градусы
    timestamp: datetime
    source: str = "driver_app"

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Время без часового пояса считается UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    def to_sample(self) -> PositionSample:
        return PositionSample(
            latitude=self.lat,
            longitude=self.lng,
            accuracy_meters=self.accuracy,
            speed_mps=self.speed,
            bearing_deg=self.bearing,
            timestamp=self.timestamp,
            source_tag=self.source,
        )


class SampleResponse(BaseModel):
    """Результат приёма отметки."""
    ride_id: str
    accepted: bool


class StatsResponse(BaseModel):
    """Статистика сервиса."""
    active_sessions: int
    started: int
    stopped: int
    sessions: list[dict[str, Any]]


class RideSummaryResponse(BaseModel):
    """Сохранённые итоги поездки (доступны и после остановки трекинга)."""
    ride_id: str
    metrics: dict[str, Any] | None = None
    encoded_polyline: str | None = None


# === SERVICE SINGLETONS ===

_registry: SessionRegistry | None = None
_geo_service: GeoService | None = None
_redis: RedisClient | None = None
_tracking_store: RedisTrackingSink | None = None
_started_at: float = time.monotonic()


def get_registry() -> SessionRegistry:
    """Получить реестр сессий."""
    if _registry is None:
        raise RuntimeError("Service not initialized")
    return _registry


async def _connect_sink(ttl_seconds: int) -> PersistenceSink:
    """Хранилище метрик; без Redis сервис работает, но ничего не сохраняет."""
    global _redis, _tracking_store

    try:
        _redis = await init_redis()
    except Exception as e:
        _redis = None
        _tracking_store = None
        await log_warning(f"Redis недоступен, метрики и маршруты не сохраняются: {e}")
        return NullPersistenceSink()

    _tracking_store = RedisTrackingSink(_redis, ttl_seconds=ttl_seconds)
    return _tracking_store


# === LIFESPAN ===

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Жизненный цикл приложения."""
    global _registry, _geo_service, _redis, _tracking_store, _started_at

    from src.config import settings

    # Startup
    setup_logging()
    _started_at = time.monotonic()

    sink = await _connect_sink(settings.tracking.TRACKING_TTL)
    _geo_service = GeoService()
    _registry = SessionRegistry(_geo_service, sink=sink, config=settings.tracking)

    await log_info(f"Сервис {SERVICE_NAME} запущен")

    yield

    # Shutdown
    await _registry.stop_all()
    await _geo_service.close()
    if _redis is not None:
        await close_redis()

    _registry = None
    _geo_service = None
    _redis = None
    _tracking_store = None
    await log_info(f"Сервис {SERVICE_NAME} остановлен")


# === APP ===

app = FastAPI(
    title="Realtime Tracking",
    description="Трекинг поездок в реальном времени: сглаженная позиция, ETA и маршрут.",
    version=SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


# === HEALTH CHECK ===

@app.get("/health", response_model=HealthStatus, tags=["Health"])
async def health_check() -> HealthStatus:
    """Проверка здоровья сервиса."""
    dependencies: dict[str, str] = {}
    status = "healthy"

    if _redis is None:
        dependencies["redis"] = "disabled"
    elif await _redis.health_check():
        dependencies["redis"] = "healthy"
    else:
        dependencies["redis"] = "unhealthy"
        status = "degraded"

    return HealthStatus(
        status=status,
        service=SERVICE_NAME,
        version=SERVICE_VERSION,
        uptime_seconds=round(time.monotonic() - _started_at, 1),
        dependencies=dependencies,
    )


# === STATS ===

@app.get("/stats", response_model=StatsResponse, tags=["Stats"])
async def get_stats() -> StatsResponse:
    """Получить статистику сервиса."""
    return StatsResponse(**get_registry().get_stats())


# === TRACKING ENDPOINTS ===

@app.post(
    "/api/v1/rides/{ride_id}/tracking",
    status_code=201,
    responses={409: {"description": "Трекинг поездки уже запущен"}},
    tags=["Tracking"],
    summary="Начать трекинг поездки",
)
async def start_tracking(ride_id: str, request: StartTrackingRequest) -> dict[str, Any]:
    """
    Начать трекинг поездки.

    Вызывается, когда водитель принял заказ и выехал.
    """
    registry = get_registry()
    try:
        session = await registry.start(
            ride_id=ride_id,
            driver_id=request.driver_id,
            rider_id=request.rider_id,
            destination=GeoPoint(request.destination.lat, request.destination.lng),
            initial_polyline=request.initial_polyline,
        )
    except DuplicateSession as e:
        raise HTTPException(status_code=409, detail=str(e))

    return session.snapshot().to_dict()


@app.get(
    "/api/v1/rides/{ride_id}/tracking",
    responses={404: {"description": "Трекинг поездки не найден"}},
    tags=["Tracking"],
    summary="Снимок сессии трекинга",
)
async def get_tracking(ride_id: str) -> dict[str, Any]:
    """Текущее состояние сессии: позиция, расстояние, метрики, маршрут."""
    try:
        return get_registry().snapshot(ride_id).to_dict()
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.delete(
    "/api/v1/rides/{ride_id}/tracking",
    responses={404: {"description": "Трекинг поездки не найден"}},
    tags=["Tracking"],
    summary="Остановить трекинг поездки",
)
async def stop_tracking(ride_id: str) -> dict[str, str]:
    """
    Остановить трекинг.

    Вызывается при завершении или отмене поездки. После ответа
    подписчики не получат ни одного нового события.
    """
    try:
        await get_registry().stop(ride_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    return {"status": "stopped", "ride_id": ride_id}


@app.get(
    "/api/v1/rides/{ride_id}/summary",
    response_model=RideSummaryResponse,
    responses={
        404: {"description": "Итоги поездки не найдены"},
        503: {"description": "Хранилище недоступно"},
    },
    tags=["Tracking"],
    summary="Сохранённые итоги поездки",
)
async def get_ride_summary(ride_id: str) -> RideSummaryResponse:
    """
    Последние сохранённые метрики и маршрут поездки.

    Читаются из Redis, поэтому доступны и после остановки трекинга
    (пока не истёк TTL).
    """
    if _tracking_store is None:
        raise HTTPException(status_code=503, detail="Хранилище метрик недоступно")

    metrics = await _tracking_store.read_metrics(ride_id)
    polyline = await _tracking_store.read_polyline(ride_id)
    if metrics is None and polyline is None:
        raise HTTPException(status_code=404, detail=f"Итоги поездки не найдены: {ride_id}")

    return RideSummaryResponse(
        ride_id=ride_id,
        metrics=metrics.to_dict() if metrics is not None else None,
        encoded_polyline=polyline,
    )


@app.post(
    "/api/v1/rides/{ride_id}/samples",
    response_model=SampleResponse,
    status_code=202,
    responses={404: {"description": "Трекинг поездки не найден"}},
    tags=["Tracking"],
    summary="Отметка GPS от водителя",
)
async def ingest_sample(ride_id: str, request: SampleRequest) -> SampleResponse:
    """
    Принять отметку геолокации.

    accepted=false означает, что отметка отфильтрована как неправдоподобная.
    """
    try:
        update = await get_registry().dispatch(ride_id, request.to_sample())
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    return SampleResponse(ride_id=ride_id, accepted=update is not None)


# === WEBSOCKET ENDPOINTS ===

async def _watch_disconnect(websocket: WebSocket, subscription: Subscription) -> None:
    """Закрыть подписку, когда клиент отключится. Входящие сообщения игнорируются."""
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    except WebSocketDisconnect:
        pass
    finally:
        subscription.close()


@app.websocket("/ws/rides/{ride_id}")
async def ride_stream(websocket: WebSocket, ride_id: str) -> None:
    """
    WebSocket для пассажира, водителя или диспетчера.

    Исходящие сообщения:
    - {"type": "tracking_update", ...} - сглаженная позиция, ETA, маршрут
    - {"type": "gap", "dropped": N} - клиент не успевал читать, N событий пропущено

    Соединение закрывается с кодом 1000, когда трекинг поездки остановлен,
    и с кодом 4404, если трекинг поездки не найден.
    """
    await websocket.accept()

    try:
        subscription = await get_registry().subscribe(ride_id)
    except SessionNotFound:
        await websocket.close(code=WS_CLOSE_RIDE_NOT_FOUND)
        return

    watcher = asyncio.create_task(_watch_disconnect(websocket, subscription))
    try:
        async for item in subscription:
            await websocket.send_json(item.to_dict())
    except WebSocketDisconnect:
        subscription.close()
    finally:
        watcher.cancel()
        await asyncio.gather(watcher, return_exceptions=True)

    if (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    ):
        await websocket.close(code=WS_CLOSE_NORMAL)


# === STARTUP ===

if __name__ == "__main__":
    import uvicorn
    from src.config import settings

    uvicorn.run(
        app,
        host=settings.deployment.REALTIME_TRACKING_HOST,
        port=settings.deployment.REALTIME_TRACKING_PORT,
    )
