# src/core/geo/service.py
"""
Geo-сервис для работы с Google Maps Directions API.
Расчёт оставшегося маршрута от текущей позиции автомобиля до точки назначения.
"""

from __future__ import annotations

from typing import Any

import httpx

from src.core.tracking.errors import RouteServiceError
from src.core.tracking.models import GeoPoint, RouteResult


class GeoService:
    """
    Сервис расчёта маршрутов через Google Maps Directions API.

    Реализует RouteService: get_route бросает RouteServiceError,
    если сервис недоступен или маршрут не найден.
    """

    DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"

    def __init__(
        self,
        api_key: str | None = None,
        language: str = "en",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Инициализация сервиса.

        Args:
            api_key: API ключ Google Maps (берётся из конфига если None)
            language: Язык для ответов
            timeout: Таймаут HTTP-запроса в секундах
            client: Готовый HTTP клиент (для тестов)
        """
        if api_key is None:
            from src.config import settings
            api_key = settings.google_maps.GOOGLE_MAPS_API_KEY
            language = settings.google_maps.DIRECTIONS_LANGUAGE
            timeout = settings.google_maps.DIRECTIONS_TIMEOUT

        self._api_key = api_key
        self._language = language
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Закрывает HTTP клиент."""
        await self._client.aclose()

    async def _request_directions(self, origin: GeoPoint, destination: GeoPoint) -> dict[str, Any]:
        """Запрос к Directions API. Возвращает первый маршрут ответа."""
        if not self._api_key:
            raise RouteServiceError("Google Maps API key не настроен")

        try:
            response = await self._client.get(
                self.DIRECTIONS_URL,
                params={
                    "origin": f"{origin.latitude},{origin.longitude}",
                    "destination": f"{destination.latitude},{destination.longitude}",
                    "mode": "driving",
                    "key": self._api_key,
                    "language": self._language,
                },
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise RouteServiceError(f"Directions API недоступен: {e}") from e
        except ValueError as e:
            raise RouteServiceError(f"Некорректный ответ Directions API: {e}") from e

        status = data.get("status")
        if status != "OK" or not data.get("routes"):
            raise RouteServiceError(f"Маршрут не найден, статус Directions API: {status}")

        return data["routes"][0]

    async def get_route(self, origin: GeoPoint, destination: GeoPoint) -> RouteResult:
        """
        Рассчитывает маршрут между двумя точками.

        Raises:
            RouteServiceError: сервис недоступен или маршрут не найден
        """
        route = await self._request_directions(origin, destination)

        try:
            leg = route["legs"][0]
            distance_m = float(leg["distance"]["value"])
            duration_s = float(leg["duration"]["value"])
        except (KeyError, IndexError, TypeError) as e:
            raise RouteServiceError(f"В ответе Directions API нет данных маршрута: {e}") from e

        return RouteResult(
            encoded_polyline=route.get("overview_polyline", {}).get("points", ""),
            distance_meters=distance_m,
            duration_seconds=duration_s,
        )
