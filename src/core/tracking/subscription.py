# src/core/tracking/subscription.py
"""
Поток событий трекинга для одного подписчика.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Callable

from src.core.tracking.models import StreamGap, TrackingUpdate


StreamItem = TrackingUpdate | StreamGap


class Subscription:
    """
    Ограниченная очередь событий одного подписчика (карта пассажира,
    экран водителя, панель диспетчера).

    Публикация никогда не блокирует: если подписчик не успевает читать
    и очередь заполнена, отбрасывается самое старое событие. Перед следующим
    событием подписчик получит StreamGap с числом потерянных событий.

    При остановке сессии непрочитанные события отбрасываются, а итерация
    завершается - после stop() подписчик не увидит ни одного нового события.
    """

    def __init__(
        self,
        ride_id: str,
        maxsize: int = 64,
        on_close: Callable[["Subscription"], None] | None = None,
    ) -> None:
        if maxsize < 1:
            raise ValueError("maxsize должен быть положительным")
        self.ride_id = ride_id
        self._maxsize = maxsize
        self._on_close = on_close
        self._items: deque[TrackingUpdate] = deque()
        self._ready = asyncio.Event()
        self._pending_gap = 0
        self._closed = False

        # Для статистики
        self.delivered_count = 0
        self.dropped_count = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Количество непрочитанных событий."""
        return len(self._items)

    def publish(self, update: TrackingUpdate) -> bool:
        """
        Поставить событие в очередь подписчика.

        Returns:
            False, если подписка уже закрыта
        """
        if self._closed:
            return False

        if len(self._items) >= self._maxsize:
            self._items.popleft()
            self._pending_gap += 1
            self.dropped_count += 1

        self._items.append(update)
        self._ready.set()
        return True

    def terminate(self) -> None:
        """Завершить поток со стороны сессии (поездка закончилась)."""
        if self._closed:
            return
        self._closed = True
        self._items.clear()
        self._pending_gap = 0
        self._ready.set()

    def close(self) -> None:
        """Отписаться со стороны потребителя."""
        if self._closed:
            return
        self.terminate()
        if self._on_close is not None:
            self._on_close(self)

    def get_nowait(self) -> StreamItem | None:
        """Следующий элемент потока или None, если сейчас читать нечего."""
        if self._pending_gap:
            gap = StreamGap(ride_id=self.ride_id, dropped=self._pending_gap)
            self._pending_gap = 0
            return gap
        if self._items:
            self.delivered_count += 1
            return self._items.popleft()
        return None

    async def get(self) -> StreamItem | None:
        """
        Дождаться следующего элемента потока.

        Returns:
            Событие, маркер пропуска или None, когда поток закрыт
        """
        while True:
            item = self.get_nowait()
            if item is not None:
                return item
            if self._closed:
                return None
            self._ready.clear()
            await self._ready.wait()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> StreamItem:
        item = await self.get()
        if item is None:
            raise StopAsyncIteration
        return item
