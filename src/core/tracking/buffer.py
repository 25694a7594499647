# src/core/tracking/buffer.py
"""
Кольцевой буфер последних принятых отметок одной сессии.
"""

from __future__ import annotations

from collections import deque
from typing import Iterator

from src.core.tracking.models import PositionSample


class SessionBuffer:
    """
    FIFO ограниченной ёмкости.

    При переполнении вытесняется самая старая отметка.
    Единственный писатель - путь приёма отметок своей сессии.
    """

    def __init__(self, capacity: int = 100) -> None:
        if capacity < 1:
            raise ValueError("capacity должна быть положительной")
        self._capacity = capacity
        self._samples: deque[PositionSample] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def last(self) -> PositionSample | None:
        """Самая свежая отметка."""
        return self._samples[-1] if self._samples else None

    def push(self, sample: PositionSample) -> None:
        """Добавить отметку (вытесняет старейшую при заполненном буфере)."""
        self._samples.append(sample)

    def recent(self, n: int) -> list[PositionSample]:
        """Последние n отметок от старых к новым (или меньше, если столько нет)."""
        if n <= 0:
            return []
        if n >= len(self._samples):
            return list(self._samples)
        return list(self._samples)[-n:]

    def snapshot(self) -> list[PositionSample]:
        """Копия всего содержимого буфера."""
        return list(self._samples)

    def clear(self) -> None:
        self._samples.clear()

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[PositionSample]:
        return iter(list(self._samples))
