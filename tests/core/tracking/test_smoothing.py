# tests/core/tracking/test_smoothing.py
"""
Тесты сглаживания позиции.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from src.core.tracking.smoothing import DEFAULT_WINDOW, smooth


class TestSmooth:
    """Тесты взвешенного скользящего среднего."""

    def test_empty_input(self) -> None:
        assert smooth([]) is None

    def test_single_sample_is_identity(self, make_sample) -> None:
        sample = make_sample(latitude=50.1, longitude=30.2, accuracy_meters=12.0, speed_mps=7.0, bearing_deg=45.0)
        result = smooth([sample])

        assert result.latitude == pytest.approx(50.1)
        assert result.longitude == pytest.approx(30.2)
        assert result.accuracy_meters == pytest.approx(12.0)
        assert result.speed_mps == 7.0
        assert result.bearing_deg == 45.0
        assert result.timestamp == sample.timestamp

    def test_identical_samples_give_same_point(self, make_sample) -> None:
        samples = [make_sample(latitude=50.2, longitude=30.3) for _ in range(5)]
        result = smooth(samples)

        assert result.latitude == pytest.approx(50.2)
        assert result.longitude == pytest.approx(30.3)

    def test_linear_weights(self, make_sample, clock) -> None:
        """Веса 1..5: (1*0 + 2*1 + 3*2 + 4*3 + 5*4) / 15 = 40/15."""
        samples = [
            make_sample(latitude=float(i), longitude=float(-i), timestamp=clock() + timedelta(seconds=i))
            for i in range(5)
        ]
        result = smooth(samples, window=5)

        assert result.latitude == pytest.approx(40 / 15)
        assert result.longitude == pytest.approx(-40 / 15)

    def test_uses_only_last_window(self, make_sample, clock) -> None:
        """Отметки вне окна не влияют на результат."""
        far = make_sample(latitude=10.0, longitude=10.0)
        recent = [
            make_sample(latitude=50.0, longitude=30.0, timestamp=clock() + timedelta(seconds=i + 1))
            for i in range(3)
        ]
        result = smooth([far] + recent, window=3)

        assert result.latitude == pytest.approx(50.0)
        assert result.longitude == pytest.approx(30.0)

    def test_fewer_samples_than_window(self, make_sample) -> None:
        """Две отметки: веса 1 и 2."""
        samples = [make_sample(latitude=0.0), make_sample(latitude=3.0)]
        result = smooth(samples, window=DEFAULT_WINDOW)
        assert result.latitude == pytest.approx(2.0)

    def test_accuracy_is_plain_mean(self, make_sample) -> None:
        samples = [make_sample(accuracy_meters=a) for a in (10.0, 20.0, 30.0)]
        assert smooth(samples).accuracy_meters == pytest.approx(20.0)

    def test_speed_bearing_time_from_newest(self, make_sample, clock) -> None:
        old = make_sample(speed_mps=1.0, bearing_deg=10.0)
        new = make_sample(speed_mps=9.0, bearing_deg=270.0, timestamp=clock() + timedelta(seconds=3))
        result = smooth([old, new])

        assert result.speed_mps == 9.0
        assert result.bearing_deg == 270.0
        assert result.timestamp == new.timestamp

    def test_invalid_window(self, make_sample) -> None:
        assert smooth([make_sample()], window=0) is None
