"""Built-in indicator presets.

Every preset is a pure function ``(bars) -> list[SeriesPoint]``. Window
boundaries are part of each preset's contract: rolling presets emit nothing
for the bars that precede their first full window, and the trailing window of
most presets ends at the bar *before* the emitted one.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from aadhaar_velocity.indicators.lorentzian import lorentzian_knn_signal
from aadhaar_velocity.types import SeriesPoint

if TYPE_CHECKING:
    from aadhaar_velocity.types import Bar

# Theoretical leading-digit frequencies; index 0 is unused.
BENFORD_DISTRIBUTION = (0.0, 0.301, 0.176, 0.125, 0.097, 0.079, 0.067, 0.058, 0.051, 0.046)

ENTROPY_EPSILON = 0.001
HAWKES_ALPHA_CAP = 1.5


def _require_positive(name: str, value: int) -> None:
    if value <= 0:
        raise ValueError(f"'{name}' must be a positive integer, got {value}")


def _or_nan(value: float | None) -> float:
    return math.nan if value is None else value


# ---------------------------------------------------------------------------
# Moving Averages
# ---------------------------------------------------------------------------


def sma(bars: list[Bar], period: int = 14) -> list[SeriesPoint]:
    """Simple moving average of close; first point at index ``period - 1``."""
    _require_positive("period", period)
    result: list[SeriesPoint] = []
    for i in range(period - 1, len(bars)):
        total = 0.0
        for j in range(period):
            total += bars[i - j].close
        result.append(SeriesPoint(time=bars[i].time, value=total / period))
    return result


def ema(bars: list[Bar], period: int = 14) -> list[SeriesPoint]:
    """Exponential moving average of close seeded with the first close.

    The recursion runs from the first bar; points are emitted from index
    ``period - 1``.
    """
    _require_positive("period", period)
    if not bars:
        return []
    k = 2 / (period + 1)
    value = bars[0].close
    result: list[SeriesPoint] = []
    for i, bar in enumerate(bars):
        value = bar.close * k + value * (1 - k)
        if i >= period - 1:
            result.append(SeriesPoint(time=bar.time, value=value))
    return result


# ---------------------------------------------------------------------------
# Field Passthroughs
# ---------------------------------------------------------------------------


def _project(bars: list[Bar], field: str) -> list[SeriesPoint]:
    return [SeriesPoint(time=bar.time, value=getattr(bar, field) or 0.0) for bar in bars]


def cohort_spread(bars: list[Bar]) -> list[SeriesPoint]:
    """Child (5-17) versus adult (17+) biometric oscillator.

    Positive means the younger cohort dominates.
    """
    return _project(bars, "spread")


def family_migration(bars: list[Bar]) -> list[SeriesPoint]:
    """Demographic family migration index (high = family relocation)."""
    return _project(bars, "migration")


def youth_dependency(bars: list[Bar]) -> list[SeriesPoint]:
    """Ratio of dependent enrolments to all enrolments."""
    return _project(bars, "youth")


def future_biometric_debt(bars: list[Bar]) -> list[SeriesPoint]:
    """Predicted future mandatory biometric update workload."""
    return _project(bars, "workload")


# ---------------------------------------------------------------------------
# Statistical Presets
# ---------------------------------------------------------------------------


def cointegration_residual(bars: list[Bar], lag: int = 4) -> list[SeriesPoint]:
    """Absolute gap between biometrics now and enrolments ``lag`` bars ago.

    A high residual means the two series have come apart. Missing raw
    counts fall back to ``volume``, then to 0.
    """
    _require_positive("lag", lag)
    result: list[SeriesPoint] = []
    for i in range(lag, len(bars)):
        y = bars[i].raw_bio or bars[i].volume or 0.0
        x = bars[i - lag].raw_enrol or bars[i - lag].volume or 0.0
        result.append(SeriesPoint(time=bars[i].time, value=abs(y - x)))
    return result


def hawkes_alpha(bars: list[Bar], window: int = 5) -> list[SeriesPoint]:
    """Self-excitation proxy: ratio of consecutive closes, capped at 1.5.

    ``window`` only sets where output starts; the ratio itself looks one bar
    back.
    """
    _require_positive("window", window)
    result: list[SeriesPoint] = []
    for i in range(window, len(bars)):
        current = abs(bars[i].close)
        previous = abs(bars[i - 1].close)
        if current > 0 and previous > 0:
            alpha = min(HAWKES_ALPHA_CAP, current / previous)
        else:
            alpha = 0.0
        result.append(SeriesPoint(time=bars[i].time, value=alpha))
    return result


def hurst_exponent(bars: list[Bar], window: int = 10) -> list[SeriesPoint]:
    """Rolling rescaled-range Hurst exponent of ``|close|``.

    H > 0.5 suggests trending, H < 0.5 mean reversion. Values are clamped to
    [0, 1] and default to 0.5 on a flat window.
    """
    _require_positive("window", window)
    result: list[SeriesPoint] = []
    for i in range(window, len(bars)):
        subset = [abs(bar.close) for bar in bars[i - window : i]]
        mean = sum(subset) / window
        stdev = math.sqrt(sum((v - mean) ** 2 for v in subset) / window)
        value_range = max(subset) - min(subset)
        if stdev > 0 and value_range > 0:
            h = math.log(value_range / stdev) / math.log(window)
        else:
            h = 0.5
        value = 0.5 if math.isnan(h) else max(0.0, min(1.0, h))
        result.append(SeriesPoint(time=bars[i].time, value=value))
    return result


def regime_entropy(bars: list[Bar]) -> list[SeriesPoint]:
    """Shannon entropy of the open/close split (high = chaotic regime)."""
    result: list[SeriesPoint] = []
    for bar in bars:
        v1 = abs(bar.open) + ENTROPY_EPSILON
        v2 = abs(bar.close) + ENTROPY_EPSILON
        total = v1 + v2
        p1 = v1 / total
        p2 = v2 / total
        entropy = -(p1 * math.log2(p1) + p2 * math.log2(p2))
        result.append(SeriesPoint(time=bar.time, value=0.0 if math.isnan(entropy) else entropy))
    return result


def velocity_acceleration(bars: list[Bar]) -> list[SeriesPoint]:
    """First difference of close."""
    return [
        SeriesPoint(time=bars[i].time, value=bars[i].close - bars[i - 1].close)
        for i in range(1, len(bars))
    ]


def lagged_pearson(bars: list[Bar], window: int = 6, lag: int = 4) -> list[SeriesPoint]:
    """Rolling Pearson r between lagged enrolments and current biometrics.

    ``x`` is the ``raw_enrol`` window ending ``lag`` bars before ``i``, ``y``
    the ``raw_bio`` window ending just before ``i``; both fall back to
    ``volume``. Degenerate or missing data gives 0.
    """
    _require_positive("window", window)
    if lag < 0:
        raise ValueError(f"'lag' must be non-negative, got {lag}")
    result: list[SeriesPoint] = []
    for i in range(window + lag, len(bars)):
        xs = [_or_nan(bar.raw_enrol or bar.volume) for bar in bars[i - window - lag : i - lag]]
        ys = [_or_nan(bar.raw_bio or bar.volume) for bar in bars[i - window : i]]
        mean_x = sum(xs) / window
        mean_y = sum(ys) / window

        num = 0.0
        den_x = 0.0
        den_y = 0.0
        for x, y in zip(xs, ys):
            dx = x - mean_x
            dy = y - mean_y
            num += dx * dy
            den_x += dx * dx
            den_y += dy * dy
        r = num / math.sqrt(den_x * den_y) if den_x > 0 and den_y > 0 else 0.0
        result.append(SeriesPoint(time=bars[i].time, value=0.0 if math.isnan(r) else r))
    return result


def leading_digit(value: float) -> int:
    """First character of the value's decimal text as a digit, else 0.

    Integral values are written without a fractional part, so ``120.0``
    leads with 1 and ``0.5`` with 0; signs and non-finite values give 0.
    Magnitudes in [1e-6, 1e21) use fixed notation, so ``0.00005`` leads
    with 0; exponent notation is used outside that range.
    """
    if not math.isfinite(value):
        return 0
    if value == int(value) and abs(value) < 1e21:
        text = str(int(value))
    elif 1e-6 <= abs(value) < 1e21:
        text = format(value, "f")
    else:
        text = repr(float(value))
    first = text[0]
    return int(first) if first.isdigit() else 0


def benford_mad(values: list[float]) -> float:
    """Mean absolute deviation of leading-digit frequencies from Benford's law.

    Frequencies are taken over ``len(values)`` even though values leading
    with 0 are not counted.
    """
    counts = [0] * 10
    for value in values:
        digit = leading_digit(value)
        if digit > 0:
            counts[digit] += 1
    window = len(values)
    mad = 0.0
    for digit in range(1, 10):
        mad += abs(counts[digit] / window - BENFORD_DISTRIBUTION[digit])
    return mad / 9


def benford_filter(bars: list[Bar], window: int = 12) -> list[SeriesPoint]:
    """Rolling Benford forensic score of ``volume`` (higher = more artificial)."""
    _require_positive("window", window)
    return [
        SeriesPoint(
            time=bars[i].time,
            value=benford_mad([bar.volume or 0.0 for bar in bars[i - window : i]]),
        )
        for i in range(window, len(bars))
    ]


def residual_anomaly(bars: list[Bar], window: int = 4) -> list[SeriesPoint]:
    """Close minus the trailing mean of the previous ``window`` closes."""
    _require_positive("window", window)
    result: list[SeriesPoint] = []
    for i in range(window, len(bars)):
        trend = sum(bar.close for bar in bars[i - window : i]) / window
        result.append(SeriesPoint(time=bars[i].time, value=bars[i].close - trend))
    return result
