"""Lorentzian k-NN classification of identity-update velocity.

Uses Lorentzian distance to measure proximity in a four-feature space
(cohort spread, family migration, youth ratio, normalized close), which
dampens the effect of one-off administrative shocks compared to Euclidean
distance. Each bar is classified by summing the direction labels of
approximate nearest neighbours found among the preceding bars.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Callable

import numpy as np
from numpy.typing import NDArray

from aadhaar_velocity.types import Classification, LorentzianSettings, SeriesPoint, Signal

if TYPE_CHECKING:
    from aadhaar_velocity.types import Bar

# Bars looked ahead when labelling a training bar.
LABEL_HORIZON = 4
# Relative move over the horizon needed for a non-neutral label.
LABEL_THRESHOLD = 0.01
# Only every Nth scanned bar is a neighbour candidate.
NEIGHBOR_STRIDE = 4

# Called as on_admit(bar_index, offset, neighbor_count) after each admission.
AdmitHook = Callable[[int, int, int], None]


def normalize(value: float, minimum: float, maximum: float) -> float:
    """Scale ``value`` linearly to [0, 100]; 50 when the range is degenerate."""
    if maximum == minimum:
        return 50.0
    return ((value - minimum) / (maximum - minimum)) * 100


def extract_features(bars: list[Bar]) -> NDArray[np.float64]:
    """Build the (N, 4) feature matrix for a series.

    Close normalization bounds are taken once over the whole series.
    """
    if not bars:
        return np.empty((0, 4), dtype=np.float64)
    closes = [bar.close for bar in bars]
    min_close = min(closes)
    max_close = max(closes)
    return np.array(
        [
            [
                (bar.spread or 0) * 100,
                (bar.migration or 0) * 100,
                (bar.youth or 0) * 10,
                normalize(bar.close, min_close, max_close),
            ]
            for bar in bars
        ],
        dtype=np.float64,
    )


def lorentzian_distance(
    current: NDArray[np.float64] | list[float],
    historical: NDArray[np.float64] | list[float],
    feature_count: int = 4,
) -> float:
    """Sum of ``log(1 + |a_i - b_i|)`` over the first ``feature_count`` features."""
    a = np.asarray(current, dtype=np.float64)[:feature_count]
    b = np.asarray(historical, dtype=np.float64)[:feature_count]
    return float(np.log(1 + np.abs(a - b)).sum())


def training_labels(bars: list[Bar]) -> list[int]:
    """Label each bar by the direction of the close four bars later.

    The last four bars have no future and are labelled neutral.
    """
    labels: list[int] = []
    for i in range(len(bars) - LABEL_HORIZON):
        future_close = bars[i + LABEL_HORIZON].close
        current_close = bars[i].close
        if future_close > current_close * (1 + LABEL_THRESHOLD):
            labels.append(1)
        elif future_close < current_close * (1 - LABEL_THRESHOLD):
            labels.append(-1)
        else:
            labels.append(0)
    labels.extend([0] * LABEL_HORIZON)
    return labels


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class LorentzianClassifier:
    """Approximate nearest-neighbour classifier over Lorentzian distance.

    Example usage::

        classifier = LorentzianClassifier(LorentzianSettings(neighbors_count=8))
        for point in classifier.classify(bars):
            print(point.time, point.value, point.signal.value)

    :param settings: Neighbour count, lookback and feature count.
    :param on_admit: Optional hook called whenever a neighbour is admitted.
    """

    def __init__(
        self,
        settings: LorentzianSettings | None = None,
        on_admit: AdmitHook | None = None,
    ) -> None:
        self.settings = settings or LorentzianSettings()
        self.on_admit = on_admit

    def predict(self, bars: list[Bar]) -> list[tuple[int, int]]:
        """Return ``(bar_index, prediction_sum)`` for every classified bar.

        Empty when the series is shorter than ``max_bars_back + 5``.
        """
        max_bars_back = self.settings.max_bars_back
        neighbors_count = self.settings.neighbors_count
        feature_count = self.settings.feature_count

        if len(bars) < max_bars_back + 5:
            return []

        labels = training_labels(bars)
        features = extract_features(bars)[:, :feature_count]
        eviction_index = _round_half_up(neighbors_count * 0.75)

        results: list[tuple[int, int]] = []
        for bar_index in range(max_bars_back, len(bars)):
            loop_size = max(0, min(max_bars_back - 1, bar_index))
            # Offset i looks at bar_index - 1 - i, nearest first; only
            # stride-aligned offsets can ever be admitted.
            offsets = np.arange(0, loop_size, NEIGHBOR_STRIDE)
            history = features[bar_index - 1 - offsets]
            scan = np.log(1 + np.abs(history - features[bar_index])).sum(axis=1)

            distances: list[float] = []
            predictions: list[int] = []
            last_distance = -1.0
            for position, offset in enumerate(offsets):
                i = int(offset)
                d = float(scan[position])
                if d < last_distance:
                    continue
                last_distance = d
                distances.append(d)
                predictions.append(labels[bar_index - 1 - i])
                if len(predictions) > neighbors_count:
                    last_distance = distances[eviction_index]
                    distances.pop(0)
                    predictions.pop(0)
                if self.on_admit is not None:
                    self.on_admit(bar_index, i, len(predictions))

            results.append((bar_index, sum(predictions)))
        return results

    def classify(self, bars: list[Bar]) -> list[Classification]:
        """Classify each bar from ``max_bars_back`` onwards."""
        output: list[Classification] = []
        for bar_index, total in self.predict(bars):
            if total > 0:
                signal = Signal.ACCELERATE
            elif total < 0:
                signal = Signal.DECELERATE
            else:
                signal = Signal.NEUTRAL
            output.append(
                Classification(time=bars[bar_index].time, value=float(total), signal=signal)
            )
        return output


def lorentzian_classify(
    bars: list[Bar],
    settings: LorentzianSettings | None = None,
) -> list[Classification]:
    """Convenience wrapper around :class:`LorentzianClassifier`."""
    return LorentzianClassifier(settings).classify(bars)


def lorentzian_knn_signal(
    bars: list[Bar],
    neighbors_count: int = 8,
    max_bars_back: int = 50,
) -> list[SeriesPoint]:
    """Lorentzian KNN preset: prediction sums with an adaptive lookback.

    The lookback is clamped to ``len(bars) - 5`` so shorter series still
    produce a signal; a series of fewer than five bars produces nothing.
    """
    lookback = min(max_bars_back, len(bars) - 5)
    if lookback < 0:
        return []
    classifier = LorentzianClassifier(
        LorentzianSettings(neighbors_count=neighbors_count, max_bars_back=lookback)
    )
    return [
        SeriesPoint(time=bars[bar_index].time, value=float(total))
        for bar_index, total in classifier.predict(bars)
    ]
