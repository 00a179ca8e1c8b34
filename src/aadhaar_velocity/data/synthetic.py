"""Synthetic bar generation for demos and tests.

Bars follow a bounded random walk: each open drifts up to 5 from the previous
close, each close moves up to 10 from its open, and the high/low extend past
the body by up to 5. Times advance one week per bar.
"""

from __future__ import annotations

import random

from aadhaar_velocity.types import Bar

DEFAULT_START_VALUE = 1500.0
DEFAULT_START_TIME = 1_704_067_200  # 2024-01-01T00:00:00Z
WEEK_SECONDS = 7 * 24 * 60 * 60


def generate_sample_bars(
    n: int,
    seed: int | None = None,
    start_value: float = DEFAULT_START_VALUE,
    start_time: int = DEFAULT_START_TIME,
    step_seconds: int = WEEK_SECONDS,
    with_auxiliary: bool = True,
) -> list[Bar]:
    """Generate ``n`` random-walk bars.

    :param n: Number of bars.
    :param seed: Random seed; the same seed always yields the same bars.
    :param start_value: Level the walk starts from.
    :param start_time: Unix time of the first bar.
    :param step_seconds: Spacing between bar times.
    :param with_auxiliary: Also fill volume and the auxiliary cohort fields.
    :returns: Bars ordered by time.
    """
    if n < 0:
        raise ValueError("n must be non-negative")

    rng = random.Random(seed)
    bars: list[Bar] = []
    value = start_value

    for i in range(n):
        open_ = value + (rng.random() - 0.5) * 10
        close = open_ + (rng.random() - 0.5) * 20
        high = max(open_, close) + rng.random() * 5
        low = min(open_, close) - rng.random() * 5

        extra: dict[str, float] = {}
        if with_auxiliary:
            raw_bio = float(rng.randint(200, 2000))
            raw_enrol = float(rng.randint(50, 800))
            extra = {
                "volume": raw_bio + raw_enrol,
                "spread": rng.uniform(-0.5, 0.5),
                "migration": rng.uniform(0.0, 1.0),
                "youth": rng.uniform(0.0, 1.0),
                "workload": rng.uniform(0.0, 500.0),
                "raw_bio": raw_bio,
                "raw_enrol": raw_enrol,
            }

        bars.append(
            Bar(
                time=start_time + i * step_seconds,
                open=open_,
                high=high,
                low=low,
                close=close,
                **extra,
            )
        )
        value = close

    return bars
