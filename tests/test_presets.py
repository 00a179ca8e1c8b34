"""Tests for the built-in indicator presets."""

import math

import pytest

from aadhaar_velocity.data import generate_sample_bars
from aadhaar_velocity.indicators import presets
from aadhaar_velocity.types import Bar


def make_bars(closes: list[float], **fields: list) -> list[Bar]:
    """Build bars with the given closes; open/high/low follow close."""
    bars = []
    for i, close in enumerate(closes):
        extra = {name: values[i] for name, values in fields.items()}
        bars.append(
            Bar(time=1000 + i, open=close, high=close + 1, low=close - 1, close=close, **extra)
        )
    return bars


@pytest.fixture
def ramp() -> list[Bar]:
    """Twenty bars with closes 100..119."""
    return make_bars([100.0 + i for i in range(20)])


@pytest.fixture
def sample_bars() -> list[Bar]:
    """Seeded synthetic series with auxiliary fields."""
    return generate_sample_bars(80, seed=7)


class TestMovingAverages:
    """Tests for SMA and EMA."""

    def test_sma_ramp(self, ramp: list[Bar]) -> None:
        """SMA(14) of 100..119 starts at 106.5 and ends at 112.5."""
        points = presets.sma(ramp, period=14)

        assert len(points) == 7
        assert points[0].value == pytest.approx(106.5)
        assert points[-1].value == pytest.approx(112.5)
        assert points[0].time == ramp[13].time
        assert points[-1].time == ramp[-1].time

    def test_sma_of_constant_series(self) -> None:
        """SMA of a constant series is that constant."""
        points = presets.sma(make_bars([42.0] * 20), period=5)

        assert len(points) == 16
        assert all(p.value == pytest.approx(42.0) for p in points)

    def test_sma_shorter_than_period_is_empty(self) -> None:
        """Fewer bars than the period yields nothing."""
        assert presets.sma(make_bars([1.0] * 13), period=14) == []

    def test_sma_rejects_non_positive_period(self, ramp: list[Bar]) -> None:
        """Period must be positive."""
        with pytest.raises(ValueError, match="period"):
            presets.sma(ramp, period=0)

    def test_ema_constant_series(self) -> None:
        """EMA seeded with the first close stays flat on a constant series."""
        points = presets.ema(make_bars([10.0] * 20), period=14)

        assert len(points) == 7
        assert all(p.value == pytest.approx(10.0) for p in points)

    def test_ema_period_one_tracks_close(self, ramp: list[Bar]) -> None:
        """With period 1 the smoothing factor is 1."""
        points = presets.ema(ramp, period=1)

        assert [p.value for p in points] == [bar.close for bar in ramp]

    def test_ema_recursion(self) -> None:
        """EMA(3) follows value = close * k + prev * (1 - k) from the first bar."""
        bars = make_bars([10.0, 20.0, 30.0])
        k = 0.5
        expected = 10.0
        for close in (10.0, 20.0, 30.0):
            expected = close * k + expected * (1 - k)

        points = presets.ema(bars, period=3)

        assert len(points) == 1
        assert points[0].value == pytest.approx(expected)

    def test_ema_empty(self) -> None:
        """No bars, no points."""
        assert presets.ema([], period=14) == []


class TestFieldProjections:
    """Tests for presets that pass auxiliary fields through."""

    def test_missing_fields_read_as_zero(self) -> None:
        """Absent auxiliary fields project to 0."""
        bars = make_bars([1.0, 2.0])

        for preset in (
            presets.cohort_spread,
            presets.family_migration,
            presets.youth_dependency,
            presets.future_biometric_debt,
        ):
            assert [p.value for p in preset(bars)] == [0.0, 0.0]

    def test_cohort_spread_passthrough(self) -> None:
        """Every bar is emitted with its spread."""
        bars = make_bars([1.0, 2.0, 3.0], spread=[0.1, -0.2, 0.3])

        points = presets.cohort_spread(bars)

        assert [p.value for p in points] == [0.1, -0.2, 0.3]
        assert [p.time for p in points] == [b.time for b in bars]


class TestStatisticalPresets:
    """Tests for the rolling statistical presets."""

    def test_cointegration_uses_lagged_enrolment(self) -> None:
        """Residual is |raw_bio[i] - raw_enrol[i - lag]|."""
        bars = make_bars(
            [1.0] * 6,
            raw_bio=[0, 0, 0, 0, 50, 70],
            raw_enrol=[10, 20, 0, 0, 0, 0],
        )

        points = presets.cointegration_residual(bars, lag=4)

        assert [p.value for p in points] == [40.0, 50.0]

    def test_cointegration_falls_back_to_volume(self) -> None:
        """Missing raw counts read volume instead."""
        bars = make_bars([1.0] * 5, volume=[5, 5, 5, 5, 12])

        points = presets.cointegration_residual(bars, lag=4)

        assert [p.value for p in points] == [7.0]

    def test_hawkes_alpha_capped(self) -> None:
        """Ratio of consecutive closes is capped at 1.5."""
        bars = make_bars([10.0, 10.0, 10.0, 10.0, 10.0, 12.0, 30.0])

        points = presets.hawkes_alpha(bars, window=5)

        assert [p.value for p in points] == pytest.approx([1.2, 1.5])

    def test_hawkes_alpha_zero_close(self) -> None:
        """A zero close gives alpha 0."""
        bars = make_bars([1.0, 1.0, 0.0])

        assert presets.hawkes_alpha(bars, window=2)[0].value == 0.0

    def test_hurst_flat_window_is_half(self) -> None:
        """A flat window has no range and defaults to 0.5."""
        points = presets.hurst_exponent(make_bars([5.0] * 15), window=10)

        assert len(points) == 5
        assert all(p.value == 0.5 for p in points)

    def test_hurst_in_unit_interval(self, sample_bars: list[Bar]) -> None:
        """Hurst exponent is clamped to [0, 1]."""
        points = presets.hurst_exponent(sample_bars, window=10)

        assert len(points) == len(sample_bars) - 10
        assert all(0.0 <= p.value <= 1.0 for p in points)

    def test_hurst_window_floor(self) -> None:
        """The first point needs a full window before it."""
        assert presets.hurst_exponent(make_bars([1.0] * 10), window=10) == []
        assert len(presets.hurst_exponent(make_bars([1.0] * 11), window=10)) == 1

    def test_regime_entropy_balanced(self) -> None:
        """Equal open and close give one bit of entropy."""
        points = presets.regime_entropy(make_bars([100.0]))

        assert points[0].value == pytest.approx(1.0)

    def test_regime_entropy_zero_bar(self) -> None:
        """A bar of zeros still has a finite entropy."""
        bar = Bar(time=0, open=0.0, high=0.0, low=0.0, close=0.0)

        assert presets.regime_entropy([bar])[0].value == pytest.approx(1.0)

    def test_velocity_acceleration(self) -> None:
        """First difference of close, starting at the second bar."""
        points = presets.velocity_acceleration(make_bars([1.0, 4.0, 2.0]))

        assert [p.value for p in points] == [3.0, -2.0]

    def test_lagged_pearson_perfect_correlation(self) -> None:
        """Two linear ramps are perfectly correlated."""
        bars = make_bars([1.0] * 14, volume=[float(10 * i + 5) for i in range(14)])

        points = presets.lagged_pearson(bars, window=6, lag=4)

        assert len(points) == 4
        assert all(p.value == pytest.approx(1.0) for p in points)

    def test_lagged_pearson_degenerate_is_zero(self) -> None:
        """Constant inputs have no variance and give 0."""
        bars = make_bars([1.0] * 12, volume=[3.0] * 12)

        assert all(p.value == 0.0 for p in presets.lagged_pearson(bars))

    def test_lagged_pearson_missing_data_is_zero(self) -> None:
        """Missing counts propagate as NaN and are reported as 0."""
        bars = make_bars([1.0] * 12)

        points = presets.lagged_pearson(bars)

        assert len(points) == 2
        assert all(p.value == 0.0 for p in points)

    def test_residual_anomaly_on_ramp(self, ramp: list[Bar]) -> None:
        """On a unit ramp, close sits 2.5 above the trailing 4-bar mean."""
        points = presets.residual_anomaly(ramp, window=4)

        assert len(points) == 16
        assert all(p.value == pytest.approx(2.5) for p in points)


class TestBenford:
    """Tests for the Benford forensic filter."""

    @pytest.mark.parametrize(
        ("value", "digit"),
        [
            (120.0, 1),
            (7.25, 7),
            (0.5, 0),
            (0.00005, 0),
            (1e-6, 0),
            (1e-7, 1),
            (-3.0, 0),
            (1e22, 1),
            (math.nan, 0),
            (math.inf, 0),
        ],
    )
    def test_leading_digit(self, value: float, digit: int) -> None:
        """Leading digit comes from the decimal text of the value."""
        assert presets.leading_digit(value) == digit

    def test_all_ones_mad(self) -> None:
        """Twelve values leading with 1: MAD = (0.699 + 0.699) / 9."""
        bars = make_bars([1.0] * 13, volume=[100.0] * 13)

        points = presets.benford_filter(bars, window=12)

        assert len(points) == 1
        assert points[0].value == pytest.approx(0.155333, abs=1e-6)
        assert points[0].time == bars[12].time

    def test_zero_leading_values_still_count_in_window(self) -> None:
        """Values leading with 0 are excluded from counts, not from the denominator."""
        mad = presets.benford_mad([0.5, 0.5])

        assert mad == pytest.approx(sum(presets.BENFORD_DISTRIBUTION[1:]) / 9)

    def test_window_floor(self) -> None:
        """The first point needs a full window before it."""
        bars = make_bars([1.0] * 12, volume=[100.0] * 12)

        assert presets.benford_filter(bars, window=12) == []


class TestDeterminism:
    """Presets are pure functions of their input."""

    @pytest.mark.parametrize(
        "preset",
        [
            presets.sma,
            presets.ema,
            presets.hurst_exponent,
            presets.lagged_pearson,
            presets.benford_filter,
            presets.lorentzian_knn_signal,
        ],
    )
    def test_same_input_same_output(self, preset, sample_bars: list[Bar]) -> None:
        """Running twice yields identical series."""
        assert preset(sample_bars) == preset(list(sample_bars))

    def test_empty_input(self) -> None:
        """Every preset accepts an empty series."""
        for preset in (
            presets.sma,
            presets.ema,
            presets.cohort_spread,
            presets.cointegration_residual,
            presets.hawkes_alpha,
            presets.hurst_exponent,
            presets.regime_entropy,
            presets.velocity_acceleration,
            presets.lagged_pearson,
            presets.benford_filter,
            presets.residual_anomaly,
            presets.lorentzian_knn_signal,
        ):
            assert preset([]) == []
