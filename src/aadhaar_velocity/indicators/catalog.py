"""Catalog of built-in indicator presets.

Presets are identified by the closed :class:`Preset` enum and map to plain
functions. For selection UIs the catalog is also exposed as a mapping from
display name to script source; each script is a short, editable invocation of
the preset function that runs through the script executor.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Callable

from aadhaar_velocity.exceptions import InsufficientDataError, UnknownPresetError
from aadhaar_velocity.indicators import presets
from aadhaar_velocity.types import IndicatorDefinition

if TYPE_CHECKING:
    from aadhaar_velocity.types import Bar, SeriesPoint

PresetFunction = Callable[["list[Bar]"], "list[SeriesPoint]"]


class Preset(str, Enum):
    """Built-in indicator presets, valued by display name."""

    SMA = "SMA"
    EMA = "EMA"
    COHORT_SPREAD = "Cohort Spread (Bio)"
    FAMILY_MIGRATION = "Family Migration (Demo)"
    YOUTH_DEPENDENCY = "Youth Dependency (Enrol)"
    FUTURE_BIOMETRIC_DEBT = "Future Biometric Debt"
    COINTEGRATION = "Cointegration (Leash)"
    HAWKES_ALPHA = "Hawkes Alpha (Viral)"
    HURST_EXPONENT = "Hurst Exponent (H)"
    REGIME_ENTROPY = "Regime Entropy"
    VELOCITY_ACCELERATION = "Velocity Acceleration"
    PEARSON_CORRELATION = "Pearson Correlation (Lagged)"
    BENFORD_FILTER = "Benford Forensic Filter"
    RESIDUAL_ANOMALY = "Residual Anomaly Map"
    LORENTZIAN_KNN = "Lorentzian KNN Signal"


PRESET_FUNCTIONS: dict[Preset, PresetFunction] = {
    Preset.SMA: presets.sma,
    Preset.EMA: presets.ema,
    Preset.COHORT_SPREAD: presets.cohort_spread,
    Preset.FAMILY_MIGRATION: presets.family_migration,
    Preset.YOUTH_DEPENDENCY: presets.youth_dependency,
    Preset.FUTURE_BIOMETRIC_DEBT: presets.future_biometric_debt,
    Preset.COINTEGRATION: presets.cointegration_residual,
    Preset.HAWKES_ALPHA: presets.hawkes_alpha,
    Preset.HURST_EXPONENT: presets.hurst_exponent,
    Preset.REGIME_ENTROPY: presets.regime_entropy,
    Preset.VELOCITY_ACCELERATION: presets.velocity_acceleration,
    Preset.PEARSON_CORRELATION: presets.lagged_pearson,
    Preset.BENFORD_FILTER: presets.benford_filter,
    Preset.RESIDUAL_ANOMALY: presets.residual_anomaly,
    Preset.LORENTZIAN_KNN: presets.lorentzian_knn_signal,
}

PRESET_SCRIPTS: dict[Preset, str] = {
    Preset.SMA: """\
# Simple Moving Average (14)
# @type: overlay
return sma(data, period=14)
""",
    Preset.EMA: """\
# Exponential Moving Average (14)
# @type: overlay
return ema(data, period=14)
""",
    Preset.COHORT_SPREAD: """\
# Child (5-17) vs Senior (17+) Oscillator
# @type: pane
# Positive = Younger Dominant, Negative = Older Dominant
return cohort_spread(data)
""",
    Preset.FAMILY_MIGRATION: """\
# Demographic Family Migration Index
# @type: pane
# High = Family relocation, Low = Single labor movement
return family_migration(data)
""",
    Preset.YOUTH_DEPENDENCY: """\
# Ratio of Dependent Enrolments to Adult Enrolments
# @type: pane
return youth_dependency(data)
""",
    Preset.FUTURE_BIOMETRIC_DEBT: """\
# Predicted future mandatory update workload
# @type: pane
return future_biometric_debt(data)
""",
    Preset.COINTEGRATION: """\
# Measures if Enrolments (t-4) and Biometrics (t) are tied
# @type: pane
# High Residual = Leash Snap (Divergence/Failure)
return cointegration_residual(data, lag=4)
""",
    Preset.HAWKES_ALPHA: """\
# Viral Coefficient (Self-excitation)
# @type: pane
return hawkes_alpha(data, window=5)
""",
    Preset.HURST_EXPONENT: """\
# Hurst Exponent: H > 0.5 (Trend), H < 0.5 (Mean Reversion)
# @type: pane
return hurst_exponent(data, window=10)
""",
    Preset.REGIME_ENTROPY: """\
# Shannon Entropy: High = Chaos/Risk, Low = Predictable
# @type: pane
return regime_entropy(data)
""",
    Preset.VELOCITY_ACCELERATION: """\
# Change in identity update velocity between periods
# @type: pane
return velocity_acceleration(data)
""",
    Preset.PEARSON_CORRELATION: """\
# Rolling Pearson r (Lagged Enrolment vs Biometric)
# @type: pane
return lagged_pearson(data, window=6, lag=4)
""",
    Preset.BENFORD_FILTER: """\
# Checks if counts follow Benford's Leading Digit Distribution
# @type: pane
# Output: Higher = More "Artificial" / Manipulated (MAD score)
return benford_filter(data, window=12)
""",
    Preset.RESIDUAL_ANOMALY: """\
# Time-Series Decomposition Residuals
# @type: pane
return residual_anomaly(data, window=4)
""",
    Preset.LORENTZIAN_KNN: """\
# Machine Learning: Lorentzian KNN Classification
# @type: pane
# Features: Spread, Migration, Youth Ratio, Normalized Close
# Output: + = Accelerate, - = Decelerate
return lorentzian_knn_signal(data, neighbors_count=8, max_bars_back=50)
""",
}


def resolve_preset(name: str | Preset) -> Preset:
    """Look up a preset by display name, enum name or function name.

    Matching of enum and function names is case-insensitive.

    :raises UnknownPresetError: If no preset matches.
    """
    if isinstance(name, Preset):
        return name
    try:
        return Preset(name)
    except ValueError:
        pass
    key = name.strip().upper().replace("-", "_").replace(" ", "_")
    if key in Preset.__members__:
        return Preset[key]
    for preset, function in PRESET_FUNCTIONS.items():
        if function.__name__.upper() == key:
            return preset
    raise UnknownPresetError(
        f"Unknown preset '{name}'. Available presets: {', '.join(p.value for p in Preset)}"
    )


def get_preset(name: str | Preset) -> PresetFunction:
    """Return the function implementing a preset."""
    return PRESET_FUNCTIONS[resolve_preset(name)]


def compute_preset(
    name: str | Preset,
    bars: list[Bar],
    strict: bool = False,
) -> list[SeriesPoint]:
    """Run a preset directly against ``bars``.

    :param name: Preset to run.
    :param bars: Bars ordered by time.
    :param strict: Raise instead of returning an empty series.
    :raises InsufficientDataError: In strict mode, when the series is too
        short for the preset to emit anything.
    """
    preset = resolve_preset(name)
    points = PRESET_FUNCTIONS[preset](bars)
    if strict and not points:
        raise InsufficientDataError(
            f"Preset '{preset.value}' produced no points from {len(bars)} bars"
        )
    return points


def preset_catalog() -> dict[str, str]:
    """Display name to script source for every preset, in catalog order."""
    return {preset.value: PRESET_SCRIPTS[preset] for preset in Preset}


def preset_definition(name: str | Preset) -> IndicatorDefinition:
    """Indicator definition for a preset, with ``kind`` read from its script."""
    preset = resolve_preset(name)
    return IndicatorDefinition.from_script(preset.value, PRESET_SCRIPTS[preset])
