"""Core type definitions for the indicator engine.

All data models use Pydantic BaseModel for automatic validation, JSON
serialization, and better error messages.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

# Ordinal used on the time axis: unix seconds, ISO date strings or datetimes.
# Copied verbatim from input bars to output points.
TimeValue = Union[int, float, str, datetime]

# Auxiliary fields a bar may carry besides OHLCV.
AUXILIARY_FIELDS = ("spread", "migration", "youth", "workload", "raw_bio", "raw_enrol")


# ---------------------------------------------------------------------------
# Base Configuration
# ---------------------------------------------------------------------------


class FrozenModel(BaseModel):
    """Base model with frozen (immutable) configuration."""

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Series Types
# ---------------------------------------------------------------------------


class Bar(FrozenModel):
    """One weekly bar of identity-update velocity for a location.

    Produced by the upstream aggregation step and read-only to the engine.

    :param time: Ordinal of the bar (start of the aggregation period).
    :param open: Velocity at the start of the period.
    :param high: Highest velocity during the period.
    :param low: Lowest velocity during the period.
    :param close: Velocity at the end of the period.
    :param volume: Total update count during the period.
    :param spread: Child (5-17) versus adult (17+) biometric cohort spread.
    :param migration: Demographic family migration index.
    :param youth: Ratio of dependent enrolments to all enrolments.
    :param workload: Predicted future mandatory biometric update workload.
    :param raw_bio: Raw biometric update count for the period.
    :param raw_enrol: Raw enrolment count for the period.
    """

    time: TimeValue
    open: float
    high: float
    low: float
    close: float
    volume: float | None = None
    spread: float | None = None
    migration: float | None = None
    youth: float | None = None
    workload: float | None = None
    raw_bio: float | None = None
    raw_enrol: float | None = None


class SeriesPoint(FrozenModel):
    """A single output point of an indicator.

    :param time: Ordinal copied from the source bar.
    :param value: Indicator value at that bar.
    """

    time: TimeValue
    value: float


class Signal(str, Enum):
    """Direction suggested by the k-NN classifier."""

    ACCELERATE = "accelerate"
    DECELERATE = "decelerate"
    NEUTRAL = "neutral"


class Classification(SeriesPoint):
    """Classifier output point with its directional label.

    :param signal: Sign of ``value`` expressed as a direction.
    """

    signal: Signal = Signal.NEUTRAL


class LorentzianSettings(FrozenModel):
    """Settings for the Lorentzian k-NN classifier.

    :param neighbors_count: Maximum number of admitted neighbours.
    :param max_bars_back: Bars scanned behind each target bar; also the index
        of the first classified bar.
    :param feature_count: Number of features used in the distance (2-4).
    """

    neighbors_count: int = Field(default=8, ge=1)
    max_bars_back: int = Field(default=50, ge=0)
    feature_count: int = Field(default=4, ge=2, le=4)


# ---------------------------------------------------------------------------
# Indicator Definitions
# ---------------------------------------------------------------------------


class IndicatorKind(str, Enum):
    """Where an indicator is rendered relative to the main series."""

    OVERLAY = "overlay"
    PANE = "pane"


class ScriptLanguage(str, Enum):
    """Language of an indicator's source text."""

    PYTHON = "python"
    EXPRESSION = "expression"


class IndicatorDefinition(FrozenModel):
    """A named indicator held for the session.

    :param name: Display name.
    :param script_source: Script body or expression text.
    :param kind: Rendering placement; conventionally declared in the script
        header as ``@type: overlay`` or ``@type: pane``.
    :param language: How ``script_source`` is evaluated.
    """

    name: str
    script_source: str
    kind: IndicatorKind = IndicatorKind.OVERLAY
    language: ScriptLanguage = ScriptLanguage.PYTHON

    @classmethod
    def from_script(
        cls,
        name: str,
        script_source: str,
        language: ScriptLanguage = ScriptLanguage.PYTHON,
    ) -> IndicatorDefinition:
        """Build a definition, reading ``kind`` from the script header."""
        return cls(
            name=name,
            script_source=script_source,
            kind=parse_indicator_kind(script_source),
            language=language,
        )


def parse_indicator_kind(script_source: str) -> IndicatorKind:
    """Scrape the rendering kind from a script's ``@type:`` comment.

    Only ``@type: pane`` is recognised; everything else renders as an overlay.
    """
    if "@type: pane" in script_source:
        return IndicatorKind.PANE
    return IndicatorKind.OVERLAY


# ---------------------------------------------------------------------------
# Execution Results
# ---------------------------------------------------------------------------


class ExecutionStatus(str, Enum):
    """Outcome of evaluating an indicator."""

    OK = "ok"
    EMPTY = "empty"
    ERROR = "error"


class ExecutionResult(FrozenModel):
    """Typed result of evaluating an indicator.

    Distinguishes "no signal yet" (``EMPTY``) from "failed to compute"
    (``ERROR``).

    :param status: Outcome of the evaluation.
    :param points: Produced points (empty unless status is ``OK``).
    :param error_kind: Kind of failure (compilation, forbidden, runtime,
        shape, timeout) when status is ``ERROR``.
    :param message: Human-readable failure description.
    """

    status: ExecutionStatus
    points: list[SeriesPoint] = Field(default_factory=list)
    error_kind: str | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is not ExecutionStatus.ERROR

    @classmethod
    def from_points(cls, points: list[SeriesPoint]) -> ExecutionResult:
        status = ExecutionStatus.OK if points else ExecutionStatus.EMPTY
        return cls(status=status, points=points)

    @classmethod
    def failure(cls, error_kind: str, message: str) -> ExecutionResult:
        return cls(status=ExecutionStatus.ERROR, error_kind=error_kind, message=message)


# ---------------------------------------------------------------------------
# Velocity Types
# ---------------------------------------------------------------------------


class VelocityPoint(FrozenModel):
    """Daily cumulative counts used by the velocity calculator.

    :param date: Day of the observation.
    :param enrolment_0_5: Enrolments in the 0-5 age band.
    :param biometric_5_17: Biometric updates in the 5-17 age band.
    """

    date: str
    enrolment_0_5: float
    biometric_5_17: float


class VelocityResult(FrozenModel):
    """First-derivative velocities with rule flags.

    :param date: Day of the later observation.
    :param velocity_enrolment: Change in 0-5 enrolments since the previous day.
    :param velocity_biometric: Change in 5-17 biometric updates.
    :param is_school_admission_spike: Biometric velocity above the spike threshold.
    :param is_exclusion_zone: Enrolment velocity near zero.
    """

    date: str
    velocity_enrolment: float
    velocity_biometric: float
    is_school_admission_spike: bool
    is_exclusion_zone: bool


# ---------------------------------------------------------------------------
# Configuration Types
# ---------------------------------------------------------------------------


class EngineConfig(FrozenModel):
    """Execution limits for indicator evaluation.

    :param max_steps: Maximum traced line events per script (None = unlimited).
    :param time_limit_seconds: Wall-clock budget per script (None = unlimited).
    :param max_workers: Worker threads used to compute several indicators.
    """

    max_steps: int | None = Field(default=1_000_000, gt=0)
    time_limit_seconds: float | None = Field(default=5.0, gt=0)
    max_workers: int = Field(default=1, ge=1)


class DataConfig(FrozenModel):
    """Where to read bars from.

    :param source: Source type ("json", "csv" or "synthetic").
    :param params: Source-specific parameters.
    """

    source: str
    params: dict[str, Any] = Field(default_factory=dict)


class RunConfig(FrozenModel):
    """Configuration for computing a set of indicators over one series.

    :param data: Bar source configuration.
    :param indicators: Indicators to compute, in display order.
    :param engine: Execution limits.
    :param log_level: Logging level.
    """

    data: DataConfig
    indicators: list[IndicatorDefinition] = Field(default_factory=list)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    log_level: str = "INFO"


# ---------------------------------------------------------------------------
# Exports
# ---------------------------------------------------------------------------

__all__ = [
    "TimeValue",
    "AUXILIARY_FIELDS",
    # Base models
    "FrozenModel",
    # Series
    "Bar",
    "SeriesPoint",
    "Signal",
    "Classification",
    "LorentzianSettings",
    # Definitions
    "IndicatorKind",
    "ScriptLanguage",
    "IndicatorDefinition",
    "parse_indicator_kind",
    # Results
    "ExecutionStatus",
    "ExecutionResult",
    # Velocity
    "VelocityPoint",
    "VelocityResult",
    # Configuration
    "EngineConfig",
    "DataConfig",
    "RunConfig",
]
