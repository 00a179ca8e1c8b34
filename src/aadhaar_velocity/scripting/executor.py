"""Evaluation of user-authored indicator scripts.

Scripts are compiled in a restricted namespace that exposes every preset
function by name, ``math``, :class:`SeriesPoint` and the k-NN classifier. The
script receives a copy of the bar list as ``data`` and must return a list of
points. Whatever happens inside, evaluation never propagates: the outcome is
an :class:`ExecutionResult` that says whether the script produced points,
produced nothing, or failed and why.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from typing import Any

from pydantic import ValidationError

from aadhaar_velocity.exceptions import (
    ExpressionError,
    ScriptError,
    ScriptRuntimeError,
    ShapeError,
)
from aadhaar_velocity.indicators import presets
from aadhaar_velocity.indicators.lorentzian import lorentzian_classify
from aadhaar_velocity.scripting.expressions import evaluate_expression
from aadhaar_velocity.scripting.sandbox import ExecutionBudget, build_function, compile_script
from aadhaar_velocity.types import (
    Bar,
    EngineConfig,
    ExecutionResult,
    IndicatorDefinition,
    LorentzianSettings,
    ScriptLanguage,
    SeriesPoint,
)

logger = logging.getLogger(__name__)

SCRIPT_GLOBALS: dict[str, Any] = {
    "math": math,
    "SeriesPoint": SeriesPoint,
    "LorentzianSettings": LorentzianSettings,
    "lorentzian_classify": lorentzian_classify,
    "sma": presets.sma,
    "ema": presets.ema,
    "cohort_spread": presets.cohort_spread,
    "family_migration": presets.family_migration,
    "youth_dependency": presets.youth_dependency,
    "future_biometric_debt": presets.future_biometric_debt,
    "cointegration_residual": presets.cointegration_residual,
    "hawkes_alpha": presets.hawkes_alpha,
    "hurst_exponent": presets.hurst_exponent,
    "regime_entropy": presets.regime_entropy,
    "velocity_acceleration": presets.velocity_acceleration,
    "lagged_pearson": presets.lagged_pearson,
    "benford_filter": presets.benford_filter,
    "residual_anomaly": presets.residual_anomaly,
    "lorentzian_knn_signal": presets.lorentzian_knn_signal,
}

_compile_cached = lru_cache(maxsize=128)(compile_script)


def _coerce_points(result: Any) -> list[SeriesPoint]:
    """Validate a script's return value as a list of points.

    :raises ShapeError: If ``result`` is not a list or tuple of points.
    """
    if not isinstance(result, (list, tuple)):
        raise ShapeError(
            f"Script must return a list of points, got {type(result).__name__}"
        )
    points: list[SeriesPoint] = []
    for index, item in enumerate(result):
        if isinstance(item, SeriesPoint):
            points.append(item)
            continue
        if not isinstance(item, Mapping):
            raise ShapeError(
                f"Item {index} is {type(item).__name__}, expected a point with time and value"
            )
        try:
            points.append(SeriesPoint.model_validate(dict(item)))
        except ValidationError as e:
            raise ShapeError(f"Item {index} is not a valid point: {e.errors()[0]['msg']}") from e
    return points


class ScriptExecutor:
    """Runs indicator scripts under the configured execution limits.

    :param config: Step, time and worker limits (defaults when omitted).
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()

    def _budget(self) -> ExecutionBudget:
        return ExecutionBudget(
            max_steps=self.config.max_steps,
            time_limit_seconds=self.config.time_limit_seconds,
        )

    def _evaluate_python(self, script_source: str, bars: list[Bar]) -> list[SeriesPoint]:
        function = build_function(_compile_cached(script_source), SCRIPT_GLOBALS)
        try:
            result = self._budget().call(function, list(bars))
        except ScriptError:
            raise
        except Exception as e:
            raise ScriptRuntimeError(f"{type(e).__name__}: {e}") from e
        return _coerce_points(result)

    def execute(
        self,
        script_source: str,
        bars: list[Bar],
        language: ScriptLanguage = ScriptLanguage.PYTHON,
        name: str = "<script>",
    ) -> ExecutionResult:
        """Evaluate a script against a bar series.

        :param script_source: Script body, or expression text when ``language``
            is :attr:`ScriptLanguage.EXPRESSION`.
        :param bars: Bars ordered by time.
        :param language: How ``script_source`` is evaluated.
        :param name: Indicator name used in log messages.
        :returns: Points on success, ``EMPTY`` when nothing was produced, or an
            ``ERROR`` result carrying the failure kind and message.
        """
        try:
            if language is ScriptLanguage.EXPRESSION:
                points = evaluate_expression(script_source, bars)
            else:
                points = self._evaluate_python(script_source, bars)
        except ExpressionError as e:
            logger.error("Indicator '%s' failed to compile: %s", name, e)
            return ExecutionResult.failure("compilation", str(e))
        except ScriptError as e:
            if isinstance(e, ShapeError):
                logger.warning("Indicator '%s' returned an unexpected shape: %s", name, e)
            else:
                logger.error("Indicator '%s' failed (%s): %s", name, e.kind, e)
            return ExecutionResult.failure(e.kind, str(e))

        logger.debug("Indicator '%s' produced %d points", name, len(points))
        return ExecutionResult.from_points(points)

    def execute_definition(self, definition: IndicatorDefinition, bars: list[Bar]) -> ExecutionResult:
        """Evaluate a stored indicator definition."""
        return self.execute(
            definition.script_source,
            bars,
            language=definition.language,
            name=definition.name,
        )

    def run(self, script_source: str, bars: list[Bar]) -> list[SeriesPoint]:
        """Evaluate a script, returning its points or ``[]`` on any failure.

        Failures are still logged; use :meth:`execute` to tell them apart from
        a script that legitimately produced nothing.
        """
        return self.execute(script_source, bars).points


def run_script(script_source: str, bars: list[Bar]) -> list[SeriesPoint]:
    """Evaluate a script with default limits; ``[]`` on failure."""
    return ScriptExecutor().run(script_source, bars)


def compute_indicators(
    definitions: list[IndicatorDefinition],
    bars: list[Bar],
    executor: ScriptExecutor | None = None,
    max_workers: int | None = None,
) -> dict[str, ExecutionResult]:
    """Evaluate several indicators over the same bars.

    Indicators are independent, so with more than one worker they run on a
    thread pool. Results keep the order of ``definitions``.

    :param definitions: Indicators to evaluate.
    :param bars: Bars ordered by time.
    :param executor: Executor to use (a default one when omitted).
    :param max_workers: Thread count; defaults to the executor's config.
    :returns: Mapping from indicator name to its result.
    """
    executor = executor or ScriptExecutor()
    workers = max_workers if max_workers is not None else executor.config.max_workers

    if workers <= 1 or len(definitions) <= 1:
        return {d.name: executor.execute_definition(d, bars) for d in definitions}

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [(d.name, pool.submit(executor.execute_definition, d, bars)) for d in definitions]
        return {name: future.result() for name, future in futures}
