"""Restricted evaluation of indicator scripts and expressions."""

from aadhaar_velocity.scripting.executor import (
    SCRIPT_GLOBALS,
    ScriptExecutor,
    compute_indicators,
    run_script,
)
from aadhaar_velocity.scripting.expressions import evaluate_expression, parse_expression
from aadhaar_velocity.scripting.sandbox import ExecutionBudget, compile_script

__all__ = [
    "SCRIPT_GLOBALS",
    "ExecutionBudget",
    "ScriptExecutor",
    "compile_script",
    "compute_indicators",
    "evaluate_expression",
    "parse_expression",
    "run_script",
]
