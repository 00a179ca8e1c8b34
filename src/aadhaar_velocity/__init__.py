"""Aadhaar velocity indicator engine package root."""

from aadhaar_velocity.exceptions import ScriptError, VelocityError
from aadhaar_velocity.indicators import compute_preset, lorentzian_classify, preset_catalog
from aadhaar_velocity.scripting import ScriptExecutor, compute_indicators, run_script

__version__ = "0.1.0"

__all__ = [
    "ScriptError",
    "ScriptExecutor",
    "VelocityError",
    "compute_indicators",
    "compute_preset",
    "lorentzian_classify",
    "preset_catalog",
    "run_script",
]
