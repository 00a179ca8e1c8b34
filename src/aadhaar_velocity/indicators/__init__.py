"""Indicator presets, the preset catalog and the k-NN classifier."""

from aadhaar_velocity.indicators.catalog import (
    PRESET_FUNCTIONS,
    PRESET_SCRIPTS,
    Preset,
    compute_preset,
    get_preset,
    preset_catalog,
    preset_definition,
    resolve_preset,
)
from aadhaar_velocity.indicators.lorentzian import (
    LorentzianClassifier,
    lorentzian_classify,
    lorentzian_distance,
    lorentzian_knn_signal,
)
from aadhaar_velocity.indicators.velocity import calculate_velocity

__all__ = [
    # Catalog
    "PRESET_FUNCTIONS",
    "PRESET_SCRIPTS",
    "Preset",
    "compute_preset",
    "get_preset",
    "preset_catalog",
    "preset_definition",
    "resolve_preset",
    # Classifier
    "LorentzianClassifier",
    "lorentzian_classify",
    "lorentzian_distance",
    "lorentzian_knn_signal",
    # Velocity
    "calculate_velocity",
]
