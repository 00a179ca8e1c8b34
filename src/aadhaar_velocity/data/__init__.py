"""Bar sources and synthetic data."""

from aadhaar_velocity.data.sources import (
    BarSource,
    CSVBarSource,
    JSONBarSource,
    SyntheticBarSource,
    load_bars_file,
    resolve_bar_source,
    validate_bar_order,
)
from aadhaar_velocity.data.synthetic import generate_sample_bars

__all__ = [
    "BarSource",
    "CSVBarSource",
    "JSONBarSource",
    "SyntheticBarSource",
    "generate_sample_bars",
    "load_bars_file",
    "resolve_bar_source",
    "validate_bar_order",
]
