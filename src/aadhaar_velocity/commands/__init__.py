"""CLI command implementations for the indicator engine.

Each command module provides:
- Configuration loading and validation
- Integration with core library functions
"""

from aadhaar_velocity.commands.run_config import load_run_config

__all__ = [
    "load_run_config",
]
