"""Indicator engine exception hierarchy.

All engine-specific exceptions derive from :class:`VelocityError` so callers can
catch all engine-related errors uniformly.
"""

from __future__ import annotations


class VelocityError(Exception):
    """Base class for indicator engine exceptions.

    Derived exceptions should extend this class so that callers can catch all
    engine-specific errors uniformly.
    """


class ConfigError(VelocityError):
    """Raised when configuration files or parameters are invalid."""


class DataSourceError(VelocityError):
    """Raised when reading or parsing a bar source fails."""


class DataValidationError(VelocityError):
    """Raised when bar data fails validation checks.

    Named DataValidationError to avoid conflict with pydantic's ValidationError.
    """


class UnknownPresetError(VelocityError, KeyError):
    """Raised when a preset name is not in the catalog."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0]) if self.args else ""


class InsufficientDataError(VelocityError):
    """Raised in strict mode when a preset's minimum window is not met.

    Presets themselves return an empty series instead of raising.
    """


class ExpressionError(VelocityError):
    """Raised when an indicator expression cannot be parsed or evaluated."""


class ScriptError(VelocityError):
    """Base class for failures of a user-authored indicator script.

    :attr kind: Short error kind reported in execution results.
    """

    kind = "runtime"


class CompilationError(ScriptError):
    """Raised when script text does not compile into a callable."""

    kind = "compilation"


class ForbiddenConstructError(CompilationError):
    """Raised when a script uses a construct the restricted evaluator rejects."""

    kind = "forbidden"


class ScriptRuntimeError(ScriptError):
    """Raised when a script raises during execution."""

    kind = "runtime"


class ShapeError(ScriptError):
    """Raised when a script returns something that is not a point sequence."""

    kind = "shape"


class ScriptTimeoutError(ScriptError):
    """Raised when a script exceeds its step or wall-clock budget."""

    kind = "timeout"


__all__ = [
    "VelocityError",
    "ConfigError",
    "DataSourceError",
    "DataValidationError",
    "UnknownPresetError",
    "InsufficientDataError",
    "ExpressionError",
    "ScriptError",
    "CompilationError",
    "ForbiddenConstructError",
    "ScriptRuntimeError",
    "ShapeError",
    "ScriptTimeoutError",
]
