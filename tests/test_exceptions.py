"""Tests for the engine exception hierarchy."""

import pytest

from aadhaar_velocity.exceptions import (
    CompilationError,
    ConfigError,
    DataSourceError,
    DataValidationError,
    ExpressionError,
    ForbiddenConstructError,
    InsufficientDataError,
    ScriptError,
    ScriptRuntimeError,
    ScriptTimeoutError,
    ShapeError,
    UnknownPresetError,
    VelocityError,
)


def test_velocity_error_is_base_exception() -> None:
    """VelocityError should be catchable as Exception."""
    with pytest.raises(Exception):
        raise VelocityError("test error")


@pytest.mark.parametrize(
    "error_class",
    [
        ConfigError,
        DataSourceError,
        DataValidationError,
        UnknownPresetError,
        InsufficientDataError,
        ExpressionError,
        ScriptError,
    ],
)
def test_inherits_from_velocity_error(error_class: type[Exception]) -> None:
    """Every engine error is catchable as VelocityError."""
    with pytest.raises(VelocityError):
        raise error_class("failure")


@pytest.mark.parametrize(
    ("error_class", "kind"),
    [
        (CompilationError, "compilation"),
        (ForbiddenConstructError, "forbidden"),
        (ScriptRuntimeError, "runtime"),
        (ShapeError, "shape"),
        (ScriptTimeoutError, "timeout"),
    ],
)
def test_script_error_kinds(error_class: type[ScriptError], kind: str) -> None:
    """Script errors carry the kind reported in execution results."""
    assert issubclass(error_class, ScriptError)
    assert error_class.kind == kind


def test_forbidden_construct_is_compilation_error() -> None:
    """Rejected constructs are a kind of compilation failure."""
    with pytest.raises(CompilationError):
        raise ForbiddenConstructError("import")


def test_unknown_preset_is_key_error() -> None:
    """UnknownPresetError works with KeyError handlers and keeps a plain message."""
    with pytest.raises(KeyError):
        raise UnknownPresetError("Unknown preset 'x'")

    assert str(UnknownPresetError("Unknown preset 'x'")) == "Unknown preset 'x'"
