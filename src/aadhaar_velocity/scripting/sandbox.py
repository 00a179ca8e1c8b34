"""Restricted compilation and budgeted invocation of indicator scripts.

A script is the body of a function whose only parameter is ``data``. Before
compiling, the syntax tree is checked for constructs that would reach outside
the script (imports, ``global``, private and dunder attribute access, string
formatting that can walk attributes) or that could outlive the execution
budget (exception handlers). The compiled function runs with a small set of
builtins and, optionally, under a trace hook that counts executed lines and
enforces a wall-clock deadline.
"""

from __future__ import annotations

import ast
import builtins
import sys
import time
from types import CodeType, FrameType
from typing import Any, Callable, cast

from aadhaar_velocity.exceptions import (
    CompilationError,
    ForbiddenConstructError,
    ScriptTimeoutError,
)

SCRIPT_FILENAME = "<indicator-script>"
SCRIPT_FUNCTION = "_indicator"

SAFE_BUILTIN_NAMES = (
    "abs",
    "all",
    "any",
    "bool",
    "dict",
    "divmod",
    "enumerate",
    "filter",
    "float",
    "int",
    "isinstance",
    "len",
    "list",
    "map",
    "max",
    "min",
    "pow",
    "range",
    "reversed",
    "round",
    "set",
    "sorted",
    "str",
    "sum",
    "tuple",
    "zip",
    "ArithmeticError",
    "Exception",
    "IndexError",
    "KeyError",
    "TypeError",
    "ValueError",
    "ZeroDivisionError",
)

FORBIDDEN_NAMES = frozenset([
    "__import__",
    "breakpoint",
    "compile",
    "delattr",
    "eval",
    "exec",
    "exit",
    "getattr",
    "globals",
    "help",
    "input",
    "locals",
    "open",
    "quit",
    "setattr",
    "vars",
])

# str.format can reach attributes through "{0.__class__}" placeholders.
FORBIDDEN_ATTRIBUTES = frozenset(["format", "format_map", "mro"])

# Generator, coroutine, frame, traceback and code internals lead to frames.
FORBIDDEN_ATTRIBUTE_PREFIXES = ("_", "gi_", "cr_", "ag_", "f_", "tb_", "co_", "func_")


def safe_builtins() -> dict[str, Any]:
    """Builtins available to scripts."""
    return {name: getattr(builtins, name) for name in SAFE_BUILTIN_NAMES}


class _ScriptValidator(ast.NodeVisitor):
    """Reject syntax that escapes the script's namespace."""

    def _reject(self, node: ast.AST, what: str) -> None:
        line = getattr(node, "lineno", "?")
        raise ForbiddenConstructError(f"{what} is not allowed in indicator scripts (line {line})")

    def visit_Import(self, node: ast.Import) -> None:
        self._reject(node, "import")

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        self._reject(node, "import")

    def visit_Global(self, node: ast.Global) -> None:
        self._reject(node, "'global'")

    def visit_Nonlocal(self, node: ast.Nonlocal) -> None:
        self._reject(node, "'nonlocal'")

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self._reject(node, "class definition")

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._reject(node, "async function")

    # A raising trace hook is uninstalled, so a caught timeout would leave the
    # rest of the script unbounded.
    def visit_Try(self, node: ast.Try) -> None:
        self._reject(node, "'try'")

    def visit_TryStar(self, node: ast.AST) -> None:
        self._reject(node, "'try'")

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr.startswith(FORBIDDEN_ATTRIBUTE_PREFIXES) or node.attr in FORBIDDEN_ATTRIBUTES:
            self._reject(node, f"attribute '{node.attr}'")
        self.generic_visit(node)

    def visit_Name(self, node: ast.Name) -> None:
        if node.id.startswith("__") or node.id in FORBIDDEN_NAMES:
            self._reject(node, f"name '{node.id}'")


def compile_script(source: str) -> CodeType:
    """Compile script text into a module defining the indicator function.

    :param source: Script body; ``data`` is its only free parameter.
    :returns: Code object that defines ``_indicator(data)`` when executed.
    :raises ForbiddenConstructError: If the script uses a rejected construct.
    :raises CompilationError: If the script does not parse or compile.
    """
    try:
        body = ast.parse(source, filename=SCRIPT_FILENAME)
    except SyntaxError as e:
        raise CompilationError(f"Syntax error at line {e.lineno}: {e.msg}") from e
    except (RecursionError, MemoryError) as e:
        raise CompilationError("Script is too deeply nested to compile") from e

    try:
        _ScriptValidator().visit(body)
    except RecursionError as e:
        raise CompilationError("Script is too deeply nested to compile") from e

    module = ast.parse(f"def {SCRIPT_FUNCTION}(data):\n    pass\n", filename=SCRIPT_FILENAME)
    function = cast(ast.FunctionDef, module.body[0])
    if body.body:
        function.body = body.body
    ast.fix_missing_locations(module)

    try:
        return compile(module, SCRIPT_FILENAME, "exec")
    except (SyntaxError, ValueError) as e:
        raise CompilationError(f"Script failed to compile: {e}") from e
    except (RecursionError, MemoryError) as e:
        raise CompilationError("Script is too deeply nested to compile") from e


def build_function(code: CodeType, namespace: dict[str, Any]) -> Callable[[Any], Any]:
    """Execute the compiled module in ``namespace`` and return the function."""
    scope = dict(namespace)
    scope["__builtins__"] = safe_builtins()
    exec(code, scope)
    return scope[SCRIPT_FUNCTION]


class ExecutionBudget:
    """Step and deadline limits enforced while a script runs.

    Only lines of script code count towards ``max_steps``; library functions
    called by the script run untraced. The first line past the budget raises
    inside the script; if library code swallows that exception the call still
    fails once it returns.

    :param max_steps: Maximum traced line events (None = unlimited).
    :param time_limit_seconds: Wall-clock limit (None = unlimited).
    """

    def __init__(
        self,
        max_steps: int | None = None,
        time_limit_seconds: float | None = None,
    ) -> None:
        self.max_steps = max_steps
        self.time_limit_seconds = time_limit_seconds
        self.steps = 0
        self.exhausted: str | None = None
        self._deadline: float | None = None

    @property
    def enabled(self) -> bool:
        return self.max_steps is not None or self.time_limit_seconds is not None

    def _check(self) -> None:
        if self.exhausted is None:
            self.steps += 1
            if self.max_steps is not None and self.steps > self.max_steps:
                self.exhausted = f"step budget of {self.max_steps} exceeded"
            elif self._deadline is not None and time.monotonic() > self._deadline:
                self.exhausted = f"time limit of {self.time_limit_seconds}s exceeded"
        if self.exhausted is not None:
            raise ScriptTimeoutError(self.exhausted)

    def _trace_lines(self, frame: FrameType, event: str, arg: Any) -> Any:
        if event == "line":
            self._check()
        return self._trace_lines

    def _trace_calls(self, frame: FrameType, event: str, arg: Any) -> Any:
        if event == "call" and frame.f_code.co_filename == SCRIPT_FILENAME:
            return self._trace_lines
        return None

    def call(self, function: Callable[[Any], Any], argument: Any) -> Any:
        """Invoke ``function(argument)`` under this budget.

        :raises ScriptTimeoutError: If the budget runs out.
        """
        if not self.enabled:
            return function(argument)

        self.steps = 0
        self.exhausted = None
        if self.time_limit_seconds is not None:
            self._deadline = time.monotonic() + self.time_limit_seconds

        previous = sys.gettrace()
        sys.settrace(self._trace_calls)
        try:
            result = function(argument)
        finally:
            sys.settrace(previous)

        if self.exhausted is not None:
            raise ScriptTimeoutError(self.exhausted)
        return result

