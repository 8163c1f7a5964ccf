"""Interface between the cache layer and a compiler engine.

An engine compiles one chunk of source at a time and reports through
continuations instead of return values. During a compile it may call back
into the host through the hooks in `EngineOptions`:

- `load(ns_id, callback)` for every namespace the source requires,
- `cache_source(record, callback)` after compiling a macro namespace,
- `eval(record)` to execute compiled dependencies and macro code.

Hosts without their own evaluator run compiled output through
`Engine.evaluate`, which executes it in the engine state's global scope.

Each hook invocation must call its callback exactly once before the engine
continues. The engine calls the `compile_str` callback exactly once with a
`CompileResult`.
"""

__all__ = ["Engine", "EngineError", "EngineOptions", "EngineState", "CompileResult"]


import functools
import sys
from dataclasses import dataclass, field
from typing import Any, Callable


class EngineError(Exception):
    """Error reported by an engine for a failed compile.

    Args:
        message: (str) Error description
        data: (dict | None) Structured details, such as the missing namespace
        cause: (Exception | None) Underlying error
    """

    def __init__(self, message, data=None, cause=None):
        self.message = message
        self.data = data
        self.cause = cause
        super().__init__(message)


@dataclass
class CompileResult:
    """Outcome passed to an engine continuation.

    Attributes:
        value: Emitted output on success (may be None for acknowledgements)
        error: (EngineError | None) Set when the compile failed
    """

    value: Any = None
    error: EngineError | None = None

    @property
    def ok(self):
        """(bool) True when no error was reported."""
        return self.error is None


@dataclass
class EngineOptions:
    """Hooks and switches for one engine compile."""

    eval: Callable
    load: Callable
    cache_source: Callable | None = None
    source_map: bool = False
    verbose: bool = False


@dataclass
class EngineState:
    """Mutable engine state shared by every compile of one host.

    Attributes:
        namespaces: {cache_key: dict} analysis of every compiled namespace
        source_maps: {cache_key: {output_line: source_line}} when enabled
        globals: (dict) Global scope compiled output is evaluated in
    """

    namespaces: dict = field(default_factory=dict)
    source_maps: dict = field(default_factory=dict)
    globals: dict = field(default_factory=dict, repr=False)


class Engine:
    """Base compiler engine.

    Output the engine prints for diagnostics goes through `print_fn` and
    `print_err_fn`, which hosts may swap out while a compile runs.
    """

    def __init__(self):
        self.print_fn = print
        self.print_err_fn = functools.partial(print, file=sys.stderr)

    def __repr__(self):
        return f"{type(self).__name__}<>"

    def empty_state(self):
        """Create fresh engine state."""
        return EngineState()

    def compile_str(self, state, source, name, opts, callback):
        """Compile source text and report a CompileResult to callback."""
        raise NotImplementedError(f"{type(self).__name__} cannot compile")

    def evaluate(self, state, source):
        """Execute compiled output in the state's global scope."""
        exec(source, state.globals)
