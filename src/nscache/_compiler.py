"""Compile orchestration over the output cache.

A `Compiler` owns one engine, that engine's state and one `OutputCache`.
Every compile call wires three hooks into the engine:

- an evaluator that logs before handing code to the host's evaluator,
- a `DependencyLoader` answering from the cache before the host loader,
- `update_cache` so macro namespaces are cached as soon as they compile.

When the engine reports success the emitted output is scanned for provide
statements and every namespace found is cached with the full output as its
source. Outcomes are only reported through the `on_success` and
`on_failure` callbacks of the compile options.
"""

__all__ = [
    "Compiler",
    "CompileJob",
    "CompileOptions",
    "CompileState",
    "parse_options",
    "redirect_output",
    "default_compiler",
    "compile",
    "has_compiled_ns",
]


import contextlib
import dataclasses
import enum
import functools
import logging
from typing import Any, Callable

import rich.console
import rich.pretty

import nscache


_LOGGER = logging.getLogger(__name__)

_default_compiler = None


def noop(*_args):
    return None


def _no_source(_ns_id):
    return None


def _default_logger():
    return logging.getLogger("nscache.compile")


@dataclasses.dataclass
class CompileOptions:
    """Host supplied settings for one compile.

    Attributes:
        name: (str) Name used when the source has no ns declaration
        logger: Object with info() and error(), receives engine output
        source_loader: Callable(NamespaceId) returning source text or None
        js_eval: Callable(str) executing compiled code, None for the
            engine's own evaluator
        on_success: Callable(str) receiving the emitted output
        on_failure: Callable(CompileFailure) receiving the failure
    """

    name: str = "unknown"
    logger: Any = dataclasses.field(default_factory=_default_logger)
    source_loader: Callable = _no_source
    js_eval: Callable | None = None
    on_success: Callable = noop
    on_failure: Callable = noop


_OPTION_ALIASES = {
    "source-loader": "source_loader",
    "js-eval": "js_eval",
    "on-success": "on_success",
    "on-failure": "on_failure",
}

_CALLABLE_OPTIONS = ("source_loader", "js_eval", "on_success", "on_failure")


def parse_options(opts=None):
    """Build CompileOptions from a mapping of host options.

    Keys may use either the dashed (`source-loader`) or the Python
    (`source_loader`) spelling. Missing or None values take defaults.

    Args:
        opts: (Mapping | CompileOptions | None) Host options

    Returns:
        (CompileOptions) Validated options

    Raises:
        ValueError: Unknown option name
        TypeError: Hook that is not callable, or logger without info/error
    """
    if isinstance(opts, CompileOptions):
        options = opts
    else:
        known = {f.name for f in dataclasses.fields(CompileOptions)}
        kwargs = {}
        for key, value in dict(opts or {}).items():
            attr = _OPTION_ALIASES.get(key, key)
            if attr not in known:
                raise ValueError(f"Unknown compile option {key!r}")
            if value is not None:
                kwargs[attr] = value
        options = CompileOptions(**kwargs)

    for attr in _CALLABLE_OPTIONS:
        value = getattr(options, attr)
        if attr == "js_eval" and value is None:
            continue
        if not callable(value):
            raise TypeError(f"Compile option {attr!r} must be callable")
    logger = options.logger
    if not callable(getattr(logger, "info", None)) or not callable(
        getattr(logger, "error", None)
    ):
        raise TypeError("Compile option 'logger' needs info() and error() methods")
    return options


@contextlib.contextmanager
def redirect_output(engine, logger):
    """Send engine print output to a logger until the block exits."""

    def joined(write):
        return lambda *args: write(" ".join(str(a) for a in args))

    saved = (engine.print_fn, engine.print_err_fn)
    engine.print_fn = joined(logger.info)
    engine.print_err_fn = joined(logger.error)
    try:
        yield engine
    finally:
        engine.print_fn, engine.print_err_fn = saved


def _make_evaluator(js_eval, logger):
    """Wrap the host evaluator for the engine's eval hook."""

    def evaluate(compiled_ns):
        logger.info(f"Evaluating {compiled_ns.name or 'namespace'}")
        return js_eval(compiled_ns.source)

    return evaluate


class CompileState(enum.Enum):
    """Progress of one compile call."""

    INIT = "init"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class CompileJob:
    """One compile call, used as the engine's completion callback.

    The engine must call the job exactly once. Success caches every
    namespace provided by the output before `on_success` runs; failure
    normalizes the engine error before `on_failure` runs.

    Attributes:
        state: (CompileState) Current progress
        output: (str | None) Emitted output after success
        provided: (list[str]) Names found in the output after success
        failure: (CompileFailure | None) Normalized error after failure
    """

    def __init__(self, compiler, options):
        self.compiler = compiler
        self.options = options
        self.state = CompileState.INIT
        self.output = None
        self.provided = []
        self.failure = None

    def __repr__(self):
        return f"CompileJob<{self.options.name}:{self.state.value}>"

    @property
    def done(self):
        """(bool) Whether the job reached a terminal state."""
        return self.state in (CompileState.SUCCEEDED, CompileState.FAILED)

    def __call__(self, result):
        if self.done:
            raise RuntimeError(f"Compile of {self.options.name!r} already completed")

        if result.error is None:
            output = result.value or ""
            self.output = output
            self.provided = self.compiler.write_output_cache(output)
            self.state = CompileState.SUCCEEDED
            return self.options.on_success(output)

        self.failure = nscache.CompileFailure.from_error(result.error)
        self.state = CompileState.FAILED
        _LOGGER.debug("Compile of %s failed: %s", self.options.name, self.failure.message)
        return self.options.on_failure(self.failure)


class Compiler:
    """Compiles source through an engine, caching what it produces.

    Args:
        engine: (Engine | None) Compiler engine, a ReferenceEngine by default
        cache: (OutputCache | None) Cache to fill, a new one by default
    """

    def __init__(self, engine=None, cache=None):
        if engine is None:
            engine = nscache.engine.ReferenceEngine()
        self.engine = engine
        self.state = engine.empty_state()
        self.cache = cache if cache is not None else nscache.OutputCache()

    def __repr__(self):
        return f"Compiler<{self.engine!r}, {self.cache!r}>"

    def update_cache(self, compiled_ns, callback):
        """Engine hook storing a freshly compiled macro namespace.

        The engine only offers cacheable namespaces here, so the name in
        the record's analysis is used as the cache key as is. The engine
        waits for the callback but ignores its value.
        """
        key = str(compiled_ns.analysis["name"])
        _LOGGER.debug("Updating cache for %s", key)
        self.cache.set(key, compiled_ns)
        return callback(nscache.engine.CompileResult(value=None))

    def write_output_cache(self, compiled):
        """Cache every namespace provided by emitted output.

        Returns:
            (list[str]) Provided names found in the output
        """
        provided = nscache.scan(compiled)
        if not provided:
            return []
        _LOGGER.debug("Found definitions for namespaces %s", ", ".join(provided))
        entries = {}
        for name in provided:
            compiled_ns = nscache.make_compiled_ns(name, compiled, self.state)
            entries[compiled_ns.identity.cache_key] = compiled_ns
        self.cache.merge(entries)
        return provided

    def evaluator(self, options):
        """Engine eval hook, falling back to the engine's own evaluator."""
        js_eval = options.js_eval
        if js_eval is None:
            js_eval = functools.partial(self.engine.evaluate, self.state)
        return _make_evaluator(js_eval, options.logger)

    def engine_options(self, options):
        """Build the engine hooks for one compile."""
        return nscache.engine.EngineOptions(
            eval=self.evaluator(options),
            load=nscache.DependencyLoader(self.cache, options.source_loader),
            cache_source=self.update_cache,
            source_map=True,
            verbose=False,
        )

    def compile(self, source, options=None):
        """Compile source text, reporting through the option callbacks.

        Exceptions raised by the host evaluator or source loader propagate
        to the caller.

        Args:
            source: (str) Source text
            options: (Mapping | CompileOptions | None) Host options

        Returns:
            (CompileJob) The job, terminal once the engine has called back
        """
        options = parse_options(options)
        job = CompileJob(self, options)
        engine_opts = self.engine_options(options)

        job.state = CompileState.RUNNING
        with redirect_output(self.engine, options.logger):
            self.engine.compile_str(self.state, source, options.name, engine_opts, job)
        return job

    def eval_compiled_ns(self, name, options=None):
        """Evaluate the cached output of a namespace without compiling.

        Calls `on_success` with the cached source after evaluating it, or
        `on_failure` when nothing is cached for the namespace.
        """
        options = parse_options(options)
        compiled_ns = self.cache.get(nscache.to_cache_key(name, False))
        if compiled_ns is None:
            failure = nscache.CompileFailure(
                f"No compiled namespace {name}", {"tag": "missing-ns", "ns": name}
            )
            return options.on_failure(failure)
        self.evaluator(options)(compiled_ns)
        return options.on_success(compiled_ns.source)

    def has_compiled_ns(self, name):
        """Check whether the regular flavor of a namespace is cached."""
        return self.cache.has_compiled_ns(name)

    def dump_output_cache(self, console=None):
        """Pretty print the output cache."""
        self.cache.dump(console)

    def dump_compiler_state(self, console=None):
        """Pretty print the engine state."""
        console = console or rich.console.Console()
        console.print(rich.pretty.Pretty(self.state, expand_all=True))


def default_compiler():
    """Shared Compiler for hosts that do not manage their own."""
    global _default_compiler
    if _default_compiler is None:
        _default_compiler = Compiler()
    return _default_compiler


def compile(source, options=None):
    """Compile with the shared default Compiler."""
    return default_compiler().compile(source, options)


def has_compiled_ns(name):
    """Check the shared default Compiler's cache."""
    return default_compiler().has_compiled_ns(name)
