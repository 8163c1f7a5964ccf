"""Reference engine for a small s-expression namespace language.

This engine implements the `Engine` contract well enough to drive the
cache layer end to end. Source is a sequence of forms::

    (ns app.core
      (:require app.util)
      (:require-macros app.macros))
    (def greeting "hello")
    (defmacro shout "HELLO")

Each compiled namespace emits a provide statement, one require statement
per runtime dependency and one assignment per definition. The output is
Python, evaluated against the `Goog` runtime kept in the engine state, so
names are munged into identifiers (`app.macros$macros` is assigned as
`app.macros_DOLLAR_macros`) everywhere except inside provide and require
statements.

Required namespaces are fetched through the `load` hook; namespaces that
arrive as source are compiled recursively and evaluated, and freshly
compiled macro namespaces are offered to the `cache_source` hook before
evaluation. A require chain that comes back to a namespace still being
compiled fails the compile.
"""

__all__ = ["ReferenceEngine", "Goog", "parse_forms", "render", "munge"]


import ast
import copy
import decimal
import json
import keyword
import types

import lark

import nscache
from ._engine import CompileResult, Engine, EngineError


_parsers = {}

_DEF_HEADS = ("def", "defmacro")

_LITERAL_SYMBOLS = {"nil": "None", "true": "True", "false": "False"}

_MUNGED_CHARS = {
    "-": "_",
    "$": "_DOLLAR_",
    "?": "_QMARK_",
    "!": "_BANG_",
    "*": "_STAR_",
    "+": "_PLUS_",
    "<": "_LT_",
    ">": "_GT_",
    "=": "_EQ_",
    "'": "_SINGLEQUOTE_",
    "&": "_AMPERSAND_",
    "#": "_HASH_",
}


def _lark_parser(name):
    """Get globally shared lark parser.

    Args:
        name: (str) name of the grammar file (without .lark)

    Returns:
        (lark.Lark) Parser instance
    """
    parser = _parsers.get(name)
    if parser is not None:
        return parser

    path = f"lark/{name}.lark"
    parser = lark.Lark.open(
        path, rel_to=__file__, parser="lalr", propagate_positions=True
    )
    _parsers[name] = parser
    return parser


class Symbol(str):
    """Symbol read from source, remembering the line it came from."""

    line = None

    def __new__(cls, text, line=None):
        symbol = super().__new__(cls, text)
        symbol.line = line
        return symbol


class Keyword(str):
    """Keyword read from source, without the leading colon."""


class Form(list):
    """Parenthesized form."""

    line = None


class Vector(list):
    """Bracketed form."""


class _Reader(lark.Transformer):
    """Convert the lark tree into plain forms."""

    def start(self, items):
        return list(items)

    def sexp(self, items):
        form = Form(items)
        if items and isinstance(items[0], Symbol):
            form.line = items[0].line
        return form

    def vector(self, items):
        return Vector(items)

    def keyword(self, items):
        return Keyword(items[0][1:])

    def string(self, items):
        return ast.literal_eval(items[0])

    def number(self, items):
        return decimal.Decimal(str(items[0]))

    def symbol(self, items):
        return Symbol(str(items[0]), items[0].line)


def parse_forms(source):
    """Read source text into a list of forms.

    Raises:
        lark.exceptions.LarkError: Source cannot be read
    """
    tree = _lark_parser("forms").parse(source)
    return _Reader().transform(tree)


def _munge_char(char):
    if char in _MUNGED_CHARS:
        return _MUNGED_CHARS[char]
    if char.isalnum() or char == "_":
        return char
    return f"_{ord(char):X}_"


def munge(name):
    """Python attribute path for a namespace or symbol name.

    Each dotted segment becomes a valid identifier, `app.macros$macros`
    -> `app.macros_DOLLAR_macros`. A `/` separating a namespace from a
    symbol is treated as one more segment.
    """
    segments = []
    for segment in str(name).replace("/", ".").split("."):
        text = "".join(_munge_char(c) for c in segment)
        if not text.isidentifier() or keyword.iskeyword(text):
            text = f"_{text}"
        segments.append(text)
    return ".".join(segments)


def render(value):
    """Emit the output expression for a form."""
    if isinstance(value, (Form, Vector)):
        return "[" + ", ".join(render(v) for v in value) + "]"
    if isinstance(value, Keyword):
        return json.dumps(str(value))
    if isinstance(value, Symbol):
        if value in _LITERAL_SYMBOLS:
            return _LITERAL_SYMBOLS[value]
        return munge(value)
    if isinstance(value, str):
        return json.dumps(value)
    return str(value)


class Goog:
    """Runtime behind the provide and require statements of emitted output.

    Provided namespaces are nested `SimpleNamespace` objects stored in the
    global scope the output is evaluated in.

    Args:
        scope: (dict) Global scope shared by every evaluation
    """

    def __init__(self, scope):
        self.scope = scope

    def __repr__(self):
        return "Goog<>"

    def provide(self, name):
        """Create (or reuse) the object for a namespace."""
        root, *rest = munge(name).split(".")
        target = self.scope.get(root)
        if target is None:
            target = self.scope[root] = types.SimpleNamespace()
        for part in rest:
            child = getattr(target, part, None)
            if child is None:
                child = types.SimpleNamespace()
                setattr(target, part, child)
            target = child
        return target

    def require(self, name):
        """Look up an already provided namespace.

        Raises:
            NameError: The namespace was never evaluated
        """
        root, *rest = munge(name).split(".")
        target = self.scope.get(root)
        for part in rest:
            target = getattr(target, part, None)
        if target is None:
            raise NameError(f"Namespace {name} has not been provided")
        return target


def _is_head(form, *names):
    return (
        isinstance(form, Form)
        and len(form) > 0
        and isinstance(form[0], Symbol)
        and form[0] in names
    )


def _read_ns(forms, default_name):
    """Split the ns declaration off the front of the forms.

    Returns:
        (tuple) Namespace name, list of NamespaceId dependencies, body forms
    """
    if not forms or not _is_head(forms[0], "ns"):
        return str(default_name), [], forms

    decl = forms[0]
    if len(decl) < 2 or not isinstance(decl[1], Symbol):
        raise EngineError("ns form requires a namespace name", {"tag": "invalid-ns"})
    name = str(decl[1])

    deps = []
    for clause in decl[2:]:
        if (
            not isinstance(clause, Form)
            or not clause
            or clause[0] not in ("require", "require-macros")
            or not isinstance(clause[0], Keyword)
        ):
            raise EngineError(
                f"Unsupported ns clause {render(clause)} in {name}",
                {"tag": "invalid-ns", "ns": name},
            )
        macros = clause[0] == "require-macros"
        for lib in clause[1:]:
            # [lib.name :as alias] only needs the name
            if isinstance(lib, Vector) and lib:
                lib = lib[0]
            if not isinstance(lib, Symbol):
                raise EngineError(
                    f"Invalid library spec {render(lib)} in {name}",
                    {"tag": "invalid-ns", "ns": name},
                )
            deps.append(nscache.NamespaceId(str(lib), macros))

    return name, deps, forms[1:]


class ReferenceEngine(Engine):
    """Engine compiling the reference s-expression language.

    Emitted output is Python; `evaluate` runs it with a `goog` runtime in
    the state's global scope.
    """

    def empty_state(self):
        state = super().empty_state()
        state.globals["goog"] = Goog(state.globals)
        return state

    def compile_str(self, state, source, name, opts, callback):
        def compiled(error, output):
            if error is not None:
                return callback(CompileResult(error=error))
            return callback(CompileResult(value=output))

        return self._compile_ns(state, source, name, False, opts, compiled)

    def _compile_ns(
        self, state, source, name, macros, opts, done, expected=None, loading=()
    ):
        """Compile one namespace, calling done(error, output).

        `loading` holds the cache keys of the namespaces further up the
        require chain, outermost first.
        """
        try:
            forms = parse_forms(source)
            ns_name, deps, body = _read_ns(forms, name)
        except lark.exceptions.LarkError as e:
            error = EngineError(
                f"Could not parse {name}", {"tag": "reader-exception", "ns": str(name)}, e
            )
            return done(error, None)
        except EngineError as e:
            return done(e, None)

        if expected is not None and ns_name != expected:
            error = EngineError(
                f"Source for {expected} declares namespace {ns_name}",
                {"tag": "ns-mismatch", "ns": expected},
            )
            return done(error, None)

        key = nscache.to_cache_key(ns_name, macros)
        loading = (*loading, key)
        if opts.verbose:
            self.print_fn(f"Compiling {key}")

        def deps_loaded(error):
            if error is not None:
                return done(error, None)
            try:
                analysis, lines = self._analyze(key, deps, body)
            except EngineError as e:
                return done(e, None)
            state.namespaces[key] = analysis
            if opts.source_map:
                state.source_maps[key] = {
                    index: line for index, (_, line) in enumerate(lines) if line
                }
            return done(None, "\n".join(text for text, _ in lines) + "\n")

        return self._load_deps(state, deps, opts, deps_loaded, loading)

    def _analyze(self, key, deps, body):
        """Build the analysis entry and output lines for a namespace."""
        lines = [(f"goog.provide('{key}');", None)]
        for dep in deps:
            if not dep.macros:
                lines.append((f"goog.require('{dep.name}');", None))

        kinds = {}
        for form in body:
            if not _is_head(form, *_DEF_HEADS):
                raise EngineError(
                    f"Unsupported form {render(form)} in {key}",
                    {"tag": "invalid-form", "ns": key, "line": getattr(form, "line", None)},
                )
            if len(form) != 3 or not isinstance(form[1], Symbol):
                raise EngineError(
                    f"Invalid {form[0]} form in {key}",
                    {"tag": "invalid-form", "ns": key, "line": form.line},
                )
            sym = str(form[1])
            if sym in kinds:
                self.print_err_fn(f"WARNING: {sym} is being replaced in {key}")
            kinds[sym] = str(form[0])
            lines.append((f"{munge(key)}.{munge(sym)} = {render(form[2])};", form.line))

        analysis = {
            "name": key,
            "defs": sorted(s for s, k in kinds.items() if k == "def"),
            "macros": sorted(s for s, k in kinds.items() if k == "defmacro"),
            "requires": [d.name for d in deps if not d.macros],
            "require_macros": [d.name for d in deps if d.macros],
        }
        return analysis, lines

    def _load_deps(self, state, deps, opts, done, loading):
        """Load dependencies in order, calling done(error) once."""
        if not deps:
            return done(None)
        dep, rest = deps[0], deps[1:]

        if dep.cache_key in loading:
            chain = " -> ".join((*loading, dep.cache_key))
            error = EngineError(
                f"Circular dependency: {chain}",
                {"tag": "cyclic-ns", "ns": dep.cache_key, "path": list(loading)},
            )
            return done(error)

        def loaded(record):
            if record is None:
                error = EngineError(
                    f"No such namespace: {dep.name}",
                    {"tag": "undeclared-ns", "ns": dep.name, "macros": dep.macros},
                )
                return done(error)

            def required(error):
                if error is not None:
                    return done(error)
                return self._load_deps(state, rest, opts, done, loading)

            return self._require(state, dep, record, opts, required, loading)

        return opts.load(dep, loaded)

    def _require(self, state, dep, record, opts, done, loading):
        """Bring one loaded dependency into the state and evaluate it."""
        if record.lang is nscache.Lang.COMPILED:
            if record.analysis is not None:
                state.namespaces[dep.cache_key] = copy.deepcopy(dict(record.analysis))
            opts.eval(record)
            return done(None)

        def compiled(error, output):
            if error is not None:
                return done(error)
            compiled_ns = nscache.CompiledNamespace(
                lang=nscache.Lang.COMPILED,
                source=output,
                identity=dep,
                path=nscache.ns_to_path(dep.name),
                analysis=nscache.snapshot_analysis(state, dep.cache_key),
            )
            if dep.macros and opts.cache_source is not None:
                def cached(_result):
                    opts.eval(compiled_ns)
                    return done(None)

                return opts.cache_source(compiled_ns, cached)
            opts.eval(compiled_ns)
            return done(None)

        return self._compile_ns(
            state,
            record.source,
            dep.name,
            dep.macros,
            opts,
            compiled,
            expected=dep.name,
            loading=loading,
        )
