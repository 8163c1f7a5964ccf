"""Records stored in the output cache."""

__all__ = ["Lang", "CompiledNamespace", "ns_to_path", "snapshot_analysis", "make_compiled_ns"]


import copy
import enum
import types
from dataclasses import dataclass

import nscache


class Lang(enum.Enum):
    """Language of the source held by a record."""

    SOURCE = "source"
    COMPILED = "compiled"


@dataclass
class CompiledNamespace:
    """One namespace as handed to the compiler engine.

    Records produced by this compiler are COMPILED and carry the identity,
    a relative path and a snapshot of the engine analysis. Records wrapping
    text from an external source loader are SOURCE and carry nothing but
    the text.

    Attributes:
        lang: (Lang) Whether `source` is original or compiled text
        source: (str) Namespace text
        identity: (NamespaceId | None) Namespace this record defines
        path: (str | None) Relative path derived from the namespace name
        analysis: (Mapping | None) Engine analysis captured when cached
    """

    lang: Lang
    source: str
    identity: "nscache.NamespaceId | None" = None
    path: str | None = None
    analysis: types.MappingProxyType | None = None

    @property
    def name(self):
        """(str | None) Cache key of the identity, if there is one."""
        if self.identity is None:
            return None
        return self.identity.cache_key


def ns_to_path(name):
    """Relative path for a dotted namespace name, `foo.bar` -> `foo/bar`."""
    return str(name).replace(".", "/")


def snapshot_analysis(state, key):
    """Read-only copy of the engine analysis for a namespace, or None."""
    namespaces = getattr(state, "namespaces", None) or {}
    analysis = namespaces.get(key)
    if analysis is None:
        return None
    return types.MappingProxyType(copy.deepcopy(analysis))


def make_compiled_ns(provided, compiled, state):
    """Build the cache record for a namespace found in emitted output.

    The provided name decides the macro flavor: a trailing macros marker
    means the output came from compiling the macro namespace.

    Args:
        provided: (str) Name from a provide statement
        compiled: (str) Full emitted output the name was found in
        state: Engine state to read the analysis from

    Returns:
        (CompiledNamespace) New COMPILED record
    """
    identity = nscache.NamespaceId.from_cache_key(provided)
    return CompiledNamespace(
        lang=Lang.COMPILED,
        source=compiled,
        identity=identity,
        path=ns_to_path(identity.name),
        analysis=snapshot_analysis(state, identity.cache_key),
    )
