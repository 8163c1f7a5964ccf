"""In-memory cache of compiled namespaces."""

__all__ = ["OutputCache"]


import logging

import rich.console
import rich.pretty

import nscache


_LOGGER = logging.getLogger(__name__)


class OutputCache:
    """Compiled namespaces keyed by cache key.

    Entries are only ever added or replaced, never removed. A merge swaps
    in a fully built mapping, so readers see either none or all of a
    batch, including readers running inside engine callbacks while a
    compile is still in progress.

    Args:
        entries: Optional initial {cache_key: CompiledNamespace} mapping
    """

    def __init__(self, entries=None):
        self._entries = dict(entries or {})

    def __repr__(self):
        return f"OutputCache<{len(self._entries)}>"

    def __len__(self):
        return len(self._entries)

    def __contains__(self, key):
        return key in self._entries

    def keys(self):
        """(list[str]) Cache keys currently present."""
        return list(self._entries)

    def get(self, key):
        """(CompiledNamespace | None) Record for a cache key."""
        return self._entries.get(key)

    def merge(self, entries):
        """Insert or overwrite a batch of records.

        Args:
            entries: {cache_key: CompiledNamespace} mapping
        """
        entries = dict(entries)
        if not entries:
            return
        merged = dict(self._entries)
        merged.update(entries)
        self._entries = merged
        _LOGGER.debug("Cached %s", ", ".join(entries))

    def set(self, key, record):
        """Insert or overwrite a single record."""
        self.merge({key: record})

    def snapshot(self):
        """(dict) Shallow copy of the current entries."""
        return dict(self._entries)

    def has_compiled_ns(self, name):
        """Check for the regular (non macro) flavor of a namespace."""
        return nscache.to_cache_key(name, False) in self._entries

    def dump(self, console=None):
        """Pretty print every cached record."""
        console = console or rich.console.Console()
        console.print(rich.pretty.Pretty(self._entries, expand_all=True))
