"""Dependency loading for the compiler engine."""

__all__ = ["DependencyLoader", "invoke_source_loader"]


import logging

import nscache


_LOGGER = logging.getLogger(__name__)


def invoke_source_loader(source_loader, ns_id, callback):
    """Ask the host for a namespace's source and report it to the engine.

    The engine treats a None record as an unresolved dependency and
    reports its own compile failure, so no error is raised here.

    Args:
        source_loader: Callable taking a NamespaceId, returning str or None
        ns_id: (NamespaceId) Namespace requested by the engine
        callback: Engine continuation receiving the record or None
    """
    source = source_loader(ns_id)
    if source is not None:
        return callback(nscache.CompiledNamespace(nscache.Lang.SOURCE, source))
    return callback(None)


class DependencyLoader:
    """Engine `load` hook answering from the output cache first.

    A cached record is handed to the continuation immediately; only a miss
    reaches the host's source loader. Either way the continuation is
    called exactly once per request.

    Args:
        cache: (OutputCache) Cache consulted before the source loader
        source_loader: Callable taking a NamespaceId, returning str or None
    """

    def __init__(self, cache, source_loader):
        self.cache = cache
        self.source_loader = source_loader

    def __repr__(self):
        return f"DependencyLoader<{self.cache!r}>"

    def __call__(self, ns_id, callback):
        _LOGGER.debug("Loading dependency %s", ns_id)
        key = nscache.to_cache_key(ns_id.name, ns_id.macros)
        cached = self.cache.get(key)
        if cached is not None:
            _LOGGER.debug("Using cached compiled namespace for %s", key)
            return callback(cached)
        _LOGGER.debug("No cached output for %s, using source loader", key)
        return invoke_source_loader(self.source_loader, ns_id, callback)
