"""Tests for the dependency loader hook."""

import pytest

import nscache
import nstest


def _capture():
    received = []
    return received, received.append


def test_cache_hit_skips_source_loader():
    """Cached records are handed over without asking the host."""
    cache = nscache.OutputCache()
    record = nscache.make_compiled_ns("foo.bar", "OUTPUT", nscache.engine.EngineState())
    cache.set("foo.bar", record)
    loader = nscache.DependencyLoader(cache, nstest.failing_loader)

    received, callback = _capture()
    loader(nscache.NamespaceId("foo.bar"), callback)
    assert received == [record]
    assert received[0] is record


def test_cache_hit_macros_flavor():
    """Macro requests look under the macro key."""
    cache = nscache.OutputCache()
    record = nscache.make_compiled_ns("m$macros", "OUTPUT", nscache.engine.EngineState())
    cache.set("m$macros", record)
    loader = nscache.DependencyLoader(cache, nstest.failing_loader)

    received, callback = _capture()
    loader(nscache.NamespaceId("m", True), callback)
    assert received == [record]


def test_regular_record_not_used_for_macros():
    """A cached regular namespace does not satisfy a macro request."""
    cache = nscache.OutputCache()
    cache.set("m", nscache.make_compiled_ns("m", "OUTPUT", nscache.engine.EngineState()))
    requested = []
    loader = nscache.DependencyLoader(cache, nstest.loader_from({}, requested))

    received, callback = _capture()
    loader(nscache.NamespaceId("m", True), callback)
    assert received == [None]
    assert requested == [nscache.NamespaceId("m", True)]


def test_fallback_to_source_loader():
    """A miss wraps the host's source as a SOURCE record."""
    loader = nscache.DependencyLoader(
        nscache.OutputCache(), nstest.loader_from({"foo.bar": "(ns foo.bar)"})
    )

    received, callback = _capture()
    loader(nscache.NamespaceId("foo.bar"), callback)
    assert received == [nscache.CompiledNamespace(nscache.Lang.SOURCE, "(ns foo.bar)")]


def test_absent_source():
    """No source is reported as None rather than raised."""
    loader = nscache.DependencyLoader(nscache.OutputCache(), nstest.loader_from({}))

    received, callback = _capture()
    loader(nscache.NamespaceId("missing.ns"), callback)
    assert received == [None]


def test_source_loader_errors_propagate():
    """Host loader exceptions are not swallowed."""

    def broken(ns_id):
        raise OSError("disk on fire")

    loader = nscache.DependencyLoader(nscache.OutputCache(), broken)
    received, callback = _capture()
    with pytest.raises(OSError):
        loader(nscache.NamespaceId("foo"), callback)
    assert received == []


def test_empty_source_is_still_source():
    """An empty string from the host is a source, not a missing namespace."""
    loader = nscache.DependencyLoader(nscache.OutputCache(), lambda ns_id: "")

    received, callback = _capture()
    loader(nscache.NamespaceId("empty.ns"), callback)
    assert received == [nscache.CompiledNamespace(nscache.Lang.SOURCE, "")]
