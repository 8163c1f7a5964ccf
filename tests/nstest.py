"""Shared helpers for nscache tests."""

import pytest

import nscache


class RecordingLogger:
    """Logger stand-in keeping every message."""

    def __init__(self):
        self.infos = []
        self.errors = []

    def info(self, message):
        self.infos.append(message)

    def error(self, message):
        self.errors.append(message)


class Outcome:
    """Collects what a compile reported through its callbacks."""

    def __init__(self):
        self.successes = []
        self.failures = []
        self.evaluated = []
        self.logger = RecordingLogger()

    def options(self, **opts):
        options = {
            "logger": self.logger,
            "js-eval": self.evaluated.append,
            "on-success": self.successes.append,
            "on-failure": self.failures.append,
        }
        options.update(opts)
        return options


def loader_from(sources, requested=None):
    """Source loader answering from {cache_key: source}."""

    def load(ns_id):
        if requested is not None:
            requested.append(ns_id)
        return sources.get(ns_id.cache_key)

    return load


def failing_loader(ns_id):
    pytest.fail(f"source loader called for {ns_id}")


def compile_source(compiler, source, **opts):
    """Compile and return (job, outcome)."""
    outcome = Outcome()
    job = compiler.compile(source, outcome.options(**opts))
    return job, outcome


class ScriptedEngine(nscache.engine.Engine):
    """Engine that prints and then reports a fixed result."""

    def __init__(self, result, messages=()):
        super().__init__()
        self.result = result
        self.messages = list(messages)
        self.calls = []

    def compile_str(self, state, source, name, opts, callback):
        self.calls.append((source, name, opts))
        for message in self.messages:
            self.print_fn(message)
        return callback(self.result)


class RaisingEngine(nscache.engine.Engine):
    """Engine that fails before ever calling back."""

    def compile_str(self, state, source, name, opts, callback):
        self.print_err_fn("about to fail")
        raise RuntimeError("engine exploded")
