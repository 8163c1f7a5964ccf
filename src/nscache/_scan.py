"""Discover namespaces provided by emitted compiler output.

The compiler announces every namespace a chunk of output defines with a
provide statement on its own line, for example::

    goog.provide('foo.bar');

Only the namespace name is recovered here. Whether the name refers to the
macro flavor of a namespace is decided when the cache record is built.
"""

__all__ = ["PROVIDE_RE", "extract_provided_ns", "iter_provided", "scan"]


import re


PROVIDE_RE = re.compile(r"^goog\.provide\('([^\s]+)'\);$")


def extract_provided_ns(line):
    """Return the namespace name provided by a single output line.

    Args:
        line: (str) One line of emitted output

    Returns:
        (str | None) Provided name, or None when the line is anything else
    """
    match = PROVIDE_RE.match(line)
    if match is None:
        return None
    return match.group(1)


def iter_provided(compiled):
    """Lazily yield provided namespace names in the order they appear."""
    for line in compiled.splitlines():
        name = extract_provided_ns(line)
        if name is not None:
            yield name


def scan(compiled):
    """Find every namespace provided by emitted output.

    Args:
        compiled: (str) Full emitted output of one compile

    Returns:
        (list[str]) Provided names in file order, empty when there are none
    """
    if not compiled:
        return []
    return list(iter_provided(compiled))
