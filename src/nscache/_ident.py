"""Namespace identity and cache keys."""

__all__ = ["NamespaceId", "MACROS_SUFFIX", "to_cache_key"]


from dataclasses import dataclass


# Marker appended to the cache key of the macro flavor of a namespace
MACROS_SUFFIX = "$macros"


def to_cache_key(name, macros):
    """Build the output cache key for a namespace.

    The key is a plain string, so a regular namespace whose name already
    ends with the macros marker is indistinguishable from the macro
    flavor of its prefix.

    Args:
        name: (str) Dotted namespace name
        macros: (bool) Whether this is the macro-only flavor

    Returns:
        (str) Cache key
    """
    return f"{name}{MACROS_SUFFIX}" if macros else str(name)


@dataclass(frozen=True)
class NamespaceId:
    """Identifies one flavor of a namespace.

    Attributes:
        name: (str) Dotted namespace name, without the macros marker
        macros: (bool) True for the macro-only flavor evaluated at compile time
    """

    name: str
    macros: bool = False

    @classmethod
    def from_cache_key(cls, key):
        """Interpret a cache key (or provided name) as an identity."""
        if key.endswith(MACROS_SUFFIX) and len(key) > len(MACROS_SUFFIX):
            return cls(key[: -len(MACROS_SUFFIX)], True)
        return cls(key, False)

    @property
    def cache_key(self):
        """(str) Output cache key for this identity."""
        return to_cache_key(self.name, self.macros)

    def __str__(self):
        return self.cache_key
