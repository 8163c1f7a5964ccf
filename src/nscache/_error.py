"""Error classes and helpers"""

__all__ = ["CompileFailure"]


import collections.abc


class CompileFailure(Exception):
    """Plain description of a failed compile, as passed to `on_failure`.

    Args:
        message: (str) Error description
        data: (dict | None) Structured details reported by the engine
        cause: (Exception | None) Underlying error, if any

    Attributes:
        message: (str) Error description
        data: (dict | None) Structured details reported by the engine
        cause: (Exception | None) Underlying error, if any
    """

    def __init__(self, message, data=None, cause=None):
        self.message = message
        self.data = data
        self.cause = cause
        super().__init__(message)

    def __repr__(self):
        return f"CompileFailure({self.message!r})"

    @classmethod
    def from_error(cls, error):
        """Normalize an engine error object.

        Engine errors are expected to expose `message`, `data` and `cause`
        attributes; any other exception falls back to its text and chained
        cause.
        """
        message = getattr(error, "message", None)
        if message is None:
            message = str(error)
        data = getattr(error, "data", None)
        cause = getattr(error, "cause", None)
        if cause is None:
            cause = error.__cause__
        if isinstance(data, collections.abc.Mapping):
            data = dict(data)
        return cls(message, data, cause)

    def to_dict(self):
        """(dict) The failure as a plain `message`/`data`/`cause` mapping."""
        return {"message": self.message, "data": self.data, "cause": self.cause}
