from typing import Any


class OpSetError(Exception):
    def __init__(self, message: str, extra: Any = None):
        super().__init__(message)
        self.message = message
        self.extra = extra


class FormattingError(OpSetError):
    """The declarative operation records themselves are malformed."""


class InvalidOperationError(OpSetError):
    """A well-formed operation was given a payload it cannot run with."""
