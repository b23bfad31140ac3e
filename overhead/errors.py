"""
Error taxonomy for Overhead.

Library exceptions (requests, json, SQLAlchemy) are translated into these
at the module seams so callers only handle one family.
"""


class OverheadError(Exception):
    """Base class for all errors raised by this package."""


class TransportError(OverheadError):
    """Feed unreachable or answered with a non-200 status."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class DecodeError(OverheadError):
    """Feed body could not be decoded; the whole snapshot is unusable."""


class FieldDecodeError(OverheadError):
    """A single field of an aircraft entry had an unrecognized encoding."""

    def __init__(self, field: str, value):
        super().__init__(f'unexpected value for {field}: {value!r}')
        self.field = field
        self.value = value


class WriteError(OverheadError):
    """The store rejected a row."""


class QueryError(OverheadError):
    """A read against the store failed or timed out."""
