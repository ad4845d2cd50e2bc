"""Exceptions raised by the rule adapter.

Store failures (``sqlalchemy.exc.SQLAlchemyError``) are not wrapped; they reach
the caller exactly as SQLAlchemy raised them.
"""


class RuleAdapterError(Exception):
    """Base class for rule adapter errors."""


class ConfigurationError(RuleAdapterError, ValueError):
    """Invalid adapter or router setup (missing store, bad classification)."""


class FieldRangeError(RuleAdapterError, IndexError):
    """A field index or value list reaches past the last rule field."""


class UnsupportedOperationError(RuleAdapterError, NotImplementedError):
    """The selected codec version does not implement this operation."""
