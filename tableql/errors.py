"""Exception types raised by tableql.

Compile-time problems raise :class:`SchemaBuildError` synchronously from
``build_schema``. Request-time problems raise :class:`ValidationError` or
:class:`RemapError` from resolvers and surface as GraphQL error entries.
Errors from the relational layer are never wrapped.
"""
from __future__ import annotations


class TableQLError(Exception):
    """Base class for every error raised by tableql."""
    pass


class SchemaBuildError(TableQLError):
    """Raised when the declared schema cannot be compiled into a GraphQL API."""
    pass


class ValidationError(TableQLError, ValueError):
    """Raised when request arguments have an invalid shape."""
    pass


class RemapError(TableQLError, ValueError):
    """Raised when a value cannot be converted between wire and storage form."""

    def __init__(self, message: str, *, column: str | None = None):
        super().__init__(message)
        self.column = column


class RegistryFrozenError(TableQLError):
    """Raised when a registry is modified after it was consumed by a compile."""
    pass


__all__ = [
    'TableQLError',
    'SchemaBuildError',
    'ValidationError',
    'RemapError',
    'RegistryFrozenError',
]
