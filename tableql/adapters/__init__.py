from __future__ import annotations

from typing import Any

from ..errors import SchemaBuildError
from .base import BackendCapabilities, BaseAdapter
from .sqlite import SQLiteAdapter
from .postgres import PostgresAdapter
from .mysql import MySQLAdapter


def _dialect_name(dialect: Any) -> str:
    if isinstance(dialect, str):
        return dialect
    # AsyncEngine -> Engine -> Dialect
    dialect = getattr(dialect, 'sync_engine', dialect)
    dialect = getattr(dialect, 'dialect', dialect)
    return str(getattr(dialect, 'name', '') or '')


def get_adapter(dialect: Any) -> BaseAdapter:
    """Return the adapter for a dialect name, engine or SQLAlchemy dialect."""
    if isinstance(dialect, BaseAdapter):
        return dialect
    dn = _dialect_name(dialect).lower()
    if dn.startswith('postgres'):
        return PostgresAdapter()
    if dn.startswith('mysql') or dn.startswith('mariadb'):
        return MySQLAdapter()
    if dn.startswith('sqlite'):
        return SQLiteAdapter()
    raise SchemaBuildError(f"Unsupported dialect: {dn or dialect!r}")


__all__ = [
    'BackendCapabilities',
    'BaseAdapter',
    'SQLiteAdapter',
    'PostgresAdapter',
    'MySQLAdapter',
    'get_adapter',
]
