from __future__ import annotations

import asyncio
import logging
from dataclasses import fields as dataclass_fields, is_dataclass
from enum import Enum
from typing import Any, Mapping, MutableMapping

from strawberry import UNSET

# Context keys searched, in order, for the request's AsyncSession
SESSION_KEYS = ('db_session', 'db', 'session', 'async_session')
DB_LOCK_KEY = '_tableql_db_lock'

_logger = logging.getLogger("tableql")


def input_to_dict(obj: Any) -> Any:
    """Plain dicts and lists from Strawberry input instances.

    ``UNSET`` fields are dropped and explicit ``None`` is kept, which is how
    filters and write inputs tell "omitted" from "set to null". Enum members
    become their values.
    """
    if obj is None or obj is UNSET:
        return None
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [input_to_dict(x) for x in obj]
    if isinstance(obj, Mapping):
        return {k: input_to_dict(v) for k, v in obj.items() if v is not UNSET}
    if is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: input_to_dict(getattr(obj, f.name))
            for f in dataclass_fields(obj)
            if getattr(obj, f.name, UNSET) is not UNSET
        }
    return obj


def get_db_session(info_or_ctx: Any) -> Any:
    """Session from a Strawberry ``Info`` or a bare context dict/object, else ``None``."""
    ctx = getattr(info_or_ctx, 'context', info_or_ctx)
    if ctx is None:
        return None
    for key in SESSION_KEYS:
        value = ctx.get(key) if isinstance(ctx, Mapping) else getattr(ctx, key, None)
        if value is not None:
            return value
    return None


def get_db_lock(info_or_ctx: Any) -> asyncio.Lock:
    """Per-request lock stored on the context; sibling root fields share one session."""
    ctx = getattr(info_or_ctx, 'context', info_or_ctx)
    if isinstance(ctx, MutableMapping):
        lock = ctx.get(DB_LOCK_KEY)
        if lock is None:
            lock = ctx[DB_LOCK_KEY] = asyncio.Lock()
        return lock
    lock = getattr(ctx, DB_LOCK_KEY, None) if ctx is not None else None
    if lock is None:
        lock = asyncio.Lock()
        if ctx is not None:
            try:
                setattr(ctx, DB_LOCK_KEY, lock)
            except AttributeError:
                _logger.warning("Cannot store the DB lock on %s; sibling fields may overlap", type(ctx).__name__)
    return lock


__all__ = ['input_to_dict', 'get_db_session', 'get_db_lock', 'SESSION_KEYS']
