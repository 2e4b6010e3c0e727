"""Compile-time configuration for ``build_schema``."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .errors import SchemaBuildError

GEOMETRY_MODES = ('xy', 'tuple')

_TRUE = {'1', 'true', 'yes', 'on'}
_FALSE = {'0', 'false', 'no', 'off'}


@dataclass(frozen=True)
class BuildSchemaConfig:
    """Options controlling the generated API.

    Attributes:
        relations_depth_limit: Maximum number of relation hops exposed by the
            output types. ``None`` builds a cyclic graph with no static limit.
        mutations: When False the Mutation root type is omitted.
        geometry_mode: Wire shape of geometry columns, ``"xy"`` for an object
            with ``x``/``y`` fields or ``"tuple"`` for a ``[x, y]`` list. A
            column can override it with ``Column(..., info={"mode": "tuple"})``.
        max_relation_depth: Request-time bound on nested relation selections,
            applied when ``relations_depth_limit`` is ``None``.
    """

    relations_depth_limit: Optional[int] = None
    mutations: bool = True
    geometry_mode: str = 'xy'
    max_relation_depth: int = 8

    def __post_init__(self):
        if self.geometry_mode not in GEOMETRY_MODES:
            raise SchemaBuildError(
                f"geometry_mode must be one of {', '.join(GEOMETRY_MODES)}, got {self.geometry_mode!r}"
            )
        if isinstance(self.max_relation_depth, bool) or not isinstance(self.max_relation_depth, int) or self.max_relation_depth < 0:
            raise SchemaBuildError("max_relation_depth must be a nonnegative integer")

    @classmethod
    def from_env(cls, prefix: str = 'TABLEQL_') -> "BuildSchemaConfig":
        """Build a config from environment variables.

        Reads ``<prefix>RELATIONS_DEPTH_LIMIT``, ``<prefix>MUTATIONS``,
        ``<prefix>GEOMETRY_MODE`` and ``<prefix>MAX_RELATION_DEPTH``; unset
        variables keep the defaults.
        """
        kwargs = {}
        depth = os.getenv(prefix + 'RELATIONS_DEPTH_LIMIT')
        if depth is not None and depth.strip() != '':
            kwargs['relations_depth_limit'] = _parse_int(prefix + 'RELATIONS_DEPTH_LIMIT', depth)
        mutations = os.getenv(prefix + 'MUTATIONS')
        if mutations is not None and mutations.strip() != '':
            flag = mutations.strip().lower()
            if flag in _TRUE:
                kwargs['mutations'] = True
            elif flag in _FALSE:
                kwargs['mutations'] = False
            else:
                raise SchemaBuildError(f"{prefix}MUTATIONS must be a boolean flag, got {mutations!r}")
        mode = os.getenv(prefix + 'GEOMETRY_MODE')
        if mode:
            kwargs['geometry_mode'] = mode.strip().lower()
        budget = os.getenv(prefix + 'MAX_RELATION_DEPTH')
        if budget is not None and budget.strip() != '':
            kwargs['max_relation_depth'] = _parse_int(prefix + 'MAX_RELATION_DEPTH', budget)
        return cls(**kwargs)


def _parse_int(var: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        raise SchemaBuildError(f"{var} must be an integer, got {raw!r}") from None


__all__ = ['BuildSchemaConfig', 'GEOMETRY_MODES']
