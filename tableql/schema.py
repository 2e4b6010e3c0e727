"""Compile entry point: declarative tables in, executable GraphQL schema out."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import strawberry
from strawberry.schema.config import StrawberryConfig

from .adapters import get_adapter
from .config import BuildSchemaConfig
from .core.descriptors import SchemaCatalog, load_catalog
from .errors import SchemaBuildError
from .generator import GeneratedEntities, SchemaGenerator
from .registry import Registry

_logger = logging.getLogger("tableql")


@dataclass(frozen=True)
class CompiledSchema:
    schema: strawberry.Schema
    entities: GeneratedEntities
    catalog: SchemaCatalog


def build_schema(
    models: Any,
    *,
    dialect: Any,
    registry: Optional[Registry] = None,
    config: Optional[BuildSchemaConfig] = None,
    strawberry_config: Optional[StrawberryConfig] = None,
) -> CompiledSchema:
    """Compile ORM models into a Strawberry schema.

    Args:
        models: A declarative base, an iterable of mapped classes, or a
            prepared :class:`SchemaCatalog`.
        dialect: Dialect name (``"sqlite"``, ``"postgresql"``, ``"mysql"``),
            an ``Engine``/``AsyncEngine`` or a SQLAlchemy dialect. It selects
            the backend capabilities, including whether mutations can return
            rows.
        registry: Custom types and value converters. It is frozen by this
            call.
        config: Compile options; defaults to :class:`BuildSchemaConfig()`.
        strawberry_config: Passed through to ``strawberry.Schema``.

    Resolvers expect an ``AsyncSession`` in the GraphQL context under
    ``db_session``.

    Raises:
        SchemaBuildError: when the models cannot be compiled.
    """
    config = config or BuildSchemaConfig()
    registry = registry or Registry()
    adapter = get_adapter(dialect)
    registry.configure(geometry_mode=config.geometry_mode)
    registry.freeze()
    catalog = load_catalog(models, adapter)
    if not len(catalog):
        raise SchemaBuildError("No tables found in the provided models")
    query, mutation, entities = SchemaGenerator(catalog, registry, adapter, config).generate()
    kwargs = {'query': query, 'mutation': mutation}
    if strawberry_config is not None:
        kwargs['config'] = strawberry_config
    schema = strawberry.Schema(**kwargs)
    _logger.debug("tableql: schema compiled for %d tables on %s", len(catalog), adapter.name)
    return CompiledSchema(schema=schema, entities=entities, catalog=catalog)


__all__ = ['build_schema', 'CompiledSchema']
