"""tableql: compile SQLAlchemy table declarations into a GraphQL API.

This __init__ keeps imports lazy so models modules can import light pieces
(errors, config) without pulling in Strawberry and the generator.

Exposes:
- build_schema, CompiledSchema
- Registry, BuildSchemaConfig
- ConvertedColumn (return type of custom type factories)
- Error types: TableQLError, SchemaBuildError, ValidationError, RemapError, RegistryFrozenError
"""
from __future__ import annotations


def __getattr__(name: str):  # PEP 562 lazy exports
    import importlib as _importlib
    if name in {'build_schema', 'CompiledSchema'}:
        return getattr(_importlib.import_module(__name__ + '.schema'), name)
    if name == 'Registry':
        return getattr(_importlib.import_module(__name__ + '.registry'), name)
    if name == 'BuildSchemaConfig':
        return getattr(_importlib.import_module(__name__ + '.config'), name)
    if name == 'ConvertedColumn':
        return getattr(_importlib.import_module(__name__ + '.core.type_registry'), name)
    if name in {'TableQLError', 'SchemaBuildError', 'ValidationError', 'RemapError', 'RegistryFrozenError'}:
        return getattr(_importlib.import_module(__name__ + '.errors'), name)
    raise AttributeError(name)


__all__ = [
    'build_schema', 'CompiledSchema',
    'Registry', 'BuildSchemaConfig', 'ConvertedColumn',
    'TableQLError', 'SchemaBuildError', 'ValidationError', 'RemapError', 'RegistryFrozenError',
]
