"""Compiled tableql schemas shared by tests and the example app."""

from tableql import BuildSchemaConfig, build_schema
from tests.models import Base

compiled = build_schema(Base, dialect="sqlite")
schema = compiled.schema

# Same tables compiled as a backend without RETURNING support
returnless = build_schema(Base, dialect="mysql")

# Output types stop after one relation hop
shallow = build_schema(Base, dialect="sqlite", config=BuildSchemaConfig(relations_depth_limit=1))
