from typing import List, Optional

import pytest
from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from tableql import BuildSchemaConfig, ConvertedColumn, Registry, build_schema
from tableql.core.descriptors import ColumnDescriptor, load_catalog
from tableql.core.type_registry import GeometryXY, GeometryXYInput, TypeRegistry
from tableql.errors import RegistryFrozenError, SchemaBuildError
from tests.models import Base


def col(tag, **kw):
    return ColumnDescriptor(name=kw.pop('name', 'value'), table=kw.pop('table', 'things'), type_tag=tag, column_type=kw.pop('column_type', tag), **kw)


def test_builtin_mappings():
    types = TypeRegistry()
    assert types.resolve(col('integer')).type is int
    assert types.resolve(col('float')).type is float
    assert types.resolve(col('bigint')).type is str
    assert types.resolve(col('boolean')).type is bool
    assert types.resolve(col('binary')).type == List[int]
    assert types.resolve(col('json')).description == 'JSON'
    assert types.resolve(col('array', item=col('integer'))).type == List[int]
    assert types.resolve(col('vector')).type == List[float]


def test_nullability_rules():
    types = TypeRegistry()
    required = col('text', nullable=False)
    defaulted = col('integer', nullable=False, has_default=True)
    assert types.annotate(required).type is str
    assert types.annotate(required, force_nullable=True).type == Optional[str]
    assert types.annotate(defaulted).type is int
    assert types.annotate(defaulted, default_is_nullable=True).type == Optional[int]
    assert types.annotate(col('integer')).type == Optional[int]


def test_quiet_tags_drop_descriptions():
    types = TypeRegistry()
    assert types.annotate(col('text', description=None)).description is None
    assert types.annotate(col('bigint')).description == 'BigInt'
    assert types.annotate(col('text', description='Display name')).description == 'Display name'


def test_geometry_follows_mode():
    types = TypeRegistry()
    assert types.resolve(col('geometry')).type is GeometryXY
    assert types.resolve(col('geometry'), is_input=True).type is GeometryXYInput
    assert types.resolve(col('geometry', options={'mode': 'tuple'})).type == List[float]
    types.geometry_mode = 'tuple'
    assert types.resolve(col('geometry')).type == List[float]


def test_enum_is_cached_and_named_after_table_and_column():
    types = TypeRegistry()
    c = col('enum', name='status', table='blog_posts', enum_values=('draft', 'in review'))
    first = types.resolve(c).type
    assert first is types.resolve(c, is_input=True).type
    assert first.__name__ == 'BlogPostsStatusEnum'
    assert [m.name for m in first] == ['draft', 'Option1']


def test_unknown_tag_fails_and_registration_resolves_it():
    types = TypeRegistry()
    c = col('citext')
    with pytest.raises(SchemaBuildError):
        types.resolve(c)
    types.register('citext', lambda column, is_input: ConvertedColumn(str, 'Case-insensitive text'))
    assert types.resolve(c).description == 'Case-insensitive text'


def test_column_type_registration_wins_over_tag():
    types = TypeRegistry()
    types.register('Money', lambda column, is_input: ConvertedColumn(float))
    assert types.resolve(col('decimal', column_type='Money')).type is float
    assert types.resolve(col('decimal')).type is str


def test_registry_is_frozen_by_compile():
    registry = Registry()
    registry.register_type('citext', lambda column, is_input: ConvertedColumn(str))
    build_schema(Base, dialect="sqlite", registry=registry)
    assert registry.frozen
    with pytest.raises(RegistryFrozenError):
        registry.register_type('other', lambda column, is_input: ConvertedColumn(str))
    with pytest.raises(RegistryFrozenError):
        registry.register_to_wire('other', lambda v, c: v)


def test_frozen_registry_keeps_its_geometry_mode():
    registry = Registry()
    build_schema(Base, dialect="sqlite", registry=registry)
    with pytest.raises(RegistryFrozenError):
        build_schema(Base, dialect="sqlite", registry=registry, config=BuildSchemaConfig(geometry_mode='tuple'))
    point = col('geometry', name='location')
    assert registry.remapper.to_wire((1, 2), point) == {'x': 1.0, 'y': 2.0}
    assert registry.types.resolve(point).type is GeometryXY


def test_catalog_classifies_model_columns():
    posts = load_catalog(Base).table('posts')
    tags = {name: c.type_tag for name, c in posts.columns.items()}
    assert tags == {
        'id': 'integer',
        'content': 'text',
        'author_id': 'integer',
        'status': 'enum',
        'metadata_json': 'json',
        'payload': 'binary',
        'views': 'bigint',
        'created_at': 'timestamp',
    }
    assert posts.columns['status'].enum_values == ('DRAFT', 'PUBLISHED')
    assert posts.columns['id'].has_default and posts.columns['created_at'].has_default
    assert posts.columns['content'].is_required_on_insert


class _LegacyBase(DeclarativeBase):
    pass


class _Account(_LegacyBase):
    __tablename__ = 'accounts'
    __mapper_args__ = {'exclude_properties': ['legacy_code']}

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    display: Mapped[str] = mapped_column('display_name', String(50))
    legacy_code = Column(String(10))


def test_catalog_keeps_unmapped_columns_under_their_column_key():
    accounts = load_catalog(_LegacyBase).table('accounts')
    assert set(accounts.columns) == {'id', 'display', 'legacy_code'}
    assert accounts.columns['legacy_code'].type_tag == 'text'
