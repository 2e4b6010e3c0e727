import pytest
from sqlalchemy.dialects import sqlite

from tableql.core.descriptors import load_catalog
from tableql.core.filters import FilterCompiler, OPERATOR_REGISTRY, register_operator
from tableql.core.remap import ValueRemapper
from tableql.errors import RemapError, ValidationError
from tests.models import Base

catalog = load_catalog(Base)
posts = catalog.table('posts')
compiler = FilterCompiler(ValueRemapper())


def _sql(expr) -> str:
    return str(expr.compile(dialect=sqlite.dialect(), compile_kwargs={"literal_binds": True}))


def test_empty_filter_is_true():
    assert _sql(compiler.compile(posts, None)) in ("1", "true")
    assert _sql(compiler.compile(posts, {})) in ("1", "true")


def test_accepts_python_and_graphql_keys():
    a = _sql(compiler.compile(posts, {'author_id': {'in_array': [1, 2]}}))
    b = _sql(compiler.compile(posts, {'authorId': {'inArray': [1, 2]}}))
    assert a == b
    assert "IN (1, 2)" in a


def test_unknown_column_and_operator():
    with pytest.raises(ValidationError):
        compiler.compile(posts, {'nope': {'eq': 1}})
    with pytest.raises(ValidationError):
        compiler.compile(posts, {'id': {'between': [1, 2]}})


def test_operands_are_converted_from_wire():
    sql = _sql(compiler.compile(posts, {'views': {'gt': '9007199254740993'}}))
    assert "9007199254740993" in sql
    with pytest.raises(RemapError):
        compiler.compile(posts, {'views': {'gt': 'not-a-number'}})


def test_empty_or_element_matches_everything():
    # or_(true(), x) folds to true()
    sql = _sql(compiler.compile(posts, {'OR': [{}, {'id': {'eq': 2}}]}))
    assert sql in ("1", "true", "1 = 1")


def test_register_operator_uses_snake_key():
    register_operator('startsWith', lambda col, v: col.like(f"{v}%"))
    try:
        sql = _sql(compiler.compile(posts, {'content': {'startsWith': 'A'}}))
        assert "LIKE 'A%'" in sql
    finally:
        OPERATOR_REGISTRY.pop('starts_with', None)


def test_ilike_uses_case_insensitive_like():
    sql = _sql(compiler.compile(posts, {'content': {'ilike': 'a%'}}))
    assert "lower(posts.content) LIKE lower('a%')" in sql
    sql = _sql(compiler.compile(posts, {'content': {'notIlike': 'a%'}}))
    assert "NOT LIKE" in sql


def test_column_or_alternatives():
    sql = _sql(compiler.compile(posts, {'id': {'OR': [{'eq': 1}, {'eq': 3}]}}))
    assert sql == "posts.id = 1 OR posts.id = 3"
    # Alternatives with no condition are dropped
    sql = _sql(compiler.compile(posts, {'id': {'OR': [{}, {'eq': 3}, {'eq': None}]}}))
    assert sql == "posts.id = 3"
    assert _sql(compiler.compile(posts, {'id': {'OR': [{}]}})) in ("1", "true")
    assert _sql(compiler.compile(posts, {'id': {'OR': [], 'eq': 2}})) == "posts.id = 2"


def test_column_or_cannot_mix_with_operators():
    with pytest.raises(ValidationError, match="Cannot specify both fields and 'OR'"):
        compiler.compile(posts, {'id': {'OR': [{'eq': 1}], 'gt': 0}})
