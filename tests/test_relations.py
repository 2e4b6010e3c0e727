import pytest

from tableql import BuildSchemaConfig, build_schema
from tests.models import Base
from tests.schema import schema, shallow


async def _type_fields(s, type_name):
    res = await s.execute('query($n: String!) { __type(name: $n) { fields { name } } }', variable_values={'n': type_name})
    assert res.errors is None, res.errors
    if res.data['__type'] is None:
        return None
    return {f['name'] for f in res.data['__type']['fields']}


@pytest.mark.asyncio
async def test_nested_relations_load_requested_subtrees(db_session, populated_db):
    q = """
    query {
      users(orderBy: {id: {direction: asc}}) {
        name
        posts(orderBy: {id: {direction: asc}}) { id author { name } }
        invitedBy { name }
      }
    }
    """
    res = await schema.execute(q, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    alice, bob = res.data['users']
    assert [p['id'] for p in alice['posts']] == [1, 2]
    assert alice['posts'][0]['author']['name'] == "Alice Johnson"
    assert alice['invitedBy'] is None
    assert bob['invitedBy'] == {'name': "Alice Johnson"}
    assert [p['id'] for p in bob['posts']] == [3]


@pytest.mark.asyncio
async def test_relation_arguments_and_aliases(db_session, populated_db):
    q = """
    query {
      postsSingle(where: {id: {eq: 1}}) {
        top: comments(orderBy: {rating: {direction: desc}}, limit: 2) { id rating }
        rest: comments(orderBy: {rating: {direction: desc}}, offset: 2) { id }
        low: comments(where: {rating: {lte: 3}}) { body }
      }
    }
    """
    res = await schema.execute(q, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    post = res.data['postsSingle']
    assert [c['id'] for c in post['top']] == [1, 2]
    assert [c['id'] for c in post['rest']] == [3]
    assert sorted(c['body'] for c in post['low']) == ['meh', 'nice']


@pytest.mark.asyncio
async def test_paged_relation_pages_per_parent(db_session, populated_db):
    q = """
    query {
      posts(orderBy: {id: {direction: asc}}) { id comments(orderBy: {id: {direction: asc}}, limit: 1) { id } }
    }
    """
    res = await schema.execute(q, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    assert [[c['id'] for c in p['comments']] for p in res.data['posts']] == [[1], [], [4]]


@pytest.mark.asyncio
async def test_fragments_are_flattened(db_session, populated_db):
    q = """
    fragment PostBits on PostsSelectItem { content author { id } }
    query { posts(where: {id: {eq: 3}}) { id ...PostBits ... on PostsSelectItem { authorId } } }
    """
    res = await schema.execute(q, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    assert res.data['posts'] == [{'id': 3, 'content': 'A', 'author': {'id': 2}, 'authorId': 2}]


@pytest.mark.asyncio
async def test_depth_zero_has_no_relation_fields():
    s = build_schema(Base, dialect="sqlite", config=BuildSchemaConfig(relations_depth_limit=0)).schema
    fields = await _type_fields(s, 'UsersSelectItem')
    assert 'posts' not in fields and 'invitedBy' not in fields
    assert {'id', 'name', 'isAdmin', 'invitedById'} <= fields


@pytest.mark.asyncio
async def test_depth_limit_bounds_self_relations():
    level0 = await _type_fields(shallow.schema, 'UsersSelectItem')
    assert {'posts', 'invitedBy', 'invitees'} <= level0
    level1 = await _type_fields(shallow.schema, 'UsersSelectItemDepth1')
    assert 'invitedBy' not in level1 and 'posts' not in level1
    assert 'author' not in await _type_fields(shallow.schema, 'PostsSelectItemDepth1')


@pytest.mark.asyncio
async def test_depth_limit_rejects_deeper_selection(db_session, populated_db):
    q = "query { users { invitedBy { invitedBy { id } } } }"
    res = await shallow.schema.execute(q, context_value={'db_session': db_session})
    assert res.errors is not None


@pytest.mark.asyncio
async def test_unlimited_depth_uses_cyclic_types_and_request_budget(db_session, populated_db):
    fields = await _type_fields(schema, 'UsersSelectItem')
    assert {'posts', 'invitedBy', 'invitees'} <= fields
    q = "query { users(where: {id: {eq: 2}}) { invitedBy { invitees { invitedBy { name } } } } }"
    res = await schema.execute(q, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    assert res.data['users'][0]['invitedBy']['invitees'][0]['invitedBy']['name'] == "Alice Johnson"

    tight = build_schema(Base, dialect="sqlite", config=BuildSchemaConfig(max_relation_depth=2)).schema
    res = await tight.execute(q, context_value={'db_session': db_session})
    assert res.errors is not None
    assert "maximum relation depth" in res.errors[0].message


@pytest.mark.asyncio
async def test_nested_relation_values_are_remapped(db_session, populated_db):
    q = """
    query {
      users(where: {id: {eq: 1}}) { posts(orderBy: {id: {direction: asc}}) { id views payload } }
    }
    """
    res = await schema.execute(q, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    first = res.data['users'][0]['posts'][0]
    assert first == {'id': 1, 'views': '9007199254740993', 'payload': [0, 1, 255]}
