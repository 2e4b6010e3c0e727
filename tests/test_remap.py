import json
from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

import pytest

from tableql.core.descriptors import ColumnDescriptor, load_catalog
from tableql.core.remap import ValueRemapper
from tableql.errors import RemapError, ValidationError
from tests.models import Base


def col(tag, **kw):
    return ColumnDescriptor(name=kw.pop('name', 'value'), table=kw.pop('table', 'things'), type_tag=tag, column_type=kw.pop('column_type', tag), **kw)


remapper = ValueRemapper()


def test_timestamp_round_trip():
    c = col('timestamp')
    ts = datetime(2024, 5, 6, 7, 8, 9, 123000)
    wire = remapper.to_wire(ts, c)
    assert wire == '2024-05-06T07:08:09.123000'
    assert remapper.from_wire(wire, c) == ts
    assert remapper.from_wire('2024-05-06T07:08:09Z', c).utcoffset().total_seconds() == 0
    with pytest.raises(RemapError):
        remapper.from_wire('yesterday', c)


def test_date_columns_drop_time_of_day():
    c = col('date')
    assert remapper.to_wire(datetime(2024, 5, 6, 23, 59), c) == '2024-05-06'
    assert remapper.from_wire('2024-05-06', c) == date(2024, 5, 6)
    assert remapper.to_wire(time(1, 2, 3), col('time')) == '01:02:03'


def test_bigint_and_decimal_travel_as_strings():
    big = col('bigint')
    assert remapper.to_wire(2 ** 62, big) == str(2 ** 62)
    assert remapper.from_wire(str(2 ** 62), big) == 2 ** 62
    with pytest.raises(RemapError):
        remapper.from_wire(str(2 ** 64), big)
    with pytest.raises(RemapError):
        remapper.from_wire('12abc', big)
    dec = col('decimal')
    assert remapper.to_wire(Decimal('1.50'), dec) == '1.50'
    assert remapper.from_wire('1.50', dec) == Decimal('1.50')
    with pytest.raises(RemapError):
        remapper.from_wire('NaN', dec)


def test_binary_is_a_list_of_bytes():
    c = col('binary')
    assert remapper.to_wire(b'\x00\x7f\xff', c) == [0, 127, 255]
    assert remapper.from_wire([0, 127, 255], c) == b'\x00\x7f\xff'
    with pytest.raises(RemapError):
        remapper.from_wire([256], c)


def test_json_is_compact_text():
    c = col('json')
    assert remapper.to_wire({'a': [1, 2], 'b': None}, c) == '{"a":[1,2],"b":null}'
    assert remapper.from_wire('{"a": [1, 2]}', c) == {'a': [1, 2]}
    with pytest.raises(RemapError) as exc:
        remapper.from_wire('{oops', c)
    assert "Invalid JSON in field 'things.value'" in str(exc.value)
    # nested binary cannot be represented inside JSON
    with pytest.raises(RemapError):
        remapper.to_wire({'raw': b'\x00'}, c)


def test_arrays_remap_each_item():
    item = col('bigint')
    c = col('array', item=item)
    assert remapper.to_wire([1, 2], c) == ['1', '2']
    assert remapper.from_wire(['1', '2'], c) == [1, 2]


def test_geometry_modes():
    xy = col('geometry')
    assert remapper.to_wire((1, 2), xy) == {'x': 1.0, 'y': 2.0}
    assert remapper.from_wire({'x': 1, 'y': 2}, xy) == (1.0, 2.0)
    tup = col('geometry', options={'mode': 'tuple'})
    assert remapper.to_wire({'x': 3, 'y': 4}, tup) == [3.0, 4.0]
    assert remapper.from_wire([3, 4], tup) == (3.0, 4.0)


def test_uuid_and_enum():
    u = UUID('12345678-1234-5678-1234-567812345678')
    assert remapper.to_wire(u, col('uuid')) == str(u)
    assert remapper.from_wire(str(u), col('uuid')) == u
    e = col('enum', enum_values=('draft', 'in review'))
    assert remapper.from_wire('draft', e) == 'draft'
    # unsafe GraphQL names travel as Option<index>
    assert remapper.from_wire('Option1', e) == 'in review'
    with pytest.raises(RemapError):
        remapper.from_wire('archived', e)


def test_custom_converters_take_precedence():
    r = ValueRemapper()
    r.register_to_wire('Money', lambda v, c: f"${v:.2f}")
    r.register_from_wire('decimal', lambda v, c: Decimal(v) * 100)
    money = col('decimal', column_type='Money')
    assert r.to_wire(Decimal('3.5'), money) == '$3.50'
    assert r.to_wire(Decimal('3.5'), col('decimal')) == '3.5'
    assert r.from_wire('1', col('decimal')) == Decimal('100')


def test_rows_from_and_to_wire():
    posts = load_catalog(Base).table('posts')
    row = remapper.input_row_from_wire(posts, {'content': None, 'authorId': '1', 'metadata_json': json.dumps([1])})
    # explicit null on a NOT NULL column is dropped
    assert row == {'author_id': 1, 'metadata_json': [1]}
    with pytest.raises(ValidationError) as exc:
        remapper.input_row_from_wire(posts, {'bogus': 1})
    assert str(exc.value) == "Unknown column: bogus"
    out = remapper.row_to_wire(posts, {'id': 1, 'views': 10, 'payload': None, 'extra': 1})
    assert out == {'id': 1, 'views': '10', 'payload': None}
