"""Name derivation for generated GraphQL types, fields and operators.

Table and column attribute keys are snake_case; GraphQL field names are
lowerCamelCase and type names UpperCamelCase. Conversions are idempotent so
either form can be used to look a column up.
"""
from __future__ import annotations

import re

__all__ = [
    "camel_to_snake",
    "snake_to_camel",
    "pascal_case",
    "capitalize",
    "is_graphql_name",
]

_GRAPHQL_NAME = re.compile(r"^[_a-zA-Z][_a-zA-Z0-9]*$")
_CAPITALIZED_WORD = re.compile(r"(.)([A-Z][a-z]+)")
_LOWER_UPPER = re.compile(r"([a-z0-9])([A-Z])")


def camel_to_snake(name: str) -> str:
    """``inArray`` -> ``in_array``, ``HTTPStatus`` -> ``http_status``."""
    if not name:
        return name
    return _LOWER_UPPER.sub(r"\1_\2", _CAPITALIZED_WORD.sub(r"\1_\2", name)).lower()


def snake_to_camel(name: str, upper_first: bool = False) -> str:
    """``post_comments`` -> ``postComments`` (or ``PostComments``).

    Names without underscores are returned as they are, apart from the first
    letter when ``upper_first`` is set.
    """
    if not name:
        return name
    if '_' not in name:
        return capitalize(name) if upper_first else name
    head, *tail = [p for p in name.split('_') if p] or ['']
    head = head.capitalize() if upper_first else head.lower()
    return head + ''.join(p.capitalize() for p in tail)


def pascal_case(name: str) -> str:
    """Type-name prefix for a table or column: ``post_comments`` -> ``PostComments``."""
    return capitalize(snake_to_camel(name))


def capitalize(name: str) -> str:
    return name[:1].upper() + name[1:]


def is_graphql_name(name: str) -> bool:
    """True when ``name`` is usable verbatim as a GraphQL name."""
    return bool(name) and _GRAPHQL_NAME.match(name) is not None
