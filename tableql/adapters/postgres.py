from __future__ import annotations
from typing import Any, Optional
from .base import BaseAdapter

# Postgres types that travel as plain strings
_TEXT_TYPES = {'INET', 'CIDR', 'MACADDR', 'MACADDR8', 'TSVECTOR', 'TSQUERY', 'CITEXT', 'MONEY', 'INTERVAL'}


class PostgresAdapter(BaseAdapter):
    name = 'postgres'

    def classify(self, sa_type: Any) -> Optional[str]:
        if type(sa_type).__name__.upper() in _TEXT_TYPES:
            return 'text'
        return None
