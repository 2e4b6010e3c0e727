from __future__ import annotations
from typing import Any, Optional
from .base import BaseAdapter

class MySQLAdapter(BaseAdapter):
    name = 'mysql'
    # No RETURNING: mutations report success only
    can_report_affected_rows = False

    def classify(self, sa_type: Any) -> Optional[str]:
        cls_name = type(sa_type).__name__.upper()
        if cls_name == 'YEAR':
            return 'integer'
        if cls_name == 'SET':
            return 'text'
        return None
