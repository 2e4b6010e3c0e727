from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class BackendCapabilities:
    name: str
    can_report_affected_rows: bool
    supports_window_functions: bool = True


class BaseAdapter:
    name = 'base'
    # Mutations can return the affected rows (INSERT/UPDATE/DELETE ... RETURNING)
    can_report_affected_rows = True
    supports_window_functions = True

    @property
    def capabilities(self) -> BackendCapabilities:
        return BackendCapabilities(
            name=self.name,
            can_report_affected_rows=self.can_report_affected_rows,
            supports_window_functions=self.supports_window_functions,
        )

    # Dialect-specific column types; return a type tag or None to use the defaults
    def classify(self, sa_type: Any) -> Optional[str]:
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
