"""Caller-constructed registry of custom types and value converters."""
from __future__ import annotations

from .core.remap import Converter, ValueRemapper
from .errors import RegistryFrozenError
from .core.type_registry import TypeFactory, TypeRegistry


class Registry:
    """Bundle of a :class:`TypeRegistry` and a :class:`ValueRemapper`.

    Build one explicitly, register custom column types and converters, then
    pass it to ``build_schema``. The compile freezes it; later registration
    raises ``RegistryFrozenError``.

    Example::

        registry = Registry()
        registry.register_type('citext', lambda col, is_input: ConvertedColumn(str))
        registry.register_to_wire('money', lambda v, col: f"{v:.2f}")
    """

    def __init__(self):
        self.types = TypeRegistry()
        self.remapper = ValueRemapper()

    def register_type(self, tag: str, factory: TypeFactory) -> "Registry":
        self.types.register(tag, factory)
        return self

    def register_to_wire(self, tag: str, fn: Converter) -> "Registry":
        self.remapper.register_to_wire(tag, fn)
        return self

    def register_from_wire(self, tag: str, fn: Converter) -> "Registry":
        self.remapper.register_from_wire(tag, fn)
        return self

    def configure(self, *, geometry_mode: str) -> None:
        if self.frozen and geometry_mode != self.types.geometry_mode:
            raise RegistryFrozenError(
                f"Registry is frozen with geometry mode '{self.types.geometry_mode}'; "
                f"use a new Registry for '{geometry_mode}'"
            )
        self.types.geometry_mode = geometry_mode
        self.remapper.geometry_mode = geometry_mode

    def freeze(self) -> None:
        self.types.freeze()
        self.remapper.freeze()

    @property
    def frozen(self) -> bool:
        return self.types.frozen


__all__ = ['Registry']
