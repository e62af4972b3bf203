"""Lightweight typed data models for clarity in function signatures."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple
import re


def field_getter(name: str) -> Callable[[Any], Any]:
    """Return an accessor reading ``name`` from a mapping or an attribute."""

    def get(record: Any) -> Any:
        if isinstance(record, Mapping):
            return record.get(name)
        return getattr(record, name, None)

    get.__name__ = f'get_{name}'
    get.__qualname__ = get.__name__
    return get


@dataclass(frozen=True)
class Constant:
    """A style value applied uniformly to every item."""
    value: Any

    def at(self, index: int) -> Any:
        return self.value


@dataclass(frozen=True)
class PerItem:
    """A style value resolved once per item, read back by item index."""
    values: Tuple[Any, ...]

    def at(self, index: int) -> Any:
        return self.values[index]


Style = Any  # Constant | PerItem


def resolve_style(spec: Any, items: Sequence[Any]) -> Style:
    """Turn a constant-or-callable option into a ``Constant`` or ``PerItem``."""
    if isinstance(spec, (Constant, PerItem)):
        return spec
    if callable(spec):
        return PerItem(tuple(spec(item) for item in items))
    return Constant(spec)


@dataclass
class Entity:
    id: Any
    index: int
    record: Mapping[str, Any]
    group: Any = None
    title: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    fx: Optional[float] = None
    fy: Optional[float] = None

    @property
    def pinned(self) -> bool:
        return self.fx is not None and self.fy is not None


@dataclass
class Relationship:
    source: Any
    target: Any
    index: int
    source_index: int
    target_index: int
    record: Mapping[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return f'{self.source}-{self.target}'

    @property
    def marker_id(self) -> str:
        return re.sub(r'\s+', '', self.key)
