"""A minimal SVG element tree that one view owns and the page serializes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional


@dataclass(eq=False)
class Element:
    tag: str
    attrs: Dict[str, Any] = field(default_factory=dict)
    style: Dict[str, Any] = field(default_factory=dict)
    children: List['Element'] = field(default_factory=list)
    text: Optional[str] = None

    def append(self, tag: str, **attrs) -> 'Element':
        child = Element(tag)
        for name, value in attrs.items():
            child.attr(name.replace('_', '-'), value)
        self.children.append(child)
        return child

    def attr(self, name: str, value: Any) -> 'Element':
        """Set an attribute; ``None`` removes it."""
        if value is None:
            self.attrs.pop(name, None)
        else:
            self.attrs[name] = value
        return self

    def css(self, name: str, value: Any) -> 'Element':
        if value is None:
            self.style.pop(name, None)
        else:
            self.style[name] = value
        return self

    def remove(self, child: 'Element') -> None:
        self.children.remove(child)

    def iter(self, tag: Optional[str] = None) -> Iterator['Element']:
        """Depth-first walk over this element and its descendants."""
        if tag is None or self.tag == tag:
            yield self
        for child in self.children:
            yield from child.iter(tag)

    def find_all(self, tag: str) -> List['Element']:
        return [el for child in self.children for el in child.iter(tag)]

    @property
    def style_text(self) -> str:
        return '; '.join(f'{k}: {v}' for k, v in self.style.items())


class Surface:
    """The drawing canvas of one diagram.

    Coordinates are centered: the viewBox spans ``[-w/2, -h/2, w, h]`` so the
    simulation origin sits in the middle of the canvas.
    """

    def __init__(self, width: int, height: int):
        self.root = Element('svg', attrs={'xmlns': 'http://www.w3.org/2000/svg'})
        self.resize(width, height)

    def resize(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self.root.attr('width', width)
        self.root.attr('height', height)
        self.root.attr('viewBox', f'{-width / 2:g} {-height / 2:g} {width} {height}')
        self.root.attr('style', 'max-width: 100%; height: auto; height: intrinsic;')

    def append(self, tag: str, **attrs) -> Element:
        return self.root.append(tag, **attrs)

    def remove(self, element: Element) -> None:
        if element in self.root.children:
            self.root.remove(element)

    def clear(self) -> None:
        self.root.children.clear()

    @property
    def empty(self) -> bool:
        return not self.root.children
