"""Graph builder: turn raw case and link records into renderable entities.

The builder resolves every accessor of a :class:`ViewConfig` exactly once and
hands the layout session and render pipeline plain parallel arrays, so nothing
downstream calls user accessors again.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from numbers import Number
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
import logging

import numpy as np

from .config import DEFAULT_TITLE, ViewConfig
from .errors import ConfigurationError, UnknownEntityError
from .models import Entity, Relationship, Style, resolve_style

logger = logging.getLogger(__name__)


def intern(value: Any) -> Any:
    """Reduce ``value`` to a primitive, hashable form for equality matching."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, (list, tuple)):
        return tuple(intern(v) for v in value)
    if isinstance(value, Mapping):
        return tuple(sorted(((k, intern(v)) for k, v in value.items()), key=lambda kv: str(kv[0])))
    if isinstance(value, (set, frozenset)):
        return frozenset(intern(v) for v in value)
    return value


def _domain_key(value: Any) -> Tuple[int, Any]:
    # numbers first, then everything else by its string form
    if isinstance(value, Number) and not isinstance(value, bool):
        return (0, value)
    return (1, str(value))


def category_domain(groups: Iterable[Any]) -> Tuple[Any, ...]:
    """Sorted distinct group values; missing (``None``) values are left out."""
    distinct = {g for g in groups if g is not None}
    return tuple(sorted(distinct, key=_domain_key))


class OrdinalScale:
    """Map discrete domain values onto a cycling range of colors.

    Values outside the domain are appended to it the first time they are seen.
    """

    def __init__(self, domain: Sequence[Any], range_: Sequence[str]):
        if not range_:
            raise ConfigurationError("an ordinal scale needs at least one output value")
        self._range = tuple(range_)
        self._index: Dict[Any, int] = {}
        for value in domain:
            self._index.setdefault(value, len(self._index))

    @property
    def domain(self) -> Tuple[Any, ...]:
        return tuple(self._index)

    @property
    def range(self) -> Tuple[str, ...]:
        return self._range

    def __call__(self, value: Any) -> str:
        i = self._index.get(value)
        if i is None:
            i = self._index[value] = len(self._index)
        return self._range[i % len(self._range)]


@dataclass(frozen=True)
class ForcePolicy:
    link_distance: Style
    link_strength: Optional[Style] = None
    node_strength: Optional[Style] = None


def force_policy(config: ViewConfig, node_records: Sequence[Any], link_records: Sequence[Any]) -> ForcePolicy:
    """Resolve the force options of ``config`` against the given records."""
    return ForcePolicy(
        link_distance=resolve_style(config.link_distance, link_records),
        link_strength=None if config.link_strength is None else resolve_style(config.link_strength, link_records),
        node_strength=None if config.node_strength is None else resolve_style(config.node_strength, node_records),
    )


@dataclass
class GraphModel:
    entities: List[Entity]
    relationships: List[Relationship]
    domain: Tuple[Any, ...]
    color: Optional[OrdinalScale]
    forces: ForcePolicy
    link_stroke: Style
    link_stroke_width: Style
    dropped: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def ids(self) -> Tuple[Any, ...]:
        return tuple(e.id for e in self.entities)

    @property
    def groups(self) -> Optional[Tuple[Any, ...]]:
        if self.color is None:
            return None
        return tuple(e.group for e in self.entities)

    def __post_init__(self):
        self._by_id = {e.id: e for e in self.entities}

    def entity(self, entity_id: Any) -> Entity:
        key = intern(entity_id)
        if key in self._by_id:
            return self._by_id[key]
        # ids arriving from a URL path are strings
        for e in self.entities:
            if str(e.id) == str(key):
                return e
        raise UnknownEntityError(entity_id)


def build_graph(nodes: Sequence[Any], links: Sequence[Any], config: ViewConfig) -> GraphModel:
    """Build the entity/relationship model for one view.

    Entities keep input order; a repeated identifier keeps its first record.
    Relationships whose endpoints do not resolve to an entity are dropped and
    reported in ``GraphModel.dropped``.
    """
    if config.node_id is None:
        raise ConfigurationError("node_id accessor is required")

    records: List[Any] = []
    ids: List[Any] = []
    seen: Dict[Any, int] = {}
    for record in nodes:
        node_id = intern(config.node_id(record))
        if node_id is None:
            logger.warning(f"Skipping case without identifier: {record!r:.80}")
            continue
        if node_id in seen:
            logger.warning(f"Duplicate case id {node_id!r}; keeping the first record")
            continue
        seen[node_id] = len(ids)
        ids.append(node_id)
        records.append(record)

    if config.node_title is DEFAULT_TITLE:
        titles: Optional[List[Any]] = [str(i) for i in ids]
    elif config.node_title is None:
        titles = None
    else:
        titles = [config.node_title(r) for r in records]

    groups = None
    if config.node_group is not None:
        groups = [intern(config.node_group(r)) for r in records]

    entities = [
        Entity(
            id=node_id,
            index=i,
            record=records[i],
            group=groups[i] if groups is not None else None,
            title=titles[i] if titles is not None else None,
        )
        for i, node_id in enumerate(ids)
    ]

    link_records: List[Any] = []
    relationships: List[Relationship] = []
    dropped: List[Dict[str, Any]] = []
    for record in links:
        source = intern(config.link_source(record))
        target = intern(config.link_target(record))
        if source not in seen or target not in seen:
            missing = source if source not in seen else target
            logger.warning(f"Dropping relationship {source!r} -> {target!r}: unknown case {missing!r}")
            dropped.append({'source': source, 'target': target, 'missing': missing})
            continue
        relationships.append(Relationship(
            source=source,
            target=target,
            index=len(relationships),
            source_index=seen[source],
            target_index=seen[target],
            record=record,
        ))
        link_records.append(record)

    domain: Tuple[Any, ...] = ()
    color = None
    if groups is not None:
        if config.node_groups is not None:
            domain = tuple(dict.fromkeys(intern(g) for g in config.node_groups))
        else:
            domain = category_domain(groups)
        color = OrdinalScale(domain, config.colors)

    forces = force_policy(config, records, link_records)

    logger.info(f"Built graph with {len(entities)} entities, {len(relationships)} relationships, {len(domain)} groups")
    return GraphModel(
        entities=entities,
        relationships=relationships,
        domain=tuple(domain),
        color=color,
        forces=forces,
        link_stroke=resolve_style(config.link_stroke, link_records),
        link_stroke_width=resolve_style(config.link_stroke_width, link_records),
        dropped=dropped,
    )
