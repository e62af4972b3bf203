"""Render pipeline: one SVG element per entity and relationship.

Static parts (markers, styles, legend) are built once per view; positions are
rewritten on every layout tick through :meth:`RenderPipeline.update`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence, Tuple

from ..config import ViewConfig
from ..graph import GraphModel
from ..models import Constant, Entity
from .surface import Element, Surface

MARKER_REF_X = 22
MARKER_SIZE = 5
MARKER_PATH = 'M0,-5L10,0L0,5'

LEGEND_TOP = 100  # where the first swatch appears
LEGEND_SPACING = 25  # distance between swatches
LEGEND_SWATCH_RADIUS = 10
LEGEND_SWATCH_OFFSET = 140  # from the right edge
LEGEND_LABEL_OFFSET = 120


class RenderPipeline:
    def __init__(self, surface: Surface, model: GraphModel, config: ViewConfig):
        self.surface = surface
        self.model = model
        self.config = config
        self.markers: Dict[str, Element] = {}
        self.lines: List[Element] = []
        self.circles: List[Element] = []
        self.legend: List[Tuple[Element, Element]] = []
        self._owned: List[Element] = []

    def build(self) -> 'RenderPipeline':
        cfg = self.config
        self.surface.resize(cfg.width, cfg.height)
        self._build_markers()
        self._build_links()
        self._build_nodes()
        self._build_legend()
        self.update(self.model.entities)
        return self

    def _own(self, element: Element) -> Element:
        self._owned.append(element)
        return element

    def _build_markers(self) -> None:
        defs = self._own(self.surface.append('defs', **{'class': 'defs'}))
        for rel in self.model.relationships:
            if rel.key in self.markers:
                continue
            marker = defs.append(
                'marker',
                id=rel.marker_id,
                viewBox='0 -5 10 10',
                refX=MARKER_REF_X,
                refY=0,
                markerWidth=MARKER_SIZE,
                markerHeight=MARKER_SIZE,
                orient='auto',
            )
            marker.css('fill', '#000')
            marker.append('path', d=MARKER_PATH, fill=self.model.link_stroke.at(rel.index))
            self.markers[rel.key] = marker

    def _build_links(self) -> None:
        cfg = self.config
        stroke = self.model.link_stroke
        width = self.model.link_stroke_width
        group = self._own(self.surface.append('g'))
        group.attr('stroke', stroke.value if isinstance(stroke, Constant) else None)
        group.attr('stroke-opacity', cfg.link_stroke_opacity)
        group.attr('stroke-width', width.value if isinstance(width, Constant) else None)
        group.attr('stroke-linecap', cfg.link_stroke_linecap)
        for rel in self.model.relationships:
            line = group.append('line')
            line.attr('marker-end', f'url(#{rel.marker_id})')
            line.attr('data-source', rel.source)
            line.attr('data-target', rel.target)
            if not isinstance(width, Constant):
                line.attr('stroke-width', width.at(rel.index))
            if not isinstance(stroke, Constant):
                line.attr('stroke', stroke.at(rel.index))
            self.lines.append(line)

    def _build_nodes(self) -> None:
        cfg = self.config
        group = self._own(self.surface.append('g'))
        group.attr('fill', cfg.node_fill)
        group.attr('stroke', cfg.node_stroke)
        group.attr('stroke-opacity', cfg.node_stroke_opacity)
        group.attr('stroke-width', cfg.node_stroke_width)
        color = self.model.color
        for entity in self.model.entities:
            circle = group.append('circle', r=cfg.node_radius)
            circle.attr('data-id', entity.id)
            if color is not None and entity.group is not None:
                circle.attr('fill', color(entity.group))
            if entity.title is not None:
                title = circle.append('title')
                title.text = entity.title
            self.circles.append(circle)

    def _build_legend(self) -> None:
        color = self.model.color
        if color is None:
            return
        width = self.config.width
        for i, value in enumerate(self.model.domain):
            y = LEGEND_TOP + i * LEGEND_SPACING
            swatch = self._own(self.surface.append(
                'circle', cx=width / 2 - LEGEND_SWATCH_OFFSET, cy=y, r=LEGEND_SWATCH_RADIUS,
            ))
            swatch.attr('class', 'legend-swatch')
            swatch.css('stroke', 'lightgray').css('stroke-width', '0.5px').css('fill', color(value))
            label = self._own(self.surface.append('text', x=width / 2 - LEGEND_LABEL_OFFSET, y=y))
            label.attr('class', 'legend-label')
            label.attr('text-anchor', 'left')
            label.text = str(value)
            label.css('fill', color(value)).css('stroke', 'gray').css('stroke-width', '0.5px')
            label.css('alignment-baseline', 'middle')
            self.legend.append((swatch, label))

    @property
    def legend_labels(self) -> List[str]:
        return [label.text for _, label in self.legend]

    def update(self, entities: Sequence[Entity]) -> None:
        """Move every element to its entity's current position.

        Entities no layout session has positioned yet (``x``/``y`` still ``None``) are
        left where they are.
        """
        for rel, line in zip(self.model.relationships, self.lines):
            s = entities[rel.source_index]
            t = entities[rel.target_index]
            if s.x is not None and s.y is not None:
                line.attr('x1', s.x).attr('y1', s.y)
            if t.x is not None and t.y is not None:
                line.attr('x2', t.x).attr('y2', t.y)
        for entity, circle in zip(entities, self.circles):
            if entity.x is not None and entity.y is not None:
                circle.attr('cx', entity.x).attr('cy', entity.y)

    def circle_for(self, entity: Entity) -> Element:
        return self.circles[entity.index]

    def teardown(self) -> None:
        for element in self._owned:
            self.surface.remove(element)
        self._owned.clear()
        self.markers.clear()
        self.lines.clear()
        self.circles.clear()
        self.legend.clear()
