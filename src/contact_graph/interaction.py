"""Pointer interaction: drag-to-pin and hover tooltips.

Each entity has its own drag state machine (``IDLE`` <-> ``DRAGGING``) and an
independent hover flag. The controller never touches velocities; it only pins,
unpins and asks the layout session for more or less heat.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Sequence, Set, Tuple
import logging

from markupsafe import Markup

from .config import ViewConfig
from .graph import GraphModel
from .layout import DEFAULT_REHEAT, LayoutSession
from .models import Entity, field_getter
from .render.pipeline import RenderPipeline

logger = logging.getLogger(__name__)

TOOLTIP_OFFSET_X = 15
TOOLTIP_OFFSET_Y = -15

# (prefix, record field) per tooltip line; the id line comes first
TOOLTIP_FIELDS: Tuple[Tuple[str, str], ...] = (
    ('', 'gender'),
    ('', 'occupation'),
    ('', 'organization'),
    ('Vaccination: ', 'vaccinated'),
)


def capitalize_first(value: Any) -> str:
    """Upper-case the first character only; ``None`` becomes an empty string."""
    if value is None:
        return ''
    text = str(value)
    return text[:1].upper() + text[1:]


def tooltip_lines(entity: Entity, fields: Sequence[Tuple[str, str]] = TOOLTIP_FIELDS) -> Tuple[str, ...]:
    lines = [str(entity.id)]
    for prefix, name in fields:
        lines.append(prefix + capitalize_first(field_getter(name)(entity.record)))
    return tuple(lines)


class DragState(Enum):
    IDLE = 'idle'
    DRAGGING = 'dragging'


@dataclass(frozen=True)
class Tooltip:
    visible: bool = False
    entity_id: Any = None
    lines: Tuple[str, ...] = ()
    left: float = 0.0
    top: float = 0.0

    @property
    def html(self) -> str:
        return str(Markup("<br>").join(self.lines))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'visible': self.visible,
            'entity_id': self.entity_id,
            'lines': list(self.lines),
            'left': self.left,
            'top': self.top,
        }


class InteractionController:
    def __init__(
        self,
        session: LayoutSession,
        pipeline: RenderPipeline,
        model: GraphModel,
        config: ViewConfig,
        *,
        reheat_level: float = DEFAULT_REHEAT,
        tooltip_fields: Sequence[Tuple[str, str]] = TOOLTIP_FIELDS,
    ):
        self.session = session
        self.pipeline = pipeline
        self.model = model
        self.config = config
        self.reheat_level = reheat_level
        self.tooltip_fields = tuple(tooltip_fields)
        self.tooltip = Tooltip()
        self._dragging: Set[Any] = set()
        self._hovered: Set[Any] = set()

    def drag_state(self, entity_id: Any) -> DragState:
        entity = self.model.entity(entity_id)
        return DragState.DRAGGING if entity.id in self._dragging else DragState.IDLE

    def is_hovered(self, entity_id: Any) -> bool:
        return self.model.entity(entity_id).id in self._hovered

    @property
    def active_drags(self) -> int:
        return len(self._dragging)

    # --- drag ---

    def pointer_down(self, entity_id: Any) -> DragState:
        entity = self.model.entity(entity_id)
        if entity.id in self._dragging:
            return DragState.DRAGGING
        if not self._dragging:
            self.session.reheat(self.reheat_level)
        self._dragging.add(entity.id)
        self.session.pin(entity.id, entity.x, entity.y)
        return DragState.DRAGGING

    def pointer_move(self, entity_id: Any, x: float, y: float) -> DragState:
        entity = self.model.entity(entity_id)
        if entity.id not in self._dragging:
            logger.debug(f"Ignoring pointer move on idle entity {entity.id!r}")
            return DragState.IDLE
        self.session.pin(entity.id, x, y)
        return DragState.DRAGGING

    def pointer_up(self, entity_id: Any) -> DragState:
        entity = self.model.entity(entity_id)
        if entity.id not in self._dragging:
            return DragState.IDLE
        self._dragging.discard(entity.id)
        self.session.unpin(entity.id)
        if not self._dragging:
            self.session.cool()
        return DragState.IDLE

    # --- hover ---

    def _show_tooltip(self, entity: Entity, page_x: float, page_y: float) -> Tooltip:
        self.tooltip = Tooltip(
            visible=True,
            entity_id=entity.id,
            lines=tooltip_lines(entity, self.tooltip_fields),
            left=page_x + TOOLTIP_OFFSET_X,
            top=page_y + TOOLTIP_OFFSET_Y,
        )
        return self.tooltip

    def pointer_enter(self, entity_id: Any, page_x: float, page_y: float) -> Tooltip:
        entity = self.model.entity(entity_id)
        # bad coordinates fail here, before any hover state changes
        tooltip = self._show_tooltip(entity, page_x, page_y)
        self._hovered.add(entity.id)
        circle = self.pipeline.circle_for(entity)
        circle.css('stroke', 'black')
        circle.css('opacity', 0.6)
        circle.css('stroke-width', f'{self.config.node_stroke_width}px')
        return tooltip

    def pointer_hover(self, entity_id: Any, page_x: float, page_y: float) -> Tooltip:
        entity = self.model.entity(entity_id)
        if entity.id not in self._hovered:
            return self.pointer_enter(entity.id, page_x, page_y)
        return self._show_tooltip(entity, page_x, page_y)

    def pointer_leave(self, entity_id: Any) -> Tooltip:
        entity = self.model.entity(entity_id)
        self._hovered.discard(entity.id)
        circle = self.pipeline.circle_for(entity)
        circle.css('stroke', self.config.node_stroke)
        circle.css('opacity', self.config.node_stroke_opacity)
        circle.css('stroke-width', f'{self.config.node_stroke_width}px')
        if self.tooltip.entity_id == entity.id:
            self.tooltip = Tooltip()
        return self.tooltip

