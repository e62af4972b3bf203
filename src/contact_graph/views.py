"""View switching: rebuild the diagram for another grouping attribute.

The switcher owns the loaded dataset and the single drawing surface. A view is
torn down completely (session stopped, elements removed) before the next one
is built on the same surface.
"""

from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
import logging

from .config import DEFAULT_VIEW, VIEW_PRESETS, ViewConfig
from .data.loader import Dataset
from .errors import ConfigurationError
from .graph import GraphModel, build_graph
from .interaction import InteractionController, tooltip_lines
from .layout import LayoutSession
from .render.pipeline import RenderPipeline
from .render.surface import Surface

logger = logging.getLogger(__name__)


def _json_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


@dataclass
class View:
    name: Optional[str]
    config: ViewConfig
    model: GraphModel
    session: LayoutSession
    pipeline: RenderPipeline
    controller: InteractionController

    def settle(self, max_ticks: Optional[int] = None) -> int:
        ticks = self.session.run(max_ticks)
        logger.info(f"View {self.name or 'custom'}: {ticks} ticks, status {self.session.status.value}")
        return ticks

    def tooltips(self) -> Dict[str, list]:
        return {str(e.id): list(tooltip_lines(e)) for e in self.model.entities}

    def snapshot(self) -> Dict[str, Any]:
        color = self.model.color
        return {
            'view': self.name,
            'status': self.session.status.value,
            'alpha': self.session.alpha,
            'nodes': [
                {
                    'id': _json_value(e.id),
                    'group': _json_value(e.group),
                    'fill': color(e.group) if color is not None and e.group is not None else self.config.node_fill,
                    'x': e.x,
                    'y': e.y,
                    'pinned': e.pinned,
                    'drag': self.controller.drag_state(e.id).value,
                }
                for e in self.model.entities
            ],
            'links': [
                {'source': _json_value(r.source), 'target': _json_value(r.target), 'marker': r.marker_id}
                for r in self.model.relationships
            ],
            'domain': [_json_value(value) for value in self.model.domain],
            'legend': [
                {'label': str(value), 'color': color(value)} for value in self.model.domain
            ] if color is not None else [],
            'dropped': [
                {k: _json_value(v) for k, v in d.items()} for d in self.model.dropped
            ],
        }


class ViewSwitcher:
    def __init__(
        self,
        dataset: Dataset,
        *,
        surface: Optional[Surface] = None,
        stepper_factory: Optional[Callable[[GraphModel], Any]] = None,
    ):
        self.dataset = dataset
        self.surface = surface or Surface(ViewConfig.width, ViewConfig.height)
        self.stepper_factory = stepper_factory
        self.current: Optional[View] = None
        self._invalidation: Optional[Future] = None

    def rebuild(self, config: ViewConfig, name: Optional[str] = None) -> View:
        """Tear down the active view and build a new one from the cached dataset."""
        self.teardown()

        invalidation: Future = Future()
        if config.invalidation is not None:
            config.invalidation.add_done_callback(lambda _: invalidation.done() or invalidation.set_result(None))
        config = config.with_options(invalidation=invalidation)

        model = build_graph(self.dataset.nodes, self.dataset.links, config)
        stepper = self.stepper_factory(model) if self.stepper_factory else None
        session = LayoutSession.start(
            model.entities, model.relationships, config, forces=model.forces, stepper=stepper,
        )
        pipeline = RenderPipeline(self.surface, model, config).build()
        session.on_tick(pipeline.update)
        controller = InteractionController(session, pipeline, model, config)

        self._invalidation = invalidation
        self.current = View(name, config, model, session, pipeline, controller)
        logger.info(f"Built view {name or 'custom'} with {len(model.domain)} legend entries")
        return self.current

    def switch(self, name: str) -> View:
        if name not in VIEW_PRESETS:
            raise ConfigurationError(f"Unknown view {name!r}; expected one of {sorted(VIEW_PRESETS)}")
        return self.rebuild(VIEW_PRESETS[name], name=name)

    def ensure(self, name: Optional[str] = None) -> View:
        """Return the active view, switching only when another one is asked for."""
        name = name or (self.current.name if self.current else None) or DEFAULT_VIEW
        if self.current is not None and self.current.name == name:
            return self.current
        return self.switch(name)

    def teardown(self) -> None:
        if self.current is None:
            return
        if self._invalidation is not None and not self._invalidation.done():
            self._invalidation.set_result(None)
        self.current.session.stop()
        self.current.pipeline.teardown()
        logger.info(f"Tore down view {self.current.name or 'custom'}")
        self.current = None
        self._invalidation = None
