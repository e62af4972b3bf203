from __future__ import annotations

from typing import Any, Dict, Optional
import logging
import threading

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from contact_graph.config import CONFIG, DEFAULT_VIEW, VIEW_PRESETS
from contact_graph.data.loader import load_dataset
from contact_graph.errors import ConfigurationError, DataLoadError, UnknownEntityError
from contact_graph.render.page import render_error_page, render_page, render_svg
from contact_graph.views import View, ViewSwitcher

logger = logging.getLogger(__name__)


def create_app(
    cases_source: Optional[str] = None,
    links_source: Optional[str] = None,
    *,
    stepper_factory=None,
    max_ticks: Optional[int] = None,
) -> Flask:
    app = Flask(__name__)
    CORS(app)
    settle_ticks = CONFIG.max_ticks if max_ticks is None else max_ticks

    # The dataset is fetched once; views are rebuilt from it, never re-fetched.
    load_error: Optional[DataLoadError] = None
    switcher: Optional[ViewSwitcher] = None
    try:
        dataset = load_dataset(cases_source, links_source)
        switcher = ViewSwitcher(dataset, stepper_factory=stepper_factory)
    except DataLoadError as e:
        logger.error(str(e))
        load_error = e

    # the development server is threaded; views are not
    lock = threading.Lock()
    app.config['SWITCHER'] = switcher

    def _unavailable():
        return jsonify({"error": str(load_error)}), 503

    def _view(name: Optional[str] = None) -> View:
        # A view is settled once, when it is built; reads never advance the layout.
        previous = switcher.current
        view = switcher.ensure(name)
        if view is not previous:
            view.settle(settle_ticks)
        return view

    def _number(body: Dict[str, Any], key: str, default: Optional[float] = None) -> Optional[float]:
        value = body.get(key, default)
        if value is None:
            return None
        return float(value)

    def _node_state(view: View, entity_id: str) -> Dict[str, Any]:
        entity = view.model.entity(entity_id)
        return {
            "id": entity.id,
            "x": entity.x,
            "y": entity.y,
            "fx": entity.fx,
            "fy": entity.fy,
            "drag": view.controller.drag_state(entity.id).value,
            "hovered": view.controller.is_hovered(entity.id),
            "status": view.session.status.value,
        }

    @app.get('/')
    def index():
        if load_error is not None:
            return Response(render_error_page(load_error), status=503, mimetype='text/html')
        name = request.args.get('view') or None
        if name is not None and name not in VIEW_PRESETS:
            return jsonify({"error": f"Unknown view: {name}"}), 404
        with lock:
            view = _view(name)
            html_content = render_page(
                switcher.surface,
                active_view=view.name,
                view_links={n: f'/?view={n}' for n in VIEW_PRESETS},
                interactive=True,
                tooltips=view.tooltips(),
            )
        return Response(html_content, mimetype='text/html')

    @app.get('/api/health')
    def health():
        return jsonify({"status": "ok" if load_error is None else "degraded"})

    @app.get('/api/views')
    def api_views():
        if load_error is not None:
            return _unavailable()
        active = switcher.current.name if switcher.current else None
        return jsonify({"views": sorted(VIEW_PRESETS), "active": active, "default": DEFAULT_VIEW})

    @app.post('/api/views/<name>')
    def api_switch_view(name: str):
        if load_error is not None:
            return _unavailable()
        with lock:
            try:
                view = switcher.switch(name)
            except ConfigurationError as e:
                return jsonify({"error": str(e)}), 404
            view.settle(settle_ticks)
            return jsonify(view.snapshot())

    @app.get('/api/graph')
    def api_graph():
        if load_error is not None:
            return _unavailable()
        with lock:
            return jsonify(_view().snapshot())

    @app.get('/api/svg')
    def api_svg():
        if load_error is not None:
            return _unavailable()
        with lock:
            _view()
            return Response(render_svg(switcher.surface), mimetype='image/svg+xml')

    @app.post('/api/nodes/<entity_id>/drag')
    def api_drag(entity_id: str):
        if load_error is not None:
            return _unavailable()
        body = request.get_json(force=True, silent=True) or {}
        phase = body.get('phase')
        with lock:
            view = _view()
            controller = view.controller
            try:
                ticks = int(body.get('ticks', 1))
                if phase == 'start':
                    controller.pointer_down(entity_id)
                elif phase == 'move':
                    x, y = _number(body, 'x'), _number(body, 'y')
                    if x is None or y is None:
                        return jsonify({"error": "x and y are required"}), 400
                    controller.pointer_move(entity_id, x, y)
                elif phase == 'end':
                    controller.pointer_up(entity_id)
                else:
                    return jsonify({"error": "phase must be one of start, move, end"}), 400
            except UnknownEntityError as e:
                return jsonify({"error": str(e)}), 404
            except (TypeError, ValueError):
                return jsonify({"error": "x, y and ticks must be numbers"}), 400
            view.session.run(max(ticks, 0))
            return jsonify(_node_state(view, entity_id))

    @app.post('/api/nodes/<entity_id>/hover')
    def api_hover(entity_id: str):
        if load_error is not None:
            return _unavailable()
        body = request.get_json(force=True, silent=True) or {}
        phase = body.get('phase')
        try:
            page_x = float(body.get('page_x', 0))
            page_y = float(body.get('page_y', 0))
        except (TypeError, ValueError):
            return jsonify({"error": "page_x and page_y must be numbers"}), 400
        with lock:
            controller = _view().controller
            try:
                if phase == 'enter':
                    tooltip = controller.pointer_enter(entity_id, page_x, page_y)
                elif phase == 'move':
                    tooltip = controller.pointer_hover(entity_id, page_x, page_y)
                elif phase == 'leave':
                    tooltip = controller.pointer_leave(entity_id)
                else:
                    return jsonify({"error": "phase must be one of enter, move, leave"}), 400
            except UnknownEntityError as e:
                return jsonify({"error": str(e)}), 404
            return jsonify({"tooltip": tooltip.to_dict(), "hovered": controller.is_hovered(entity_id)})

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host=CONFIG.host, port=CONFIG.port, debug=True)
