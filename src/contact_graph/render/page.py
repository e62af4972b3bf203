from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional
from jinja2 import Environment, FileSystemLoader, select_autoescape
import numpy as np

from .surface import Surface


TEMPLATES_DIR = Path(__file__).with_name('templates')


# Element trees keep full-precision positions; markup only needs two decimals.
SVG_DECIMALS = 2


def _svg_value(value: Any) -> str:
    if not isinstance(value, (float, np.floating)):
        return str(value)
    text = f'{float(value):.{SVG_DECIMALS}f}'.rstrip('0').rstrip('.')
    return '0' if text == '-0' else text


def get_environment() -> Environment:
    """Jinja2 environment for the page and SVG templates."""
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(['html', 'xml', 'j2']),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters['svg_value'] = _svg_value
    return env


def render_svg(surface: Surface) -> str:
    """Serialize the surface's element tree to SVG markup."""
    template = get_environment().get_template('svg.j2')
    return template.render(root=surface.root)


def render_page(
    surface: Surface,
    *,
    active_view: str,
    view_links: Dict[str, str],
    interactive: bool = False,
    tooltips: Optional[Dict[str, Any]] = None,
) -> str:
    """Render the diagram page.

    ``interactive`` pages talk to the Flask API for hover, drag and view
    switching; static pages embed the tooltip lines and switch views by
    following ``view_links``.
    """
    template = get_environment().get_template('contact_graph.html.j2')
    return template.render(
        svg=render_svg(surface),
        active_view=active_view,
        view_links=view_links,
        interactive=interactive,
        tooltips=tooltips or {},
    )


def render_error_page(error: Exception) -> str:
    """Visible load-failure state shown instead of the diagram."""
    template = get_environment().get_template('contact_graph.html.j2')
    return template.render(error=str(error), view_links={}, active_view=None, interactive=False, tooltips={})
