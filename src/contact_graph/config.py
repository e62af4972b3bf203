"""Central configuration for contact-graph.

Avoids global constants scattered across scripts. Import from this module.
"""

from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Optional, Tuple
import os

from .errors import ConfigurationError
from .models import field_getter


@dataclass(frozen=True)
class DataConfig:
    cases: str = os.getenv('CASES_SOURCE', 'data/cases.json')
    links: str = os.getenv('LINKS_SOURCE', 'data/links.json')
    timeout: float = float(os.getenv('FETCH_TIMEOUT', '10'))


@dataclass(frozen=True)
class AppConfig:
    output_html: str = os.getenv('OUTPUT_HTML_FILE', 'dist/index.html')
    log_dir: str = os.getenv('LOG_DIR', 'logs')
    log_level: str = os.getenv('LOG_LEVEL', 'INFO')
    max_ticks: int = int(os.getenv('LAYOUT_MAX_TICKS', '300'))
    host: str = os.getenv('FLASK_HOST', '0.0.0.0')
    port: int = int(os.getenv('FLASK_PORT', '5050'))
    data: DataConfig = DataConfig()


CONFIG = AppConfig()


# d3.schemeTableau10
SCHEME_TABLEAU10: Tuple[str, ...] = (
    '#4e79a7', '#f28e2c', '#e15759', '#76b7b2', '#59a14f',
    '#edc949', '#af7aa1', '#ff9da7', '#9c755f', '#bab0ab',
)

# Marks ``node_title`` as "not given" so that ``None`` can mean "no titles".
DEFAULT_TITLE = object()


@dataclass(frozen=True)
class ViewConfig:
    """Immutable per-render parameters for one view of the graph.

    Style-like options (``node_strength``, ``link_stroke``,
    ``link_stroke_width``, ``link_strength``, ``link_distance``) accept either a
    constant or a callable evaluated once per item.
    """
    node_id: Callable[[Any], Any] = field_getter('id')
    node_group: Optional[Callable[[Any], Any]] = None
    node_groups: Optional[Tuple[Any, ...]] = None
    node_title: Any = DEFAULT_TITLE
    node_fill: str = 'currentColor'
    node_stroke: str = 'lightgray'
    node_stroke_width: float = 2.5
    node_stroke_opacity: float = 1
    node_radius: float = 15
    node_strength: Any = None
    link_source: Callable[[Any], Any] = field_getter('source')
    link_target: Callable[[Any], Any] = field_getter('target')
    link_stroke: Any = '#999'
    link_stroke_opacity: float = 0.6
    link_stroke_width: Any = 2.5
    link_stroke_linecap: str = 'round'
    link_strength: Any = None
    link_distance: Any = 60
    colors: Tuple[str, ...] = SCHEME_TABLEAU10
    width: int = 1200
    height: int = 580
    invalidation: Optional[Future] = field(default=None, compare=False)

    def __post_init__(self):
        for name in ('node_id', 'link_source', 'link_target'):
            if not callable(getattr(self, name)):
                raise ConfigurationError(f"{name} must be a callable accessor")
        if self.node_group is not None and not callable(self.node_group):
            raise ConfigurationError("node_group must be a callable accessor or None")
        if self.node_title is not None and self.node_title is not DEFAULT_TITLE and not callable(self.node_title):
            raise ConfigurationError("node_title must be a callable accessor or None")
        if self.node_group is not None and not self.colors:
            raise ConfigurationError("colors must not be empty when node_group is set")
        if self.width <= 0 or self.height <= 0:
            raise ConfigurationError(f"canvas size must be positive, got {self.width}x{self.height}")
        if self.node_radius < 0:
            raise ConfigurationError("node_radius must not be negative")
        if self.node_groups is not None:
            object.__setattr__(self, 'node_groups', tuple(self.node_groups))
        object.__setattr__(self, 'colors', tuple(self.colors))

    def with_options(self, **options) -> 'ViewConfig':
        return replace(self, **options)


VIEW_PRESETS = {
    'gender': ViewConfig(
        node_group=field_getter('gender'),
        colors=('violet', 'cyan', '#32CD32'),
    ),
    'vaccination': ViewConfig(
        node_group=field_getter('vaccinated'),
        colors=('#F45B69', '#00A6ED', '#7FB800'),
    ),
}

DEFAULT_VIEW = 'gender'
