import argparse
import logging
from pathlib import Path

from .config import CONFIG, DEFAULT_VIEW, VIEW_PRESETS
from .data.loader import load_dataset
from .errors import ContactGraphError, DataLoadError
from .logging_setup import setup_logging
from .render.page import render_error_page, render_page
from .views import ViewSwitcher

logger = logging.getLogger(__name__)


def _page_paths(out: Path, active: str) -> dict:
    """One page per view; the active view gets ``out`` itself."""
    return {
        name: out if name == active else out.with_name(f"{out.stem}-{name}{out.suffix}")
        for name in VIEW_PRESETS
    }


def cmd_render(args: argparse.Namespace) -> int:
    out = Path(args.output or CONFIG.output_html)
    out.parent.mkdir(parents=True, exist_ok=True)
    try:
        dataset = load_dataset(args.cases, args.links)
    except DataLoadError as e:
        logger.error(str(e))
        out.write_text(render_error_page(e), encoding='utf-8')
        print(f"Wrote {out} (load failure)")
        return 1

    paths = _page_paths(out, args.view)
    links = {name: path.name for name, path in paths.items()}
    switcher = ViewSwitcher(dataset)
    for name, path in paths.items():
        view = switcher.switch(name)
        view.settle(args.max_ticks)
        html_content = render_page(
            switcher.surface,
            active_view=name,
            view_links=links,
            tooltips=view.tooltips(),
        )
        path.write_text(html_content, encoding='utf-8')
        print(f"Wrote {path}")
    switcher.teardown()
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    from server.app import create_app
    app = create_app(cases_source=args.cases, links_source=args.links)
    app.run(host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog='contact-graph')
    p.add_argument('--cases', help=f'Cases JSON path or URL (default: {CONFIG.data.cases})')
    p.add_argument('--links', help=f'Links JSON path or URL (default: {CONFIG.data.links})')
    sub = p.add_subparsers(dest='command', required=True)
    r = sub.add_parser('render', help='Generate static contact graph HTML pages')
    r.add_argument('-o', '--output', help=f'Output HTML file (default: {CONFIG.output_html})')
    r.add_argument('--view', choices=sorted(VIEW_PRESETS), default=DEFAULT_VIEW, help='View written to --output')
    r.add_argument('--max-ticks', type=int, default=CONFIG.max_ticks, help='Upper bound on layout ticks')
    r.set_defaults(func=cmd_render)
    s = sub.add_parser('serve', help='Serve the interactive page and API')
    s.add_argument('--host', default=CONFIG.host)
    s.add_argument('--port', type=int, default=CONFIG.port)
    s.set_defaults(func=cmd_serve)
    return p


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging()
    try:
        return args.func(args)
    except ContactGraphError as e:
        logger.error(str(e))
        return 1


if __name__ == '__main__':
    raise SystemExit(main())
