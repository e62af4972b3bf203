from .page import render_error_page, render_page, render_svg
from .pipeline import RenderPipeline
from .surface import Element, Surface

__all__ = ['Element', 'RenderPipeline', 'Surface', 'render_error_page', 'render_page', 'render_svg']
