"""contact-graph package.

This package hosts configuration, data loading, the force layout session,
SVG rendering and pointer interaction for the contact-tracing graph viewer.
"""

__all__ = [
    'config',
]
