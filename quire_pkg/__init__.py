"""
Quire - a small static blog generator.

Quire takes posts written in Markdown with YAML front matter, wraps each one
in a named Jinja2 layout and bundles the site's stylesheet and script into
minified assets next to the generated HTML.
"""

__version__ = "1.0.0"

from .core import Quire, FileProcessor
from .errors import QuireError

__all__ = ['Quire', 'FileProcessor', 'QuireError']
