"""
static-build - a small static site generator with live reload.

static-build turns a tree of markdown and HTML files into a static site using
Jinja2 layouts and partials. A ``config.py`` in the source tree decides which
pages and collections are built. In watch mode the site is rebuilt on every
change and connected browsers are told to reload.
"""

__version__ = "1.0.0"

from .core import BuildStage, StaticBuild
from .models import Page

__all__ = ['BuildStage', 'Page', 'StaticBuild']
