"""
Template rendering with Jinja2.

Layouts and partials are plain template sources keyed by name. Partials are
pulled into layouts and pages with ``{% include "name" %}``.
"""

import logging
import os

from jinja2 import DictLoader, Environment, TemplateError

from .errors import RenderError

logger = logging.getLogger('StaticBuild.templates')


def load_templates(source_path, name):
    """
    Read every file of ``_<name>`` in the source root.

    Returns:
        Mapping of file name without extension to template source. Empty when
        the directory does not exist.
    """
    templates_path = os.path.join(source_path, f'_{name}')
    templates = {}

    if not os.path.isdir(templates_path):
        return templates

    for filename in sorted(os.listdir(templates_path)):
        file_path = os.path.join(templates_path, filename)
        if not os.path.isfile(file_path):
            continue
        with open(file_path, 'r', encoding='utf-8') as f:
            templates[os.path.splitext(filename)[0]] = f.read()

    return templates


def render(template, view, partials=None):
    """Render a template source against a view, resolving includes from ``partials``."""
    env = Environment(loader=DictLoader(partials or {}))
    return env.from_string(template).render(view)


class TemplateRenderer:
    """Renders pages for one build pass."""

    def __init__(self, layouts=None, partials=None):
        self.layouts = layouts or {}
        self.partials = partials or {}
        self.env = Environment(loader=DictLoader(self.partials))
        self._compiled_layouts = {}

    def build_view(self, page, global_view, get_page_variables):
        """
        Merge the template context for a page.

        Later entries win: the global view, then ``page``, then whatever
        ``get_page_variables(site, page)`` returns.
        """
        view = dict(global_view)
        view['page'] = page
        view.update(get_page_variables(global_view.get('site'), page) or {})
        return view

    def get_template(self, page):
        """
        Compile the template for a page.

        A page with a known layout uses the layout; otherwise its own content
        is the whole document. An unknown layout name is not an error.
        """
        if page.layout and self.layouts.get(page.layout):
            if page.layout not in self._compiled_layouts:
                self._compiled_layouts[page.layout] = self.env.from_string(self.layouts[page.layout])
            return self._compiled_layouts[page.layout]

        if page.layout:
            logger.debug(f"Layout '{page.layout}' not found, rendering content of {page.slug or page.path}")
        return self.env.from_string(str(page.content))

    def render_page(self, page, global_view, get_page_variables):
        """
        Render one page to HTML.

        Raises:
            RenderError: If the template cannot be compiled or references an
                unknown partial.
        """
        view = self.build_view(page, global_view, get_page_variables)

        try:
            return self.get_template(page).render(view)
        except TemplateError as e:
            raise RenderError(f"Template error for {page.slug or page.path}: {e}", page=page) from e
