"""
The Page entity and its deferred content.
"""

import datetime
import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional

from .headers import parse_headers
from .parsers import markdown_to_html

logger = logging.getLogger('StaticBuild.models')


class DeferredContent:
    """
    Page content converted from markdown on first use.

    The conversion runs at most once; later reads return the remembered HTML.
    Templates see the HTML because rendering goes through ``str()``.
    """

    def __init__(self, markdown_path):
        self.markdown_path = markdown_path
        self._html = None

    @property
    def is_loaded(self):
        return self._html is not None

    def load(self):
        if self._html is None:
            with open(self.markdown_path, 'r', encoding='utf-8') as f:
                source = f.read()
            _, remainder = parse_headers(source)
            self._html = markdown_to_html(remainder)
            logger.debug(f"Converted deferred content: {self.markdown_path}")
        return self._html

    def __str__(self):
        return self.load()

    def __html__(self):
        return self.load()

    def __repr__(self):
        return f"DeferredContent({self.markdown_path!r}, loaded={self.is_loaded})"


@dataclass
class Page:
    """
    One unit of content destined for one output file.

    Attributes:
        slug: Identifier derived from the source file name. Redirect pages
            have none.
        path: Directory of the page, relative to the destination root.
        collection: Name of the collection the page belongs to, if any.
        layout: Name of a template in ``_layouts`` wrapping the content.
        title: Page title, from the first ``<h1>`` unless a header sets it.
        date: Date taken from a ``YYYY-MM-DD-`` file name prefix.
        content: HTML content without the header block.
        assets: Directory whose files are copied next to the output file.
        extra: Any other header values, readable as attributes.
    """

    slug: Optional[str] = None
    path: str = '/'
    collection: Optional[str] = None
    layout: Optional[str] = None
    title: Optional[str] = None
    date: Optional[datetime.date] = None
    content: Any = ''
    assets: Optional[str] = None
    extra: Dict[str, str] = field(default_factory=dict)

    def apply_headers(self, headers):
        """
        Apply header values on top of the computed fields.

        Headers always win, including over ``title``, ``date`` or ``path``.
        Keys that are not page fields are kept in ``extra``.
        """
        known = {f.name for f in fields(self)} - {'extra'}
        for key, value in headers.items():
            if key in known:
                setattr(self, key, value)
            else:
                self.extra[key] = value
        return self

    @property
    def has_extension_in_slug(self):
        return bool(self.slug) and bool(os.path.splitext(self.slug)[1])

    def __getattr__(self, name):
        # Only reached for names that are not regular attributes.
        extra = self.__dict__.get('extra')
        if extra is not None and name in extra:
            return extra[name]
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __getitem__(self, key):
        try:
            return getattr(self, key)
        except AttributeError:
            raise KeyError(key) from None

    def get(self, key, default=None):
        try:
            return self[key]
        except KeyError:
            return default
