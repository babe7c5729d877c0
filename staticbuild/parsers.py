"""
Markdown conversion and metadata helpers shared by the page loaders.
"""

import re
import threading
from datetime import date

import mistune

H1_PATTERN = re.compile(r'<h1>.*</h1>')
ANCHOR_PATTERN = re.compile(r'<a\s.*</a>')
MARKDOWN_TITLE_PATTERN = re.compile(r'^[^\S\r\n]*#[^#\S\r\n]*([^#\s]+.*)')
DATE_PREFIX_PATTERN = re.compile(
    r'^(19[0-9]{2}|2[0-9]{3})-(0[1-9]|1[012])-([123]0|[012][1-9]|31)'
)


class CustomRenderer(mistune.HTMLRenderer):
    """HTML renderer that passes raw HTML through and wraps long code lines."""

    def __init__(self):
        super().__init__(escape=False)

    def block_code(self, code, info=None):
        escaped_code = mistune.escape(code)
        if info and info.strip():
            lang = mistune.escape(info.strip().split(None, 1)[0])
            return '<pre style="white-space: pre-wrap;"><code class="language-{}">{}</code></pre>\n'.format(lang, escaped_code)
        return '<pre style="white-space: pre-wrap;"><code>{}</code></pre>\n'.format(escaped_code)


def create_markdown_parser():
    """Create a Mistune markdown parser with a custom renderer."""
    return mistune.create_markdown(
        renderer=CustomRenderer(),
        plugins=['table', 'task_lists', 'strikethrough']
    )


# Thread-local storage for parser instances, pages may be converted on a pool
thread_local = threading.local()


def markdown_to_html(text):
    """Convert markdown text to HTML."""
    parser = getattr(thread_local, 'markdown_parser', None)
    if parser is None:
        parser = thread_local.markdown_parser = create_markdown_parser()
    return parser(text)


def get_title_from_html(html=''):
    """Return the text of the first ``<h1>`` element, or None."""
    match = H1_PATTERN.search(html)
    if not match:
        return None
    title = ANCHOR_PATTERN.sub('', match.group(0))
    return title.replace('<h1>', '', 1).replace('</h1>', '', 1)


def get_title_from_markdown(line):
    """Return the heading text if ``line`` is a first-level markdown heading."""
    match = MARKDOWN_TITLE_PATTERN.match(line)
    return match.group(1) if match else None


def get_date_prefix(filename=''):
    """Return the ``YYYY-MM-DD`` prefix of a filename, or None."""
    match = DATE_PREFIX_PATTERN.match(filename)
    return match.group(0) if match else None


def parse_date_prefix(prefix):
    """Turn a date prefix into a date. Calendar-invalid days yield None."""
    if not prefix:
        return None
    year, month, day = (int(part) for part in prefix.split('-'))
    try:
        return date(year, month, day)
    except ValueError:
        return None
