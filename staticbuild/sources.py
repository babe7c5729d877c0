"""
Page sources for static-build.

This module is handed to ``get_pages(helpers)`` in a site's ``config.py`` so
the site decides which pages exist::

    def get_pages(helpers):
        posts = helpers.collection(
            'posts', 'post', os.path.join(SOURCE, '_posts'), '/blog/{{slug}}'
        )
        return helpers.pages(SOURCE) + posts + helpers.redirects({'/old': '/new'})
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor

from .headers import match_header, parse_headers
from .models import DeferredContent, Page
from .parsers import (
    get_date_prefix,
    get_title_from_html,
    get_title_from_markdown,
    markdown_to_html,
    parse_date_prefix,
)

logger = logging.getLogger('StaticBuild.sources')

PAGE_EXTENSIONS = ('.md', '.html')
IGNORED_FILENAMES = ['.DS_Store']
REDIRECTS_COLLECTION = 'redirects'

# Reading files on a pool only pays off past a handful of pages
MULTITHREAD_THRESHOLD = 12


def is_excluded(relative_path):
    """
    Check whether a source-relative path is kept out of page scanning.

    Segments starting with ``_`` are reserved for layouts, partials and
    collections. Dot segments are hidden files and never match either.
    """
    parts = relative_path.replace(os.sep, '/').split('/')
    return any(part.startswith('_') or part.startswith('.') for part in parts)


def find_page_files(source_path):
    """Return the sorted list of page files below ``source_path``."""
    page_files = []
    for root, dirs, files in os.walk(source_path):
        dirs[:] = sorted(d for d in dirs if not is_excluded(d))
        for filename in sorted(files):
            if os.path.splitext(filename)[1] not in PAGE_EXTENSIONS:
                continue
            file_path = os.path.join(root, filename)
            if is_excluded(os.path.relpath(file_path, source_path)):
                continue
            page_files.append(file_path)
    return page_files


def load_page(source_path, file_path):
    """Build a standalone Page from one source file."""
    relative_path = os.path.relpath(file_path, source_path).replace(os.sep, '/')
    stem, extension = os.path.splitext(relative_path)
    slug = '/' + stem
    page_path = '/' if slug == '/index' else slug

    with open(file_path, 'r', encoding='utf-8') as f:
        source = f.read()

    headers, remainder = parse_headers(source)
    content = markdown_to_html(remainder) if extension == '.md' else remainder

    page = Page(
        slug=slug,
        path=page_path,
        title=get_title_from_html(content),
        date=None,
        content=content,
    )
    return page.apply_headers(headers)


def pages(source_path):
    """
    Create standalone pages from every ``.md`` and ``.html`` file in a tree.

    Args:
        source_path: Root of the site source.

    Returns:
        List of Page objects in path order, with no collection set.
    """
    page_files = find_page_files(source_path)

    if len(page_files) >= MULTITHREAD_THRESHOLD:
        logger.debug(f"Reading {len(page_files)} pages with {os.cpu_count()} workers")
        with ThreadPoolExecutor() as executor:
            return list(executor.map(lambda path: load_page(source_path, path), page_files))

    return [load_page(source_path, path) for path in page_files]


def collection(collection_name, layout, source_path, destination_path):
    """
    Create the pages of a collection from its directory structure.

    Entries are either folders holding an ``index.md`` (the folder is copied
    as the page's assets) or flat markdown files::

        _posts/
            2024-01-05-hello/
                index.md
                photo.jpg
            2024-02-10-second-post.md

    Args:
        collection_name: Name of the collection, e.g. ``posts``.
        layout: Layout from ``_layouts`` to render the entries with.
        source_path: Directory holding the entries.
        destination_path: Output path template containing ``{{slug}}``.

    Returns:
        List of Page objects belonging to the collection.
    """
    collection_pages = []

    for filename in sorted(os.listdir(source_path)):
        if filename in IGNORED_FILENAMES:
            continue

        file_path = os.path.join(source_path, filename)
        extension = os.path.splitext(filename)[1]

        # Names without an extension count as directories. An extensionless
        # file therefore has no index.md and is skipped.
        is_directory = not extension
        markdown_path = os.path.join(file_path, 'index.md') if is_directory else file_path

        if not os.path.exists(markdown_path):
            logger.debug(f"Skipping collection entry without content: {file_path}")
            continue

        with open(markdown_path, 'r', encoding='utf-8') as f:
            source = f.read()

        headers, remainder = parse_headers(source)
        content = markdown_to_html(remainder)
        slug = _slug_from_entry(filename, extension)

        page = Page(
            slug=slug,
            path=destination_path.replace('{{slug}}', slug),
            collection=collection_name,
            layout=layout,
            title=get_title_from_html(content),
            date=parse_date_prefix(get_date_prefix(filename)),
            content=content,
            assets=file_path if is_directory else None,
        )
        collection_pages.append(page.apply_headers(headers))

    return collection_pages


def source_collection(source_path, destination_path='', name=''):
    """
    Create collection pages from folder entries without converting them up front.

    Each entry must be a folder with an ``index.md``. Headers and the title
    are read from the top of the markdown file; the content is converted the
    first time a template uses it.
    """
    collection_pages = []

    for entry in sorted(os.listdir(source_path)):
        if entry in IGNORED_FILENAMES:
            continue

        entry_path = os.path.join(source_path, entry)
        markdown_path = os.path.join(entry_path, 'index.md')

        try:
            headers, title = read_markdown_headers(markdown_path)
        except (IOError, OSError) as e:
            logger.warning(f"Warning: Could not read {markdown_path}: {e}")
            continue

        slug = _slug_from_entry(entry, '')
        page = Page(
            slug=slug,
            path=destination_path.replace('{{slug}}', slug),
            collection=name or None,
            title=title,
            date=parse_date_prefix(get_date_prefix(entry)),
            content=DeferredContent(markdown_path),
            assets=entry_path,
        )
        collection_pages.append(page.apply_headers(headers))

    return collection_pages


def read_markdown_headers(markdown_path):
    """
    Read the header block and first ``#`` heading of a markdown file.

    Stops reading as soon as both are known.

    Returns:
        A ``(headers, title)`` tuple; ``title`` is None when no heading exists.
    """
    headers = {}
    title = None
    in_header_block = True

    with open(markdown_path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.rstrip('\r\n')

            if in_header_block:
                header = match_header(line)
                if header is not None:
                    headers[header[0]] = header[1]
                    continue
                in_header_block = False

            title = get_title_from_markdown(line)
            if title is not None:
                break

    return headers, title


def redirects(redirect_map=None):
    """
    Create pages that redirect to other pages or URLs.

    Args:
        redirect_map: Mapping of "redirect from" path to "redirect to" URL.

    Returns:
        List of Page objects in the ``redirects`` collection.
    """
    redirect_pages = []

    for redirect_from, redirect_to in (redirect_map or {}).items():
        content = (
            f'<link href="{redirect_to}" rel="canonical">'
            f'<meta http-equiv="refresh" content="0;url={redirect_to}" />'
            f'This page has moved. <a href="{redirect_to}">Click here if not redirected automatically.</a>'
        )
        redirect_pages.append(Page(
            path=redirect_from,
            title=f"Redirect to {redirect_to}",
            collection=REDIRECTS_COLLECTION,
            content=content,
        ))

    return redirect_pages


def _slug_from_entry(filename, extension):
    date_prefix = get_date_prefix(filename)
    slug = filename
    if date_prefix and slug.startswith(f"{date_prefix}-"):
        slug = slug[len(date_prefix) + 1:]
    if extension and slug.endswith(extension):
        slug = slug[:-len(extension)]
    return slug
