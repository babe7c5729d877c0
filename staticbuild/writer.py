"""
Writes rendered pages and their assets into the destination tree.
"""

import logging
import os
import shutil

from .errors import BuildError

logger = logging.getLogger('StaticBuild.writer')


def resolve_page_directory(destination_root, page_path):
    """
    Return the absolute output directory for a page path.

    Raises:
        BuildError: If the path points outside the destination root.
    """
    root = os.path.abspath(destination_root)
    page_dir = os.path.abspath(os.path.join(root, (page_path or '').lstrip('/')))

    if os.path.commonpath([root, page_dir]) != root:
        raise BuildError(f"Page path escapes the destination directory: {page_path}")

    return page_dir


def get_output_file(destination_root, page_dir, page):
    """
    Pick the file a page is written to.

    A slug with its own extension (``feed.xml``) names the file; every other
    page becomes ``index.html`` in its directory.

    Raises:
        BuildError: If the slug points the file outside the destination root.
    """
    if not page.has_extension_in_slug:
        return os.path.join(page_dir, 'index.html')

    root = os.path.abspath(destination_root)
    output_file_path = os.path.abspath(os.path.join(page_dir, page.slug.lstrip('/')))

    if os.path.commonpath([root, output_file_path]) != root or output_file_path == root:
        raise BuildError(f"Page slug escapes the destination directory: {page.slug}")

    return output_file_path


def copy_page_assets(assets_path, page_dir):
    """Copy the contents of an assets directory next to the page output."""
    if not os.path.exists(assets_path):
        logger.warning(f"Warning: Assets do not exist {assets_path}")
        return False

    shutil.copytree(assets_path, page_dir, dirs_exist_ok=True)
    logger.debug(f"Copied assets: {assets_path} -> {page_dir}")
    return True


def write_page(destination_root, page, rendered_html):
    """
    Write a rendered page, copying its assets first.

    Args:
        destination_root: Root of the output tree.
        page: The Page being written.
        rendered_html: Output of the template renderer.

    Returns:
        Path of the written file.
    """
    page_dir = resolve_page_directory(destination_root, page.path)
    output_file_path = get_output_file(destination_root, page_dir, page)
    os.makedirs(page_dir, exist_ok=True)

    if page.assets:
        copy_page_assets(page.assets, page_dir)

    os.makedirs(os.path.dirname(output_file_path), exist_ok=True)

    with open(output_file_path, 'w', encoding='utf-8') as output_file:
        output_file.write(rendered_html)

    logger.debug(f"Generated HTML: {output_file_path}")
    return output_file_path
