"""Test configuration and fixtures for static-build tests."""

import logging
import os
import shutil
import tempfile
from pathlib import Path

import pytest

SAMPLE_CONFIG = """import os

SOURCE = os.path.dirname(os.path.abspath(__file__))

site = {'name': 'Test Site'}


def get_pages(helpers):
    return [
        *helpers.pages(SOURCE),
        *helpers.collection('posts', 'default', os.path.join(SOURCE, '_posts'), '/posts/{{slug}}'),
        *helpers.redirects({'/old': '/posts/hello'}),
    ]
"""


def write_file(path, content=''):
    """Write a file, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding='utf-8')
    return str(path)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def site_dir(temp_dir):
    """Create a small site source tree with layouts, partials, posts and a config."""
    source = Path(temp_dir) / 'site'

    write_file(source / 'index.md', "<!-- layout: default -->\n# Home\n\nWelcome home.\n")
    write_file(source / 'about.html', "<h1>About</h1>\n<p>{{ site.name }}</p>")
    write_file(
        source / '_layouts' / 'default.html',
        "<html><body>{% include 'header' %}{{ page.content }}</body></html>",
    )
    write_file(source / '_partials' / 'header.html', "<header>{{ site.name }}</header>")
    write_file(source / '_posts' / '2024-01-05-hello.md', "# Hello\n\nFirst post.\n")
    write_file(
        source / '_posts' / '2024-02-10-photos' / 'index.md',
        "<!-- title: Photo post -->\n# Photos\n\nSome photos.\n",
    )
    write_file(source / '_posts' / '2024-02-10-photos' / 'photo.txt', "not really a photo")
    write_file(source / 'config.py', SAMPLE_CONFIG)

    return str(source)


@pytest.fixture
def output_dir(temp_dir):
    """Path for build output, not created yet."""
    return os.path.join(temp_dir, 'dist')


@pytest.fixture
def clean_logger():
    """Remove handlers from the StaticBuild logger before and after a test."""
    logger = logging.getLogger('StaticBuild')

    def reset():
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.setLevel(logging.NOTSET)

    reset()
    yield logger
    reset()
