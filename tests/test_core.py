"""Tests for the build orchestrator."""

import logging
import os
import sys
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from staticbuild.core import (
    BuildStage,
    InfoFilter,
    StaticBuild,
    get_collections_from_pages,
    reset_output_dir,
    setup_logging,
)
from staticbuild.errors import BuildError, RenderError
from staticbuild.models import Page

from conftest import write_file


def read(*parts):
    return Path(*parts).read_text(encoding='utf-8')


def snapshot(directory):
    files = {}
    for root, _, filenames in os.walk(directory):
        for filename in filenames:
            path = os.path.join(root, filename)
            with open(path, 'rb') as f:
                files[os.path.relpath(path, directory)] = f.read()
    return files


class TestHelpers:
    """Test cases for module helpers."""

    def test_collections_from_pages(self):
        """Test grouping by collection."""
        home = Page(slug='/index')
        first = Page(slug='a', collection='posts')
        second = Page(slug='b', collection='posts')
        redirect = Page(path='/old', collection='redirects')

        collections = get_collections_from_pages([home, first, redirect, second])

        assert collections == {
            'pages': {'/index': home},
            'posts': [first, second],
            'redirects': [redirect],
        }

    def test_collections_empty(self):
        """Test no pages at all."""
        assert get_collections_from_pages([]) == {}

    def test_reset_output_dir(self, temp_dir):
        """Test that stale files are removed."""
        output = os.path.join(temp_dir, 'dist')
        write_file(Path(output) / 'stale' / 'old.html', 'old')

        reset_output_dir(output)

        assert os.listdir(output) == []

    def test_info_filter(self):
        """Test which records reach the console."""
        info_filter = InfoFilter()

        def record(level, message):
            return logging.LogRecord('StaticBuild', level, __file__, 1, message, None, None)

        assert info_filter.filter(record(logging.INFO, 'Site build completed in 0.1 seconds.'))
        assert info_filter.filter(record(logging.INFO, 'Watching for changes'))
        assert info_filter.filter(record(logging.WARNING, 'Warning: Assets do not exist x'))
        assert not info_filter.filter(record(logging.INFO, 'Something chatty'))
        assert not info_filter.filter(record(logging.DEBUG, 'Build stage: RESET'))

    def test_setup_logging_file(self, temp_dir, clean_logger):
        """Test the optional log file."""
        log_dir = os.path.join(temp_dir, 'logs')

        logger = setup_logging(log_dir)
        logger.debug('debug line')
        for handler in logger.handlers:
            handler.flush()

        log_files = os.listdir(log_dir)
        assert len(log_files) == 1
        assert log_files[0].startswith('staticbuild_')
        assert 'debug line' in read(log_dir, log_files[0])

    def test_setup_logging_once(self, clean_logger):
        """Test that handlers are not added twice."""
        setup_logging()
        setup_logging()

        assert len(clean_logger.handlers) == 1


class TestStaticBuild:
    """Test cases for StaticBuild.compile."""

    def test_compile_site(self, site_dir, output_dir):
        """Test a full build of the sample site."""
        count = StaticBuild(site_dir, output_dir).compile()

        assert count == 5

        index = read(output_dir, 'index.html')
        assert index.startswith('<html><body><header>Test Site</header>')
        assert '<h1>Home</h1>' in index

        assert read(output_dir, 'about', 'index.html') == "<h1>About</h1>\n<p>Test Site</p>"

        hello = read(output_dir, 'posts', 'hello', 'index.html')
        assert '<h1>Hello</h1>' in hello
        assert '<header>Test Site</header>' in hello

        assert os.path.exists(os.path.join(output_dir, 'posts', 'photos', 'index.html'))
        assert read(output_dir, 'posts', 'photos', 'photo.txt') == 'not really a photo'

        assert 'content="0;url=/posts/hello"' in read(output_dir, 'old', 'index.html')

    def test_stages(self, site_dir, output_dir):
        """Test that a finished build ends in DONE."""
        builder = StaticBuild(site_dir, output_dir)
        assert builder.stage is None

        builder.compile()

        assert builder.stage is BuildStage.DONE

    def test_idempotent(self, site_dir, output_dir):
        """Test that rebuilding an unchanged tree gives identical output."""
        builder = StaticBuild(site_dir, output_dir)

        builder.compile()
        first = snapshot(output_dir)
        builder.compile()

        assert snapshot(output_dir) == first

    def test_header_title_override(self, site_dir, output_dir):
        """Test that a title header wins over the heading."""
        write_file(Path(site_dir) / '_layouts' / 'default.html', '{{ page.title }}')

        StaticBuild(site_dir, output_dir).compile()

        assert read(output_dir, 'posts', 'photos', 'index.html') == 'Photo post'
        assert read(output_dir, 'posts', 'hello', 'index.html') == 'Hello'

    def test_collections_in_view(self, site_dir, output_dir):
        """Test that templates can list collections and pages."""
        write_file(
            Path(site_dir) / 'list.html',
            "{% for post in posts %}{{ post.slug }};{% endfor %}{{ pages['/about'].title }}",
        )

        StaticBuild(site_dir, output_dir).compile()

        assert read(output_dir, 'list', 'index.html') == 'hello;photos;About'

    def test_page_variables(self, site_dir, output_dir):
        """Test the get_page_variables hook."""
        with open(os.path.join(site_dir, 'config.py'), 'a', encoding='utf-8') as f:
            f.write(
                "\n\ndef get_page_variables(site, page):\n"
                "    return {'shout': site['name'].upper()}\n"
            )
        write_file(Path(site_dir) / 'shout.html', '{{ shout }}')

        StaticBuild(site_dir, output_dir).compile()

        assert read(output_dir, 'shout', 'index.html') == 'TEST SITE'

    def test_post_build_runs_without_pages(self, temp_dir, output_dir):
        """Test that post_build runs even when nothing was built."""
        source = os.path.join(temp_dir, 'empty-site')
        write_file(Path(source) / 'config.py', (
            "import os\n"
            "def post_build(source_path, destination_path):\n"
            "    with open(os.path.join(destination_path, 'marker.txt'), 'w') as f:\n"
            "        f.write(source_path)\n"
        ))

        count = StaticBuild(source, output_dir).compile()

        assert count == 0
        assert read(output_dir, 'marker.txt') == os.path.abspath(source)

    def test_config_reloaded_between_builds(self, site_dir, output_dir):
        """Test that config edits apply to the next build."""
        builder = StaticBuild(site_dir, output_dir)
        builder.compile()
        assert '<header>Test Site</header>' in read(output_dir, 'index.html')

        config_path = os.path.join(site_dir, 'config.py')
        with open(config_path, encoding='utf-8') as f:
            config = f.read()
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write(config.replace("'Test Site'", "'Renamed Site'"))

        builder.compile()

        assert '<header>Renamed Site</header>' in read(output_dir, 'index.html')

    def test_no_config(self, temp_dir, output_dir):
        """Test a source without config.py builds nothing."""
        source = os.path.join(temp_dir, 'bare')
        write_file(Path(source) / 'index.md', '# Ignored')

        assert StaticBuild(source, output_dir).compile() == 0
        assert os.listdir(output_dir) == []

    def test_render_error_aborts(self, site_dir, output_dir):
        """Test that a template error stops the build."""
        write_file(Path(site_dir) / '_layouts' / 'default.html', '{% include "missing" %}')
        builder = StaticBuild(site_dir, output_dir)

        with pytest.raises(RenderError):
            builder.compile()

        assert builder.stage is BuildStage.RENDER_AND_WRITE

    def test_refuses_to_delete_source(self, site_dir):
        """Test that the output cannot be the source or its parent."""
        with pytest.raises(BuildError):
            StaticBuild(site_dir, site_dir).compile()

        with pytest.raises(BuildError):
            StaticBuild(site_dir, os.path.dirname(site_dir)).compile()

        assert os.path.exists(os.path.join(site_dir, 'config.py'))

    def test_header_slug_cannot_escape_output(self, site_dir, output_dir, temp_dir):
        """Test that a slug header pointing above the output is refused."""
        write_file(Path(site_dir) / 'evil.html', '<!-- slug: ../../escaped.txt -->\nowned')

        with pytest.raises(BuildError):
            StaticBuild(site_dir, output_dir).compile()

        assert not os.path.exists(os.path.join(temp_dir, 'escaped.txt'))


class TestWatchMode:
    """Test cases for rebuilds in watch mode."""

    def test_rebuild_success_sends_reload(self, site_dir, output_dir):
        """Test pause, build, reload and resume."""
        builder = StaticBuild(site_dir, output_dir)
        builder.watcher = Mock()
        builder.hot_reload = Mock()

        builder.rebuild(reload_delay_ms=250)

        builder.watcher.pause.assert_called_once()
        builder.hot_reload.reload.assert_called_once_with(250)
        builder.watcher.resume.assert_called_once()
        assert os.path.exists(os.path.join(output_dir, 'index.html'))

    def test_rebuild_failure_skips_reload(self, site_dir, output_dir, caplog):
        """Test that a failed rebuild is logged and the watcher resumes."""
        builder = StaticBuild(site_dir, output_dir)
        builder.watcher = Mock()
        builder.hot_reload = Mock()

        with patch.object(builder, 'compile', side_effect=RenderError('Template error for x: boom')):
            with caplog.at_level(logging.ERROR, logger='StaticBuild'):
                builder.rebuild()

        builder.hot_reload.reload.assert_not_called()
        builder.watcher.resume.assert_called_once()
        assert 'Error: Template error for x: boom' in caplog.text

    @patch('staticbuild.core.FileWatcher')
    @patch('staticbuild.core.HotReload')
    def test_watch_wiring(self, mock_hot_reload, mock_watcher, site_dir, output_dir):
        """Test that watch starts both services and registers the rebuild."""
        builder = StaticBuild(site_dir, output_dir)

        builder.watch(debounce_ms=100, reload_delay_ms=200, port=6000)

        mock_hot_reload.assert_called_once_with(port=6000)
        mock_watcher.assert_called_once_with(
            builder.source_dir, debounce_ms=100, ignore_paths=[builder.output_dir]
        )
        mock_hot_reload.return_value.start.assert_called_once()
        mock_watcher.return_value.start.assert_called_once()

        callback = mock_watcher.return_value.on_change.call_args[0][0]
        with patch.object(builder, 'rebuild') as rebuild:
            callback()
        rebuild.assert_called_once_with(200)

        builder.stop()
        mock_watcher.return_value.stop.assert_called_once()
        mock_hot_reload.return_value.stop.assert_called_once()
