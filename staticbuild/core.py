import enum
import logging
import os
import shutil
import time
from datetime import datetime

from . import sources
from .config import load_user_config
from .errors import BuildError
from .reload import DEFAULT_PORT, HotReload
from .templates import TemplateRenderer, load_templates
from .watcher import DEFAULT_DEBOUNCE_MS, FileWatcher
from .writer import write_page

DEFAULT_RELOAD_DELAY_MS = 300


class BuildStage(enum.Enum):
    RESET = 'reset'
    LOAD_PARTIALS_LAYOUTS = 'load_partials_layouts'
    LOAD_CONFIG = 'load_config'
    SCAN_PAGES = 'scan_pages'
    ASSEMBLE_VIEW = 'assemble_view'
    RENDER_AND_WRITE = 'render_and_write'
    POST_BUILD_HOOK = 'post_build_hook'
    DONE = 'done'


class InfoFilter(logging.Filter):
    """Filter to allow only selected INFO messages to be shown in the console."""
    def filter(self, record):
        if record.levelno >= logging.WARNING:
            return True
        allowed_messages = [
            "Site build completed in",
            "Total pages generated:",
            "Watching for changes",
            "Live reload server listening on port",
            "Change detected, rebuilding",
        ]
        return any(msg in record.getMessage() for msg in allowed_messages)


def setup_logging(log_dir=None):
    """
    Set up the ``StaticBuild`` logger.

    The console shows warnings, errors and a few progress messages. When
    ``log_dir`` is given every record, debug included, also goes to a
    timestamped log file in that directory.
    """
    logger = logging.getLogger('StaticBuild')
    logger.setLevel(logging.DEBUG if log_dir else logging.INFO)

    if not logger.handlers:
        # Console handler with filter
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_handler.addFilter(InfoFilter())
        console_handler.setFormatter(logging.Formatter('%(message)s'))
        logger.addHandler(console_handler)

        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            log_filename = datetime.now().strftime('staticbuild_%Y-%m-%d_%H-%M-%S.log')

            file_handler = logging.FileHandler(os.path.join(log_dir, log_filename), encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(
                logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
            )
            logger.addHandler(file_handler)

    return logger


def reset_output_dir(output_dir):
    """Delete the output directory if present and recreate it empty."""
    if os.path.exists(output_dir):
        shutil.rmtree(output_dir)
    os.makedirs(output_dir)


def get_collections_from_pages(pages):
    """
    Group pages by collection.

    Pages without a collection end up in ``pages``, keyed by slug. Every other
    collection is a list in the order the pages were returned.
    """
    collections = {}

    for page in pages:
        if page.collection:
            collections.setdefault(page.collection, []).append(page)
        else:
            collections.setdefault('pages', {})[page.slug] = page

    return collections


class StaticBuild:
    """
    Builds a site from ``source_dir`` into ``output_dir``.

    ``compile()`` runs one full build. ``watch()`` keeps rebuilding on source
    changes and notifies connected browsers after each successful build.
    """

    def __init__(self, source_dir, output_dir):
        self.source_dir = os.path.abspath(source_dir)
        self.output_dir = os.path.abspath(output_dir)
        self.logger = logging.getLogger('StaticBuild')
        self.stage = None
        self.pages_generated = 0
        self.watcher = None
        self.hot_reload = None

    def _enter(self, stage):
        self.stage = stage
        self.logger.debug(f"Build stage: {stage.name}")

    def check_paths(self):
        """
        Refuse to build over the source tree.

        Raises:
            BuildError: If the output directory is the source directory or
                one of its parents.
        """
        if os.path.commonpath([self.source_dir, self.output_dir]) == self.output_dir:
            raise BuildError(
                f"Output directory {self.output_dir} would delete the source directory {self.source_dir}"
            )

    def compile(self):
        """
        Run one full build.

        Any error aborts the build and propagates. The output directory may be
        left partially written.

        Returns:
            Number of pages written.
        """
        start_time = time.time()
        self.pages_generated = 0
        self.check_paths()

        self._enter(BuildStage.RESET)
        reset_output_dir(self.output_dir)

        self._enter(BuildStage.LOAD_PARTIALS_LAYOUTS)
        partials = load_templates(self.source_dir, 'partials')
        layouts = load_templates(self.source_dir, 'layouts')

        self._enter(BuildStage.LOAD_CONFIG)
        config = load_user_config(self.source_dir)

        self._enter(BuildStage.SCAN_PAGES)
        pages_to_build = list(config.get_pages(sources) or [])

        self._enter(BuildStage.ASSEMBLE_VIEW)
        global_view = dict(config.values)
        global_view.update(get_collections_from_pages(pages_to_build))

        self._enter(BuildStage.RENDER_AND_WRITE)
        renderer = TemplateRenderer(layouts, partials)
        for page in pages_to_build:
            rendered_html = renderer.render_page(page, global_view, config.get_page_variables)
            write_page(self.output_dir, page, rendered_html)
            self.pages_generated += 1

        self._enter(BuildStage.POST_BUILD_HOOK)
        config.post_build(self.source_dir, self.output_dir)

        self._enter(BuildStage.DONE)
        total_time = time.time() - start_time
        self.logger.info(f"Site build completed in {total_time:.6f} seconds.")
        self.logger.info(f"Total pages generated: {self.pages_generated}")

        return self.pages_generated

    def rebuild(self, reload_delay_ms=DEFAULT_RELOAD_DELAY_MS):
        """
        Rebuild after a source change.

        The watcher is paused for the duration, so changes made meanwhile are
        not picked up. A failed build is logged and sends no reload.
        """
        self.watcher.pause()
        try:
            self.logger.info("Change detected, rebuilding")
            self.compile()
        except Exception as e:
            self.logger.error(f"Error: {e}")
            self.logger.debug("Rebuild failed", exc_info=True)
        else:
            self.hot_reload.reload(reload_delay_ms)
        finally:
            self.watcher.resume()

    def watch(self, debounce_ms=DEFAULT_DEBOUNCE_MS, reload_delay_ms=DEFAULT_RELOAD_DELAY_MS,
              port=DEFAULT_PORT):
        """Start the reload server and the file watcher. Returns immediately."""
        self.hot_reload = HotReload(port=port)
        self.watcher = FileWatcher(
            self.source_dir,
            debounce_ms=debounce_ms,
            ignore_paths=[self.output_dir],
        )
        self.watcher.on_change(lambda: self.rebuild(reload_delay_ms))

        self.hot_reload.start()
        self.watcher.start()
        self.logger.info("Watching for changes")

    def stop(self):
        """Stop watching and shut the reload server down."""
        if self.watcher is not None:
            self.watcher.stop()
        if self.hot_reload is not None:
            self.hot_reload.stop()
