"""
Loader for a site's ``config.py``.

The module is executed from scratch on every build and never registered in
``sys.modules``, so edits are picked up by the next rebuild without a restart.
"""

import inspect
import logging
import os
import runpy
from typing import Any, Callable, Dict, Optional

from .errors import ConfigError

logger = logging.getLogger('StaticBuild.config')

CONFIG_FILENAME = 'config.py'
HOOK_NAMES = ('get_pages', 'get_page_variables', 'post_build')


def default_get_pages(helpers):
    return []


def default_get_page_variables(site, page):
    return {}


def default_post_build(source_path, destination_path):
    return None


class UserConfig:
    """
    The hooks and values a site's ``config.py`` provides for one build.

    Attributes:
        get_pages: ``get_pages(helpers) -> list[Page]``.
        get_page_variables: ``get_page_variables(site, page) -> dict``.
        post_build: ``post_build(source_path, destination_path)``.
        values: Every public name of the module, hooks included. These are
            merged into the template context of every page.
        path: File the configuration came from, or None for the defaults.
    """

    def __init__(self, values: Optional[Dict[str, Any]] = None, path: Optional[str] = None):
        self.path = path
        self.values = {
            'get_pages': default_get_pages,
            'get_page_variables': default_get_page_variables,
            'post_build': default_post_build,
        }
        self.values.update(values or {})

        for name in HOOK_NAMES:
            if not callable(self.values[name]):
                raise ConfigError(f"'{name}' in {path or CONFIG_FILENAME} must be callable")

    @property
    def get_pages(self) -> Callable:
        return self.values['get_pages']

    @property
    def get_page_variables(self) -> Callable:
        return self.values['get_page_variables']

    @property
    def post_build(self) -> Callable:
        return self.values['post_build']

    @property
    def site(self):
        return self.values.get('site')


def load_user_config(source_path: str) -> UserConfig:
    """
    Load ``config.py`` from the source root, falling back to the defaults.

    Args:
        source_path: Root of the site source.

    Returns:
        A fresh UserConfig.

    Raises:
        ConfigError: If the module cannot be imported or defines a hook that
            is not callable.
    """
    config_path = os.path.join(source_path, CONFIG_FILENAME)

    if not os.path.exists(config_path):
        logger.debug(f"No {CONFIG_FILENAME} in {source_path}, using defaults")
        return UserConfig()

    try:
        # run_path compiles the source file, it never reads a cached .pyc
        namespace = runpy.run_path(config_path, run_name='staticbuild_user_config')
    except Exception as e:
        raise ConfigError(f"Failed to load configuration file {config_path}: {e}") from e

    values = {
        name: value
        for name, value in namespace.items()
        if not name.startswith('_') and not inspect.ismodule(value)
    }
    logger.debug(f"Loaded configuration from {config_path}")
    return UserConfig(values, path=config_path)
