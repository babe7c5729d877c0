"""
Error hierarchy for static-build.

All static-build specific errors inherit from StaticBuildError so callers can
catch them in one place.
"""


class StaticBuildError(Exception):
    """Base error for all static-build operations."""


class UserInputError(StaticBuildError):
    """Invalid command-line arguments or a missing source directory."""


class ConfigError(StaticBuildError):
    """The user configuration module or a settings file could not be loaded."""


class BuildError(StaticBuildError):
    """A page could not be written to the destination tree."""


class RenderError(StaticBuildError):
    """A template failed to render."""

    def __init__(self, message, page=None):
        super().__init__(message)
        self.page = page


class WatcherError(StaticBuildError):
    """The file watcher stopped because of an unrecoverable error."""
