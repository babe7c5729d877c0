#!/usr/bin/env python3
"""
Command-line interface for static-build.
"""

import argparse
import logging
import os
import time
from typing import List, Optional

from . import __version__
from .core import StaticBuild, setup_logging
from .errors import StaticBuildError, UserInputError
from .settings import StaticBuildSettings

logger = logging.getLogger('StaticBuild.cli')

STARTER_LAYOUT = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <title>{{ page.title }}{% if site %} | {{ site.name }}{% endif %}</title>
</head>
<body>
    {% include "header" %}
    <main>
        {{ page.content }}
    </main>
    <!-- Live reload while running with --watch -->
    <script>
        new EventSource('http://localhost:5678').addEventListener('reload', function () {
            location.reload();
        });
    </script>
</body>
</html>
"""

STARTER_HEADER = """<header>
    <a href="/">{{ site.name if site else 'Home' }}</a>
    {% if posts %}<a href="{{ posts[0].path }}">Latest post</a>{% endif %}
</header>
"""

STARTER_INDEX = """<!-- layout: default -->
# Welcome to your new site

Edit `index.md` to change this page, or add markdown and HTML files anywhere
outside the `_` folders to create more pages.

Posts live in `_posts/`, one file (or folder with an `index.md`) per post.
"""

STARTER_POST = """<!-- description: The first post on this site -->
# Hello, world

This post was created by `static-build --init`. Its date and slug come from
the file name: `2025-01-01-hello-world.md` becomes `/posts/hello-world/`.
"""

STARTER_CONFIG = '''"""Site configuration, reloaded on every build."""

import datetime
import os

SOURCE = os.path.dirname(os.path.abspath(__file__))

site = {
    'name': 'My Site',
}


def get_pages(helpers):
    return [
        *helpers.pages(SOURCE),
        *helpers.collection('posts', 'default', os.path.join(SOURCE, '_posts'), '/posts/{{slug}}'),
        *helpers.redirects({'/home': '/'}),
    ]


def get_page_variables(site, page):
    return {'year': datetime.date.today().year}


def post_build(source_path, destination_path):
    pass
'''

STARTER_FILES = [
    ('_layouts/default.html', STARTER_LAYOUT),
    ('_partials/header.html', STARTER_HEADER),
    ('_posts/2025-01-01-hello-world.md', STARTER_POST),
    ('index.md', STARTER_INDEX),
    ('config.py', STARTER_CONFIG),
]


def create_starter_structure(source_path: str) -> List[str]:
    """
    Create a starter site in ``source_path`` without overwriting anything.

    Returns:
        Relative paths of the files that were created.
    """
    created = []

    for relative_path, content in STARTER_FILES:
        file_path = os.path.join(source_path, relative_path)

        if os.path.exists(file_path):
            print(f"File already exists: {relative_path}")
            continue

        os.makedirs(os.path.dirname(file_path), exist_ok=True)
        with open(file_path, 'w', encoding='utf-8') as f:
            f.write(content)
        print(f"Created: {relative_path}")
        created.append(relative_path)

    return created


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='static-build',
        description='static-build - build a static site from markdown and HTML',
    )
    parser.add_argument('source', nargs='?',
                        help='Location of directory containing content')
    parser.add_argument('destination', nargs='?',
                        help='Location of directory for build output')
    parser.add_argument('--watch', '-w', action='store_true',
                        help='Watch source directory for changes')
    parser.add_argument('--force', '-f', action='store_true',
                        help='Delete an existing destination without asking')
    parser.add_argument('--port', type=int,
                        help='Port of the live reload server (default 5678)')
    parser.add_argument('--debounce', dest='debounce_ms', type=int,
                        help='Milliseconds of quiet before a rebuild starts')
    parser.add_argument('--reload-delay', dest='reload_delay_ms', type=int,
                        help='Milliseconds between a rebuild and the browser reload')
    parser.add_argument('--log-dir', type=str,
                        help='Directory for debug log files')
    parser.add_argument('--init', nargs='?', const='yml', choices=['yml', 'yaml', 'json'],
                        help='Create a starter site in the source directory and a sample settings file')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def validate_paths(source: Optional[str], destination: Optional[str]) -> None:
    """
    Check the positional arguments.

    Raises:
        UserInputError: If a path is missing, looks like an option, or the
            source does not exist.
    """
    # Check that the first argument is a path and not a command.
    if not source or source.startswith('-'):
        raise UserInputError("Invalid source path.")

    # Check that the second argument is a path and not a command.
    if not destination or destination.startswith('-'):
        raise UserInputError("Invalid destination path.")

    if not os.path.exists(source):
        raise UserInputError(f'Source path "{source}" does not exist.')


def confirm_overwrite(destination: str) -> bool:
    """Ask before an existing destination is deleted. Only ``yes`` proceeds."""
    print(f'Warning: Destination path "{destination}" already exists.')

    try:
        answer = input('It will be deleted, do you want to continue? [yes] ')
    except EOFError:
        answer = ''

    if answer.strip() != 'yes':
        print("Aborting!")
        return False
    return True


def run_init(args) -> None:
    """Handle ``--init``."""
    if not args.source or args.source.startswith('-'):
        print("Error: Invalid source path.")
        return

    settings_loader = StaticBuildSettings()
    existing = settings_loader.find_config_file()
    if existing:
        print(f"Settings file already exists: {existing}")
    else:
        config_path = settings_loader.create_sample_config(args.init)
        print(f"Created sample settings file: {config_path}")

    print("\nCreating starter site...")
    create_starter_structure(args.source)

    print("\n✅ Starter site created successfully!")
    print(f"Run 'static-build {args.source} <destination> --watch' to build it.")


def watch_until_interrupted(builder: StaticBuild, settings: dict) -> None:
    """Rebuild on changes until Ctrl+C or the watcher stops."""
    try:
        builder.watch(
            debounce_ms=settings['debounce_ms'],
            reload_delay_ms=settings['reload_delay_ms'],
            port=settings['port'],
        )
    except OSError as e:
        logger.error(f"Error: Could not start watch mode: {e}")
        builder.stop()
        return

    try:
        while builder.watcher.is_running:
            time.sleep(0.5)
    except KeyboardInterrupt:
        print("\nStopping...")
    finally:
        builder.stop()


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    parser = create_parser()
    args, unknown = parser.parse_known_args(argv)

    if args.init:
        run_init(args)
        return

    try:
        validate_paths(args.source, args.destination)
    except UserInputError as e:
        print(f"Error: {e}")
        return

    # Load settings from configuration file
    settings_loader = StaticBuildSettings()
    try:
        settings_loader.load_settings()
    except StaticBuildError as e:
        print(f"Error: {e}")
        return

    args_dict = {k: v for k, v in vars(args).items() if k not in ('source', 'destination', 'init')}

    # Command line arguments take precedence
    settings = settings_loader.merge_with_args(args_dict)

    setup_logging(settings['log_dir'])
    if unknown:
        logger.debug(f"Ignoring unknown arguments: {' '.join(unknown)}")

    # A missing destination is created by the build. An existing one may
    # hold someone's files.
    if os.path.exists(args.destination) and not settings['force']:
        if not confirm_overwrite(args.destination):
            return

    builder = StaticBuild(args.source, args.destination)

    try:
        builder.compile()
    except Exception as e:
        logger.error(f"Error: {e}")
        logger.debug("Build failed", exc_info=True)
        return

    if settings['watch']:
        watch_until_interrupted(builder, settings)


if __name__ == '__main__':
    main()
