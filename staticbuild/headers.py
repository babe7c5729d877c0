"""
Comment header parsing.

Pages can carry metadata as a block of HTML comments at the very top of the
file::

    <!-- title: Hello world -->
    <!-- layout: post -->

    # Hello world

The block ends at the first line that is not a header comment.
"""

import re
from typing import Dict, Tuple

# Keys cannot contain a colon, values can (URLs, times). The split is at the
# first colon, so `url: http://x` gives key `url`, not `url: http`.
HEADER_PATTERN = re.compile(r'<!--\s?([^:]+?)\s?:\s?(.+?)\s?-->')


def match_header(line: str):
    """Return the ``(key, value)`` pair for a header line, or None."""
    match = HEADER_PATTERN.search(line)
    if not match:
        return None
    return match.group(1).strip(), match.group(2).strip()


def parse_headers(content: str) -> Tuple[Dict[str, str], str]:
    """
    Split the leading comment headers off some content.

    Args:
        content: Raw page source (markdown or HTML).

    Returns:
        A ``(headers, remainder)`` tuple. ``remainder`` holds every line from
        the first non-header line onward, joined with newlines. When no header
        is present the content is returned unchanged.
    """
    headers = {}
    lines = content.split('\n')
    line_reached = 0

    for line in lines:
        header = match_header(line)
        if header is None:
            break
        key, value = header
        headers[key] = value
        line_reached += 1

    if not line_reached:
        return headers, content

    return headers, '\n'.join(lines[line_reached:])
