"""Bounded read of piped standard input.

A terminal never carries a body, so TTY stdin is ignored outright. For
anything else, :func:`read_piped_stdin` waits at most *timeout* seconds
for data to become readable; a pipe that stays silent (for example an
inherited but unused stdin under a scheduler) is treated as empty rather
than blocking the command.
"""

from __future__ import annotations

import select
import sys
from typing import Optional, TextIO

STDIN_WAIT_SECONDS = 0.1


def read_piped_stdin(stream: Optional[TextIO] = None, timeout: float = STDIN_WAIT_SECONDS) -> Optional[str]:
    """Return piped input, or ``None`` for a terminal, an idle pipe or empty input."""
    stream = sys.stdin if stream is None else stream
    if stream is None or stream.closed:
        return None
    try:
        if stream.isatty():
            return None
    except ValueError:
        return None

    try:
        ready, _, _ = select.select([stream], [], [], timeout)
    except (OSError, ValueError):
        # In-memory streams and Windows pipes cannot be polled; read them directly.
        ready = [stream]
    if not ready:
        return None

    text = stream.read()
    return text if text and text.strip() else None
