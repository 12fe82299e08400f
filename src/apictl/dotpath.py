"""Dot-path lookups into decoded JSON bodies.

Used by response unwrapping, error extraction, declarative pagination and
the ``--field`` output option. A path is a ``.``-separated list of keys;
segments that parse as integers index into lists, negative values counting
from the end (``data.-1.id`` is the ``id`` of the last element of ``data``).
"""

from __future__ import annotations

from typing import Any


def get_at_path(obj: Any, path: str) -> Any:
    """Return the value at *path* inside *obj*, or ``None`` when any segment is missing.

    An empty path returns *obj* unchanged.
    """
    if not path:
        return obj
    current = obj
    for part in path.split("."):
        if isinstance(current, dict):
            if part not in current:
                return None
            current = current[part]
        elif isinstance(current, list):
            try:
                current = current[int(part)]
            except (ValueError, IndexError):
                return None
        else:
            return None
    return current


def extract_field(obj: Any, path: str) -> Any:
    """Like :func:`get_at_path`, but applied to every element when *obj* is a list.

    Example::

        >>> extract_field([{"id": 1}, {"id": 2}], "id")
        [1, 2]
    """
    if isinstance(obj, list):
        return [get_at_path(item, path) for item in obj]
    return get_at_path(obj, path)
