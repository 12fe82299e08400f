"""Render a request descriptor as an equivalent ``curl`` command line.

Used by ``--dry-run``. The ``Authorization`` value is masked after its
first :data:`AUTH_VISIBLE_CHARS` characters, so a token prefix such as
``Bearer sk`` stays recognisable without exposing the secret. Values are
single-quoted for POSIX shells.
"""

from __future__ import annotations

import shlex

import httpx

from apictl.adapters.context import AdapterRequest
from apictl.executor.request import serialize_body

AUTH_VISIBLE_CHARS = 10


def request_url(request: AdapterRequest) -> str:
    """Return the request URL with its query string encoded."""
    if not request.query:
        return request.url
    return str(httpx.URL(request.url, params=request.query))


def mask_authorization(value: str) -> str:
    return f"{value[:AUTH_VISIBLE_CHARS]}..."


def render_curl(request: AdapterRequest) -> str:
    """Return a multi-line ``curl`` command reproducing *request*.

    Example::

        curl \\
          -H 'Accept: application/json' \\
          -H 'Authorization: Bearer sk...' \\
          'https://api.example.com/customers/42'
    """
    parts = ["curl"]
    if request.method.upper() != "GET":
        parts.append(f"-X {request.method.upper()}")
    for name, value in request.headers.items():
        if name.lower() == "authorization":
            value = mask_authorization(value)
        parts.append(f"-H {shlex.quote(f'{name}: {value}')}")
    body = serialize_body(request.body)
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if body:
        parts.append(f"-d {shlex.quote(body)}")
    parts.append(shlex.quote(request_url(request)))
    return " \\\n  ".join(parts)
