"""Pagination primitives.

The executor never loops on its own. It exposes two primitives:

* :func:`has_pagination` -- does the adapter declare a style;
* :func:`next_page_params` -- given one decoded response, the parameter
  overrides for the next request, or ``None`` when there are no more pages.

Overrides are merged into the next request's query string. Callers that
loop (``--paginate``) must stop at :data:`MAX_PAGES`.

Per style:

``cursor``
    ``{param: extract(body)}`` while ``has_more(body)`` is truthy and the
    cursor is non-empty.
``offset``
    ``{param: offset + limit, limit_param: limit}`` while ``has_more``;
    ``extract``, when given, supplies the next offset instead.
``page``
    ``{param: page + 1}`` while ``has_more``; ``extract`` may supply the
    next page number instead.
``link``
    The query parameters of the ``Link`` header target for ``rel``.
``custom``
    Whatever the strategy's ``next_page`` returns.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional
from urllib.parse import parse_qsl, urlsplit

from apictl.adapters.config import (
    CursorPagination,
    CustomPagination,
    Extract,
    LinkPagination,
    OffsetPagination,
    PagePagination,
    ResolvedAdapter,
)
from apictl.adapters.context import AdapterContext, AdapterResponse
from apictl.dotpath import get_at_path

MAX_PAGES = 100
"""Hard cap on pages fetched by one auto-paginating invocation."""


def has_pagination(adapter: ResolvedAdapter) -> bool:
    return adapter.pagination is not None


def next_page_params(
    adapter: ResolvedAdapter,
    response: AdapterResponse,
    ctx: AdapterContext,
    current: Optional[Mapping[str, Any]] = None,
) -> Optional[dict[str, Any]]:
    """Compute the overrides for the page after *response*.

    Args:
        adapter: Supplies the ``pagination`` section.
        response: The decoded response of the current page.
        ctx: Shared context; ``offset``, ``limit`` and ``page`` are read
            when *current* does not carry them.
        current: Query parameters of the request that produced *response*.

    Returns:
        A mapping of parameter name to value, or ``None`` to stop.
    """
    config = adapter.pagination
    if config is None:
        return None
    current = current or {}
    data = response.data

    if isinstance(config, CustomPagination):
        return config.strategy.next_page(response, ctx)

    if isinstance(config, LinkPagination):
        link = response.links.get(config.rel)
        url = link.get("url") if link else None
        if not url:
            return None
        params = dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))
        return params or None

    if not _truthy(_read(config.has_more, data)):
        return None

    if isinstance(config, CursorPagination):
        cursor = _read(config.extract, data)
        if cursor is None or cursor == "":
            return None
        return {config.param: cursor}

    if isinstance(config, OffsetPagination):
        limit = _as_int(current.get(config.limit_param), ctx.limit, config.default_limit)
        if config.extract is not None:
            next_offset = _read(config.extract, data)
            if next_offset is None:
                return None
        else:
            next_offset = _as_int(current.get(config.param), ctx.offset, 0) + limit
        return {config.param: next_offset, config.limit_param: limit}

    if isinstance(config, PagePagination):
        if config.extract is not None:
            next_page = _read(config.extract, data)
            if next_page is None:
                return None
        else:
            next_page = _as_int(current.get(config.param), ctx.page, 1) + 1
        return {config.param: next_page}

    return None


def _read(extract: Extract, data: Any) -> Any:
    if callable(extract):
        return extract(data)
    return get_at_path(data, extract)


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() not in ("", "false", "0", "no")
    return bool(value)


def _as_int(*candidates: Any) -> int:
    for value in candidates:
        if value is None:
            continue
        try:
            return int(value)
        except (TypeError, ValueError):
            continue
    return 0
