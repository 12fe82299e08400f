"""Runner for the adapter's pipeline hooks.

:class:`HookRunner` wraps one :class:`~apictl.adapters.config.HooksSection`
and exposes one coroutine per lifecycle stage. Hooks may be plain
functions or coroutine functions; an awaitable result is awaited before
the pipeline continues.

``before_request`` and ``after_response`` may return a replacement
descriptor; any other return value leaves the current descriptor in place.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Optional

from apictl.adapters.config import HooksSection
from apictl.adapters.context import AdapterContext, AdapterRequest, AdapterResponse

logger = logging.getLogger(__name__)


async def call_maybe_async(fn: Callable[..., Any], *args: Any) -> Any:
    """Call *fn* and await its result when it is awaitable."""
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class HookRunner:
    """Executes adapter hooks with a shared :class:`~apictl.adapters.context.AdapterContext`."""

    def __init__(self, hooks: Optional[HooksSection] = None) -> None:
        self._hooks = hooks or HooksSection()

    async def before_request(self, request: AdapterRequest, ctx: AdapterContext) -> AdapterRequest:
        if self._hooks.before_request is None:
            return request
        result = await call_maybe_async(self._hooks.before_request, request, ctx)
        return result if isinstance(result, AdapterRequest) else request

    async def after_response(self, response: AdapterResponse, ctx: AdapterContext) -> AdapterResponse:
        if self._hooks.after_response is None:
            return response
        result = await call_maybe_async(self._hooks.after_response, response, ctx)
        return result if isinstance(result, AdapterResponse) else response

    async def on_error(self, error: Exception, ctx: AdapterContext) -> None:
        """Run ``on_error``. A failure inside the hook is logged and never replaces *error*."""
        if self._hooks.on_error is None:
            return
        try:
            await call_maybe_async(self._hooks.on_error, error, ctx)
        except Exception as exc:
            logger.warning("on_error hook failed: %s", exc)

    async def after_login(self, profile: Any, ctx: AdapterContext) -> None:
        if self._hooks.after_login is not None:
            await call_maybe_async(self._hooks.after_login, profile, ctx)
