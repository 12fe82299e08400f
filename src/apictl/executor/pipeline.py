"""The request pipeline: one HTTP exchange for one command-tree leaf.

:meth:`RequestExecutor.execute` runs these steps in order:

1. Build the request descriptor (:func:`~apictl.executor.request.build_request`).
2. ``before_request`` hook.
3. Content type and body encoding.
4. The adapter's ``request`` section: extra headers, body transform,
   request transform. Auth is not attached yet, so none of these see it.
5. Authentication (:meth:`~apictl.auth.manager.AuthManager.apply`).
6. Send, with retries for transport failures, 429 and 5xx. With
   ``dry_run`` the request is rendered as ``curl`` and nothing is sent.
7. Decode the body (JSON, text or bytes).
8. ``after_response`` hook.
9. Status >= 400: a ``response.handlers`` entry for the status runs
   instead of generic handling; otherwise the error is extracted per the
   ``errors`` section and raised as :class:`~apictl.exceptions.APIError`.
10. ``response.unwrap`` then ``response.transform``.
11. On any failure, the ``on_error`` hook runs before the error propagates.

A 401 answered with a successful forced token refresh (the
*reauthenticate* coroutine, given the same :class:`httpx.AsyncClient`) is
resent once with the new credential.
"""

from __future__ import annotations

import asyncio
import copy
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from apictl import output
from apictl.adapters.config import ErrorInfo, ResolvedAdapter, resolve_value
from apictl.adapters.context import AdapterContext, AdapterRequest, AdapterResponse
from apictl.adapters.hooks import HookRunner, call_maybe_async
from apictl.auth.manager import AuthManager, create_default_manager
from apictl.dotpath import get_at_path
from apictl.exceptions import APIError, classify_transport_error
from apictl.exit_codes import EXIT_AUTH_ERROR, EXIT_GENERAL_ERROR, EXIT_NOT_FOUND
from apictl.executor.curl import mask_authorization, render_curl, request_url
from apictl.executor.request import build_request, declared_content_type, encode_content, serialize_body
from apictl.executor.retry import is_retryable_status, retry_delay
from apictl.models import AuthProfile, OperationInfo

_STATUS_EXIT_CODES = {401: EXIT_AUTH_ERROR, 403: EXIT_AUTH_ERROR, 404: EXIT_NOT_FOUND}

Reauthenticator = Callable[[httpx.AsyncClient], Awaitable[Optional[AuthProfile]]]
"""Forced-refresh coroutine run after a 401, given the executor's client."""


@dataclass
class ExecutionResult:
    """A completed exchange.

    Attributes:
        status: Final HTTP status.
        data: Body after unwrap and transform.
        response: The decoded response before unwrap, used for pagination.
        request: The request as sent.
    """

    status: int
    data: Any
    response: AdapterResponse
    request: AdapterRequest


@dataclass
class DryRunResult:
    """A rendered request that was not sent."""

    command: str
    request: AdapterRequest


class RequestExecutor:
    """Executes operations against one resolved adapter.

    Args:
        adapter: The resolved adapter for the API.
        auth_manager: Attaches credentials; defaults to the built-in plugins.
        transport: Optional httpx transport (tests pass an
            :class:`httpx.MockTransport`).
        sleep: Awaitable sleep used between retries.
        clock: Current Unix time, used for HTTP-date retry hints.
        request_timeout_ms: Overrides the adapter's request timeout.
    """

    def __init__(
        self,
        adapter: ResolvedAdapter,
        auth_manager: Optional[AuthManager] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        request_timeout_ms: Optional[int] = None,
    ) -> None:
        self._adapter = adapter
        self._auth = auth_manager or create_default_manager()
        self._transport = transport
        self._sleep = sleep
        self._clock = clock
        self._request_timeout_ms = request_timeout_ms
        self._hooks = HookRunner(adapter.hooks)

    @property
    def adapter(self) -> ResolvedAdapter:
        return self._adapter

    async def execute(
        self,
        operation: OperationInfo,
        base_url: str,
        flags: dict[str, str],
        ctx: AdapterContext,
        credential: Optional[AuthProfile] = None,
        data: Optional[str] = None,
        stdin: Optional[str] = None,
        page_params: Optional[dict[str, Any]] = None,
        dry_run: bool = False,
        reauthenticate: Optional[Reauthenticator] = None,
    ) -> Union[ExecutionResult, DryRunResult]:
        """Run the full pipeline for *operation*.

        Args:
            operation: The command-tree leaf.
            base_url: Absolute base URL without a trailing slash.
            flags: Parsed non-reserved flags.
            ctx: Context shared by every hook and transform of this call.
            credential: Credential to attach, if any.
            data: Raw ``--data`` value.
            stdin: Piped standard input.
            page_params: Pagination overrides merged into the query.
            dry_run: Render instead of sending.
            reauthenticate: Awaited once after a 401 with the open HTTP
                client; returns a refreshed credential or ``None``.

        Raises:
            ApictlError: Any classified failure, after ``on_error`` ran.
        """
        ctx.operation_id = operation.operation_id
        try:
            return await self._run(
                operation, base_url, flags, ctx, credential, data, stdin, page_params, dry_run, reauthenticate
            )
        except Exception as exc:
            await self._hooks.on_error(exc, ctx)
            raise

    async def _run(
        self,
        operation: OperationInfo,
        base_url: str,
        flags: dict[str, str],
        ctx: AdapterContext,
        credential: Optional[AuthProfile],
        data: Optional[str],
        stdin: Optional[str],
        page_params: Optional[dict[str, Any]],
        dry_run: bool,
        reauthenticate: Optional[Reauthenticator],
    ) -> Union[ExecutionResult, DryRunResult]:
        adapter = self._adapter
        op_id = operation.operation_id

        request = build_request(operation, base_url, flags, data=data, stdin=stdin)
        if page_params:
            request.query.update(page_params)
        request = await self._hooks.before_request(request, ctx)
        encode_content(request, adapter.content.request_type_for(op_id, declared_content_type(operation)))
        request = self._apply_request_section(request, ctx)

        unauthenticated = copy.deepcopy(request)
        self._auth.apply(request, credential, adapter.auth, ctx)

        if dry_run:
            return DryRunResult(command=render_curl(request), request=request)

        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=self._timeout(op_id),
            follow_redirects=True,
        ) as client:
            http_response = await self._send(client, request)
            if http_response.status_code == 401 and reauthenticate is not None:
                refreshed = await reauthenticate(client)
                if refreshed is not None:
                    output.debug("Retrying with refreshed credentials")
                    request = copy.deepcopy(unauthenticated)
                    self._auth.apply(request, refreshed, adapter.auth, ctx)
                    http_response = await self._send(client, request)

        response = self._decode(http_response, op_id)
        response = await self._hooks.after_response(response, ctx)

        if response.status >= 400:
            handler = adapter.response.handlers.get(response.status)
            if handler is None:
                raise self._api_error(response, ctx)
            result = await call_maybe_async(handler, response, ctx)
            if isinstance(result, AdapterResponse):
                response = result

        return ExecutionResult(
            status=response.status,
            data=self._shape(response.data, ctx),
            response=response,
            request=request,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _apply_request_section(self, request: AdapterRequest, ctx: AdapterContext) -> AdapterRequest:
        section = self._adapter.request
        headers = resolve_value(section.headers, ctx) or {}
        for name, value in headers.items():
            request.set_header(name, str(value))
        if section.transform_body is not None and request.body is not None:
            request.body = section.transform_body(request.body, ctx)
        if section.transform is not None:
            result = section.transform(request, ctx)
            if isinstance(result, AdapterRequest):
                request = result
        return request

    def _timeout(self, operation_id: Optional[str]) -> httpx.Timeout:
        connect_ms, request_ms = self._adapter.timeout.for_operation(operation_id)
        if self._request_timeout_ms:
            request_ms = self._request_timeout_ms
        return httpx.Timeout(request_ms / 1000.0, connect=connect_ms / 1000.0)

    async def _send(self, client: httpx.AsyncClient, request: AdapterRequest) -> httpx.Response:
        """Send *request*, retrying per ``rate_limit.retry``.

        Raises:
            NetworkError: When a transport failure outlasts the retry budget.
        """
        retry = self._adapter.rate_limit.retry
        self._log_request(request)
        attempt = 0
        while True:
            try:
                response = await client.request(
                    request.method,
                    request.url,
                    params=request.query or None,
                    headers=request.headers,
                    content=serialize_body(request.body),
                )
            except httpx.TransportError as exc:
                if attempt >= retry.max_retries:
                    raise classify_transport_error(exc, request.url) from exc
                delay = retry_delay(retry, attempt)
                output.debug(f"{type(exc).__name__}: retrying in {delay:.1f}s ({attempt + 1}/{retry.max_retries})")
            else:
                self._log_rate_limit(response)
                if not is_retryable_status(response.status_code) or attempt >= retry.max_retries:
                    output.debug(f"HTTP {response.status_code} {response.reason_phrase}")
                    return response
                delay = retry_delay(retry, attempt, dict(response.headers), self._clock())
                output.debug(
                    f"HTTP {response.status_code}: retrying in {delay:.1f}s ({attempt + 1}/{retry.max_retries})"
                )
            await self._sleep(delay)
            attempt += 1

    def _decode(self, response: httpx.Response, operation_id: Optional[str]) -> AdapterResponse:
        mode = self._adapter.content.response_type_for(operation_id)
        content_type = response.headers.get("content-type", "")
        data: Any
        if not response.content:
            data = None
        elif mode == "binary":
            data = response.content
        elif mode == "json" or (mode == "auto" and "json" in content_type):
            try:
                data = response.json()
            except ValueError:
                data = response.text
        else:
            data = response.text
        return AdapterResponse(
            status=response.status_code,
            headers=dict(response.headers),
            data=data,
            links={rel: dict(link) for rel, link in response.links.items()},
        )

    def _shape(self, data: Any, ctx: AdapterContext) -> Any:
        section = self._adapter.response
        if isinstance(section.unwrap, str):
            data = get_at_path(data, section.unwrap)
        elif section.unwrap is not None:
            data = section.unwrap(data)
        if section.transform is not None:
            data = section.transform(data, ctx)
        return data

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def extract_error(self, body: Any) -> ErrorInfo:
        """Read message and code from an error body per the ``errors`` section."""
        errors = self._adapter.errors
        if errors.extract is not None:
            extracted = errors.extract(body)
            if isinstance(extracted, ErrorInfo):
                return extracted
            if isinstance(extracted, dict):
                return ErrorInfo(
                    message=_text(extracted.get("message")),
                    code=_text(extracted.get("code")),
                    type=_text(extracted.get("type")),
                )
            if isinstance(extracted, str):
                return ErrorInfo(message=extracted)
            return ErrorInfo()

        if not isinstance(body, (dict, list)):
            return ErrorInfo(message=_text(body))
        message = get_at_path(body, errors.message_path) if errors.message_path else None
        code = get_at_path(body, errors.code_path) if errors.code_path else None
        if message is None:
            message = get_at_path(body, "error.message")
            if message is None and isinstance(get_at_path(body, "error"), str):
                message = get_at_path(body, "error")
        if code is None:
            code = get_at_path(body, "error.code")
        return ErrorInfo(message=_text(message), code=_text(code))

    def _api_error(self, response: AdapterResponse, ctx: AdapterContext) -> APIError:
        info = self.extract_error(response.data)
        message = info.message or f"Request failed with status {response.status}"
        exit_codes = self._adapter.errors.exit_codes
        if info.code is not None and info.code in exit_codes:
            exit_code = exit_codes[info.code]
        elif str(response.status) in exit_codes:
            exit_code = exit_codes[str(response.status)]
        else:
            exit_code = _STATUS_EXIT_CODES.get(response.status, EXIT_GENERAL_ERROR)

        hint = None
        if response.status in (401, 403):
            hint = f"Check your credentials: apictl auth login {ctx.api or self._adapter.name}"
        return APIError(
            message,
            status=response.status,
            code=info.code,
            exit_code=exit_code,
            hint=hint,
            body=response.data,
        )

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def _log_request(self, request: AdapterRequest) -> None:
        if not output.get_output().is_verbose:
            return
        output.debug(f"{request.method} {request_url(request)}")
        for name, value in request.headers.items():
            shown = mask_authorization(value) if name.lower() == "authorization" else value
            output.debug(f"  {name}: {shown}")

    def _log_rate_limit(self, response: httpx.Response) -> None:
        names = self._adapter.rate_limit.headers
        parts = [
            f"{label}={response.headers[header]}"
            for label, header in (("limit", names.limit), ("remaining", names.remaining), ("reset", names.reset))
            if header and header in response.headers
        ]
        if parts:
            output.debug("Rate limit: " + ", ".join(parts))


def _text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return value if isinstance(value, str) else str(value)
