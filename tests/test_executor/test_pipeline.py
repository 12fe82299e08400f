"""Tests for the request pipeline against an in-memory transport."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Optional

import httpx
import pytest

from apictl.adapters.config import (
    AdapterConfig,
    AuthSection,
    ContentSection,
    ErrorsSection,
    FromContext,
    HooksSection,
    RateLimitHeaders,
    RateLimitSection,
    RequestSection,
    ResolvedAdapter,
    ResponseSection,
    RetryConfig,
    resolve_adapter,
)
from apictl.adapters.context import AdapterContext, AdapterRequest, AdapterResponse
from apictl.exceptions import APIError, NetworkError
from apictl.exit_codes import EXIT_AUTH_ERROR, EXIT_GENERAL_ERROR, EXIT_NETWORK_ERROR, EXIT_NOT_FOUND
from apictl.executor.pipeline import DryRunResult, ExecutionResult, RequestExecutor
from apictl.generator.command_tree import build_command_tree
from apictl.models import BearerProfile, OAuth2Profile, OperationInfo
from apictl.parser.document import SpecDocument

BASE = "https://api.example.test"
TOKEN = BearerProfile(token="tok_1234567890")


def _adapter(doc: SpecDocument, **sections: Any) -> ResolvedAdapter:
    sections.setdefault("auth", AuthSection(type="bearer", env_var="API_TOKEN"))
    return resolve_adapter(AdapterConfig(name="customers", **sections), doc)


def _operation(doc: SpecDocument, name: str) -> OperationInfo:
    return build_command_tree(doc).children["customers"].operations[name]


class _Recorder:
    """Mock transport handler replaying canned responses and recording requests."""

    def __init__(self, *responses: Any) -> None:
        self._responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(item, Exception):
            raise item
        return item


class _Sleeper:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _execute(
    adapter: ResolvedAdapter,
    operation: OperationInfo,
    flags: dict[str, str],
    handler: Callable[[httpx.Request], httpx.Response],
    sleep: Optional[_Sleeper] = None,
    ctx: Optional[AdapterContext] = None,
    **kwargs: Any,
) -> Any:
    executor = RequestExecutor(adapter, transport=httpx.MockTransport(handler), sleep=sleep or _Sleeper())
    kwargs.setdefault("credential", TOKEN)
    return asyncio.run(executor.execute(operation, BASE, flags, ctx or AdapterContext(api="customers"), **kwargs))


class TestSuccessfulExchange:
    def test_get_with_bearer(self, customers_doc: SpecDocument) -> None:
        recorder = _Recorder(httpx.Response(200, json={"id": "42", "email": "a@b.co"}))
        result = _execute(_adapter(customers_doc), _operation(customers_doc, "get"), {"id": "42"}, recorder)

        assert isinstance(result, ExecutionResult)
        assert result.status == 200
        assert result.data == {"id": "42", "email": "a@b.co"}
        sent = recorder.requests[0]
        assert sent.method == "GET"
        assert str(sent.url) == "https://api.example.test/customers/42"
        assert sent.headers["Authorization"] == "Bearer tok_1234567890"
        assert sent.headers["Accept"] == "application/json"
        assert sent.content == b""

    def test_operation_id_recorded_on_context(self, customers_doc: SpecDocument) -> None:
        ctx = AdapterContext(api="customers")
        recorder = _Recorder(httpx.Response(200, json={}))
        _execute(_adapter(customers_doc), _operation(customers_doc, "get"), {"id": "1"}, recorder, ctx=ctx)
        assert ctx.operation_id == "getCustomer"

    def test_form_body(self, customers_doc: SpecDocument) -> None:
        recorder = _Recorder(httpx.Response(200, json={"id": "cus_1"}))
        flags = {"email": "a@b.co", "metadata": '{"plan": "pro"}'}
        _execute(_adapter(customers_doc), _operation(customers_doc, "create"), flags, recorder)

        sent = recorder.requests[0]
        assert sent.method == "POST"
        assert sent.headers["Content-Type"] == "application/x-www-form-urlencoded"
        assert sent.content == b"email=a%40b.co&metadata%5Bplan%5D=pro"

    def test_json_override_serialises_body(self, customers_doc: SpecDocument) -> None:
        recorder = _Recorder(httpx.Response(200, json={}))
        adapter = _adapter(customers_doc, content=ContentSection(request_type="application/json"))
        _execute(adapter, _operation(customers_doc, "create"), {"email": "a@b.co"}, recorder)
        assert json.loads(recorder.requests[0].content) == {"email": "a@b.co"}

    def test_page_params_merged_into_query(self, customers_doc: SpecDocument) -> None:
        recorder = _Recorder(httpx.Response(200, json={"data": [], "has_more": False}))
        _execute(
            _adapter(customers_doc),
            _operation(customers_doc, "list"),
            {"limit": "2"},
            recorder,
            page_params={"starting_after": "cus_9"},
        )
        params = recorder.requests[0].url.params
        assert params["limit"] == "2"
        assert params["starting_after"] == "cus_9"

    def test_text_and_empty_bodies(self, customers_doc: SpecDocument) -> None:
        text = _Recorder(httpx.Response(200, text="hello"))
        assert _execute(_adapter(customers_doc), _operation(customers_doc, "get"), {"id": "1"}, text).data == "hello"

        empty = _Recorder(httpx.Response(204))
        assert _execute(_adapter(customers_doc), _operation(customers_doc, "get"), {"id": "1"}, empty).data is None

    def test_binary_response_type(self, customers_doc: SpecDocument) -> None:
        recorder = _Recorder(httpx.Response(200, content=b"\x00\x01", headers={"Content-Type": "application/json"}))
        adapter = _adapter(customers_doc, content=ContentSection(response_type="binary"))
        assert _execute(adapter, _operation(customers_doc, "get"), {"id": "1"}, recorder).data == b"\x00\x01"

    def test_unwrap_then_transform(self, customers_doc: SpecDocument) -> None:
        recorder = _Recorder(httpx.Response(200, json={"data": [{"id": "a"}, {"id": "b"}], "has_more": False}))
        adapter = _adapter(
            customers_doc,
            response=ResponseSection(unwrap="data", transform=lambda data, ctx: [item["id"] for item in data]),
        )
        result = _execute(adapter, _operation(customers_doc, "list"), {}, recorder)
        assert result.data == ["a", "b"]
        assert result.response.data["has_more"] is False


class TestRequestShaping:
    def test_section_headers_and_hooks_run_before_auth(self, customers_doc: SpecDocument) -> None:
        seen: dict[str, Any] = {}

        def before(request: AdapterRequest, ctx: AdapterContext) -> None:
            request.set_header("X-Trace", "t-1")

        def transform(request: AdapterRequest, ctx: AdapterContext) -> AdapterRequest:
            seen["authorization"] = request.header("Authorization")
            seen["trace"] = request.header("X-Trace")
            return request

        adapter = _adapter(
            customers_doc,
            request=RequestSection(
                headers=FromContext(fn=lambda ctx: {"X-Account": ctx.config["account"]}),
                transform=transform,
            ),
            hooks=HooksSection(before_request=before),
        )
        recorder = _Recorder(httpx.Response(200, json={}))
        ctx = AdapterContext(api="customers", config={"account": "acct_1"})
        _execute(adapter, _operation(customers_doc, "get"), {"id": "1"}, recorder, ctx=ctx)

        assert seen == {"authorization": None, "trace": "t-1"}
        sent = recorder.requests[0]
        assert sent.headers["X-Account"] == "acct_1"
        assert sent.headers["Authorization"] == "Bearer tok_1234567890"

    def test_async_before_request_may_replace(self, customers_doc: SpecDocument) -> None:
        async def before(request: AdapterRequest, ctx: AdapterContext) -> AdapterRequest:
            return AdapterRequest(method="GET", url=request.url + "/expanded", headers=dict(request.headers))

        recorder = _Recorder(httpx.Response(200, json={}))
        adapter = _adapter(customers_doc, hooks=HooksSection(before_request=before))
        _execute(adapter, _operation(customers_doc, "get"), {"id": "1"}, recorder)
        assert recorder.requests[0].url.path == "/customers/1/expanded"

    def test_binary_body_sent_unchanged(self, customers_doc: SpecDocument) -> None:
        payload = b"\x89PNG\r\n\x1a\n\xff\x00"
        adapter = _adapter(
            customers_doc,
            request=RequestSection(transform_body=lambda body, ctx: payload),
        )
        recorder = _Recorder(httpx.Response(200, json={}))
        _execute(adapter, _operation(customers_doc, "create"), {"email": "a@b.co"}, recorder)
        assert recorder.requests[0].content == payload

    def test_no_credential_sends_unauthenticated(self, customers_doc: SpecDocument) -> None:
        recorder = _Recorder(httpx.Response(200, json={}))
        _execute(_adapter(customers_doc), _operation(customers_doc, "get"), {"id": "1"}, recorder, credential=None)
        assert "Authorization" not in recorder.requests[0].headers


class TestDryRun:
    def test_renders_curl_without_sending(self, customers_doc: SpecDocument) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("dry run must not send")

        result = _execute(
            _adapter(customers_doc), _operation(customers_doc, "get"), {"id": "42"}, handler, dry_run=True
        )
        assert isinstance(result, DryRunResult)
        assert "Authorization: Bearer tok..." in result.command
        assert "tok_1234567890" not in result.command
        assert "https://api.example.test/customers/42" in result.command
        assert result.request.header("Authorization") == "Bearer tok_1234567890"


class TestErrors:
    def test_mapped_error_code(self, customers_doc: SpecDocument) -> None:
        body = {"error": {"code": "rate_limited", "message": "Slow down"}}
        recorder = _Recorder(httpx.Response(429, json=body))
        adapter = _adapter(
            customers_doc,
            errors=ErrorsSection(exit_codes={"rate_limited": 42}),
            rate_limit=RateLimitSection(retry=RetryConfig(max_retries=0)),
        )
        with pytest.raises(APIError) as exc_info:
            _execute(adapter, _operation(customers_doc, "get"), {"id": "1"}, recorder)
        error = exc_info.value
        assert error.exit_code == 42
        assert error.status == 429
        assert error.code == "rate_limited"
        assert str(error) == "HTTP 429 [rate_limited]: Slow down"
        assert error.body == body

    def test_status_mapping(self, customers_doc: SpecDocument) -> None:
        adapter = _adapter(customers_doc, errors=ErrorsSection(exit_codes={"409": 9}))
        recorder = _Recorder(httpx.Response(409, json={"message": "Conflict"}))
        with pytest.raises(APIError) as exc_info:
            _execute(adapter, _operation(customers_doc, "get"), {"id": "1"}, recorder)
        assert exc_info.value.exit_code == 9
        assert str(exc_info.value) == "HTTP 409: Conflict"

    @pytest.mark.parametrize(
        ("status", "exit_code"),
        [(401, EXIT_AUTH_ERROR), (403, EXIT_AUTH_ERROR), (404, EXIT_NOT_FOUND), (400, EXIT_GENERAL_ERROR)],
    )
    def test_default_exit_codes(self, customers_doc: SpecDocument, status: int, exit_code: int) -> None:
        recorder = _Recorder(httpx.Response(status, json={"error": "nope"}))
        with pytest.raises(APIError) as exc_info:
            _execute(_adapter(customers_doc), _operation(customers_doc, "get"), {"id": "1"}, recorder)
        assert exc_info.value.exit_code == exit_code
        assert "nope" in str(exc_info.value)
        if status in (401, 403):
            assert exc_info.value.hint == "Check your credentials: apictl auth login customers"

    def test_generic_message_for_empty_body(self, customers_doc: SpecDocument) -> None:
        recorder = _Recorder(httpx.Response(400))
        with pytest.raises(APIError, match="Request failed with status 400"):
            _execute(_adapter(customers_doc), _operation(customers_doc, "get"), {"id": "1"}, recorder)

    def test_custom_extract(self, customers_doc: SpecDocument) -> None:
        adapter = _adapter(
            customers_doc,
            errors=ErrorsSection(extract=lambda body: {"message": body["detail"], "code": body["kind"]}),
        )
        recorder = _Recorder(httpx.Response(422, json={"detail": "Bad email", "kind": "invalid"}))
        with pytest.raises(APIError) as exc_info:
            _execute(adapter, _operation(customers_doc, "get"), {"id": "1"}, recorder)
        assert exc_info.value.code == "invalid"
        assert "Bad email" in str(exc_info.value)

    def test_handler_replaces_response(self, customers_doc: SpecDocument) -> None:
        adapter = _adapter(
            customers_doc,
            response=ResponseSection(
                handlers={404: lambda response, ctx: AdapterResponse(status=200, data={"found": False})}
            ),
        )
        recorder = _Recorder(httpx.Response(404, json={"message": "missing"}))
        result = _execute(adapter, _operation(customers_doc, "get"), {"id": "1"}, recorder)
        assert result.status == 200
        assert result.data == {"found": False}

    def test_handler_may_raise(self, customers_doc: SpecDocument) -> None:
        def handler(response: AdapterResponse, ctx: AdapterContext) -> None:
            raise NetworkError("maintenance window")

        adapter = _adapter(
            customers_doc,
            response=ResponseSection(handlers={503: handler}),
            rate_limit=RateLimitSection(retry=RetryConfig(max_retries=0)),
        )
        recorder = _Recorder(httpx.Response(503, json={}))
        with pytest.raises(NetworkError, match="maintenance window"):
            _execute(adapter, _operation(customers_doc, "get"), {"id": "1"}, recorder)

    def test_on_error_sees_error_and_cannot_replace_it(self, customers_doc: SpecDocument) -> None:
        seen: list[Exception] = []

        def on_error(error: Exception, ctx: AdapterContext) -> None:
            seen.append(error)
            raise RuntimeError("hook failure")

        adapter = _adapter(customers_doc, hooks=HooksSection(on_error=on_error))
        recorder = _Recorder(httpx.Response(404, json={"message": "missing"}))
        with pytest.raises(APIError) as exc_info:
            _execute(adapter, _operation(customers_doc, "get"), {"id": "1"}, recorder)
        assert seen == [exc_info.value]


class TestRetries:
    def test_retries_server_errors_with_backoff(self, customers_doc: SpecDocument) -> None:
        recorder = _Recorder(
            httpx.Response(503), httpx.Response(502), httpx.Response(200, json={"id": "1"})
        )
        sleeper = _Sleeper()
        result = _execute(_adapter(customers_doc), _operation(customers_doc, "get"), {"id": "1"}, recorder, sleeper)
        assert result.data == {"id": "1"}
        assert len(recorder.requests) == 3
        assert sleeper.delays == [1.0, 2.0]

    def test_retry_after_header(self, customers_doc: SpecDocument) -> None:
        adapter = _adapter(
            customers_doc,
            rate_limit=RateLimitSection(retry=RetryConfig(retry_after_header="Retry-After")),
        )
        recorder = _Recorder(httpx.Response(429, headers={"Retry-After": "7"}), httpx.Response(200, json={}))
        sleeper = _Sleeper()
        _execute(adapter, _operation(customers_doc, "get"), {"id": "1"}, recorder, sleeper)
        assert sleeper.delays == [7.0]

    def test_gives_up_after_max_retries(self, customers_doc: SpecDocument) -> None:
        adapter = _adapter(
            customers_doc,
            rate_limit=RateLimitSection(retry=RetryConfig(max_retries=2, backoff="fixed", initial_delay=100)),
        )
        recorder = _Recorder(httpx.Response(500, json={"message": "boom"}))
        sleeper = _Sleeper()
        with pytest.raises(APIError) as exc_info:
            _execute(adapter, _operation(customers_doc, "get"), {"id": "1"}, recorder, sleeper)
        assert exc_info.value.status == 500
        assert len(recorder.requests) == 3
        assert sleeper.delays == [0.1, 0.1]

    def test_client_errors_not_retried(self, customers_doc: SpecDocument) -> None:
        recorder = _Recorder(httpx.Response(400, json={}))
        with pytest.raises(APIError):
            _execute(_adapter(customers_doc), _operation(customers_doc, "get"), {"id": "1"}, recorder)
        assert len(recorder.requests) == 1

    def test_connection_failure_becomes_network_error(self, customers_doc: SpecDocument) -> None:
        adapter = _adapter(customers_doc, rate_limit=RateLimitSection(retry=RetryConfig(max_retries=1)))
        recorder = _Recorder(httpx.ConnectError("connection refused"))
        with pytest.raises(NetworkError, match="Connection failed") as exc_info:
            _execute(adapter, _operation(customers_doc, "get"), {"id": "1"}, recorder)
        assert exc_info.value.exit_code == EXIT_NETWORK_ERROR
        assert len(recorder.requests) == 2

    def test_timeout_then_success(self, customers_doc: SpecDocument) -> None:
        recorder = _Recorder(httpx.ReadTimeout("slow"), httpx.Response(200, json={"ok": True}))
        result = _execute(_adapter(customers_doc), _operation(customers_doc, "get"), {"id": "1"}, recorder)
        assert result.data == {"ok": True}

    def test_timeout_exhausted(self, customers_doc: SpecDocument) -> None:
        adapter = _adapter(customers_doc, rate_limit=RateLimitSection(retry=RetryConfig(max_retries=0)))
        recorder = _Recorder(httpx.ReadTimeout("slow"))
        with pytest.raises(NetworkError, match="timed out"):
            _execute(adapter, _operation(customers_doc, "get"), {"id": "1"}, recorder)


class TestReauthentication:
    def test_refreshes_once_after_401(self, customers_doc: SpecDocument) -> None:
        recorder = _Recorder(httpx.Response(401, json={"message": "expired"}), httpx.Response(200, json={"ok": 1}))
        clients: list[httpx.AsyncClient] = []

        async def reauthenticate(client: httpx.AsyncClient) -> OAuth2Profile:
            clients.append(client)
            return OAuth2Profile(access_token="fresh")

        adapter = _adapter(customers_doc, auth=None)
        result = _execute(
            adapter,
            _operation(customers_doc, "get"),
            {"id": "1"},
            recorder,
            credential=OAuth2Profile(access_token="stale", refresh_token="r"),
            reauthenticate=reauthenticate,
        )
        assert result.data == {"ok": 1}
        assert len(clients) == 1
        assert isinstance(clients[0], httpx.AsyncClient)
        assert [r.headers["Authorization"] for r in recorder.requests] == ["Bearer stale", "Bearer fresh"]

    def test_failed_refresh_reports_401(self, customers_doc: SpecDocument) -> None:
        recorder = _Recorder(httpx.Response(401, json={"message": "expired"}))

        async def reauthenticate(client: httpx.AsyncClient) -> None:
            return None

        with pytest.raises(APIError) as exc_info:
            _execute(
                _adapter(customers_doc),
                _operation(customers_doc, "get"),
                {"id": "1"},
                recorder,
                reauthenticate=reauthenticate,
            )
        assert exc_info.value.exit_code == EXIT_AUTH_ERROR
        assert len(recorder.requests) == 1


class TestDiagnostics:
    def test_verbose_masks_authorization(
        self, customers_doc: SpecDocument, verbose_output: Any, capsys: pytest.CaptureFixture[str]
    ) -> None:
        adapter = _adapter(
            customers_doc,
            rate_limit=RateLimitSection(headers=RateLimitHeaders(remaining="X-RateLimit-Remaining")),
        )
        recorder = _Recorder(httpx.Response(200, json={}, headers={"X-RateLimit-Remaining": "99"}))
        _execute(adapter, _operation(customers_doc, "get"), {"id": "1"}, recorder)

        err = capsys.readouterr().err
        assert "[debug] GET https://api.example.test/customers/1" in err
        assert "Authorization: Bearer tok..." in err
        assert "tok_1234567890" not in err
        assert "Rate limit: remaining=99" in err
