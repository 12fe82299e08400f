"""Tests for the adapter hook runner."""

from __future__ import annotations

import asyncio
import logging

import pytest

from apictl.adapters.config import HooksSection
from apictl.adapters.context import AdapterContext, AdapterRequest, AdapterResponse
from apictl.adapters.hooks import HookRunner, call_maybe_async


class TestCallMaybeAsync:
    def test_sync_and_async(self) -> None:
        async def double(x: int) -> int:
            return x * 2

        assert asyncio.run(call_maybe_async(lambda x: x + 1, 1)) == 2
        assert asyncio.run(call_maybe_async(double, 4)) == 8


class TestHookRunner:
    def test_no_hooks_pass_through(self) -> None:
        runner = HookRunner()
        request = AdapterRequest(method="GET", url="https://x.test")
        assert asyncio.run(runner.before_request(request, AdapterContext())) is request

    def test_before_request_replacement(self) -> None:
        replacement = AdapterRequest(method="POST", url="https://y.test")
        runner = HookRunner(HooksSection(before_request=lambda req, ctx: replacement))
        result = asyncio.run(runner.before_request(AdapterRequest(method="GET", url="https://x.test"), AdapterContext()))
        assert result is replacement

    def test_before_request_mutation_in_place(self) -> None:
        def add_header(req: AdapterRequest, ctx: AdapterContext) -> None:
            req.set_header("X-Trace", ctx.api)

        runner = HookRunner(HooksSection(before_request=add_header))
        request = AdapterRequest(method="GET", url="https://x.test")
        result = asyncio.run(runner.before_request(request, AdapterContext(api="acme")))
        assert result is request
        assert request.header("x-trace") == "acme"

    def test_async_after_response(self) -> None:
        async def bump(resp: AdapterResponse, ctx: AdapterContext) -> AdapterResponse:
            return AdapterResponse(status=resp.status, data={"wrapped": resp.data})

        runner = HookRunner(HooksSection(after_response=bump))
        result = asyncio.run(runner.after_response(AdapterResponse(status=200, data=1), AdapterContext()))
        assert result.data == {"wrapped": 1}

    def test_on_error_failure_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        def explode(error: Exception, ctx: AdapterContext) -> None:
            raise RuntimeError("hook broke")

        runner = HookRunner(HooksSection(on_error=explode))
        with caplog.at_level(logging.WARNING, logger="apictl.adapters.hooks"):
            asyncio.run(runner.on_error(ValueError("original"), AdapterContext()))
        assert "hook broke" in caplog.text

    def test_after_login(self) -> None:
        seen = []
        runner = HookRunner(HooksSection(after_login=lambda profile, ctx: seen.append((profile, ctx.profile))))
        asyncio.run(runner.after_login("creds", AdapterContext(profile="work")))
        assert seen == [("creds", "work")]
