"""One command invocation, from parsed tokens to a result.

:class:`Runtime` owns the long-lived collaborators of a process (adapter
registry, auth manager, optional HTTP transport) and runs a single
generated command:

1. load the installed document and resolve its adapter;
2. compile the command tree and walk the positional tokens to a leaf;
3. resolve per-API settings (CLI > environment > ``config.json``);
4. pick the credential (environment first, then the credential store);
5. decide the base URL and execute, looping over pages for ``--paginate``.

Rendering is left to the caller (:mod:`apictl.app`).
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Optional, Union

import httpx

from apictl import output
from apictl.adapters.config import OffsetPagination, PagePagination, ResolvedAdapter
from apictl.adapters.context import AdapterContext
from apictl.adapters.registry import AdapterRegistry, resolve_base_url
from apictl.auth.credential_store import CredentialStore
from apictl.auth.lifecycle import ActiveCredential, TokenRefresher, resolve_credential
from apictl.auth.manager import AuthManager, create_default_manager
from apictl.config import load_global_config, resolve_api_settings
from apictl.exceptions import InvalidUsageError
from apictl.executor.arguments import ParsedArgs
from apictl.executor.pagination import MAX_PAGES, has_pagination, next_page_params
from apictl.executor.pipeline import DryRunResult, ExecutionResult, Reauthenticator, RequestExecutor
from apictl.executor.stdin import read_piped_stdin
from apictl.generator.command_tree import build_command_tree, find_operation
from apictl.models import AuthProfile, CommandNode, GlobalConfig, OperationInfo

InvocationResult = Union[ExecutionResult, DryRunResult]


class Runtime:
    """Process-wide state for running generated commands.

    Args:
        registry: Adapter registry; a discovering one is created by default.
        auth_manager: Credential plugins; the built-in set by default.
        transport: Optional httpx transport shared by every request.
        config: Global config; loaded from ``config.json`` when omitted.
        stdin_reader: Returns piped input or ``None``.
        sleep: Awaitable sleep used between retries.
        clock: Current Unix time.
        environ: Environment used for credential variables (``os.environ``
            when omitted).
    """

    def __init__(
        self,
        registry: Optional[AdapterRegistry] = None,
        auth_manager: Optional[AuthManager] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        config: Optional[GlobalConfig] = None,
        stdin_reader: Callable[[], Optional[str]] = read_piped_stdin,
        sleep: Callable[[float], Any] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        environ: Optional[dict[str, str]] = None,
    ) -> None:
        self.registry = registry or AdapterRegistry()
        self.auth_manager = auth_manager or create_default_manager()
        self._transport = transport
        self._config = config
        self._stdin_reader = stdin_reader
        self._sleep = sleep
        self._clock = clock
        self._environ = environ
        self._trees: dict[str, CommandNode] = {}

    @property
    def config(self) -> GlobalConfig:
        if self._config is None:
            self._config = load_global_config()
        return self._config

    def command_tree(self, api_name: str) -> tuple[ResolvedAdapter, CommandNode]:
        """Return the resolved adapter and compiled command tree for *api_name*."""
        adapter = self.registry.load(api_name)
        tree = self._trees.get(api_name)
        if tree is None:
            tree = build_command_tree(adapter.document)
            self._trees[api_name] = tree
        return adapter, tree

    def invoke(self, api_name: str, args: ParsedArgs) -> InvocationResult:
        """Run one generated command synchronously."""
        return asyncio.run(self.ainvoke(api_name, args))

    async def ainvoke(self, api_name: str, args: ParsedArgs) -> InvocationResult:
        """Run one generated command.

        Raises:
            InvalidUsageError: Unknown command, extra positional tokens or
                missing required parameters.
            ApictlError: Any other classified failure.
        """
        adapter, tree = self.command_tree(api_name)
        operation, rest = find_operation(tree, args.positionals)
        if rest:
            raise InvalidUsageError(f"Unexpected argument(s): {' '.join(rest)}")

        options = args.options
        settings = resolve_api_settings(
            api_name, self.config, cli_profile=options.profile, cli_base_url=options.base_url
        )
        store = CredentialStore(api_name)
        refresher = TokenRefresher(store, self.auth_manager, self._clock)
        active = resolve_credential(
            api_name,
            adapter.auth,
            self.auth_manager,
            store,
            refresher,
            profile_name=settings.profile,
            environ=self._environ,
        )

        ctx = AdapterContext(
            api=api_name,
            profile=active.profile_name if active else settings.profile,
            config={**settings.config, **(active.profile.config if active else {})},
            flags=dict(args.flags),
        )
        base_url = resolve_base_url(adapter, ctx, settings.base_url)

        stdin = None
        if options.data is None and operation.request_body is not None:
            stdin = self._stdin_reader()

        executor = RequestExecutor(
            adapter,
            self.auth_manager,
            transport=self._transport,
            sleep=self._sleep,
            clock=self._clock,
            request_timeout_ms=self.config.timeout_ms,
        )

        async def run_page(page_params: Optional[dict[str, Any]]) -> InvocationResult:
            return await executor.execute(
                operation,
                base_url,
                args.flags,
                ctx,
                credential=active.profile if active else None,
                data=options.data,
                stdin=stdin,
                page_params=page_params,
                dry_run=options.dry_run,
                reauthenticate=_reauthenticator(active, refresher),
            )

        result = await run_page(None)
        if not options.paginate or isinstance(result, DryRunResult):
            return result
        if not has_pagination(adapter):
            output.warning(f"{api_name} declares no pagination; returning the first page only")
            return result
        return await self._paginate(adapter, operation, ctx, result, run_page)

    async def _paginate(
        self,
        adapter: ResolvedAdapter,
        operation: OperationInfo,
        ctx: AdapterContext,
        first: ExecutionResult,
        run_page: Callable[[Optional[dict[str, Any]]], Any],
    ) -> ExecutionResult:
        pages = [first.data]
        result = first
        while True:
            params = next_page_params(adapter, result.response, ctx, result.request.query)
            if not params:
                break
            if len(pages) >= MAX_PAGES:
                output.warning(f"Stopped after {MAX_PAGES} pages of {operation.operation_id}; more results exist")
                break
            _track_position(adapter, ctx, params)
            output.debug(f"Fetching page {len(pages) + 1}: {params}")
            result = await run_page(params)
            pages.append(result.data)

        if all(isinstance(page, list) for page in pages):
            data: Any = [item for page in pages for item in page]
        else:
            data = pages
        return ExecutionResult(status=result.status, data=data, response=result.response, request=result.request)


def _reauthenticator(
    active: Optional[ActiveCredential], refresher: TokenRefresher
) -> Optional[Reauthenticator]:
    if active is None or not active.refreshable or active.profile_name is None:
        return None
    name, profile = active.profile_name, active.profile

    async def reauthenticate(client: httpx.AsyncClient) -> Optional[AuthProfile]:
        return await refresher.arefresh(name, profile, client)

    return reauthenticate


def _track_position(adapter: ResolvedAdapter, ctx: AdapterContext, params: dict[str, Any]) -> None:
    config = adapter.pagination
    if isinstance(config, OffsetPagination):
        ctx.offset = _int_or_none(params.get(config.param))
        ctx.limit = _int_or_none(params.get(config.limit_param))
    elif isinstance(config, PagePagination):
        ctx.page = _int_or_none(params.get(config.param))


def _int_or_none(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
