"""Adapter registry -- discovery, resolution and per-process caching.

:class:`AdapterRegistry` is owned by the top-level composition point
(:class:`~apictl.runner.Runtime`). It knows three sources of adapters, in
priority order:

1. Adapters registered explicitly with :meth:`AdapterRegistry.register`.
2. Bundled adapters from :mod:`apictl.adapters.builtin`.
3. Third-party adapters declared under the ``apictl.adapters`` entry-point
   group::

       [project.entry-points."apictl.adapters"]
       acme = "acme_apictl.adapter:ADAPTER"

   The entry point may name an :class:`~apictl.adapters.config.AdapterConfig`
   instance or a zero-argument callable returning one.

An API with no adapter from any source gets a synthetic adapter whose
``auth`` section is inferred from the document's security schemes.

Resolved adapters are cached by API name until :meth:`AdapterRegistry.clear`.
"""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Any, Optional

from apictl.adapters.config import (
    AdapterConfig,
    AuthSection,
    LoginSpec,
    OAuthSection,
    ResolvedAdapter,
    resolve_adapter,
    resolve_value,
)
from apictl.adapters.context import AdapterContext
from apictl.config import env_prefix, find_spec_file, get_specs_dir
from apictl.exceptions import ConfigError, NotFoundError
from apictl.models import SecurityScheme
from apictl.parser.document import SpecDocument, default_base_url, load_document, normalize_base_url

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "apictl.adapters"
"""The entry-point group scanned for third-party adapters."""

OAUTH_FLOW_ORDER = ("authorizationCode", "clientCredentials", "password", "implicit")
"""OAuth2 flows in the order they are preferred when a scheme declares several."""

_SCHEME_PRIORITY = ("apiKey", "bearer", "basic", "oauth2")


class AdapterRegistry:
    """Finds, resolves and caches adapters by API name.

    Example::

        registry = AdapterRegistry()
        adapter = registry.load("stripe")
        adapter.content.request_type   # "application/x-www-form-urlencoded"
        registry.clear()
    """

    def __init__(self, discover: bool = True) -> None:
        self._discover = discover
        self._explicit: dict[str, AdapterConfig] = {}
        self._discovered: Optional[dict[str, AdapterConfig]] = None
        self._cache: dict[str, ResolvedAdapter] = {}

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def register(self, config: AdapterConfig) -> None:
        """Register *config*, replacing any adapter of the same name and its cached resolution."""
        self._explicit[config.name] = config
        self._cache.pop(config.name, None)

    def get_config(self, api_name: str) -> Optional[AdapterConfig]:
        """Return the declared adapter for *api_name*, or ``None`` when there is none."""
        if api_name in self._explicit:
            return self._explicit[api_name]
        from apictl.adapters.builtin import BUNDLED_ADAPTERS

        if api_name in BUNDLED_ADAPTERS:
            return BUNDLED_ADAPTERS[api_name]
        return self._entry_point_adapters().get(api_name)

    def _entry_point_adapters(self) -> dict[str, AdapterConfig]:
        if self._discovered is not None:
            return self._discovered
        self._discovered = {}
        if not self._discover:
            return self._discovered

        entry_points = importlib.metadata.entry_points()
        if hasattr(entry_points, "select"):
            eps = entry_points.select(group=ENTRY_POINT_GROUP)
        else:
            eps = entry_points.get(ENTRY_POINT_GROUP, [])  # type: ignore[union-attr]

        for ep in eps:
            try:
                loaded: Any = ep.load()
                config = loaded() if callable(loaded) and not isinstance(loaded, AdapterConfig) else loaded
                if not isinstance(config, AdapterConfig):
                    raise TypeError(f"expected AdapterConfig, got {type(config).__name__}")
            except Exception as exc:
                logger.warning("Failed to load adapter '%s': %s", ep.name, exc)
                continue
            self._discovered[config.name] = config
        return self._discovered

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, api_name: str, document: SpecDocument) -> ResolvedAdapter:
        """Resolve the adapter for *api_name* against an already-loaded *document*."""
        cached = self._cache.get(api_name)
        if cached is not None:
            return cached
        config = self.get_config(api_name) or synthetic_adapter(api_name, document)
        resolved = resolve_adapter(config, document)
        self._cache[api_name] = resolved
        return resolved

    def load(self, api_name: str) -> ResolvedAdapter:
        """Load the installed document for *api_name* and resolve its adapter.

        Raises:
            NotFoundError: If no document is installed for *api_name*.
            SpecParseError: If the installed document is invalid.
        """
        cached = self._cache.get(api_name)
        if cached is not None:
            return cached
        path = find_spec_file(api_name)
        if path is None:
            raise NotFoundError(
                f"API '{api_name}' is not installed",
                hint=f"Place its OpenAPI document at {get_specs_dir() / (api_name + '.yaml')}",
            )
        return self.resolve(api_name, load_document(str(path)))

    def clear(self) -> None:
        """Drop every cached resolution and forget discovered entry points."""
        self._cache.clear()
        self._discovered = None


# ---------------------------------------------------------------------- #
# Synthetic adapters
# ---------------------------------------------------------------------- #


def synthetic_adapter(api_name: str, document: SpecDocument) -> AdapterConfig:
    """Build an adapter for an API that ships none, inferring ``auth`` from *document*."""
    return AdapterConfig(
        name=api_name,
        display_name=document.title,
        auth=infer_auth_section(document),
    )


def select_security_scheme(document: SpecDocument) -> Optional[SecurityScheme]:
    """Pick the scheme login and synthetic adapters use: apiKey, then http bearer, then http basic, then oauth2."""
    by_kind: dict[str, SecurityScheme] = {}
    for scheme in document.security_schemes.values():
        kind = _scheme_kind(scheme)
        if kind and kind not in by_kind:
            by_kind[kind] = scheme
    for kind in _SCHEME_PRIORITY:
        if kind in by_kind:
            return by_kind[kind]
    return None


def select_oauth_flow(scheme: SecurityScheme) -> Optional[tuple[str, dict[str, Any]]]:
    """Return ``(flow_name, flow)`` for the most preferred flow *scheme* declares."""
    for name in OAUTH_FLOW_ORDER:
        flow = scheme.flows.get(name)
        if isinstance(flow, dict):
            return name, flow
    return None


def infer_auth_section(document: SpecDocument) -> Optional[AuthSection]:
    """Translate the preferred security scheme of *document* into an :class:`AuthSection`."""
    scheme = select_security_scheme(document)
    if scheme is None:
        return None
    kind = _scheme_kind(scheme)
    title = document.title

    if kind == "apiKey":
        return AuthSection(
            type="apiKey",
            header=scheme.param_name if scheme.location != "query" else None,
            query=scheme.param_name if scheme.location == "query" else None,
            login=LoginSpec(prompt=f"Enter your {title} API key:", hint=scheme.description),
        )
    if kind == "bearer":
        return AuthSection(
            type="bearer",
            login=LoginSpec(prompt=f"Enter your {title} API token:", hint=scheme.description),
        )
    if kind == "basic":
        return AuthSection(type="basic")

    selected = select_oauth_flow(scheme)
    flow_name, flow = selected if selected else (None, {})
    return AuthSection(
        type="oauth2",
        oauth=OAuthSection(
            flow=flow_name,
            authorization_url=flow.get("authorizationUrl"),
            token_url=flow.get("tokenUrl"),
            refresh_url=flow.get("refreshUrl"),
            scopes=list((flow.get("scopes") or {}).keys()),
        ),
    )


def _scheme_kind(scheme: SecurityScheme) -> Optional[str]:
    if scheme.type == "apiKey" and scheme.param_name:
        return "apiKey"
    if scheme.type == "http" and scheme.scheme in ("bearer", "basic"):
        return scheme.scheme
    if scheme.type == "oauth2":
        return "oauth2"
    return None


# ---------------------------------------------------------------------- #
# Base URL
# ---------------------------------------------------------------------- #


def resolve_base_url(
    adapter: ResolvedAdapter,
    ctx: AdapterContext,
    override: Optional[str] = None,
) -> str:
    """Decide the base URL for one invocation.

    Precedence: *override* (CLI flag, environment or per-API config), the
    adapter's ``base_url`` (literal or computed from *ctx*), then the
    document's first server. Relative or unparsable candidates are skipped.

    Raises:
        ConfigError: If no candidate yields an absolute http(s) URL.
    """
    for candidate in (override, resolve_value(adapter.base_url, ctx)):
        url = normalize_base_url(candidate) if isinstance(candidate, str) else None
        if url:
            return url
    url = default_base_url(adapter.document)
    if url:
        return url
    raise ConfigError(
        f"No base URL for '{adapter.name}'",
        hint=f"Set apis.{adapter.name}.base_url in config.json or export APICTL_{env_prefix(adapter.name)}_BASE_URL",
    )