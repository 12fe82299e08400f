"""Per-API adapters: declarative configuration, resolution and hooks."""

from apictl.adapters.config import (
    AdapterConfig,
    AuthApplier,
    FromContext,
    PageStrategy,
    ResolvedAdapter,
    resolve_adapter,
)
from apictl.adapters.context import AdapterContext, AdapterRequest, AdapterResponse
from apictl.adapters.hooks import HookRunner
from apictl.adapters.registry import AdapterRegistry, resolve_base_url

__all__ = [
    "AdapterConfig",
    "AdapterContext",
    "AdapterRegistry",
    "AdapterRequest",
    "AdapterResponse",
    "AuthApplier",
    "FromContext",
    "HookRunner",
    "PageStrategy",
    "ResolvedAdapter",
    "resolve_adapter",
    "resolve_base_url",
]
