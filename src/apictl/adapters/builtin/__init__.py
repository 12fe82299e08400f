"""Adapters shipped with apictl, keyed by API name."""

from __future__ import annotations

from apictl.adapters.builtin import github, stripe
from apictl.adapters.config import AdapterConfig

BUNDLED_ADAPTERS: dict[str, AdapterConfig] = {
    stripe.ADAPTER.name: stripe.ADAPTER,
    github.ADAPTER.name: github.ADAPTER,
}

__all__ = ["BUNDLED_ADAPTERS"]
