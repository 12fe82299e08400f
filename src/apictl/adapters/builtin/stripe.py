"""Stripe: form-encoded bodies, cursor pagination and a nested error envelope."""

from __future__ import annotations

from typing import Any, Optional

from apictl.adapters.config import (
    AdapterConfig,
    AuthSection,
    ContentSection,
    CursorPagination,
    ErrorInfo,
    ErrorsSection,
    LoginSpec,
    RateLimitHeaders,
    RateLimitSection,
    RequestSection,
    RetryConfig,
)

STRIPE_VERSION = "2024-01-15"


def _last_id(data: Any) -> Optional[str]:
    items = data.get("data") if isinstance(data, dict) else None
    if isinstance(items, list) and items and isinstance(items[-1], dict):
        return items[-1].get("id")
    return None


def _extract_error(body: Any) -> ErrorInfo:
    error = body.get("error") if isinstance(body, dict) else None
    if not isinstance(error, dict):
        return ErrorInfo()
    return ErrorInfo(message=error.get("message"), code=error.get("code"), type=error.get("type"))


ADAPTER = AdapterConfig(
    name="stripe",
    display_name="Stripe",
    base_url="https://api.stripe.com",
    auth=AuthSection(
        type="bearer",
        env_var="STRIPE_API_KEY",
        login=LoginSpec(
            prompt="Enter your Stripe secret key",
            hint="Get it from https://dashboard.stripe.com/apikeys",
            check=lambda key: key.startswith("sk_"),
            error_message="Stripe secret keys start with sk_",
        ),
    ),
    request=RequestSection(headers={"Stripe-Version": STRIPE_VERSION}),
    content=ContentSection(request_type="application/x-www-form-urlencoded"),
    pagination=CursorPagination(param="starting_after", extract=_last_id, has_more="has_more"),
    rate_limit=RateLimitSection(
        headers=RateLimitHeaders(limit="X-RateLimit-Limit", remaining="X-RateLimit-Remaining"),
        retry=RetryConfig(max_retries=3, backoff="exponential"),
    ),
    errors=ErrorsSection(extract=_extract_error),
)
