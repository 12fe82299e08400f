"""GitHub REST: versioned media type and ``Link`` header pagination."""

from __future__ import annotations

from apictl.adapters.config import (
    AdapterConfig,
    AuthSection,
    ErrorsSection,
    LinkPagination,
    LoginSpec,
    RateLimitHeaders,
    RateLimitSection,
    RequestSection,
)

ADAPTER = AdapterConfig(
    name="github",
    display_name="GitHub",
    base_url="https://api.github.com",
    auth=AuthSection(
        type="bearer",
        env_var="GITHUB_TOKEN",
        login=LoginSpec(
            prompt="Enter your GitHub personal access token",
            hint="Create one at https://github.com/settings/tokens",
        ),
    ),
    request=RequestSection(
        headers={
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
    ),
    pagination=LinkPagination(rel="next"),
    rate_limit=RateLimitSection(
        headers=RateLimitHeaders(
            limit="X-RateLimit-Limit",
            remaining="X-RateLimit-Remaining",
            reset="X-RateLimit-Reset",
        )
    ),
    errors=ErrorsSection(message_path="message"),
)
