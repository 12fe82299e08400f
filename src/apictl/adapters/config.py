"""Declarative per-API adapter configuration and its resolution against defaults.

An :class:`AdapterConfig` is authored once per API. Every section is
optional; :func:`resolve_adapter` deep-merges it with
:data:`ADAPTER_DEFAULTS` and binds the loaded document, producing a
:class:`ResolvedAdapter` in which every section except ``auth`` and
``pagination`` is populated. Those two stay optional because their absence
is meaningful: no ``auth`` section selects the generic credential rule, and
no ``pagination`` section means the API does not paginate.

Dynamic values come in two closed forms:

* a literal (string, mapping, dot path) -- the "static" variant;
* :class:`FromContext` wrapping a function of
  :class:`~apictl.adapters.context.AdapterContext` -- the "computed" variant.

Transforms and hooks are plain callables. Custom auth and custom pagination
take a strategy object implementing :class:`AuthApplier` or
:class:`PageStrategy`.

Example::

    AdapterConfig(
        name="stripe",
        base_url="https://api.stripe.com",
        auth=AuthSection(type="bearer", env_var="STRIPE_API_KEY"),
        content=ContentSection(request_type="application/x-www-form-urlencoded"),
        pagination=CursorPagination(
            param="starting_after", extract="data.-1.id", has_more="has_more"
        ),
    )
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Annotated, Any, Callable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from apictl.adapters.context import AdapterContext, AdapterRequest, AdapterResponse
from apictl.parser.document import SpecDocument


class _Section(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")


class FromContext(_Section):
    """A value computed from the :class:`~apictl.adapters.context.AdapterContext` at call time."""

    fn: Callable[[AdapterContext], Any]

    def resolve(self, ctx: AdapterContext) -> Any:
        return self.fn(ctx)


def resolve_value(value: Any, ctx: AdapterContext) -> Any:
    """Return *value* itself, or the computed value when it is a :class:`FromContext`."""
    if isinstance(value, FromContext):
        return value.resolve(ctx)
    return value


# --- Strategy interfaces ---


class AuthApplier(ABC):
    """Strategy for ``auth.type == "custom"``: mutates the request in place."""

    @abstractmethod
    def apply(self, request: AdapterRequest, credential: Any, ctx: AdapterContext) -> None:
        """Attach *credential* (an Auth Profile model) to *request*."""


class PageStrategy(ABC):
    """Strategy for ``pagination.style == "custom"``."""

    @abstractmethod
    def next_page(self, response: AdapterResponse, ctx: AdapterContext) -> Optional[dict[str, Any]]:
        """Return parameter overrides for the next page, or ``None`` to stop."""


# --- auth ---


class LoginPrompt(_Section):
    """One value asked for during interactive login.

    A prompt without ``name`` collects the primary credential; named
    prompts are stored in the profile's ``config`` map.
    """

    name: Optional[str] = None
    prompt: str
    hint: Optional[str] = None
    secret: bool = True
    default: Optional[str] = None
    check: Optional[Callable[[str], bool]] = None
    error_message: Optional[str] = None


class LoginSpec(_Section):
    """How to ask for credentials interactively."""

    prompt: Optional[str] = None
    hint: Optional[str] = None
    check: Optional[Callable[[str], bool]] = None
    error_message: Optional[str] = None
    prompts: list[LoginPrompt] = Field(default_factory=list)


class OAuthSection(_Section):
    """OAuth2 endpoints and client identity."""

    authorization_url: Optional[str] = None
    token_url: Optional[str] = None
    refresh_url: Optional[str] = None
    scopes: list[str] = Field(default_factory=list)
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    flow: Optional[str] = None


class AuthSection(_Section):
    """How credentials are sourced and attached."""

    type: Literal["bearer", "basic", "apiKey", "oauth2", "custom"]
    env_var: Optional[str] = None
    env_var_user: Optional[str] = None
    env_var_pass: Optional[str] = None
    header: Optional[str] = None
    query: Optional[str] = None
    login: Optional[LoginSpec] = None
    oauth: Optional[OAuthSection] = None
    applier: Optional[AuthApplier] = None

    @model_validator(mode="after")
    def _custom_needs_applier(self) -> AuthSection:
        if self.type == "custom" and self.applier is None:
            raise ValueError("auth type 'custom' requires an 'applier'")
        return self


# --- request / response / content ---


class RequestSection(_Section):
    """Extra headers and transforms, applied before auth is attached."""

    headers: Union[dict[str, str], FromContext] = Field(default_factory=dict)
    transform_body: Optional[Callable[[Any, AdapterContext], Any]] = None
    transform: Optional[Callable[[AdapterRequest, AdapterContext], AdapterRequest]] = None


class ResponseSection(_Section):
    """Post-processing of successful responses and per-status interception.

    ``unwrap`` is a dot path or a function of the body; it runs before
    ``transform``. A ``handlers`` entry for a status code runs instead of
    the generic error handling; it may raise its own error or return a
    replacement :class:`~apictl.adapters.context.AdapterResponse`.
    """

    unwrap: Union[str, Callable[[Any], Any], None] = None
    transform: Optional[Callable[[Any, AdapterContext], Any]] = None
    handlers: dict[int, Callable[[AdapterResponse, AdapterContext], Any]] = Field(default_factory=dict)


class ContentOverride(_Section):
    request_type: Optional[str] = None
    response_type: Optional[str] = None


class ContentSection(_Section):
    """Request encoding and response decoding, globally and per ``operationId``."""

    request_type: Optional[str] = None
    response_type: Literal["json", "text", "binary", "auto"] = "auto"
    operations: dict[str, ContentOverride] = Field(default_factory=dict)

    def request_type_for(self, operation_id: Optional[str], declared: Optional[str] = None) -> str:
        """Per-operation override, then the adapter-wide type, then *declared*, then JSON."""
        override = self.operations.get(operation_id or "")
        if override and override.request_type:
            return override.request_type
        return self.request_type or declared or "application/json"

    def response_type_for(self, operation_id: Optional[str]) -> str:
        override = self.operations.get(operation_id or "")
        if override and override.response_type:
            return override.response_type
        return self.response_type


# --- pagination ---

Extract = Union[str, Callable[..., Any]]
"""A dot path into the response body, or a function computing the value."""


class CursorPagination(_Section):
    """Opaque cursor taken from the response body."""

    style: Literal["cursor"] = "cursor"
    param: str
    extract: Extract
    has_more: Extract


class OffsetPagination(_Section):
    """Numeric offset; the next offset is ``offset + limit`` unless ``extract`` says otherwise."""

    style: Literal["offset"] = "offset"
    param: str = "offset"
    limit_param: str = "limit"
    default_limit: int = 20
    has_more: Extract
    extract: Optional[Extract] = None


class PagePagination(_Section):
    """1-based page number; the next page is ``page + 1`` unless ``extract`` says otherwise."""

    style: Literal["page"] = "page"
    param: str = "page"
    has_more: Extract
    extract: Optional[Extract] = None


class LinkPagination(_Section):
    """RFC 8288 ``Link`` header; the target's query parameters become the overrides."""

    style: Literal["link"] = "link"
    rel: str = "next"


class CustomPagination(_Section):
    style: Literal["custom"] = "custom"
    strategy: PageStrategy


PaginationConfig = Annotated[
    Union[CursorPagination, OffsetPagination, PagePagination, LinkPagination, CustomPagination],
    Field(discriminator="style"),
]


# --- rate limit / timeout / errors / hooks ---


class RetryConfig(_Section):
    """Retry policy for network failures, 429 and 5xx responses. Delays are in milliseconds."""

    max_retries: int = 3
    backoff: Literal["exponential", "linear", "fixed"] = "exponential"
    initial_delay: int = 1000
    max_delay: int = 30000
    retry_after_header: Optional[str] = None


class RateLimitHeaders(_Section):
    """Response header names reporting quota, shown in verbose output."""

    limit: Optional[str] = None
    remaining: Optional[str] = None
    reset: Optional[str] = None


class RateLimitSection(_Section):
    headers: RateLimitHeaders = Field(default_factory=RateLimitHeaders)
    retry: RetryConfig = Field(default_factory=RetryConfig)


class OperationTimeout(_Section):
    connect: Optional[int] = None
    request: Optional[int] = None


class TimeoutSection(_Section):
    """Timeouts in milliseconds, with per-``operationId`` overrides."""

    connect: int = 10000
    request: int = 30000
    operations: dict[str, OperationTimeout] = Field(default_factory=dict)

    def for_operation(self, operation_id: Optional[str]) -> tuple[int, int]:
        """Return ``(connect_ms, request_ms)`` for *operation_id*."""
        override = self.operations.get(operation_id or "")
        connect = (override.connect if override else None) or self.connect
        request = (override.request if override else None) or self.request
        return connect, request


class ErrorInfo(_Section):
    message: Optional[str] = None
    code: Optional[str] = None
    type: Optional[str] = None


class ErrorsSection(_Section):
    """How error bodies are read and mapped to exit codes."""

    extract: Optional[Callable[[Any], Any]] = None
    message_path: Optional[str] = "message"
    code_path: Optional[str] = "code"
    exit_codes: dict[str, int] = Field(default_factory=dict)


class HooksSection(_Section):
    """Pipeline hooks. Each may be a plain function or a coroutine function."""

    before_request: Optional[Callable[[AdapterRequest, AdapterContext], Any]] = None
    after_response: Optional[Callable[[AdapterResponse, AdapterContext], Any]] = None
    on_error: Optional[Callable[[Exception, AdapterContext], Any]] = None
    after_login: Optional[Callable[[Any, AdapterContext], Any]] = None


class ProfilesSection(_Section):
    enabled: bool = True
    default: str = "default"


# --- adapter ---


class AdapterConfig(_Section):
    """Author-declared customisation for one API."""

    name: str
    display_name: Optional[str] = None
    base_url: Union[str, FromContext, None] = None
    auth: Optional[AuthSection] = None
    request: Optional[RequestSection] = None
    response: Optional[ResponseSection] = None
    content: Optional[ContentSection] = None
    pagination: Optional[PaginationConfig] = None
    rate_limit: Optional[RateLimitSection] = None
    timeout: Optional[TimeoutSection] = None
    errors: Optional[ErrorsSection] = None
    hooks: Optional[HooksSection] = None
    profiles: Optional[ProfilesSection] = None


class ResolvedAdapter(_Section):
    """An :class:`AdapterConfig` merged with defaults and bound to its document."""

    name: str
    display_name: Optional[str] = None
    base_url: Union[str, FromContext, None] = None
    auth: Optional[AuthSection] = None
    request: RequestSection
    response: ResponseSection
    content: ContentSection
    pagination: Optional[PaginationConfig] = None
    rate_limit: RateLimitSection
    timeout: TimeoutSection
    errors: ErrorsSection
    hooks: HooksSection
    profiles: ProfilesSection
    document: SpecDocument


ADAPTER_DEFAULTS: dict[str, Callable[[], BaseModel]] = {
    "request": RequestSection,
    "response": ResponseSection,
    "content": ContentSection,
    "rate_limit": RateLimitSection,
    "timeout": TimeoutSection,
    "errors": ErrorsSection,
    "hooks": HooksSection,
    "profiles": ProfilesSection,
}
"""Factories for the sections every :class:`ResolvedAdapter` carries."""


def merge_section(default: BaseModel, override: Optional[BaseModel]) -> BaseModel:
    """Deep-merge *override* onto *default*.

    Only fields explicitly set on *override* take part. Nested sections
    merge recursively, mappings merge key-wise, and for any key both define
    the override wins.
    """
    if override is None:
        return default
    updates: dict[str, Any] = {}
    for name in override.model_fields_set:
        value = getattr(override, name)
        base = getattr(default, name, None)
        if isinstance(base, BaseModel) and isinstance(value, BaseModel) and type(base) is type(value):
            value = merge_section(base, value)
        elif isinstance(base, dict) and isinstance(value, dict):
            value = {**base, **value}
        updates[name] = value
    return default.model_copy(update=updates)


def resolve_adapter(config: AdapterConfig, document: SpecDocument) -> ResolvedAdapter:
    """Merge *config* with :data:`ADAPTER_DEFAULTS` and bind *document*."""
    sections = {
        name: merge_section(factory(), getattr(config, name))
        for name, factory in ADAPTER_DEFAULTS.items()
    }
    return ResolvedAdapter(
        name=config.name,
        display_name=config.display_name or document.title,
        base_url=config.base_url,
        auth=config.auth,
        pagination=config.pagination,
        document=document,
        **sections,
    )
