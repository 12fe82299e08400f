"""Canonical Pydantic models shared across apictl modules.

The models fall into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`APISettings` and :class:`GlobalConfig`.

**Credential models** -- serialised per API under the data directory by
:class:`~apictl.auth.credential_store.CredentialStore`:
    :class:`ApiKeyProfile`, :class:`BearerProfile`, :class:`BasicProfile`,
    :class:`OAuth2Profile` (the :data:`AuthProfile` tagged union) and
    :class:`AuthConfig`, the per-API record holding every profile.

**Compiler models** -- produced from an OpenAPI document on every invocation
and never persisted:
    :class:`HTTPMethod`, :class:`ServerInfo`, :class:`SecurityScheme`,
    :class:`OperationInfo` and :class:`CommandNode`.

Credential models serialise with camelCase keys (``defaultProfile``,
``accessToken``) and accept either spelling on input.
"""

from __future__ import annotations

import enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# --- Configuration ---


class APISettings(BaseModel):
    """Per-API user settings stored in the global config.

    Attributes:
        base_url: Overrides the adapter's and the document's server URL.
        profile: Credential profile to use instead of the record's default.
        config: Free-form values handed to adapter context functions
            (for example a tenant subdomain).
    """

    base_url: Optional[str] = None
    profile: Optional[str] = None
    config: dict[str, Any] = Field(default_factory=dict)


class GlobalConfig(BaseModel):
    """Top-level settings persisted as ``config.json``.

    Loaded via :func:`~apictl.config.load_global_config` and saved via
    :func:`~apictl.config.save_global_config`.
    """

    output_format: str = Field(default="json", description="Default output: json or table")
    timeout_ms: Optional[int] = Field(
        default=None, description="Overrides every adapter's request timeout when set"
    )
    apis: dict[str, APISettings] = Field(default_factory=dict)


# --- Credentials ---


class _ProfileBase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    config: dict[str, str] = Field(
        default_factory=dict,
        description="Extra values collected by adapter login prompts",
    )


class ApiKeyProfile(_ProfileBase):
    """An API key sent in a header or query parameter."""

    type: Literal["apiKey"] = "apiKey"
    api_key: str
    header: Optional[str] = None
    query: Optional[str] = None


class BearerProfile(_ProfileBase):
    """A static bearer token."""

    type: Literal["bearer"] = "bearer"
    token: str


class BasicProfile(_ProfileBase):
    """HTTP Basic username and password."""

    type: Literal["basic"] = "basic"
    username: str
    password: str = ""


class OAuth2Profile(_ProfileBase):
    """An OAuth2 token set plus what is needed to refresh it.

    ``expires_at`` is a Unix timestamp in seconds; ``None`` means the
    token carries no known expiry and is never refreshed proactively.
    """

    type: Literal["oauth2"] = "oauth2"
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[float] = None
    token_type: str = "Bearer"
    token_url: Optional[str] = None
    refresh_url: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    scopes: list[str] = Field(default_factory=list)


AuthProfile = Annotated[
    Union[ApiKeyProfile, BearerProfile, BasicProfile, OAuth2Profile],
    Field(discriminator="type"),
]
"""One stored credential set, discriminated by its ``type`` tag."""


CREDENTIAL_FORMAT_VERSION = 2


class AuthConfig(BaseModel):
    """Every stored profile for one API.

    Invariant: once persisted, ``profiles`` is never empty and
    ``default_profile`` names one of its keys.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version: int = CREDENTIAL_FORMAT_VERSION
    default_profile: str = "default"
    profiles: dict[str, AuthProfile] = Field(default_factory=dict)


# --- Compiler output ---


class HTTPMethod(str, enum.Enum):
    """HTTP methods recognised by OpenAPI 3.x path-item objects."""

    GET = "get"
    POST = "post"
    PUT = "put"
    PATCH = "patch"
    DELETE = "delete"
    HEAD = "head"
    OPTIONS = "options"
    TRACE = "trace"


class ServerInfo(BaseModel):
    """A ``servers`` entry, with its variable declarations kept verbatim."""

    url: str
    description: Optional[str] = None
    variables: dict[str, dict[str, Any]] = Field(default_factory=dict)


class SecurityScheme(BaseModel):
    """An OpenAPI *Security Scheme Object*.

    ``type`` is one of ``apiKey``, ``http``, ``oauth2`` or
    ``openIdConnect``; only the fields relevant to it are populated.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    type: str
    description: Optional[str] = None
    # apiKey
    param_name: Optional[str] = None
    location: Optional[str] = Field(default=None, alias="in")
    # http
    scheme: Optional[str] = None
    bearer_format: Optional[str] = None
    # oauth2
    flows: dict[str, Any] = Field(default_factory=dict)


class OperationInfo(BaseModel):
    """One HTTP operation bound to a command name.

    ``parameters`` holds the merged path-level and operation-level
    parameter objects with every local ``$ref`` expanded; unresolvable
    references are dropped. ``request_body`` is the resolved request-body
    object, and ``operation`` the raw operation object as written.
    """

    method: HTTPMethod
    path: str
    operation_id: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    parameters: list[dict[str, Any]] = Field(default_factory=list)
    request_body: Optional[dict[str, Any]] = None
    operation: dict[str, Any] = Field(default_factory=dict)


class CommandNode(BaseModel):
    """One namespace level of the generated command tree.

    ``children`` and ``operations`` are independent namespaces: the same
    name may appear in both without collision.
    """

    name: str
    description: Optional[str] = None
    children: dict[str, CommandNode] = Field(default_factory=dict)
    operations: dict[str, OperationInfo] = Field(default_factory=dict)


CommandNode.model_rebuild()
