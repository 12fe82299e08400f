"""The read-only, parsed OpenAPI document.

:func:`build_document` walks a validated raw dictionary and extracts the
pieces the rest of apictl reads repeatedly: API title, servers with their
variables, and security schemes. The raw dictionary is kept for the
compiler, which resolves references lazily per operation.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from apictl.models import SecurityScheme, ServerInfo
from apictl.parser.loader import load_spec, validate_spec
from apictl.parser.resolver import resolve_ref, resolve_refs

_BODY_CONTENT_TYPES = (
    "application/json",
    "application/x-www-form-urlencoded",
    "multipart/form-data",
)


class SpecDocument(BaseModel):
    """One parsed API description, immutable after construction.

    Attributes:
        title: ``info.title``.
        version: ``info.version`` (the API's version, not the OpenAPI version).
        openapi_version: The validated ``openapi`` field.
        servers: ``servers`` entries in declaration order.
        security_schemes: ``components.securitySchemes`` keyed by scheme name.
        raw: The document as loaded, with references unresolved.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    version: str = "0.0.0"
    description: Optional[str] = None
    openapi_version: str
    servers: list[ServerInfo] = Field(default_factory=list)
    security_schemes: dict[str, SecurityScheme] = Field(default_factory=dict)
    raw: dict[str, Any]

    @property
    def paths(self) -> dict[str, Any]:
        return self.raw.get("paths") or {}

    def resolve(self, ref: str) -> Any:
        """Resolve one local reference pointer, returning ``None`` when unresolvable."""
        return resolve_ref(self.raw, ref)

    def deref(self, obj: Any) -> Any:
        """Deep-resolve every reference inside *obj*."""
        return resolve_refs(obj, self.raw)


def build_document(raw: dict[str, Any]) -> SpecDocument:
    """Validate *raw* and extract a :class:`SpecDocument`.

    Raises:
        SpecParseError: If *raw* fails :func:`~apictl.parser.loader.validate_spec`.
    """
    openapi_version = validate_spec(raw)
    info = raw.get("info", {})
    return SpecDocument(
        title=str(info.get("title")),
        version=str(info.get("version", "0.0.0")),
        description=info.get("description"),
        openapi_version=openapi_version,
        servers=_extract_servers(raw),
        security_schemes=_extract_security_schemes(raw),
        raw=raw,
    )


def load_document(source: str) -> SpecDocument:
    """Load, validate and wrap the document found at *source*."""
    return build_document(load_spec(source))


def request_body_schema(body: Optional[dict[str, Any]]) -> tuple[Optional[str], Optional[dict[str, Any]]]:
    """Pick the content type and schema used to synthesise a body from flags.

    JSON is preferred, then form encodings, then whatever is declared first.

    Returns:
        ``(content_type, schema)``; both ``None`` when nothing usable is declared.
    """
    if not isinstance(body, dict):
        return None, None
    content = body.get("content") or {}
    if not isinstance(content, dict) or not content:
        return None, None
    for content_type in (*_BODY_CONTENT_TYPES, *content.keys()):
        media = content.get(content_type)
        if isinstance(media, dict) and isinstance(media.get("schema"), dict):
            return content_type, media["schema"]
    return None, None


def _extract_servers(raw: dict[str, Any]) -> list[ServerInfo]:
    servers: list[ServerInfo] = []
    for server in raw.get("servers") or []:
        if not isinstance(server, dict) or not isinstance(server.get("url"), str):
            continue
        variables = server.get("variables") or {}
        servers.append(
            ServerInfo(
                url=server["url"],
                description=server.get("description"),
                variables={k: v for k, v in variables.items() if isinstance(v, dict)},
            )
        )
    return servers


def _extract_security_schemes(raw: dict[str, Any]) -> dict[str, SecurityScheme]:
    components = raw.get("components") or {}
    schemes_raw = components.get("securitySchemes") or {}
    schemes: dict[str, SecurityScheme] = {}
    for name, scheme in schemes_raw.items():
        if isinstance(scheme, dict) and "$ref" in scheme:
            scheme = resolve_ref(raw, scheme["$ref"])
        if not isinstance(scheme, dict) or "type" not in scheme:
            continue
        schemes[name] = SecurityScheme(
            name=name,
            type=scheme["type"],
            description=scheme.get("description"),
            param_name=scheme.get("name"),
            location=scheme.get("in"),
            scheme=(scheme.get("scheme") or "").lower() or None,
            bearer_format=scheme.get("bearerFormat"),
            flows=scheme.get("flows") or {},
        )
    return schemes


def default_base_url(document: SpecDocument) -> Optional[str]:
    """Derive a base URL from the document's first server entry.

    ``{variable}`` placeholders are replaced by each variable's ``default``,
    or its first ``enum`` value. A relative or unparsable result yields
    ``None`` rather than being used verbatim. A trailing slash is removed.
    """
    if not document.servers:
        return None
    server = document.servers[0]
    url = server.url
    for name, variable in server.variables.items():
        value = variable.get("default")
        if value is None and variable.get("enum"):
            value = variable["enum"][0]
        if value is not None:
            url = url.replace("{" + name + "}", str(value))
    return normalize_base_url(url)


def normalize_base_url(url: Optional[str]) -> Optional[str]:
    """Return *url* without a trailing slash, or ``None`` if it is not an absolute http(s) URL."""
    if not url or "{" in url:
        return None
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError, ValueError):
        return None
    if parsed.scheme not in ("http", "https") or not parsed.host:
        return None
    return url.rstrip("/")
