"""Mutable objects threaded through the request pipeline.

* :class:`AdapterContext` -- what adapter functions may read: selected
  profile, per-API config values, parsed flags and pagination position.
* :class:`AdapterRequest` -- the request descriptor, progressively built
  and rewritten by hooks, content handling, request transforms and auth.
* :class:`AdapterResponse` -- the decoded response descriptor.

The same :class:`AdapterContext` instance is passed to every hook and
transform of one invocation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class AdapterContext:
    """Inputs adapter functions may depend on.

    Attributes:
        api: API name the command targets.
        profile: Selected credential profile name, if any.
        config: Per-API config values (``apis.<name>.config`` plus values
            collected by login prompts).
        flags: Parsed command-line flags, reserved flags excluded.
        operation_id: ``operationId`` of the executing operation.
        offset: Current offset for offset pagination.
        limit: Page size for offset pagination.
        page: Current page number for page pagination.
    """

    api: str = ""
    profile: Optional[str] = None
    config: dict[str, Any] = field(default_factory=dict)
    flags: dict[str, str] = field(default_factory=dict)
    operation_id: Optional[str] = None
    offset: Optional[int] = None
    limit: Optional[int] = None
    page: Optional[int] = None


@dataclass
class AdapterRequest:
    """One outgoing HTTP request.

    ``url`` excludes the query string; ``query`` is encoded at send time.
    ``headers`` keep the case they were set with.
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    query: dict[str, Any] = field(default_factory=dict)
    body: Any = None

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def set_header(self, name: str, value: str) -> None:
        """Set a header, replacing any existing spelling of the same name."""
        lowered = name.lower()
        for key in [k for k in self.headers if k.lower() == lowered]:
            del self.headers[key]
        self.headers[name] = value


@dataclass
class AdapterResponse:
    """One decoded HTTP response."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    data: Any = None
    links: dict[str, dict[str, str]] = field(default_factory=dict)
