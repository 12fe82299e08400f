"""Raw command-line token parsing and schema-driven value coercion.

Generated commands are not declared to typer up front; the tokens after
the API name are parsed here instead:

* ``--name=value`` and ``--name value`` set a flag;
* a bare ``--name`` (followed by another ``--flag`` or nothing) is ``"true"``;
* ``-k value`` / ``-k`` work the same for single-letter flags;
* anything else is positional (namespace and operation names).

The reserved flags listed in :data:`RESERVED_FLAGS` configure the
invocation itself and are removed from the flag mapping handed to the
request builder.

**Coercion rules** (:func:`coerce_value`):

``"true"``/``"false"`` become ``True``/``False`` whatever the schema says.
``"null"`` becomes ``None`` only for a nullable schema (``nullable: true``
or a ``type`` list containing ``"null"``). Otherwise ``integer`` and ``number`` are parsed
(falling back to the string if unparsable), ``array`` is parsed as JSON
or split on commas, ``object`` is parsed as JSON, and everything else
stays a string.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Optional

RESERVED_FLAGS = frozenset(
    {"dry-run", "verbose", "profile", "data", "output", "field", "paginate", "base-url"}
)
"""Flags consumed by apictl rather than passed to the API."""


@dataclass
class InvocationOptions:
    """Values of the reserved flags."""

    dry_run: bool = False
    verbose: bool = False
    profile: Optional[str] = None
    data: Optional[str] = None
    output: Optional[str] = None
    field: Optional[str] = None
    paginate: bool = False
    base_url: Optional[str] = None


@dataclass
class ParsedArgs:
    """Result of :func:`parse_args`."""

    positionals: list[str] = field(default_factory=list)
    flags: dict[str, str] = field(default_factory=dict)
    options: InvocationOptions = field(default_factory=InvocationOptions)


def parse_args(tokens: list[str]) -> ParsedArgs:
    """Split *tokens* into positionals, API flags and reserved options.

    Example::

        >>> parsed = parse_args(["customers", "get", "--id=42", "--dry-run"])
        >>> parsed.positionals, parsed.flags, parsed.options.dry_run
        (['customers', 'get'], {'id': '42'}, True)
    """
    positionals: list[str] = []
    raw: dict[str, str] = {}
    index = 0
    while index < len(tokens):
        token = tokens[index]
        nxt = tokens[index + 1] if index + 1 < len(tokens) else None

        if token.startswith("--") and len(token) > 2:
            name, sep, value = token[2:].partition("=")
            if sep:
                raw[name] = value
            elif nxt is not None and not nxt.startswith("--"):
                raw[name] = nxt
                index += 1
            else:
                raw[name] = "true"
        elif token.startswith("-") and len(token) == 2 and token != "--":
            name = token[1]
            if nxt is not None and not nxt.startswith("-"):
                raw[name] = nxt
                index += 1
            else:
                raw[name] = "true"
        else:
            positionals.append(token)
        index += 1

    options = InvocationOptions(
        dry_run=_truthy(raw.pop("dry-run", None)),
        verbose=_truthy(raw.pop("verbose", None)),
        profile=raw.pop("profile", None),
        data=raw.pop("data", None),
        output=raw.pop("output", None),
        field=raw.pop("field", None),
        paginate=_truthy(raw.pop("paginate", None)),
        base_url=raw.pop("base-url", None),
    )
    return ParsedArgs(positionals=positionals, flags=raw, options=options)


def _truthy(value: Optional[str]) -> bool:
    return value is not None and value.lower() not in ("false", "0", "no")


def flag_value(flags: dict[str, str], name: str) -> Optional[str]:
    """Look up *name* in *flags*, also accepting its kebab-case and snake_case spellings."""
    for candidate in (name, to_kebab(name), name.replace("-", "_")):
        if candidate in flags:
            return flags[candidate]
    return None


def to_kebab(name: str) -> str:
    """``customerId`` / ``customer_id`` -> ``customer-id``."""
    name = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "-", name)
    return name.replace("_", "-").lower()


def coerce_value(value: str, schema: Optional[dict[str, Any]] = None) -> Any:
    """Convert one flag string to the type *schema* declares."""
    if value == "true":
        return True
    if value == "false":
        return False
    schema = schema or {}
    if value == "null" and _allows_null(schema):
        return None

    schema_type = schema.get("type")
    if isinstance(schema_type, list):
        schema_type = next((t for t in schema_type if t != "null"), None)
    if schema_type == "integer":
        try:
            return int(value, 10)
        except ValueError:
            return value
    if schema_type == "number":
        try:
            return float(value)
        except ValueError:
            return value
    if schema_type == "boolean":
        return value.lower() in ("1", "yes", "y", "on")
    if schema_type == "array":
        try:
            parsed = json.loads(value)
        except ValueError:
            return value.split(",")
        return parsed if isinstance(parsed, list) else [parsed]
    if schema_type == "object":
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def _allows_null(schema: dict[str, Any]) -> bool:
    schema_type = schema.get("type")
    if isinstance(schema_type, list):
        return "null" in schema_type
    return schema.get("nullable") is True
