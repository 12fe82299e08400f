"""Request descriptor construction and body encoding.

:func:`build_request` performs the first pipeline step: path
substitution, query and header parameters, the default ``Accept`` header
and the body. :func:`encode_content` performs the content-type step, and
:func:`flatten_form_data` implements the bracketed form encoding used for
``application/x-www-form-urlencoded`` bodies.
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional, Union
from urllib.parse import quote, urlencode

from apictl.adapters.context import AdapterRequest
from apictl.exceptions import InvalidUsageError
from apictl.executor.arguments import coerce_value, flag_value
from apictl.models import OperationInfo
from apictl.parser.document import request_body_schema

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE = "application/json"

_PATH_PARAM = re.compile(r"\{([^{}/]+)\}")


def build_request(
    operation: OperationInfo,
    base_url: str,
    flags: dict[str, str],
    data: Optional[str] = None,
    stdin: Optional[str] = None,
) -> AdapterRequest:
    """Create the initial request descriptor for *operation*.

    The body comes from, in order: *data* (the ``--data`` flag, parsed as
    JSON), *stdin* (piped input, parsed as JSON when possible, otherwise
    sent as-is), or flags matching the request-body schema's properties.

    Raises:
        InvalidUsageError: If a path or required query parameter has no
            flag, or ``--data`` is not valid JSON.
    """
    path_values: dict[str, str] = {}
    query: dict[str, Any] = {}
    headers: dict[str, str] = {"Accept": "application/json"}
    consumed: set[str] = set()
    missing: list[str] = []

    for param in operation.parameters:
        name, location = param["name"], param["in"]
        value = flag_value(flags, name)
        if value is None:
            required = location == "path" or (param.get("required") and location == "query")
            if required and f"--{name}" not in missing:
                missing.append(f"--{name}")
            continue
        consumed.add(name)
        if location == "path":
            path_values[name] = value
        elif location == "query":
            schema = param.get("schema") or {}
            query[name] = value.split(",") if schema.get("type") == "array" else value
        elif location == "header":
            headers[name] = value

    if missing:
        raise InvalidUsageError(
            f"Missing required parameter{'s' if len(missing) > 1 else ''}: {', '.join(missing)}"
        )

    path = _PATH_PARAM.sub(lambda m: quote(path_values.get(m.group(1), m.group(0)), safe=""), operation.path)
    request = AdapterRequest(
        method=operation.method.value.upper(),
        url=base_url.rstrip("/") + path,
        headers=headers,
        query=query,
    )

    if data is not None:
        try:
            request.body = json.loads(data)
        except ValueError as exc:
            raise InvalidUsageError(f"--data is not valid JSON: {exc}") from exc
    elif stdin is not None:
        try:
            request.body = json.loads(stdin)
        except ValueError:
            request.body = stdin
    elif operation.request_body is not None:
        request.body = synthesize_body(operation, {k: v for k, v in flags.items() if k not in consumed})
    return request


def synthesize_body(operation: OperationInfo, flags: dict[str, str]) -> Optional[dict[str, Any]]:
    """Build a body object from *flags* matching the request-body schema's properties.

    Returns:
        The body, or ``None`` when no flag matched a declared property.
    """
    _, schema = request_body_schema(operation.request_body)
    properties = _schema_properties(schema or {})
    body: dict[str, Any] = {}
    for name, prop_schema in properties.items():
        value = flag_value(flags, name)
        if value is not None:
            body[name] = coerce_value(value, prop_schema if isinstance(prop_schema, dict) else None)
    return body or None


def _schema_properties(schema: dict[str, Any]) -> dict[str, Any]:
    properties = dict(schema.get("properties") or {})
    for part in schema.get("allOf") or []:
        if isinstance(part, dict):
            properties.update(_schema_properties(part))
    return properties


def declared_content_type(operation: OperationInfo) -> Optional[str]:
    content_type, _ = request_body_schema(operation.request_body)
    return content_type


def encode_content(request: AdapterRequest, content_type: str) -> None:
    """Set ``Content-Type`` and encode the body for *content_type*.

    Form bodies are flattened and URL-encoded to a string. Other bodies
    are left as objects and serialised to JSON when sent. A request
    without a body gets no ``Content-Type``.
    """
    if request.body is None:
        return
    request.set_header("Content-Type", content_type)
    if content_type == FORM_CONTENT_TYPE and isinstance(request.body, (dict, list)):
        request.body = urlencode(list(flatten_form_data(request.body).items()))


def flatten_form_data(data: Any, prefix: str = "") -> dict[str, str]:
    """Flatten nested objects and arrays into bracketed form keys.

    ``None`` leaves are dropped; booleans become ``"true"``/``"false"``;
    other leaves are stringified.

    Example::

        >>> flatten_form_data({"a": {"b": 1}, "c": [1, 2]})
        {'a[b]': '1', 'c[0]': '1', 'c[1]': '2'}
    """
    flat: dict[str, str] = {}
    if isinstance(data, dict):
        items = ((str(k), v) for k, v in data.items())
    elif isinstance(data, list):
        items = ((str(i), v) for i, v in enumerate(data))
    else:
        if data is not None and prefix:
            flat[prefix] = _form_scalar(data)
        return flat

    for key, value in items:
        full_key = f"{prefix}[{key}]" if prefix else key
        if isinstance(value, (dict, list)):
            flat.update(flatten_form_data(value, full_key))
        elif value is not None:
            flat[full_key] = _form_scalar(value)
    return flat


def _form_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def serialize_body(body: Any) -> Optional[Union[str, bytes]]:
    """Return the wire form of *body*: strings and bytes as-is, everything else as JSON."""
    if body is None:
        return None
    if isinstance(body, (str, bytes)):
        return body
    return json.dumps(body, ensure_ascii=False)
