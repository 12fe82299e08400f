"""Heuristic command names for OpenAPI operations.

:func:`infer_command_name` maps one operation to a short verb such as
``list``, ``get``, ``create``, ``update`` or ``delete``. Rules, first match
wins:

1. The ``operationId``, split on camelCase boundaries and separators and
   lower-cased, contains a recognisable verb.
2. The ``operationId`` starts with an HTTP method word; the path shape
   decides (trailing ``{param}`` means a single resource).
3. The path shape alone decides, using the array-response test for
   collection ``GET`` endpoints.
4. The HTTP method decides.
"""

from __future__ import annotations

import re
from typing import Any, Optional

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_SEPARATORS = re.compile(r"[/_\-.\s]+")
_ENVELOPE_KEYS = ("data", "items", "results")

_METHOD_DEFAULTS = {
    "get": "get",
    "post": "create",
    "put": "update",
    "patch": "update",
    "delete": "delete",
}


def tokenize_operation_id(operation_id: str) -> list[str]:
    """Split an ``operationId`` into lower-case words.

    Example::

        >>> tokenize_operation_id("listPets_byOwner")
        ['list', 'pets', 'by', 'owner']
    """
    spaced = _CAMEL_BOUNDARY.sub(r"\1 \2", operation_id)
    return [word for word in _SEPARATORS.split(spaced.lower()) if word]


def is_param_segment(segment: str) -> bool:
    """Return True if a path segment contains a ``{...}`` template parameter."""
    return "{" in segment and "}" in segment


def has_trailing_param(path: str) -> bool:
    """Return True if the last segment of *path* is a template parameter."""
    segments = [s for s in path.split("/") if s]
    return bool(segments) and is_param_segment(segments[-1])


def returns_array(operation: dict[str, Any]) -> bool:
    """Check whether the success response is array-shaped.

    Looks at the ``200`` (then ``201``) response's ``application/json``
    schema. A bare array, a schema with ``items``, or an object wrapping an
    array under ``data``, ``items`` or ``results`` all count.

    *operation* must already have its references resolved.
    """
    responses = operation.get("responses") or {}
    response = responses.get("200") or responses.get(200) or responses.get("201") or responses.get(201)
    if not isinstance(response, dict):
        return False
    media = (response.get("content") or {}).get("application/json")
    schema = media.get("schema") if isinstance(media, dict) else None
    if not isinstance(schema, dict):
        return False
    if schema.get("type") == "array" or "items" in schema:
        return True
    properties = schema.get("properties") or {}
    for key in _ENVELOPE_KEYS:
        prop = properties.get(key)
        if isinstance(prop, dict) and prop.get("type") == "array":
            return True
    return False


def _verb_from_tokens(tokens: list[str], trailing_param: bool) -> Optional[str]:
    words = set(tokens)
    pairs = set(zip(tokens, tokens[1:]))
    if words & {"list", "search", "getall", "findall"} or pairs & {("get", "all"), ("find", "all")}:
        return "list"
    if words & {"create", "add", "new"} and not trailing_param:
        return "create"
    if words & {"update", "modify", "edit", "patch", "put"}:
        return "update"
    if words & {"delete", "remove", "destroy"}:
        return "delete"
    if words & {"retrieve", "fetch"}:
        return "get"
    return None


def _verb_from_shape(method: str, trailing_param: bool, array_response: bool) -> Optional[str]:
    if trailing_param:
        if method == "get":
            return "get"
        if method in ("post", "put", "patch"):
            return "update"
        if method == "delete":
            return "delete"
        return None
    if method == "get":
        return "list" if array_response else "get"
    if method == "post":
        return "create"
    return None


def infer_command_name(
    method: str,
    path: str,
    operation_id: Optional[str] = None,
    operation: Optional[dict[str, Any]] = None,
) -> str:
    """Infer the command name for one operation.

    Args:
        method: Lower-case HTTP method.
        path: The path template, e.g. ``/pets/{id}``.
        operation_id: The declared ``operationId``, if any.
        operation: The reference-resolved operation object, used for the
            array-response test.

    Returns:
        The inferred verb; unknown methods fall back to the method name.
    """
    method = method.lower()
    trailing_param = has_trailing_param(path)
    array_response = returns_array(operation or {})

    if operation_id:
        tokens = tokenize_operation_id(operation_id)
        verb = _verb_from_tokens(tokens, trailing_param)
        if verb:
            return verb
        if len(tokens) > 1 and tokens[0] in _METHOD_DEFAULTS:
            verb = _verb_from_shape(tokens[0], trailing_param, array_response)
            if verb:
                return verb

    if any(s for s in path.split("/") if s):
        verb = _verb_from_shape(method, trailing_param, array_response)
        if verb:
            return verb

    return _METHOD_DEFAULTS.get(method, method)
