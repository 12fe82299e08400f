"""Build the command tree from a parsed OpenAPI document.

**Algorithm summary**

1. Split each path template into segments. Version segments (``v1``,
   ``v2``...) and ``{param}`` segments are dropped; the remaining static
   segments address the node where the path's operations attach, creating
   nodes as needed.
2. Resolve path-level and operation-level parameters (local ``$ref``
   pointers only) and concatenate them, operation-level after path-level.
   Both entries are kept when the two levels declare the same parameter;
   the request builder lets the later one win.
3. Infer a command name per operation with
   :func:`~apictl.generator.naming.infer_command_name` and register the
   :class:`~apictl.models.OperationInfo` under it on the terminal node.
4. A node without a description takes the first operation summary seen.

Compilation is pure and deterministic. A malformed path template or
operation is skipped on its own; the rest of the document still compiles.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from typing import Any, Optional

from apictl.exceptions import InvalidUsageError
from apictl.generator.naming import infer_command_name, is_param_segment, tokenize_operation_id
from apictl.models import CommandNode, HTTPMethod, OperationInfo
from apictl.parser.document import SpecDocument
from apictl.parser.resolver import resolve_ref, resolve_refs

logger = logging.getLogger(__name__)

_VERSION_SEGMENT = re.compile(r"^v\d+$")
_COMPILED_METHODS = (
    HTTPMethod.GET,
    HTTPMethod.POST,
    HTTPMethod.PUT,
    HTTPMethod.PATCH,
    HTTPMethod.DELETE,
)


def build_command_tree(document: SpecDocument) -> CommandNode:
    """Compile *document* into a fresh :class:`~apictl.models.CommandNode` tree.

    Example::

        tree = build_command_tree(load_document("petstore.yaml"))
        tree.children["pets"].operations["list"].path   # "/pets"
    """
    raw = document.raw
    root = CommandNode(name=document.title, description=document.description)

    for path, path_item in document.paths.items():
        if not isinstance(path_item, dict):
            continue
        if "$ref" in path_item:
            path_item = resolve_ref(raw, path_item["$ref"])
            if not isinstance(path_item, dict):
                continue

        namespace = namespace_segments(path)
        if namespace is None:
            logger.debug("Skipping malformed path template %r", path)
            continue

        path_params = _resolve_parameters(path_item.get("parameters"), raw)

        for method in _COMPILED_METHODS:
            operation = path_item.get(method.value)
            if not isinstance(operation, dict):
                continue
            if not isinstance(operation.get("responses", {}), dict):
                logger.debug("Skipping %s %s: malformed responses", method.value.upper(), path)
                continue

            resolved = resolve_refs(operation, raw)
            if not isinstance(resolved, dict):
                continue
            node = _ensure_node(root, namespace)
            op_params = _resolve_parameters(operation.get("parameters"), raw)
            operation_id = operation.get("operationId")
            name = infer_command_name(method.value, path, operation_id, resolved)
            if name in node.operations:
                name = _disambiguate(node, name, method, operation_id)

            request_body = resolved.get("requestBody")
            node.operations[name] = OperationInfo(
                method=method,
                path=path,
                operation_id=operation_id,
                summary=operation.get("summary"),
                description=operation.get("description"),
                parameters=[*path_params, *op_params],
                request_body=request_body if isinstance(request_body, dict) else None,
                operation=operation,
            )
            if not node.description and operation.get("summary"):
                node.description = operation["summary"]

    return root


def namespace_segments(path: str) -> Optional[list[str]]:
    """Return the static, non-version segments of *path*, or ``None`` if the template is malformed.

    Example::

        >>> namespace_segments("/v1/pets/{petId}/photos")
        ['pets', 'photos']
    """
    if not isinstance(path, str) or path.count("{") != path.count("}"):
        return None
    segments: list[str] = []
    for segment in path.split("/"):
        if not segment or _VERSION_SEGMENT.match(segment):
            continue
        if is_param_segment(segment):
            if not re.fullmatch(r"[^{}]*\{[^{}/]+\}[^{}]*", segment):
                return None
            continue
        segments.append(segment)
    return segments


def _ensure_node(root: CommandNode, segments: list[str]) -> CommandNode:
    current = root
    for segment in segments:
        child = current.children.get(segment)
        if child is None:
            child = CommandNode(name=segment)
            current.children[segment] = child
        current = child
    return current


def _resolve_parameters(params: Any, raw: dict[str, Any]) -> list[dict[str, Any]]:
    """Resolve a parameter list, dropping entries whose reference cannot be followed."""
    if not isinstance(params, list):
        return []
    resolved: list[dict[str, Any]] = []
    for param in params:
        value = resolve_refs(param, raw)
        if isinstance(value, dict) and value.get("name") and value.get("in"):
            resolved.append(value)
    return resolved


def _disambiguate(
    node: CommandNode,
    name: str,
    method: HTTPMethod,
    operation_id: Optional[str],
) -> str:
    """Pick a unique name when two operations on one node infer the same verb."""
    if operation_id:
        candidate = "-".join(tokenize_operation_id(operation_id))
        if candidate and candidate not in node.operations:
            return candidate
    candidate = f"{name}-{method.value}"
    suffix = 2
    while candidate in node.operations:
        candidate = f"{name}-{method.value}-{suffix}"
        suffix += 1
    return candidate


def iter_operations(node: CommandNode, prefix: tuple[str, ...] = ()) -> Iterator[tuple[tuple[str, ...], OperationInfo]]:
    """Yield ``(command_path, operation)`` for every leaf under *node*, depth first."""
    for name, operation in node.operations.items():
        yield (*prefix, name), operation
    for name, child in node.children.items():
        yield from iter_operations(child, (*prefix, name))


def find_operation(root: CommandNode, tokens: list[str]) -> tuple[OperationInfo, list[str]]:
    """Walk positional *tokens* through the tree and return the selected operation.

    Tokens are matched against child namespaces first; the first token that
    is not a child must name an operation on the current node.

    Returns:
        ``(operation, remaining_tokens)``.

    Raises:
        InvalidUsageError: If the tokens stop at a namespace or name
            something unknown. The message lists what is available.
    """
    node = root
    walked: list[str] = []
    for index, token in enumerate(tokens):
        if token in node.children:
            node = node.children[token]
            walked.append(token)
            continue
        if token in node.operations:
            return node.operations[token], tokens[index + 1:]
        raise InvalidUsageError(
            f"Unknown command '{' '.join([*walked, token])}'. {_available(node)}"
        )
    where = " ".join(walked) or "this API"
    raise InvalidUsageError(f"Missing command for {where}. {_available(node)}")


def _available(node: CommandNode) -> str:
    names = sorted(node.children) + sorted(node.operations)
    if not names:
        return "No commands available."
    return "Available: " + ", ".join(names)
