"""Resolve local ``$ref`` pointers in OpenAPI documents.

Only same-document references (``#/<section>/<name>``) are supported. A
pointer that cannot be followed, external or not, resolves to ``None`` and
the caller treats the referencing object as absent; a single broken
reference never aborts compilation.

Circular references are detected via a ``seen`` set and left unresolved
(the ``$ref`` dict is kept at the cycle point) to prevent infinite recursion.
"""

from __future__ import annotations

from typing import Any


def resolve_ref(document: dict[str, Any], ref: str) -> Any:
    """Follow one ``$ref`` string through *document*.

    Handles RFC 6901 escaping (``~1`` for ``/``, ``~0`` for ``~``) and
    integer segments into lists.

    Returns:
        The referenced value, or ``None`` when the pointer is external or
        any segment is missing.

    Example::

        >>> resolve_ref({"components": {"schemas": {"Pet": {"type": "object"}}}},
        ...             "#/components/schemas/Pet")
        {'type': 'object'}
    """
    if not isinstance(ref, str) or not ref.startswith("#/"):
        return None

    current: Any = document
    for segment in ref[2:].split("/"):
        segment = segment.replace("~1", "/").replace("~0", "~")
        if isinstance(current, dict):
            if segment not in current:
                return None
            current = current[segment]
        elif isinstance(current, list):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError):
                return None
        else:
            return None
    return current


def resolve_refs(obj: Any, document: dict[str, Any], seen: frozenset[str] = frozenset()) -> Any:
    """Return a copy of *obj* with every resolvable ``$ref`` replaced by its target.

    Unresolvable references become ``None``. Dicts and lists in the result
    are new objects; the input is never mutated.
    """
    if isinstance(obj, dict):
        if "$ref" in obj:
            ref = obj["$ref"]
            if ref in seen:
                return obj
            target = resolve_ref(document, ref)
            if target is None:
                return None
            return resolve_refs(target, document, seen | {ref})
        return {key: resolve_refs(value, document, seen) for key, value in obj.items()}

    if isinstance(obj, list):
        return [resolve_refs(item, document, seen) for item in obj]

    return obj
