"""OpenAPI document loading, validation and ``$ref`` resolution.

Public API:

* :func:`load_spec` -- read a document from a file path, URL or stdin.
* :func:`validate_spec` -- minimal structural checks for a 3.x document.
* :func:`resolve_ref` / :func:`resolve_refs` -- local reference pointers.
* :class:`SpecDocument` -- the read-only parsed document.
"""

from apictl.parser.document import SpecDocument, load_document
from apictl.parser.loader import load_spec, validate_spec
from apictl.parser.resolver import resolve_ref, resolve_refs

__all__ = [
    "SpecDocument",
    "load_document",
    "load_spec",
    "resolve_ref",
    "resolve_refs",
    "validate_spec",
]
