"""Request execution: argument parsing, request building, the HTTP pipeline and pagination."""

from apictl.executor.arguments import InvocationOptions, ParsedArgs, coerce_value, parse_args
from apictl.executor.curl import render_curl
from apictl.executor.pagination import MAX_PAGES, has_pagination, next_page_params
from apictl.executor.pipeline import DryRunResult, ExecutionResult, RequestExecutor
from apictl.executor.request import build_request, flatten_form_data

__all__ = [
    "MAX_PAGES",
    "DryRunResult",
    "ExecutionResult",
    "InvocationOptions",
    "ParsedArgs",
    "RequestExecutor",
    "build_request",
    "coerce_value",
    "flatten_form_data",
    "has_pagination",
    "next_page_params",
    "parse_args",
    "render_curl",
]
