"""apictl -- Turn OpenAPI 3.x descriptions into working command-line clients.

An installed API description is compiled into a command tree at every
invocation; per-API *adapters* customise auth, request and response shape,
pagination, retries and error mapping; the request executor performs the
HTTP exchange (or renders it as a ``curl`` command in dry-run mode).

Typical workflow::

    apictl auth login petstore
    apictl petstore pets list --limit 10
    apictl petstore pets get --pet-id 42 --dry-run

Modules:
    app: Typer application and console-script entry point.
    models: Pydantic models for configuration, credentials and the command tree.
    config: XDG-aware directories, atomic writes and per-API settings.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric process exit codes.
    output: stdout/stderr formatting built on Rich.
    runner: Composition of compiler, adapter registry, credentials and executor.
"""

__version__ = "0.3.0"
