"""Typer application and CLI entry point for apictl.

Built-in command groups are ``auth`` and ``apis``. Any other first
argument is taken as an installed API name, and the rest of the command
line is handed to the generated command tree of that API::

    apictl stripe customers list --limit 3
    apictl stripe customers create --email a@b.co --dry-run
    apictl github repos get --owner octo --repo hello --field name

:func:`main` is the console-script entry point declared in
``pyproject.toml``. It routes API invocations to the hidden ``run``
command, installs a SIGINT handler, and converts
:class:`~apictl.exceptions.ApictlError` into the process exit code.
Unhandled exceptions are written to a crash log under the data directory.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from apictl import __version__
from apictl.exit_codes import EXIT_GENERAL_ERROR

app = typer.Typer(
    name="apictl",
    help="Run any OpenAPI 3.x API from the command line.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

from apictl.commands.apis import apis_app  # noqa: E402
from apictl.commands.auth import auth_app  # noqa: E402

app.add_typer(auth_app, name="auth", help="Credential management.")
app.add_typer(apis_app, name="apis", help="Inspect installed APIs.")

_RUN_COMMAND = "run"
_BUILTIN_COMMANDS = frozenset({"auth", "apis", _RUN_COMMAND})


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"apictl {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~apictl.output.OutputManager` and keeps
    the flags in ``ctx.obj`` for commands that rebuild it.
    """
    from apictl.output import OutputManager, set_output

    set_output(OutputManager(no_color=no_color, quiet=quiet, verbose=verbose))
    ctx.ensure_object(dict)
    ctx.obj["no_color"] = no_color
    ctx.obj["quiet"] = quiet
    ctx.obj["verbose"] = verbose


@app.command(
    _RUN_COMMAND,
    hidden=True,
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def run_command(
    ctx: typer.Context,
    api: str = typer.Argument(help="Installed API name."),
) -> None:
    """Run a generated command of an installed API.

    Everything after the API name is parsed by
    :func:`~apictl.executor.arguments.parse_args`: resource and operation
    names, operation flags and the reserved flags (``--dry-run``,
    ``--verbose``, ``--profile``, ``--data``, ``--output``, ``--field``,
    ``--paginate``, ``--base-url``).
    """
    from apictl.config import load_global_config
    from apictl.executor import DryRunResult, parse_args
    from apictl.runner import Runtime

    parsed = parse_args(list(ctx.args))
    config = load_global_config()
    output = _configure_output(ctx, parsed.options.output or config.output_format, parsed.options.verbose)

    result = Runtime(config=config).invoke(api, parsed)
    if isinstance(result, DryRunResult):
        output.print_data(result.command)
        return
    output.render_result(result.data, field=parsed.options.field)


def _configure_output(ctx: typer.Context, output_format: str, verbose: bool) -> Any:
    from apictl.exceptions import InvalidUsageError
    from apictl.output import OutputFormat, OutputManager, set_output

    try:
        fmt = OutputFormat(output_format)
    except ValueError:
        choices = ", ".join(f.value for f in OutputFormat)
        raise InvalidUsageError(f"Unknown output format '{output_format}'. Choose one of: {choices}") from None

    obj = ctx.obj or {}
    manager = OutputManager(
        format=fmt,
        no_color=obj.get("no_color", False),
        quiet=obj.get("quiet", False),
        verbose=verbose or obj.get("verbose", False),
    )
    set_output(manager)
    return manager


def route_args(argv: list[str]) -> list[str]:
    """Insert the hidden ``run`` command before an API name.

    The first argument that is not a root option is inspected: built-in
    command names are left alone, anything else is treated as an API.

    Example::

        >>> route_args(["-v", "stripe", "customers", "list"])
        ['-v', 'run', 'stripe', 'customers', 'list']
    """
    for index, token in enumerate(argv):
        if token.startswith("-"):
            continue
        if token in _BUILTIN_COMMANDS:
            return list(argv)
        return [*argv[:index], _RUN_COMMAND, *argv[index:]]
    return list(argv)


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from apictl.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entry point invoked by the ``apictl`` console script.

    :class:`~apictl.exceptions.ApictlError` instances cause a clean exit
    with the error's ``exit_code`` and, when present, its hint. All other
    exceptions produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    args = route_args(sys.argv[1:] if argv is None else argv)
    try:
        app(args=args, prog_name="apictl")
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from apictl.exceptions import ApictlError
        from apictl.output import error, suggest

        if isinstance(exc, ApictlError):
            error(str(exc))
            if exc.hint:
                suggest(exc.hint)
            sys.exit(exc.exit_code)
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERAL_ERROR)
