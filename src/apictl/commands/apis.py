"""API commands -- inspect installed API documents.

Example::

    apictl apis list
    apictl apis commands stripe
"""

from __future__ import annotations

import typer

from apictl.output import get_output, info, suggest

apis_app = typer.Typer(no_args_is_help=True)


@apis_app.command("list")
def apis_list() -> None:
    """List installed APIs."""
    from apictl.config import get_specs_dir, list_installed_apis

    names = list_installed_apis()
    if not names:
        info("No APIs installed.")
        suggest(f"Place an OpenAPI document at {get_specs_dir()}/<name>.yaml")
        return
    get_output().render_result(names)


@apis_app.command("commands")
def apis_commands(
    api: str = typer.Argument(help="Installed API name."),
) -> None:
    """List every command compiled from an API's document."""
    from apictl.adapters.registry import AdapterRegistry
    from apictl.generator import build_command_tree, iter_operations

    adapter = AdapterRegistry().load(api)
    rows = [
        {
            "command": " ".join(path),
            "method": operation.method.value.upper(),
            "path": operation.path,
            "summary": operation.summary or "",
        }
        for path, operation in iter_operations(build_command_tree(adapter.document))
    ]
    get_output().render_result(rows)
