"""Auth commands -- manage stored credentials per API.

Provides the ``apictl auth`` sub-command group. Every command takes the
API name first; profiles are named credential sets within that API's
credential file.

Typical workflow::

    apictl auth login stripe                 # interactive setup
    apictl auth login stripe --profile live  # a second profile
    apictl auth switch stripe live           # make it the default
    apictl auth status stripe                # masked summary
    apictl auth logout stripe --all
"""

from __future__ import annotations

from typing import Optional

import typer

from apictl.output import get_output, info, success, suggest

auth_app = typer.Typer(no_args_is_help=True)


@auth_app.command("login")
def auth_login(
    api: str = typer.Argument(help="Installed API name."),
    profile: str = typer.Option("default", "--profile", "-p", help="Profile name to store the credential under."),
    make_default: bool = typer.Option(False, "--default", help="Make this profile the default."),
) -> None:
    """Interactive credential setup for an API.

    The prompts come from the API's adapter, or are inferred from the
    document's security schemes when the API has no adapter. The
    credential is stored under *profile*; the first profile stored for an
    API becomes its default.

    Example::

        apictl auth login stripe
        apictl auth login github --profile work --default
    """
    from apictl.adapters.registry import AdapterRegistry
    from apictl.auth import CredentialStore, create_default_manager
    from apictl.auth.login import login

    adapter = AdapterRegistry().load(api)
    login(
        adapter,
        CredentialStore(api),
        create_default_manager(),
        profile_name=profile,
        make_default=make_default,
    )
    suggest(f"Check it: apictl auth status {api}")


@auth_app.command("logout")
def auth_logout(
    api: str = typer.Argument(help="Installed API name."),
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Profile to remove (default: the default profile)."),
    remove_all: bool = typer.Option(False, "--all", help="Remove every stored profile."),
) -> None:
    """Remove stored credentials.

    Removing the default profile promotes the next one. Removing the last
    profile deletes the credential file.
    """
    from apictl.auth import CredentialStore

    store = CredentialStore(api)
    if remove_all:
        if store.remove_all():
            success(f"Removed all credentials for {api}")
        else:
            info(f"No stored credentials for {api}")
        return

    name = profile or store.default_profile_name()
    if name is None or not store.remove_profile(name):
        info(f"No profile '{name or 'default'}' stored for {api}")
        return
    success(f"Removed profile '{name}' for {api}")
    remaining = store.default_profile_name()
    if remaining:
        info(f"Default profile is now '{remaining}'")


@auth_app.command("status")
def auth_status(
    api: str = typer.Argument(help="Installed API name."),
) -> None:
    """Show stored profiles with masked secrets and token expiry."""
    from apictl.auth import CredentialStore

    rows = CredentialStore(api).status()
    if not rows:
        info(f"No stored credentials for {api}")
        suggest(f"Log in: apictl auth login {api}")
        return
    get_output().render_result(rows)


@auth_app.command("list")
def auth_list() -> None:
    """List every API with stored credentials and its profiles."""
    from apictl.auth import CredentialStore
    from apictl.config import get_credentials_dir

    rows = []
    for path in sorted(get_credentials_dir().glob("*.json")):
        store = CredentialStore(path.stem)
        rows.append(
            {
                "api": path.stem,
                "default": store.default_profile_name(),
                "profiles": ", ".join(store.list_profiles()),
            }
        )
    if not rows:
        info("No stored credentials.")
        return
    get_output().render_result(rows)


@auth_app.command("switch")
def auth_switch(
    api: str = typer.Argument(help="Installed API name."),
    profile: str = typer.Argument(help="Profile to make the default."),
) -> None:
    """Change the default profile of an API."""
    from apictl.auth import CredentialStore

    CredentialStore(api).set_default(profile)
    success(f"Default profile for {api} is now '{profile}'")
