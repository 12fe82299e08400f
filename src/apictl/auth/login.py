"""Interactive login: collect credentials, persist them, run ``after_login``.

The adapter's ``auth`` section drives the flow. For APIs without an
adapter it was inferred from the document's security schemes by
:func:`~apictl.adapters.registry.infer_auth_section`, so both cases look
the same here.

* ``bearer`` / ``apiKey`` / ``custom`` -- one primary secret, validated
  by ``login.check`` and re-prompted with ``login.error_message`` until it
  passes; named ``login.prompts`` are collected into the profile's
  ``config`` map.
* ``basic`` -- username and password.
* ``oauth2`` -- the ``clientCredentials`` flow is performed against the
  token URL; any other flow asks for an externally obtained access token,
  an optional refresh token and an optional lifetime in seconds.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Optional

import typer

from apictl import output
from apictl.adapters.config import AuthSection, LoginPrompt, LoginSpec, OAuthSection, ResolvedAdapter
from apictl.adapters.context import AdapterContext
from apictl.adapters.hooks import HookRunner
from apictl.adapters.registry import select_oauth_flow, select_security_scheme
from apictl.auth.credential_store import CredentialStore
from apictl.auth.manager import AuthManager
from apictl.exceptions import AuthError
from apictl.models import AuthProfile, BasicProfile

Prompter = Callable[..., Any]
"""Signature-compatible with :func:`typer.prompt`."""


def login(
    adapter: ResolvedAdapter,
    store: CredentialStore,
    manager: AuthManager,
    profile_name: str = "default",
    prompter: Prompter = typer.prompt,
    clock: Callable[[], float] = time.time,
    make_default: bool = False,
) -> AuthProfile:
    """Run the interactive login for *adapter* and store the result as *profile_name*.

    Raises:
        AuthError: If the API declares no usable authentication or a token
            exchange fails.
    """
    auth = adapter.auth
    if auth is None:
        raise AuthError(f"{adapter.display_name or adapter.name} declares no supported authentication")

    login_spec = auth.login or LoginSpec()
    if login_spec.hint:
        output.info(login_spec.hint)

    if auth.type == "basic":
        profile: AuthProfile = _basic_login(prompter)
    elif auth.type == "oauth2":
        profile = _oauth2_login(adapter, auth, manager, prompter, clock)
    else:
        secret = _ask_validated(
            prompter,
            login_spec.prompt or _default_prompt(adapter, auth),
            check=login_spec.check,
            error_message=login_spec.error_message,
        )
        profile = manager.profile_from_secret(secret, auth)

    extra = collect_prompts(login_spec.prompts, prompter)
    if extra:
        profile = profile.model_copy(update={"config": {**profile.config, **extra}})

    store.save_profile(profile_name, profile, make_default=make_default)
    output.success(f"Saved {profile.type} credentials for {adapter.name} (profile '{profile_name}')")

    ctx = AdapterContext(api=adapter.name, profile=profile_name, config=dict(profile.config))
    asyncio.run(HookRunner(adapter.hooks).after_login(profile, ctx))
    return profile


def collect_prompts(prompts: list[LoginPrompt], prompter: Prompter) -> dict[str, str]:
    """Ask every named prompt and return ``{name: value}``; empty answers are omitted."""
    values: dict[str, str] = {}
    for prompt in prompts:
        if not prompt.name:
            continue
        if prompt.hint:
            output.info(prompt.hint)
        value = _ask_validated(
            prompter,
            prompt.prompt,
            secret=prompt.secret,
            default=prompt.default,
            check=prompt.check,
            error_message=prompt.error_message,
        )
        if value:
            values[prompt.name] = value
    return values


def _default_prompt(adapter: ResolvedAdapter, auth: AuthSection) -> str:
    title = adapter.display_name or adapter.name
    if auth.type == "apiKey":
        return f"Enter your {title} API key"
    return f"Enter your {title} API token"


def _ask(prompter: Prompter, text: str, secret: bool = False, default: Optional[str] = None) -> str:
    if default is None:
        return str(prompter(text, hide_input=secret)).strip()
    return str(prompter(text, default=default, hide_input=secret, show_default=not secret and bool(default))).strip()


def _ask_validated(
    prompter: Prompter,
    text: str,
    secret: bool = True,
    default: Optional[str] = None,
    check: Optional[Callable[[str], bool]] = None,
    error_message: Optional[str] = None,
) -> str:
    """Prompt until the answer passes *check*."""
    while True:
        value = _ask(prompter, text, secret=secret, default=default)
        if check is None or check(value):
            return value
        output.error(error_message or "Invalid value, try again")


def _basic_login(prompter: Prompter) -> AuthProfile:
    username = _ask(prompter, "Username")
    if not username:
        raise AuthError("A username is required")
    password = _ask(prompter, "Password", secret=True)
    return BasicProfile(username=username, password=password)


def _oauth2_login(
    adapter: ResolvedAdapter,
    auth: AuthSection,
    manager: AuthManager,
    prompter: Prompter,
    clock: Callable[[], float],
) -> AuthProfile:
    oauth = auth.oauth or OAuthSection()
    flow = oauth.flow or _document_flow(adapter)

    if flow == "clientCredentials":
        client_id = _ask(prompter, "Client ID", default=oauth.client_id or None)
        client_secret = _ask(prompter, "Client secret", secret=True)
        output.info(f"Requesting token from {oauth.token_url}")
        return manager.get_plugin("oauth2").client_credentials(oauth, client_id, client_secret)  # type: ignore[attr-defined]

    if oauth.authorization_url:
        output.info(f"Authorize at {oauth.authorization_url} and paste the resulting token")
    access_token = _ask(prompter, "Access token", secret=True)
    if not access_token:
        raise AuthError("An access token is required")
    profile = manager.get_plugin("oauth2").from_secret(access_token, auth)
    refresh_token = _ask(prompter, "Refresh token (optional)", secret=True, default="")
    expires_in = _ask(prompter, "Expires in seconds (optional)", default="")

    updates: dict[str, Any] = {}
    if refresh_token:
        updates["refresh_token"] = refresh_token
    if expires_in:
        try:
            updates["expires_at"] = clock() + float(expires_in)
        except ValueError:
            output.warning(f"Ignoring invalid expiry '{expires_in}'")
    return profile.model_copy(update=updates) if updates else profile


def _document_flow(adapter: ResolvedAdapter) -> Optional[str]:
    scheme = select_security_scheme(adapter.document)
    if scheme is None or scheme.type != "oauth2":
        return None
    selected = select_oauth_flow(scheme)
    return selected[0] if selected else None

