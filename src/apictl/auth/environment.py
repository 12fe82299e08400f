"""Credentials sourced from environment variables.

Checked in order; the first hit wins:

1. The adapter's ``auth.env_var`` (e.g. ``STRIPE_API_KEY``).
2. The adapter's ``auth.env_var_user`` and ``auth.env_var_pass`` pair,
   giving Basic credentials. Both must be set.
3. ``APICTL_<API>_TOKEN``.
4. ``<API>_API_KEY``.

A value is turned into a profile by the plugin for the adapter's auth type
(see :meth:`~apictl.auth.manager.AuthManager.profile_from_secret`), so a
basic-auth variable may hold ``user:pass`` and an ``apiKey`` variable
inherits the adapter's header or query name.

Environment credentials take precedence over stored profiles and are never
persisted or refreshed.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Optional

from apictl.adapters.config import AuthSection
from apictl.auth.manager import AuthManager
from apictl.config import env_prefix
from apictl.models import AuthProfile, BasicProfile


def env_var_candidates(api_name: str, auth: Optional[AuthSection]) -> list[str]:
    """Return the single-value variable names consulted for *api_name*, in order."""
    names: list[str] = []
    if auth is not None and auth.env_var:
        names.append(auth.env_var)
    prefix = env_prefix(api_name)
    names.append(f"APICTL_{prefix}_TOKEN")
    names.append(f"{prefix}_API_KEY")
    return names


def credential_from_env(
    api_name: str,
    auth: Optional[AuthSection],
    manager: AuthManager,
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[tuple[str, AuthProfile]]:
    """Find an environment-sourced credential for *api_name*.

    Returns:
        ``(variable_name, profile)`` for the first variable set, or ``None``.
    """
    env = os.environ if environ is None else environ

    if auth is not None and auth.env_var and env.get(auth.env_var):
        return auth.env_var, manager.profile_from_secret(env[auth.env_var], auth)

    if auth is not None and auth.env_var_user and auth.env_var_pass:
        user = env.get(auth.env_var_user)
        password = env.get(auth.env_var_pass)
        if user and password:
            return auth.env_var_user, BasicProfile(username=user, password=password)

    for name in env_var_candidates(api_name, auth)[-2:]:
        value = env.get(name)
        if value:
            return name, manager.profile_from_secret(value, auth)
    return None
