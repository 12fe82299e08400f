"""Credential selection and OAuth2 token lifecycle for one invocation.

:func:`resolve_credential` picks the credential a command runs with:

1. an environment-sourced credential (:mod:`apictl.auth.environment`),
   used as-is;
2. otherwise the requested stored profile (or the store's default),
   refreshed first when it is an OAuth2 profile within
   :data:`REFRESH_BUFFER_SECONDS` of expiry.

A failed refresh is reported as a warning and the stale profile is used;
the API call then fails on the expired token and surfaces as an auth
error. :meth:`TokenRefresher.arefresh` performs the single forced
refresh after a 401, through the executor's own HTTP client.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from apictl import output
from apictl.adapters.config import AuthSection
from apictl.auth.credential_store import CredentialStore
from apictl.auth.environment import credential_from_env
from apictl.auth.manager import AuthManager
from apictl.exceptions import AuthError
from apictl.models import AuthProfile, OAuth2Profile

REFRESH_BUFFER_SECONDS = 300
"""A token expiring within this many seconds is refreshed before use."""


def needs_refresh(profile: AuthProfile, now: float) -> bool:
    """Return True when *profile* is a refreshable OAuth2 token inside the expiry buffer."""
    return (
        isinstance(profile, OAuth2Profile)
        and profile.expires_at is not None
        and bool(profile.refresh_token)
        and profile.expires_at - now <= REFRESH_BUFFER_SECONDS
    )


class TokenRefresher:
    """Refreshes stored OAuth2 profiles and persists the result.

    Args:
        store: Where refreshed profiles are written back.
        manager: Supplies the ``oauth2`` plugin performing the grant.
        clock: Returns the current Unix time in seconds.
    """

    def __init__(
        self,
        store: CredentialStore,
        manager: AuthManager,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._manager = manager
        self._clock = clock

    def ensure_fresh(self, name: str, profile: AuthProfile) -> AuthProfile:
        """Return *profile*, refreshed first if it is about to expire."""
        if not needs_refresh(profile, self._clock()):
            return profile
        refreshed = self.refresh(name, profile)
        return refreshed if refreshed is not None else profile

    def refresh(self, name: str, profile: AuthProfile) -> Optional[OAuth2Profile]:
        """Run the refresh grant for *profile* unconditionally.

        Returns:
            The persisted new profile, or ``None`` if *profile* cannot be
            refreshed or the grant failed (a warning is printed).
        """
        if not isinstance(profile, OAuth2Profile) or not profile.refresh_token:
            return None
        plugin = self._manager.get_plugin("oauth2")
        try:
            refreshed = plugin.refresh(profile)  # type: ignore[attr-defined]
        except AuthError as exc:
            self._warn_failed(name, exc)
            return None
        return self._persist(name, refreshed)

    async def arefresh(
        self, name: str, profile: AuthProfile, client: httpx.AsyncClient
    ) -> Optional[OAuth2Profile]:
        """Like :meth:`refresh`, but the grant is sent through the caller's *client*."""
        if not isinstance(profile, OAuth2Profile) or not profile.refresh_token:
            return None
        plugin = self._manager.get_plugin("oauth2")
        try:
            refreshed = await plugin.arefresh(profile, client)  # type: ignore[attr-defined]
        except AuthError as exc:
            self._warn_failed(name, exc)
            return None
        return self._persist(name, refreshed)

    def _warn_failed(self, name: str, exc: AuthError) -> None:
        output.warning(f"Token refresh failed for {self._store.api_name} profile '{name}': {exc}")

    def _persist(self, name: str, refreshed: OAuth2Profile) -> OAuth2Profile:
        self._store.save_profile(name, refreshed)
        output.debug(f"Refreshed OAuth2 token for {self._store.api_name} profile '{name}'")
        return refreshed


@dataclass
class ActiveCredential:
    """The credential one invocation runs with.

    Attributes:
        profile: The credential itself.
        profile_name: Stored profile name, or ``None`` for an environment credential.
        source: ``"env:<VAR>"`` or ``"store"``.
    """

    profile: AuthProfile
    profile_name: Optional[str]
    source: str

    @property
    def refreshable(self) -> bool:
        """True for a stored OAuth2 profile holding a refresh token."""
        return (
            self.source == "store"
            and isinstance(self.profile, OAuth2Profile)
            and bool(self.profile.refresh_token)
        )


def resolve_credential(
    api_name: str,
    auth: Optional[AuthSection],
    manager: AuthManager,
    store: CredentialStore,
    refresher: TokenRefresher,
    profile_name: Optional[str] = None,
    environ: Optional[dict[str, str]] = None,
) -> Optional[ActiveCredential]:
    """Select the credential for *api_name*, or ``None`` when there is none.

    Raises:
        AuthError: If *profile_name* is given but not stored.
    """
    from_env = credential_from_env(api_name, auth, manager, environ)
    if from_env is not None:
        variable, profile = from_env
        output.debug(f"Using credential from ${variable}")
        return ActiveCredential(profile=profile, profile_name=None, source=f"env:{variable}")

    config = store.load()
    if config is None:
        if profile_name:
            raise AuthError(
                f"No stored credentials for {api_name}",
                hint=f"Run: apictl auth login {api_name} --profile {profile_name}",
            )
        return None

    name = profile_name or config.default_profile
    profile = config.profiles.get(name)
    if profile is None:
        raise AuthError(
            f"No profile '{name}' for {api_name}",
            hint=f"Available: {', '.join(config.profiles)}",
        )
    profile = refresher.ensure_fresh(name, profile)
    return ActiveCredential(profile=profile, profile_name=name, source="store")
