"""Abstract base class for authentication plugins.

An :class:`AuthPlugin` owns one credential type (``bearer``, ``apiKey``,
``basic`` or ``oauth2``). It knows two things:

- how to attach a stored or environment-sourced
  :data:`~apictl.models.AuthProfile` to an outgoing request
  (:meth:`AuthPlugin.apply`);
- how to turn one secret string, typed at a login prompt or read from an
  environment variable, into a profile (:meth:`AuthPlugin.from_secret`).

Plugins are registered with :class:`~apictl.auth.manager.AuthManager`
and looked up by their :attr:`~AuthPlugin.auth_type`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from apictl.adapters.config import AuthSection
from apictl.adapters.context import AdapterRequest
from apictl.exceptions import AuthError
from apictl.models import ApiKeyProfile, AuthProfile, BearerProfile, OAuth2Profile


class AuthPlugin(ABC):
    """Base class for the built-in credential types."""

    @property
    @abstractmethod
    def auth_type(self) -> str:
        """Return the ``type`` tag this plugin handles (e.g. ``"bearer"``)."""
        ...

    @abstractmethod
    def apply(
        self,
        request: AdapterRequest,
        profile: AuthProfile,
        auth: Optional[AuthSection] = None,
    ) -> None:
        """Attach *profile* to *request* in place.

        Args:
            request: The outgoing request descriptor.
            profile: The credential to send.
            auth: The adapter's ``auth`` section, or ``None`` when the API
                has none and the generic rule is in effect.

        Raises:
            AuthError: If *profile* does not carry what this type needs.
        """
        ...

    @abstractmethod
    def from_secret(self, secret: str, auth: Optional[AuthSection] = None) -> AuthProfile:
        """Build a profile from a single secret value."""
        ...


def primary_secret(profile: AuthProfile) -> Optional[str]:
    """Return the token-like value of *profile*: API key, bearer token or OAuth2 access token."""
    if isinstance(profile, ApiKeyProfile):
        return profile.api_key
    if isinstance(profile, BearerProfile):
        return profile.token
    if isinstance(profile, OAuth2Profile):
        return profile.access_token
    return None


def require_secret(profile: AuthProfile, auth_type: str) -> str:
    secret = primary_secret(profile)
    if not secret:
        raise AuthError(
            f"Stored '{profile.type}' credential cannot be used for '{auth_type}' authentication",
            hint="Log in again to replace it",
        )
    return secret


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    """Return *value* with everything but its first *visible* characters hidden."""
    if not value:
        return ""
    if len(value) <= visible:
        return "*" * len(value)
    return value[:visible] + "*" * min(len(value) - visible, 12)
