"""HTTP Basic authentication plugin.

This module provides :class:`BasicAuthPlugin`, which implements the
``basic`` auth type. ``username:password`` is Base64-encoded and sent as
an ``Authorization: Basic <encoded>`` header per :rfc:`7617`.
"""

from __future__ import annotations

import base64
from typing import Optional

from apictl.adapters.config import AuthSection
from apictl.adapters.context import AdapterRequest
from apictl.auth.base import AuthPlugin
from apictl.exceptions import AuthError
from apictl.models import AuthProfile, BasicProfile, BearerProfile


class BasicAuthPlugin(AuthPlugin):
    """Authenticate via HTTP Basic authentication."""

    @property
    def auth_type(self) -> str:
        return "basic"

    def apply(
        self,
        request: AdapterRequest,
        profile: AuthProfile,
        auth: Optional[AuthSection] = None,
    ) -> None:
        """Send *profile* as Basic credentials.

        A bearer profile (a basic-auth environment variable without a
        colon) is sent as a bearer token instead.

        Raises:
            AuthError: If *profile* is neither basic nor bearer.
        """
        if isinstance(profile, BearerProfile):
            request.set_header("Authorization", f"Bearer {profile.token}")
            return
        if not isinstance(profile, BasicProfile):
            raise AuthError(
                f"Stored '{profile.type}' credential cannot be used for 'basic' authentication",
                hint="Log in again to replace it",
            )
        raw = f"{profile.username}:{profile.password}"
        encoded = base64.b64encode(raw.encode("utf-8")).decode("ascii")
        request.set_header("Authorization", f"Basic {encoded}")

    def from_secret(self, secret: str, auth: Optional[AuthSection] = None) -> AuthProfile:
        """Split ``user:pass``; a value without a colon becomes a bearer token."""
        username, sep, password = secret.partition(":")
        if not sep or not username:
            return BearerProfile(token=secret)
        return BasicProfile(username=username, password=password)
