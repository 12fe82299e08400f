"""Bearer token authentication plugin.

This module provides :class:`BearerAuthPlugin`, which implements the
``bearer`` auth type: the token is sent as an
``Authorization: Bearer <token>`` header. No exchange or refresh happens
here; OAuth2 tokens are handled by
:class:`~apictl.plugins.oauth2.OAuth2AuthPlugin`.
"""

from __future__ import annotations

from typing import Optional

from apictl.adapters.config import AuthSection
from apictl.adapters.context import AdapterRequest
from apictl.auth.base import AuthPlugin, require_secret
from apictl.models import AuthProfile, BearerProfile


class BearerAuthPlugin(AuthPlugin):
    """Authenticate via Bearer token in the Authorization header."""

    @property
    def auth_type(self) -> str:
        return "bearer"

    def apply(
        self,
        request: AdapterRequest,
        profile: AuthProfile,
        auth: Optional[AuthSection] = None,
    ) -> None:
        token = require_secret(profile, self.auth_type)
        request.set_header("Authorization", f"Bearer {token}")

    def from_secret(self, secret: str, auth: Optional[AuthSection] = None) -> AuthProfile:
        return BearerProfile(token=secret)
