"""API key auth plugin -- header or query parameter placement.

The key name comes from the adapter's ``auth`` section when it declares
one, otherwise from the stored profile. A key with no declared location
is sent as ``Authorization: Bearer <key>``, which is what most APIs that
call their token an "API key" expect.

See Also:
    :class:`apictl.auth.base.AuthPlugin` for the base interface.
"""

from __future__ import annotations

from typing import Optional

from apictl.adapters.config import AuthSection
from apictl.adapters.context import AdapterRequest
from apictl.auth.base import AuthPlugin, require_secret
from apictl.models import ApiKeyProfile, AuthProfile


class APIKeyAuthPlugin(AuthPlugin):
    """Authenticate via an API key placed in a header or query parameter."""

    @property
    def auth_type(self) -> str:
        return "apiKey"

    def apply(
        self,
        request: AdapterRequest,
        profile: AuthProfile,
        auth: Optional[AuthSection] = None,
    ) -> None:
        key = require_secret(profile, self.auth_type)
        header, query = self._placement(profile, auth)

        if header:
            request.set_header(header, key)
        elif query:
            request.query[query] = key
        else:
            request.set_header("Authorization", f"Bearer {key}")

    def from_secret(self, secret: str, auth: Optional[AuthSection] = None) -> AuthProfile:
        header = auth.header if auth else None
        query = auth.query if auth else None
        if not header and not query:
            header = "Authorization"
        return ApiKeyProfile(api_key=secret, header=header, query=query)

    @staticmethod
    def _placement(profile: AuthProfile, auth: Optional[AuthSection]) -> tuple[Optional[str], Optional[str]]:
        """Return ``(header, query)``; the adapter's declaration wins over the profile's."""
        if auth is not None and (auth.header or auth.query):
            return auth.header, auth.query
        if isinstance(profile, ApiKeyProfile):
            return profile.header, profile.query
        return None, None
