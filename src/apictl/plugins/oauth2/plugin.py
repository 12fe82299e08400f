"""OAuth2 auth plugin: token attachment plus the two grants apictl performs itself.

:class:`OAuth2AuthPlugin` implements the ``oauth2`` auth type. Attaching a
token is the same as bearer auth. The plugin additionally performs two
token-endpoint exchanges:

* the Client Credentials grant (:rfc:`6749` section 4.4), used by
  ``apictl auth login`` when the API declares that flow;
* the Refresh Token grant (:rfc:`6749` section 6), used by
  :mod:`apictl.auth.lifecycle` when a stored token nears expiry
  (:meth:`OAuth2AuthPlugin.refresh`) and, through the request executor's
  :class:`httpx.AsyncClient`, after a 401 (:meth:`OAuth2AuthPlugin.arefresh`).

Both are form-encoded POSTs expecting a JSON token response. Interactive
flows (authorization code, password, implicit) are not driven here; their
tokens are pasted in at the login prompt.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Optional

import httpx

from apictl.adapters.config import AuthSection, OAuthSection
from apictl.adapters.context import AdapterRequest
from apictl.auth.base import AuthPlugin, require_secret
from apictl.exceptions import AuthError
from apictl.models import AuthProfile, OAuth2Profile

TOKEN_REQUEST_TIMEOUT = 30.0


class OAuth2AuthPlugin(AuthPlugin):
    """Authenticate with an OAuth2 access token and manage its exchanges.

    Args:
        transport: Optional httpx transport for token requests (tests pass
            an :class:`httpx.MockTransport`).
        clock: Returns the current Unix time in seconds.
    """

    def __init__(
        self,
        transport: Optional[httpx.BaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._transport = transport
        self._clock = clock

    @property
    def auth_type(self) -> str:
        return "oauth2"

    def apply(
        self,
        request: AdapterRequest,
        profile: AuthProfile,
        auth: Optional[AuthSection] = None,
    ) -> None:
        token = require_secret(profile, self.auth_type)
        request.set_header("Authorization", f"Bearer {token}")

    def from_secret(self, secret: str, auth: Optional[AuthSection] = None) -> AuthProfile:
        oauth = auth.oauth if auth and auth.oauth else OAuthSection()
        return OAuth2Profile(
            access_token=secret,
            token_url=oauth.token_url,
            refresh_url=oauth.refresh_url,
            client_id=oauth.client_id,
            client_secret=oauth.client_secret,
            scopes=list(oauth.scopes),
        )

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    def client_credentials(
        self,
        oauth: OAuthSection,
        client_id: str,
        client_secret: str,
    ) -> OAuth2Profile:
        """Exchange client credentials for a token at ``oauth.token_url``.

        Raises:
            AuthError: If no token URL is declared or the exchange fails.
        """
        if not oauth.token_url:
            raise AuthError("OAuth2 client_credentials requires a token URL")
        data = {
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": client_secret,
        }
        if oauth.scopes:
            data["scope"] = " ".join(oauth.scopes)

        token_data = self._request_token(oauth.token_url, data)
        return OAuth2Profile(
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token"),
            expires_at=self._expires_at(token_data),
            token_type=token_data.get("token_type") or "Bearer",
            token_url=oauth.token_url,
            refresh_url=oauth.refresh_url,
            client_id=client_id,
            client_secret=client_secret,
            scopes=list(oauth.scopes),
        )

    def refresh(self, profile: OAuth2Profile) -> OAuth2Profile:
        """Exchange ``profile.refresh_token`` for a new access token.

        The returned profile keeps the old refresh token when the server
        does not rotate it.

        Raises:
            AuthError: If the profile cannot be refreshed or the exchange fails.
        """
        url, data = self._refresh_form(profile)
        return self._refreshed(profile, self._request_token(url, data))

    async def arefresh(self, profile: OAuth2Profile, client: httpx.AsyncClient) -> OAuth2Profile:
        """Async form of :meth:`refresh`, sent through *client*.

        Raises:
            AuthError: If the profile cannot be refreshed or the exchange fails.
        """
        url, data = self._refresh_form(profile)
        try:
            response = await client.post(
                url, data=data, headers={"Accept": "application/json"}, timeout=TOKEN_REQUEST_TIMEOUT
            )
        except httpx.HTTPError as exc:
            raise AuthError(f"Token request failed: {exc}") from exc
        return self._refreshed(profile, _token_data(response))

    def _refresh_form(self, profile: OAuth2Profile) -> tuple[str, dict[str, str]]:
        url = profile.refresh_url or profile.token_url
        if not profile.refresh_token or not url:
            raise AuthError("OAuth2 profile has no refresh token or token URL")
        data = {"grant_type": "refresh_token", "refresh_token": profile.refresh_token}
        if profile.client_id:
            data["client_id"] = profile.client_id
        if profile.client_secret:
            data["client_secret"] = profile.client_secret
        return url, data

    def _refreshed(self, profile: OAuth2Profile, token_data: dict[str, Any]) -> OAuth2Profile:
        return profile.model_copy(
            update={
                "access_token": token_data["access_token"],
                "refresh_token": token_data.get("refresh_token") or profile.refresh_token,
                "expires_at": self._expires_at(token_data),
                "token_type": token_data.get("token_type") or profile.token_type,
            }
        )

    def _expires_at(self, token_data: dict[str, Any]) -> Optional[float]:
        expires_in = token_data.get("expires_in")
        if expires_in is None:
            return None
        try:
            return self._clock() + float(expires_in)
        except (TypeError, ValueError):
            return None

    def _request_token(self, url: str, data: dict[str, str]) -> dict[str, Any]:
        """POST *data* to the token endpoint and return the JSON response.

        Raises:
            AuthError: If the request fails, the server rejects it, or the
                response has no ``access_token``.
        """
        try:
            with httpx.Client(transport=self._transport, timeout=TOKEN_REQUEST_TIMEOUT) as client:
                response = client.post(url, data=data, headers={"Accept": "application/json"})
        except httpx.HTTPError as exc:
            raise AuthError(f"Token request failed: {exc}") from exc
        return _token_data(response)


def _token_data(response: httpx.Response) -> dict[str, Any]:
    """Return the JSON body of a token endpoint *response*.

    Raises:
        AuthError: If the server rejected the request or the body has no
            ``access_token``.
    """
    if response.is_error:
        raise AuthError(f"Token request failed with status {response.status_code}: {response.text}")
    try:
        token_data = response.json()
    except ValueError as exc:
        raise AuthError(f"Token endpoint returned invalid JSON: {exc}") from exc
    if not isinstance(token_data, dict) or "access_token" not in token_data:
        raise AuthError("Token response missing 'access_token' field")
    return token_data
