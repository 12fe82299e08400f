"""Tests for credential selection and OAuth2 token refresh."""

from __future__ import annotations

import asyncio
from urllib.parse import parse_qs

import httpx
import pytest

from apictl.auth.credential_store import CredentialStore
from apictl.auth.lifecycle import (
    REFRESH_BUFFER_SECONDS,
    TokenRefresher,
    needs_refresh,
    resolve_credential,
)
from apictl.auth.manager import AuthManager, create_default_manager
from apictl.adapters.config import AuthSection
from apictl.exceptions import AuthError
from apictl.models import BearerProfile, OAuth2Profile
from apictl.plugins.oauth2 import OAuth2AuthPlugin

NOW = 1_700_000_000.0
TOKEN_URL = "https://auth.test/token"


def _clock() -> float:
    return NOW


class _TokenEndpoint:
    def __init__(self, status: int = 200, body: object = None) -> None:
        self.status = status
        self.body = body if body is not None else {"access_token": "new", "expires_in": 3600}
        self.forms: list[dict[str, list[str]]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.forms.append(parse_qs(request.content.decode()))
        return httpx.Response(self.status, json=self.body)


def _manager(endpoint: _TokenEndpoint) -> AuthManager:
    return create_default_manager(OAuth2AuthPlugin(transport=httpx.MockTransport(endpoint), clock=_clock))


def _oauth(expires_at: float, refresh_token: str = "rt") -> OAuth2Profile:
    return OAuth2Profile(
        access_token="old",
        refresh_token=refresh_token,
        expires_at=expires_at,
        token_url=TOKEN_URL,
        client_id="cid",
    )


class TestNeedsRefresh:
    def test_boundary(self) -> None:
        assert needs_refresh(_oauth(NOW + REFRESH_BUFFER_SECONDS), NOW)
        assert not needs_refresh(_oauth(NOW + REFRESH_BUFFER_SECONDS + 1), NOW)
        assert needs_refresh(_oauth(NOW - 10), NOW)

    def test_not_refreshable(self) -> None:
        assert not needs_refresh(_oauth(NOW, refresh_token=""), NOW)
        assert not needs_refresh(OAuth2Profile(access_token="a", refresh_token="r"), NOW)
        assert not needs_refresh(BearerProfile(token="t"), NOW)


class TestTokenRefresher:
    def test_refresh_persists(self) -> None:
        endpoint = _TokenEndpoint()
        store = CredentialStore("shop")
        store.save_profile("main", _oauth(NOW + 60))
        refresher = TokenRefresher(store, _manager(endpoint), _clock)

        refreshed = refresher.ensure_fresh("main", store.get_profile("main"))

        assert refreshed.access_token == "new"
        assert refreshed.refresh_token == "rt"
        assert refreshed.expires_at == NOW + 3600
        assert store.get_profile("main") == refreshed
        assert endpoint.forms == [{"grant_type": ["refresh_token"], "refresh_token": ["rt"], "client_id": ["cid"]}]

    def test_fresh_token_untouched(self) -> None:
        endpoint = _TokenEndpoint()
        profile = _oauth(NOW + 3600)
        refresher = TokenRefresher(CredentialStore("shop"), _manager(endpoint), _clock)
        assert refresher.ensure_fresh("main", profile) is profile
        assert endpoint.forms == []

    def test_failed_refresh_keeps_stale_token(self, quiet_output: object, capsys: pytest.CaptureFixture[str]) -> None:
        endpoint = _TokenEndpoint(status=400, body={"error": "invalid_grant"})
        store = CredentialStore("shop")
        profile = _oauth(NOW - 1)
        store.save_profile("main", profile)
        refresher = TokenRefresher(store, _manager(endpoint), _clock)

        assert refresher.ensure_fresh("main", profile) is profile
        assert store.get_profile("main") == profile
        assert "Token refresh failed for shop profile 'main'" in capsys.readouterr().err

    def test_async_refresh_uses_given_client(self) -> None:
        endpoint = _TokenEndpoint(body={"access_token": "new", "refresh_token": "rt2"})
        store = CredentialStore("shop")
        store.save_profile("main", _oauth(NOW + 3600))
        refresher = TokenRefresher(store, create_default_manager(), _clock)

        async def run() -> OAuth2Profile:
            async with httpx.AsyncClient(transport=httpx.MockTransport(endpoint)) as client:
                return await refresher.arefresh("main", store.get_profile("main"), client)

        refreshed = asyncio.run(run())

        assert refreshed.access_token == "new"
        assert refreshed.refresh_token == "rt2"
        assert store.get_profile("main") == refreshed
        assert endpoint.forms == [{"grant_type": ["refresh_token"], "refresh_token": ["rt"], "client_id": ["cid"]}]

    def test_async_refresh_failure_warns(self, quiet_output: object, capsys: pytest.CaptureFixture[str]) -> None:
        endpoint = _TokenEndpoint(status=401, body={"error": "invalid_grant"})
        store = CredentialStore("shop")
        profile = _oauth(NOW - 1)
        store.save_profile("main", profile)
        refresher = TokenRefresher(store, create_default_manager(), _clock)

        async def run() -> None:
            async with httpx.AsyncClient(transport=httpx.MockTransport(endpoint)) as client:
                return await refresher.arefresh("main", profile, client)

        assert asyncio.run(run()) is None
        assert store.get_profile("main") == profile
        assert "Token request failed with status 401" in capsys.readouterr().err

    def test_refresh_requires_refresh_token(self) -> None:
        refresher = TokenRefresher(CredentialStore("shop"), _manager(_TokenEndpoint()), _clock)
        assert refresher.refresh("main", BearerProfile(token="t")) is None
        assert refresher.refresh("main", _oauth(NOW, refresh_token="")) is None


class TestResolveCredential:
    def _resolve(self, store: CredentialStore, **kwargs: object):
        manager = create_default_manager()
        refresher = TokenRefresher(store, manager, _clock)
        return resolve_credential("shop", kwargs.pop("auth", None), manager, store, refresher, **kwargs)

    def test_environment_first(self) -> None:
        store = CredentialStore("shop")
        store.save_profile("main", BearerProfile(token="stored"))
        active = self._resolve(store, environ={"APICTL_SHOP_TOKEN": "env"})
        assert active.profile == BearerProfile(token="env")
        assert active.profile_name is None
        assert active.source == "env:APICTL_SHOP_TOKEN"
        assert not active.refreshable

    def test_environment_skips_expiring_stored_token(self) -> None:
        endpoint = _TokenEndpoint()
        manager = _manager(endpoint)
        store = CredentialStore("shop")
        store.save_profile("main", _oauth(NOW + REFRESH_BUFFER_SECONDS - 60))
        before = store.path.read_bytes()

        active = resolve_credential(
            "shop",
            None,
            manager,
            store,
            TokenRefresher(store, manager, _clock),
            environ={"APICTL_SHOP_TOKEN": "env"},
        )

        assert active.profile == BearerProfile(token="env")
        assert active.source == "env:APICTL_SHOP_TOKEN"
        assert not active.refreshable
        assert endpoint.forms == []
        assert store.path.read_bytes() == before

    def test_default_profile(self) -> None:
        store = CredentialStore("shop")
        store.save_profile("main", BearerProfile(token="stored"))
        active = self._resolve(store, environ={})
        assert active.profile_name == "main"
        assert active.source == "store"

    def test_named_profile(self) -> None:
        store = CredentialStore("shop")
        store.save_profile("main", BearerProfile(token="a"))
        store.save_profile("ci", _oauth(NOW + 9999))
        active = self._resolve(store, profile_name="ci", environ={})
        assert active.profile_name == "ci"
        assert active.refreshable

    def test_nothing_stored(self) -> None:
        assert self._resolve(CredentialStore("shop"), environ={}) is None

    def test_missing_requested_profile(self) -> None:
        with pytest.raises(AuthError, match="No stored credentials for shop"):
            self._resolve(CredentialStore("shop"), profile_name="ci", environ={})
        store = CredentialStore("shop")
        store.save_profile("main", BearerProfile(token="a"))
        with pytest.raises(AuthError, match="No profile 'ci' for shop") as exc_info:
            self._resolve(store, profile_name="ci", environ={})
        assert exc_info.value.hint == "Available: main"

    def test_adapter_variable(self) -> None:
        active = self._resolve(
            CredentialStore("shop"),
            auth=AuthSection(type="bearer", env_var="SHOP_SECRET"),
            environ={"SHOP_SECRET": "s"},
        )
        assert active.source == "env:SHOP_SECRET"
