"""Tests for auth plugins and AuthManager dispatch."""

from __future__ import annotations

import base64
from typing import Any

import pytest

from apictl.adapters.config import AuthApplier, AuthSection, OAuthSection
from apictl.adapters.context import AdapterContext, AdapterRequest
from apictl.auth.base import mask_secret, primary_secret
from apictl.auth.manager import AuthManager, create_default_manager
from apictl.exceptions import AuthError
from apictl.models import ApiKeyProfile, BasicProfile, BearerProfile, OAuth2Profile
from apictl.plugins.api_key import APIKeyAuthPlugin
from apictl.plugins.basic import BasicAuthPlugin
from apictl.plugins.bearer import BearerAuthPlugin
from apictl.plugins.oauth2 import OAuth2AuthPlugin


def _request() -> AdapterRequest:
    return AdapterRequest(method="GET", url="https://api.test/items")


# ---------------------------------------------------------------------------
# APIKeyAuthPlugin
# ---------------------------------------------------------------------------


class TestAPIKeyAuthPlugin:
    def test_auth_type(self) -> None:
        assert APIKeyAuthPlugin().auth_type == "apiKey"

    def test_adapter_header_wins(self) -> None:
        request = _request()
        profile = ApiKeyProfile(api_key="k1", header="X-Old")
        APIKeyAuthPlugin().apply(request, profile, AuthSection(type="apiKey", header="X-Api-Key"))
        assert request.headers == {"X-Api-Key": "k1"}

    def test_adapter_query(self) -> None:
        request = _request()
        APIKeyAuthPlugin().apply(request, ApiKeyProfile(api_key="k1"), AuthSection(type="apiKey", query="api_key"))
        assert request.query == {"api_key": "k1"}
        assert request.headers == {}

    def test_profile_placement(self) -> None:
        request = _request()
        APIKeyAuthPlugin().apply(request, ApiKeyProfile(api_key="k1", query="key"))
        assert request.query == {"key": "k1"}

    def test_no_placement_is_bearer(self) -> None:
        request = _request()
        APIKeyAuthPlugin().apply(request, BearerProfile(token="t"))
        assert request.headers == {"Authorization": "Bearer t"}

    def test_from_secret(self) -> None:
        plugin = APIKeyAuthPlugin()
        assert plugin.from_secret("k", AuthSection(type="apiKey", header="X-Key")) == ApiKeyProfile(
            api_key="k", header="X-Key"
        )
        assert plugin.from_secret("k").header == "Authorization"

    def test_basic_profile_rejected(self) -> None:
        with pytest.raises(AuthError, match="cannot be used for 'apiKey'"):
            APIKeyAuthPlugin().apply(_request(), BasicProfile(username="u", password="p"))


# ---------------------------------------------------------------------------
# BearerAuthPlugin
# ---------------------------------------------------------------------------


class TestBearerAuthPlugin:
    def test_apply_replaces_existing_spelling(self) -> None:
        request = _request()
        request.headers["authorization"] = "old"
        BearerAuthPlugin().apply(request, BearerProfile(token="tok"))
        assert request.headers == {"Authorization": "Bearer tok"}

    def test_oauth_profile_accepted(self) -> None:
        request = _request()
        BearerAuthPlugin().apply(request, OAuth2Profile(access_token="at"))
        assert request.header("Authorization") == "Bearer at"

    def test_from_secret(self) -> None:
        assert BearerAuthPlugin().from_secret("s") == BearerProfile(token="s")


# ---------------------------------------------------------------------------
# BasicAuthPlugin
# ---------------------------------------------------------------------------


class TestBasicAuthPlugin:
    def test_apply(self) -> None:
        request = _request()
        BasicAuthPlugin().apply(request, BasicProfile(username="user", password="pa:ss"))
        expected = base64.b64encode(b"user:pa:ss").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"

    def test_from_secret_splits_first_colon(self) -> None:
        assert BasicAuthPlugin().from_secret("user:pa:ss") == BasicProfile(username="user", password="pa:ss")

    def test_from_secret_without_colon_is_bearer(self) -> None:
        plugin = BasicAuthPlugin()
        profile = plugin.from_secret("just-a-token")
        assert profile == BearerProfile(token="just-a-token")
        request = _request()
        plugin.apply(request, profile)
        assert request.headers["Authorization"] == "Bearer just-a-token"

    def test_wrong_profile_type(self) -> None:
        with pytest.raises(AuthError):
            BasicAuthPlugin().apply(_request(), ApiKeyProfile(api_key="k"))


# ---------------------------------------------------------------------------
# OAuth2AuthPlugin
# ---------------------------------------------------------------------------


class TestOAuth2AuthPlugin:
    def test_from_secret_carries_endpoints(self) -> None:
        auth = AuthSection(
            type="oauth2",
            oauth=OAuthSection(token_url="https://auth.test/token", client_id="cid", scopes=["read"]),
        )
        profile = OAuth2AuthPlugin().from_secret("at", auth)
        assert profile.access_token == "at"
        assert profile.token_url == "https://auth.test/token"
        assert profile.client_id == "cid"
        assert profile.scopes == ["read"]

    def test_apply(self) -> None:
        request = _request()
        OAuth2AuthPlugin().apply(request, OAuth2Profile(access_token="at"))
        assert request.headers["Authorization"] == "Bearer at"


# ---------------------------------------------------------------------------
# AuthManager
# ---------------------------------------------------------------------------


class _SignatureApplier(AuthApplier):
    def __init__(self) -> None:
        self.calls: list[Any] = []

    def apply(self, request: AdapterRequest, credential: Any, ctx: AdapterContext) -> None:
        self.calls.append(credential)
        request.set_header("X-Signature", f"{ctx.api}:{ctx.config.get('secret')}")


class TestAuthManager:
    def test_default_types(self) -> None:
        assert create_default_manager().list_types() == ["apiKey", "basic", "bearer", "oauth2"]

    def test_unknown_type(self) -> None:
        with pytest.raises(AuthError, match="No auth plugin registered for type 'digest'"):
            AuthManager().get_plugin("digest")

    def test_adapter_type_selects_plugin(self) -> None:
        request = _request()
        create_default_manager().apply(
            request, BearerProfile(token="k"), AuthSection(type="apiKey", header="X-Key"), AdapterContext()
        )
        assert request.headers == {"X-Key": "k"}

    def test_profile_type_without_section(self) -> None:
        request = _request()
        create_default_manager().apply(request, BasicProfile(username="u", password="p"), None, AdapterContext())
        assert request.headers["Authorization"].startswith("Basic ")

    def test_no_profile_is_noop(self) -> None:
        request = _request()
        create_default_manager().apply(request, None, AuthSection(type="bearer"), AdapterContext())
        assert request.headers == {}

    def test_custom_applier_always_called(self) -> None:
        applier = _SignatureApplier()
        request = _request()
        ctx = AdapterContext(api="shop", config={"secret": "s3"})
        create_default_manager().apply(request, None, AuthSection(type="custom", applier=applier), ctx)
        assert applier.calls == [None]
        assert request.headers == {"X-Signature": "shop:s3"}

    def test_profile_from_secret(self) -> None:
        manager = create_default_manager()
        assert manager.profile_from_secret("t", None) == BearerProfile(token="t")
        assert isinstance(manager.profile_from_secret("u:p", AuthSection(type="basic")), BasicProfile)
        custom = AuthSection(type="custom", applier=_SignatureApplier())
        assert manager.profile_from_secret("t", custom) == BearerProfile(token="t")


class TestSecretHelpers:
    def test_primary_secret(self) -> None:
        assert primary_secret(ApiKeyProfile(api_key="k")) == "k"
        assert primary_secret(OAuth2Profile(access_token="a")) == "a"
        assert primary_secret(BasicProfile(username="u")) is None

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(None, ""), ("abc", "***"), ("sk_live_1234", "sk_l********"), ("x" * 40, "xxxx" + "*" * 12)],
    )
    def test_mask_secret(self, value: Any, expected: str) -> None:
        assert mask_secret(value) == expected
