"""Tests for environment-sourced credentials."""

from __future__ import annotations

from apictl.adapters.config import AuthSection
from apictl.auth.environment import credential_from_env, env_var_candidates
from apictl.auth.manager import create_default_manager
from apictl.models import ApiKeyProfile, BasicProfile, BearerProfile


class TestEnvVarCandidates:
    def test_order(self) -> None:
        auth = AuthSection(type="bearer", env_var="STRIPE_SECRET")
        assert env_var_candidates("my-shop", auth) == ["STRIPE_SECRET", "APICTL_MY_SHOP_TOKEN", "MY_SHOP_API_KEY"]
        assert env_var_candidates("shop", None) == ["APICTL_SHOP_TOKEN", "SHOP_API_KEY"]


class TestCredentialFromEnv:
    def test_nothing_set(self) -> None:
        assert credential_from_env("shop", None, create_default_manager(), {}) is None

    def test_adapter_variable_wins(self) -> None:
        auth = AuthSection(type="apiKey", env_var="SHOP_KEY", header="X-Key")
        environ = {"SHOP_KEY": "k1", "APICTL_SHOP_TOKEN": "t1", "SHOP_API_KEY": "k2"}
        assert credential_from_env("shop", auth, create_default_manager(), environ) == (
            "SHOP_KEY",
            ApiKeyProfile(api_key="k1", header="X-Key"),
        )

    def test_user_pass_pair(self) -> None:
        auth = AuthSection(type="basic", env_var_user="SHOP_USER", env_var_pass="SHOP_PASS")
        environ = {"SHOP_USER": "ann", "SHOP_PASS": "pw", "APICTL_SHOP_TOKEN": "t"}
        assert credential_from_env("shop", auth, create_default_manager(), environ) == (
            "SHOP_USER",
            BasicProfile(username="ann", password="pw"),
        )

    def test_pair_needs_both(self) -> None:
        auth = AuthSection(type="basic", env_var_user="SHOP_USER", env_var_pass="SHOP_PASS")
        environ = {"SHOP_USER": "ann", "APICTL_SHOP_TOKEN": "ann:pw2"}
        assert credential_from_env("shop", auth, create_default_manager(), environ) == (
            "APICTL_SHOP_TOKEN",
            BasicProfile(username="ann", password="pw2"),
        )

    def test_generic_variables(self) -> None:
        manager = create_default_manager()
        assert credential_from_env("shop", None, manager, {"APICTL_SHOP_TOKEN": "t", "SHOP_API_KEY": "k"}) == (
            "APICTL_SHOP_TOKEN",
            BearerProfile(token="t"),
        )
        assert credential_from_env("shop", None, manager, {"SHOP_API_KEY": "k"}) == (
            "SHOP_API_KEY",
            BearerProfile(token="k"),
        )

    def test_empty_values_ignored(self) -> None:
        auth = AuthSection(type="bearer", env_var="SHOP_TOKEN")
        assert credential_from_env("shop", auth, create_default_manager(), {"SHOP_TOKEN": ""}) is None

    def test_reads_process_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("APICTL_SHOP_TOKEN", "from-env")
        assert credential_from_env("shop", None, create_default_manager()) == (
            "APICTL_SHOP_TOKEN",
            BearerProfile(token="from-env"),
        )
