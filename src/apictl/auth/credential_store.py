"""Persistent, profile-scoped credential store, one file per API.

Credentials live in ``<data_dir>/credentials/<api>.json`` as a serialised
:class:`~apictl.models.AuthConfig`::

    {
      "version": 2,
      "defaultProfile": "work",
      "profiles": {
        "work": {"type": "bearer", "token": "..."},
        "ci":   {"type": "apiKey", "apiKey": "...", "header": "X-Api-Key"}
      }
    }

The directory is created ``0o700`` and files are written atomically with
``0o600`` permissions (:func:`~apictl.config.atomic_write`), so secrets are
never readable by other users, even momentarily.

Older documents are upgraded once, at load time, by :func:`upgrade_document`
and rewritten in the current format:

* a single-profile document (a top-level ``type`` and no ``profiles``)
  becomes the ``default`` profile;
* profiles in the flat legacy field layout (``bearerToken``, ``apiKey`` +
  ``apiKeyHeader``, nested ``oauth2`` with a millisecond ``expiresAt``)
  are rewritten into the typed layout.

Concurrent invocations are not coordinated; the last writer wins.
"""

from __future__ import annotations

import json
import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from apictl.auth.base import mask_secret, primary_secret
from apictl.config import atomic_write, get_credentials_dir
from apictl.exceptions import ConfigError, IOFailure, NotFoundError
from apictl.models import CREDENTIAL_FORMAT_VERSION, AuthConfig, AuthProfile, BasicProfile, OAuth2Profile

CREDENTIAL_FILE_MODE = 0o600

_MS_THRESHOLD = 1e12


# --- Format upgrade ---


def upgrade_document(data: dict[str, Any]) -> tuple[dict[str, Any], bool]:
    """Bring a raw credential document up to the current format.

    Returns:
        ``(document, changed)`` where *changed* tells the caller to rewrite
        the file.
    """
    changed = False
    if "profiles" not in data and "type" in data:
        data = {"defaultProfile": "default", "profiles": {"default": data}}
        changed = True

    profiles = data.get("profiles")
    if isinstance(profiles, dict):
        upgraded = {}
        for name, profile in profiles.items():
            new = _upgrade_profile(profile) if isinstance(profile, dict) else profile
            changed = changed or new is not profile
            upgraded[name] = new
        data = {**data, "profiles": upgraded}

    if data.get("version") != CREDENTIAL_FORMAT_VERSION:
        data = {**data, "version": CREDENTIAL_FORMAT_VERSION}
        changed = True
    return data, changed


def _upgrade_profile(profile: dict[str, Any]) -> dict[str, Any]:
    """Rewrite one flat legacy profile; return *profile* itself when it is already current."""
    kind = profile.get("type")
    extra = {"config": profile["config"]} if isinstance(profile.get("config"), dict) else {}

    if kind == "bearer" and "bearerToken" in profile:
        return {"type": "bearer", "token": profile["bearerToken"], **extra}
    if kind == "apiKey" and ("apiKeyHeader" in profile or "apiKeyQuery" in profile):
        return {
            "type": "apiKey",
            "apiKey": profile.get("apiKey") or profile.get("bearerToken") or "",
            "header": profile.get("apiKeyHeader"),
            "query": profile.get("apiKeyQuery"),
            **extra,
        }
    if kind == "oauth2" and isinstance(profile.get("oauth2"), dict):
        oauth = profile["oauth2"]
        expires_at = oauth.get("expiresAt")
        if isinstance(expires_at, (int, float)) and expires_at > _MS_THRESHOLD:
            expires_at = expires_at / 1000.0
        return {
            "type": "oauth2",
            "accessToken": oauth.get("accessToken") or profile.get("bearerToken") or "",
            "refreshToken": oauth.get("refreshToken"),
            "expiresAt": expires_at,
            "tokenUrl": oauth.get("tokenUrl"),
            "refreshUrl": oauth.get("refreshUrl"),
            "clientId": oauth.get("clientId"),
            "clientSecret": oauth.get("clientSecret"),
            "scopes": oauth.get("scopes") or [],
            **extra,
        }
    return profile


# --- Store ---


class CredentialStore:
    """Read and write the stored profiles of one API.

    Every mutating method loads, changes and saves the whole document.

    Example::

        store = CredentialStore("stripe")
        store.save_profile("default", BearerProfile(token="sk_test_123"))
        store.get_profile()            # BearerProfile(token="sk_test_123")
        store.remove_profile("default")
        store.path.exists()            # False
    """

    def __init__(self, api_name: str) -> None:
        self._api_name = api_name

    @property
    def api_name(self) -> str:
        return self._api_name

    @property
    def path(self) -> Path:
        """The credential file for this API."""
        return get_credentials_dir() / f"{self._api_name}.json"

    # ------------------------------------------------------------------
    # Whole-document access
    # ------------------------------------------------------------------

    def load(self) -> Optional[AuthConfig]:
        """Load the document, upgrading and rewriting an older format first.

        Returns:
            The :class:`~apictl.models.AuthConfig`, or ``None`` when no
            credentials are stored.

        Raises:
            ConfigError: If the file is not valid JSON or fails validation.
            IOFailure: If the file cannot be read.
        """
        path = self.path
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Corrupt credential file {path}: {exc}") from exc
        except OSError as exc:
            raise IOFailure(f"Cannot read {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Corrupt credential file {path}: expected an object")

        data, changed = upgrade_document(data)
        try:
            config = AuthConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid credential file {path}: {exc}") from exc
        if changed:
            self.save(config)
        return config

    def save(self, config: AuthConfig) -> None:
        """Persist *config* atomically with owner-only permissions."""
        data = config.model_dump(mode="json", by_alias=True, exclude_none=True)
        atomic_write(self.path, json.dumps(data, indent=2) + "\n", mode=CREDENTIAL_FILE_MODE)

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def get_profile(self, name: Optional[str] = None) -> Optional[AuthProfile]:
        """Return profile *name*, or the default profile when *name* is ``None``."""
        config = self.load()
        if config is None:
            return None
        return config.profiles.get(name or config.default_profile)

    def default_profile_name(self) -> Optional[str]:
        config = self.load()
        return config.default_profile if config else None

    def list_profiles(self) -> list[str]:
        """Return stored profile names in storage order."""
        config = self.load()
        return list(config.profiles) if config else []

    def save_profile(self, name: str, profile: AuthProfile, make_default: bool = False) -> None:
        """Create or replace profile *name*.

        The first profile saved for an API becomes its default.
        """
        config = self.load() or AuthConfig(default_profile=name)
        config.profiles[name] = profile
        if make_default or config.default_profile not in config.profiles:
            config.default_profile = name
        self.save(config)

    def set_default(self, name: str) -> None:
        """Make *name* the default profile.

        Raises:
            NotFoundError: If no such profile is stored.
        """
        config = self.load()
        if config is None or name not in config.profiles:
            raise NotFoundError(
                f"No profile '{name}' for {self._api_name}",
                hint=f"Available: {', '.join(self.list_profiles()) or '(none)'}",
            )
        config.default_profile = name
        self.save(config)

    def remove_profile(self, name: str) -> bool:
        """Remove profile *name*.

        Removing the default profile promotes the first remaining one.
        Removing the last profile deletes the file.

        Returns:
            ``True`` if the profile existed.
        """
        config = self.load()
        if config is None or name not in config.profiles:
            return False
        del config.profiles[name]
        if not config.profiles:
            return self.remove_all()
        if config.default_profile == name:
            config.default_profile = next(iter(config.profiles))
        self.save(config)
        return True

    def remove_all(self) -> bool:
        """Delete the credential file. Returns ``True`` if it existed."""
        path = self.path
        if not path.is_file():
            return False
        try:
            os.unlink(path)
        except OSError as exc:
            raise IOFailure(f"Cannot remove {path}: {exc}") from exc
        return True

    def status(self, now: Optional[float] = None) -> list[dict[str, Any]]:
        """Summarise every stored profile without revealing secrets.

        Each row holds ``profile``, ``type``, ``default``, a masked
        ``secret`` and, for OAuth2 tokens with a known expiry, ``expires``
        (ISO 8601, UTC) and ``expired``.
        """
        config = self.load()
        if config is None:
            return []
        now = time.time() if now is None else now
        rows: list[dict[str, Any]] = []
        for name, profile in config.profiles.items():
            if isinstance(profile, BasicProfile):
                secret = f"{profile.username}:{mask_secret(profile.password, visible=0)}"
            else:
                secret = mask_secret(primary_secret(profile))
            row: dict[str, Any] = {
                "profile": name,
                "type": profile.type,
                "default": name == config.default_profile,
                "secret": secret,
            }
            if isinstance(profile, OAuth2Profile) and profile.expires_at is not None:
                row["expires"] = datetime.fromtimestamp(profile.expires_at, tz=timezone.utc).isoformat()
                row["expired"] = profile.expires_at <= now
            rows.append(row)
        return rows
