"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for apictl:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.apictl/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_data_dir`, :func:`get_specs_dir`, :func:`get_credentials_dir`.
* **Global config** -- A single :class:`~apictl.models.GlobalConfig`
  JSON file storing the default output format, a timeout override and
  per-API settings.
* **Installed specs** -- one OpenAPI document per API under the specs
  directory, located with :func:`find_spec_file`.
* **Precedence resolution** -- :func:`resolve_api_settings` merges CLI
  flags, environment variables and the global config for one API.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) so a crash never leaves a half-written file.
"""

from __future__ import annotations

import json
import os
import platform
import re
import tempfile
from pathlib import Path
from typing import Optional

from apictl.exceptions import ConfigError, IOFailure
from apictl.models import APISettings, GlobalConfig

_APP_NAME = "apictl"
_CONFIG_FILENAME = "config.json"
_SPEC_SUFFIXES = (".yaml", ".yml", ".json")


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform follows the XDG Base Directory spec (Linux/BSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/apictl/`` (default ``~/.config/apictl/``).
    On macOS/Windows: ``~/.apictl/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (credentials, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/apictl/`` (default ``~/.local/share/apictl/``).
    On macOS/Windows: ``~/.apictl/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_specs_dir() -> Path:
    """Return ``<config_dir>/specs/``, where installed OpenAPI documents live."""
    path = get_config_dir() / "specs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_credentials_dir() -> Path:
    """Return the owner-only credentials directory, creating it if necessary.

    Raises:
        IOFailure: If the directory cannot be created or restricted.
    """
    path = get_data_dir() / "credentials"
    try:
        path.mkdir(mode=0o700, parents=True, exist_ok=True)
        os.chmod(path, 0o700)
    except OSError as exc:
        raise IOFailure(f"Cannot prepare credentials directory {path}: {exc}") from exc
    return path


def find_spec_file(api_name: str) -> Optional[Path]:
    """Locate the installed OpenAPI document for *api_name*.

    Returns:
        The first existing ``<specs_dir>/<api_name>.{yaml,yml,json}``, or
        ``None`` when the API is not installed.
    """
    specs_dir = get_specs_dir()
    for suffix in _SPEC_SUFFIXES:
        candidate = specs_dir / f"{api_name}{suffix}"
        if candidate.is_file():
            return candidate
    return None


def list_installed_apis() -> list[str]:
    """Return the names of all installed APIs, sorted alphabetically."""
    specs_dir = get_specs_dir()
    return sorted(
        {p.stem for p in specs_dir.iterdir() if p.is_file() and p.suffix in _SPEC_SUFFIXES}
    )


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write *data* to *path* atomically using a temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. When *mode* is
    given, the temp file is restricted before any content is written, so
    the secret is never readable by others, even momentarily.

    Raises:
        IOFailure: On permission or space errors.
    """
    fd = None
    tmp_path: Optional[str] = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException as exc:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        if isinstance(exc, OSError):
            raise IOFailure(f"Cannot write {path}: {exc}") from exc
        raise


# --- Global config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the config directory.

    Returns:
        The deserialised :class:`~apictl.models.GlobalConfig`, or a default
        instance when the file does not exist.

    Raises:
        ConfigError: If the file exists but is invalid JSON or fails validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc
    except OSError as exc:
        raise IOFailure(f"Cannot read {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically."""
    data = config.model_dump(mode="json", exclude_defaults=True)
    atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def env_prefix(api_name: str) -> str:
    """Return the upper-snake form of *api_name* used in environment variable names.

    Example::

        >>> env_prefix("my-api.v2")
        'MY_API_V2'
    """
    return re.sub(r"[^A-Za-z0-9]+", "_", api_name).strip("_").upper()


def resolve_api_settings(
    api_name: str,
    config: Optional[GlobalConfig] = None,
    cli_profile: Optional[str] = None,
    cli_base_url: Optional[str] = None,
) -> APISettings:
    """Resolve the effective settings for one API.

    Precedence (high to low):
        1. CLI flags (``cli_profile``, ``cli_base_url``)
        2. Environment variables (``APICTL_<API>_PROFILE``, ``APICTL_<API>_BASE_URL``)
        3. ``apis.<name>`` in the global config
        4. Defaults (``None``; the adapter and document decide later)

    Returns:
        A new :class:`~apictl.models.APISettings`; the stored config is not mutated.
    """
    config = config if config is not None else load_global_config()
    stored = config.apis.get(api_name, APISettings())
    settings = stored.model_copy(deep=True)

    prefix = f"APICTL_{env_prefix(api_name)}"
    env_profile = os.environ.get(f"{prefix}_PROFILE")
    if env_profile:
        settings.profile = env_profile
    env_base_url = os.environ.get(f"{prefix}_BASE_URL")
    if env_base_url:
        settings.base_url = env_base_url

    if cli_profile is not None:
        settings.profile = cli_profile
    if cli_base_url is not None:
        settings.base_url = cli_base_url
    return settings
