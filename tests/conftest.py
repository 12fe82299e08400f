"""Shared test fixtures for apictl.

Provides isolated config/data directories, sample OpenAPI documents,
installed-API helpers and output-state management. These fixtures are
discovered by pytest and available to every test module.
"""

from __future__ import annotations

import json
import os
import shutil
from pathlib import Path
from typing import Any, Callable

import pytest
import yaml

from apictl.output import OutputFormat, OutputManager, reset_output, set_output
from apictl.parser.document import SpecDocument, build_document

FIXTURES_DIR = Path(__file__).parent / "fixtures"

_LEAKY_VARS = ("API_TOKEN", "STRIPE_API_KEY", "GITHUB_TOKEN", "NO_COLOR")


# ---------------------------------------------------------------------------
# Global state isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager binds sys.stdout/sys.stderr at creation time; a
    manager created under CliRunner or capsys must not outlive the test.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every apictl directory at tmp_path and clear credential variables.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path,
    removes all APICTL_* and ``*_API_KEY`` variables, and changes the
    working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("apictl.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in list(os.environ):
        if var.startswith("APICTL_") or var.endswith("_API_KEY") or var in _LEAKY_VARS:
            monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@pytest.fixture
def petstore_raw() -> dict[str, Any]:
    """Raw petstore document (YAML fixture)."""
    with open(FIXTURES_DIR / "petstore.yaml") as f:
        return yaml.safe_load(f)


@pytest.fixture
def petstore_doc(petstore_raw: dict[str, Any]) -> SpecDocument:
    return build_document(petstore_raw)


@pytest.fixture
def customers_raw() -> dict[str, Any]:
    """Raw customers document (JSON fixture)."""
    with open(FIXTURES_DIR / "customers.json") as f:
        return json.load(f)


@pytest.fixture
def customers_doc(customers_raw: dict[str, Any]) -> SpecDocument:
    return build_document(customers_raw)


@pytest.fixture
def install_spec() -> Callable[[str, str], Path]:
    """Return a helper copying a fixture document into the specs directory.

    Usage::

        install_spec("customers", "customers.json")
    """
    from apictl.config import get_specs_dir

    def _install(api_name: str, fixture: str) -> Path:
        target = get_specs_dir() / f"{api_name}{Path(fixture).suffix}"
        shutil.copyfile(FIXTURES_DIR / fixture, target)
        return target

    return _install


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet, colourless output manager."""
    output = OutputManager(format=OutputFormat.JSON, quiet=True, no_color=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def verbose_output() -> OutputManager:
    """Install a verbose, colourless output manager so debug lines reach stderr as plain text."""
    output = OutputManager(format=OutputFormat.JSON, verbose=True, no_color=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
