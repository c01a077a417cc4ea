"""Unit test fixtures for the CLI.

CLI tests run without network access: the store and the registry
resolver are replaced where the commands construct them.
"""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

METADATA_YAML = """
name: wordpress
resources:
  website:
    type: file
    filename: site.tar.gz
  app-image:
    type: oci-image
"""


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Keep the CLI away from the user's environment and home directory.

    Returns:
        The cache file the CLI uses by default during the test.
    """
    cache_path = tmp_path / "cache" / "upload-ids.json"
    monkeypatch.delenv("RESOURCE_PUSH_STORE_URL", raising=False)
    monkeypatch.delenv("RESOURCE_PUSH_AUTH", raising=False)
    monkeypatch.setenv("RESOURCE_PUSH_CACHE_PATH", str(cache_path))
    return cache_path


@pytest.fixture
def artifact_dir(tmp_path: Path) -> Path:
    """Directory holding metadata.yaml and a site archive."""
    directory = tmp_path / "artifact"
    directory.mkdir()
    (directory / "metadata.yaml").write_text(METADATA_YAML)
    (directory / "site.tar.gz").write_bytes(b"site archive" * 64)
    return directory


@pytest.fixture
def patched_store(fake_store: Any) -> Generator[MagicMock, None, None]:
    """Route the upload command's store construction to the FakeStore."""
    with patch("resource_push.cli.upload.HTTPResourceStore", return_value=fake_store) as factory:
        yield factory


@pytest.fixture
def patched_resolver(image_digest: str) -> Generator[MagicMock, None, None]:
    """Replace the registry resolver used by the CLI commands."""
    resolver = MagicMock()
    resolver.resolve.return_value = image_digest
    with patch("resource_push.cli.upload.RegistryDigestResolver", return_value=resolver), patch(
        "resource_push.cli.resolve.RegistryDigestResolver", return_value=resolver
    ):
        yield resolver
