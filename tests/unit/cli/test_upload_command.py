"""Unit tests for the upload CLI command."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from resource_push.cli.main import cli
from resource_push.cli.upload import _ByteProgress
from resource_push.errors import ErrorKind, StoreError
from resource_push.upload.cache import UploadIdCache

ARTIFACT = "cs:~me/wordpress-3"


def _invoke(runner: CliRunner, artifact_dir: Path, *args: str) -> Any:
    return runner.invoke(
        cli,
        ["upload", "--metadata", str(artifact_dir / "metadata.yaml"), *args],
    )


class TestUploadHelp:
    """Tests for upload help output."""

    @pytest.mark.requirement("cli")
    def test_upload_appears_in_help(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "upload" in result.output
        assert "resolve-digest" in result.output

    @pytest.mark.requirement("cli")
    def test_upload_help_shows_options(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["upload", "--help"])

        assert result.exit_code == 0
        for option in ("--metadata", "--store-url", "--auth", "--cache-path", "--no-cache"):
            assert option in result.output


class TestUploadFile:
    """Uploading file resources through the CLI."""

    @pytest.mark.requirement("cli")
    def test_uploads_file_and_prints_revision(
        self,
        cli_runner: CliRunner,
        artifact_dir: Path,
        fake_store: Any,
        patched_store: MagicMock,
    ) -> None:
        result = _invoke(
            cli_runner, artifact_dir, ARTIFACT, f"website={artifact_dir / 'site.tar.gz'}"
        )

        assert result.exit_code == 0, result.output
        assert "uploaded revision 1 of website" in result.output
        assert fake_store.received == [b"site archive" * 64]
        assert fake_store.closed

    @pytest.mark.requirement("cli")
    def test_resumes_previous_upload(
        self,
        cli_runner: CliRunner,
        artifact_dir: Path,
        make_store: Any,
        clean_environment: Path,
    ) -> None:
        """A cached upload id is resumed and the user is told so."""
        site = artifact_dir / "site.tar.gz"
        content_hash = hashlib.sha256(site.read_bytes()).digest()
        UploadIdCache(clean_environment).update("upload-9", ARTIFACT, "website", content_hash)
        store = make_store(sessions=["upload-9"], revision=5)

        with _patch_store(store):
            result = _invoke(cli_runner, artifact_dir, ARTIFACT, f"website={site}")

        assert result.exit_code == 0, result.output
        assert "resuming previous upload" in result.output
        assert "uploaded revision 5 of website" in result.output
        assert store.calls == ["upload-9"]

    @pytest.mark.requirement("cli")
    def test_no_cache_skips_resumption(
        self,
        cli_runner: CliRunner,
        artifact_dir: Path,
        make_store: Any,
        clean_environment: Path,
    ) -> None:
        site = artifact_dir / "site.tar.gz"
        content_hash = hashlib.sha256(site.read_bytes()).digest()
        UploadIdCache(clean_environment).update("upload-9", ARTIFACT, "website", content_hash)
        store = make_store(sessions=["upload-9"])

        with _patch_store(store):
            result = _invoke(cli_runner, artifact_dir, "--no-cache", ARTIFACT, f"website={site}")

        assert result.exit_code == 0, result.output
        assert store.calls == [""]

    @pytest.mark.requirement("cli")
    def test_store_options_reach_store(
        self,
        cli_runner: CliRunner,
        artifact_dir: Path,
        patched_store: MagicMock,
    ) -> None:
        result = _invoke(
            cli_runner,
            artifact_dir,
            "--store-url",
            "https://store.example.com/v5/",
            "--auth",
            "admin:secret",
            ARTIFACT,
            f"website={artifact_dir / 'site.tar.gz'}",
        )

        assert result.exit_code == 0, result.output
        args, kwargs = patched_store.call_args
        assert args[0] == "https://store.example.com/v5"
        assert kwargs["auth"].username == "admin"
        assert kwargs["auth"].password.get_secret_value() == "secret"


class TestUploadImage:
    """Registering external images through the CLI."""

    @pytest.mark.requirement("cli")
    def test_registers_external_image(
        self,
        cli_runner: CliRunner,
        artifact_dir: Path,
        fake_store: Any,
        patched_store: MagicMock,
        patched_resolver: MagicMock,
        image_digest: str,
    ) -> None:
        result = _invoke(
            cli_runner, artifact_dir, ARTIFACT, "app-image=external::ghcr.io/me/app:1.2"
        )

        assert result.exit_code == 0, result.output
        assert "uploaded revision 1 of app-image" in result.output
        assert fake_store.images == [(ARTIFACT, "app-image", "ghcr.io/me/app", image_digest)]


class TestUploadErrors:
    """Error reporting and exit codes."""

    @pytest.mark.requirement("cli")
    def test_unknown_resource(
        self, cli_runner: CliRunner, artifact_dir: Path, patched_store: MagicMock
    ) -> None:
        result = _invoke(cli_runner, artifact_dir, ARTIFACT, "logo=logo.png")

        assert result.exit_code == 1
        assert "Error: no such resource 'logo'" in result.output

    @pytest.mark.requirement("cli")
    def test_malformed_resource_argument(
        self, cli_runner: CliRunner, artifact_dir: Path
    ) -> None:
        result = _invoke(cli_runner, artifact_dir, ARTIFACT, "website")

        assert result.exit_code == 2
        assert "expected NAME=REFERENCE" in result.output

    @pytest.mark.requirement("cli")
    def test_cache_options_are_exclusive(
        self, cli_runner: CliRunner, artifact_dir: Path, tmp_path: Path
    ) -> None:
        result = _invoke(
            cli_runner,
            artifact_dir,
            "--no-cache",
            "--cache-path",
            str(tmp_path / "ids.json"),
            ARTIFACT,
            "website=site.tar.gz",
        )

        assert result.exit_code == 2
        assert "mutually exclusive" in result.output

    @pytest.mark.requirement("cli")
    def test_invalid_auth(self, cli_runner: CliRunner, artifact_dir: Path) -> None:
        result = _invoke(cli_runner, artifact_dir, "--auth", "admin", ARTIFACT, "website=x")

        assert result.exit_code == 2
        assert 'invalid auth credentials: expected "user:passwd"' in result.output

    @pytest.mark.requirement("cli")
    def test_local_image_is_rejected(
        self,
        cli_runner: CliRunner,
        artifact_dir: Path,
        patched_store: MagicMock,
        patched_resolver: MagicMock,
    ) -> None:
        result = _invoke(cli_runner, artifact_dir, ARTIFACT, "app-image=ubuntu:22.04")

        assert result.exit_code == 2
        assert "external::" in result.output

    @pytest.mark.requirement("cli")
    def test_upload_failure_exit_code(
        self,
        cli_runner: CliRunner,
        artifact_dir: Path,
        make_store: Any,
    ) -> None:
        """A transient store failure exits with the network error code."""
        store = make_store(error=StoreError("upload part", "reset", kind=ErrorKind.TRANSIENT))

        with _patch_store(store):
            result = _invoke(
                cli_runner, artifact_dir, ARTIFACT, f"website={artifact_dir / 'site.tar.gz'}"
            )

        assert result.exit_code == 5
        assert "can't upload resource" in result.output


def _patch_store(store: Any) -> Any:
    return patch("resource_push.cli.upload.HTTPResourceStore", return_value=store)


class TestByteProgress:
    """Progress bar updates from cumulative byte counts."""

    @pytest.mark.requirement("cli")
    def test_updates_by_difference(self) -> None:
        bar = MagicMock()
        progress = _ByteProgress(bar)

        progress(1024)
        progress(1024)
        progress(2560)

        assert [c.args[0] for c in bar.update.call_args_list] == [1024, 1536]

    @pytest.mark.requirement("cli")
    def test_restarted_upload_moves_bar_back(self) -> None:
        """A fresh upload after an expired session reports from zero again."""
        bar = MagicMock()
        progress = _ByteProgress(bar)

        progress(2048)
        progress(0)
        progress(1024)

        assert [c.args[0] for c in bar.update.call_args_list] == [2048, -2048, 1024]
