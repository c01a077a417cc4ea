"""Unit tests for the resolve-digest and cache CLI commands."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner

from resource_push.cli.main import cli
from resource_push.errors import DigestMismatchError
from resource_push.schemas.upload import UploadCacheEntry, UploadCacheIndex


class TestResolveDigestCommand:
    """Tests for resolve-digest."""

    @pytest.mark.requirement("cli")
    def test_prints_digest(
        self, cli_runner: CliRunner, patched_resolver: MagicMock, image_digest: str
    ) -> None:
        result = cli_runner.invoke(cli, ["resolve-digest", "external::ubuntu:22.04"])

        assert result.exit_code == 0, result.output
        assert image_digest in result.output
        reference = patched_resolver.resolve.call_args.args[0]
        assert reference.name == "docker.io/library/ubuntu"
        assert reference.tag == "22.04"

    @pytest.mark.requirement("cli")
    def test_invalid_reference(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["resolve-digest", "Ubuntu"])

        assert result.exit_code == 2
        assert "Error: invalid image name 'Ubuntu'" in result.output

    @pytest.mark.requirement("cli")
    def test_protocol_error_exit_code(
        self, cli_runner: CliRunner, patched_resolver: MagicMock
    ) -> None:
        patched_resolver.resolve.side_effect = DigestMismatchError(
            "sha256:" + "a" * 64, "sha256:" + "b" * 64, "docker.io/library/ubuntu"
        )

        result = cli_runner.invoke(cli, ["resolve-digest", "ubuntu"])

        assert result.exit_code == 6
        assert "cannot verify image digest" in result.output


class TestCachePruneCommand:
    """Tests for cache prune."""

    @pytest.mark.requirement("cli")
    def test_removes_expired_entries(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        cache_path = tmp_path / "ids.json"
        now = datetime.now(timezone.utc)
        entries = [
            UploadCacheEntry(
                artifact_id="cs:app-1",
                resource_name=name,
                content_hash="ab" * 32,
                upload_id=f"upload-{name}",
                created_at=now - age,
            )
            for name, age in (("old", timedelta(days=3)), ("new", timedelta(hours=1)))
        ]
        cache_path.write_text(UploadCacheIndex(entries=entries).model_dump_json())

        result = cli_runner.invoke(cli, ["cache", "prune", "--cache-path", str(cache_path)])

        assert result.exit_code == 0, result.output
        assert "removed 1 expired upload cache entries" in result.output
        remaining = json.loads(cache_path.read_text())["entries"]
        assert [e["resource_name"] for e in remaining] == ["new"]

    @pytest.mark.requirement("cli")
    def test_disabled_cache(
        self, cli_runner: CliRunner, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("RESOURCE_PUSH_CACHE_PATH", "")

        result = cli_runner.invoke(cli, ["cache", "prune"])

        assert result.exit_code == 0
        assert "upload cache is disabled" in result.output


class TestRootGroup:
    """Tests for root options."""

    @pytest.mark.requirement("cli")
    def test_version(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "resource-push" in result.output

    @pytest.mark.requirement("cli")
    def test_unknown_log_level(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--log-level", "chatty", "cache", "prune"])

        assert result.exit_code == 2
