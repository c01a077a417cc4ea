"""Upload-id cache CLI commands.

Example:
    $ resource-push cache prune
    removed 2 expired upload cache entries
"""

from __future__ import annotations

from pathlib import Path

import click

from resource_push.cli.upload import build_config, open_cache
from resource_push.cli.utils import fail, info, success
from resource_push.errors import ResourcePushError


@click.group(name="cache", help="Upload-id cache maintenance commands.")
def cache() -> None:
    """Upload-id cache command group."""
    pass


@cache.command(
    name="prune",
    help="Remove upload ids older than the cache expiry window.",
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option(
    "--cache-path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Upload-id cache file.",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML configuration file.",
)
def prune_command(cache_path: Path | None, config_path: Path | None) -> None:
    """Remove expired cache entries."""
    try:
        config = build_config(config_path)
        upload_cache = open_cache(config, cache_path)
        if upload_cache is None:
            info("upload cache is disabled")
            return
        removed = upload_cache.remove_expired()
    except ResourcePushError as e:
        fail(e)

    success(f"removed {removed} expired upload cache entries")


__all__: list[str] = ["cache"]
