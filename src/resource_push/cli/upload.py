"""Resource upload CLI command.

Example:
    $ resource-push upload cs:~me/wordpress-3 website=./site.tar.gz
    uploaded revision 4 of website

    $ resource-push upload cs:~me/k8s-app-1 app-image=external::ghcr.io/me/app:1.2
    uploaded revision 2 of app-image

Environment Variables:
    RESOURCE_PUSH_STORE_URL: Artifact store API root
    RESOURCE_PUSH_AUTH: Store credentials as user:passwd
    RESOURCE_PUSH_CACHE_PATH: Upload-id cache file (empty disables the cache)
"""

from __future__ import annotations

import contextlib
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

from resource_push.cli.utils import ExitCode, error_exit, fail, info, success
from resource_push.config import load_config, parse_auth
from resource_push.driver import (
    FileResource,
    UploadParams,
    load_artifact_meta,
    parse_resource,
    upload_resource,
)
from resource_push.errors import ResourcePushError
from resource_push.registry.resolver import RegistryDigestResolver
from resource_push.store import HTTPResourceStore
from resource_push.upload.cache import UploadIdCache

if TYPE_CHECKING:
    from resource_push.schemas.config import UploaderConfig
    from resource_push.schemas.resources import ArtifactMeta


@click.command(
    name="upload",
    help="""\b
Upload a resource for an artifact.

RESOURCE is NAME=REFERENCE. For file resources REFERENCE is a path; the
upload resumes automatically if a previous upload of the same content
was interrupted. For oci-image resources REFERENCE must be
external::<image>; the image digest is resolved from its registry and
registered with the store.

Examples:
    $ resource-push upload cs:~me/wordpress-3 website=./site.tar.gz

    $ resource-push upload cs:~me/app-1 app-image=external::ubuntu:22.04
""",
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.argument("artifact_id")
@click.argument("resource", metavar="NAME=REFERENCE")
@click.option(
    "--metadata",
    "-m",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("metadata.yaml"),
    show_default=True,
    help="Artifact metadata declaring its resources.",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML configuration file.",
)
@click.option("--store-url", type=str, default=None, help="Artifact store API root.")
@click.option(
    "--auth",
    type=str,
    default=None,
    help="user:passwd to use for basic HTTP authentication.",
)
@click.option(
    "--cache-path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Upload-id cache file.",
)
@click.option("--no-cache", is_flag=True, default=False, help="Do not resume or record uploads.")
@click.option("--quiet", "-q", is_flag=True, default=False, help="Suppress progress output.")
def upload_command(
    artifact_id: str,
    resource: str,
    metadata: Path,
    config_path: Path | None,
    store_url: str | None,
    auth: str | None,
    cache_path: Path | None,
    no_cache: bool,
    quiet: bool,
) -> None:
    """Upload a resource and print the new revision."""
    if cache_path is not None and no_cache:
        error_exit("--cache-path and --no-cache are mutually exclusive", ExitCode.USAGE_ERROR)

    resource_name, sep, reference = resource.partition("=")
    if not sep or not resource_name or not reference:
        error_exit(
            f"invalid resource {resource!r}: expected NAME=REFERENCE",
            ExitCode.USAGE_ERROR,
        )

    try:
        config = build_config(config_path, store_url=store_url, auth=auth)
        meta = load_artifact_meta(metadata)
        cache = None if no_cache else open_cache(config, cache_path)
        store = HTTPResourceStore(
            config.store_url,
            auth=config.auth,
            part_size=config.part_size_bytes,
            timeout=config.timeout_seconds,
        )
        resolver = RegistryDigestResolver(timeout=config.timeout_seconds)
        try:
            with _progress_bar(meta, resource_name, reference, quiet) as progress:
                revision = upload_resource(
                    UploadParams(
                        artifact_id=artifact_id,
                        resource_name=resource_name,
                        reference=reference,
                        meta=meta,
                        store=store,
                        cache=cache,
                        resolver=resolver,
                        progress=progress,
                        notify=info,
                    )
                )
        finally:
            store.close()
            resolver.close()
    except ResourcePushError as e:
        fail(e)

    success(f"uploaded revision {revision} of {resource_name}")


def build_config(
    config_path: Path | None,
    *,
    store_url: str | None = None,
    auth: str | None = None,
) -> UploaderConfig:
    """Load configuration and apply command-line overrides.

    Raises:
        ConfigError: If the configuration or credentials are invalid.
    """
    config = load_config(config_path)
    update: dict[str, Any] = {}
    if store_url:
        update["store_url"] = store_url.rstrip("/")
    if auth is not None:
        update["auth"] = parse_auth(auth)
    return config.model_copy(update=update) if update else config


def open_cache(config: UploaderConfig, cache_path: Path | None = None) -> UploadIdCache | None:
    """Open the upload-id cache, or return None when caching is disabled.

    Raises:
        CacheError: If the cache directory cannot be created.
    """
    if cache_path is not None:
        return UploadIdCache(cache_path.expanduser(), config.cache.expiry)
    if not config.cache.enabled:
        return None
    return UploadIdCache(config.cache.path, config.cache.expiry)


class _ByteProgress:
    """Feeds cumulative byte counts into a click progress bar.

    A restarted upload reports from zero again, so the bar moves back too.
    """

    def __init__(self, bar: Any) -> None:
        self._bar = bar
        self._seen = 0

    def __call__(self, total: int) -> None:
        if total != self._seen:
            self._bar.update(total - self._seen)
            self._seen = total


@contextlib.contextmanager
def _progress_bar(meta: ArtifactMeta, resource_name: str, reference: str, quiet: bool) -> Any:
    """Yield a progress callback for file uploads, or None."""
    declared = meta.resources.get(resource_name)
    size = 0
    if not quiet and declared is not None:
        with contextlib.suppress(ResourcePushError, OSError):
            target = parse_resource(declared.type, reference)
            if isinstance(target, FileResource) and target.path.is_file():
                size = target.path.stat().st_size

    if size <= 0:
        yield None
        return

    with click.progressbar(
        length=size,
        label=f"uploading {resource_name}",
        file=click.get_text_stream("stderr"),
    ) as bar:
        yield _ByteProgress(bar)


__all__: list[str] = ["build_config", "open_cache", "upload_command"]
