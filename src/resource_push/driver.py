"""Resource upload dispatch.

A resource reference given on the command line is either a path to a file
or an image reference. Files go through the resumable upload engine. Images
hosted on an external registry (``external::<image>``) are never transferred:
their digest is resolved from the registry and registered with the store.

Example:
    >>> params = UploadParams(
    ...     artifact_id="cs:~me/wordpress-3",
    ...     resource_name="website",
    ...     reference="./site.tar.gz",
    ...     meta=load_artifact_meta(Path("metadata.yaml")),
    ...     store=store,
    ... )
    >>> revision = upload_resource(params)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Union

import structlog
import yaml

from resource_push.errors import (
    ConfigError,
    ResourceError,
    UnsupportedResourceError,
)
from resource_push.registry.reference import (
    EXTERNAL_PREFIX,
    ImageReference,
    parse_reference,
    split_external,
)
from resource_push.registry.resolver import RegistryDigestResolver
from resource_push.schemas.resources import ArtifactMeta, ResourceType
from resource_push.upload.engine import ResumableUploader

if TYPE_CHECKING:
    from resource_push.store import ProgressCallback, ResourceStore
    from resource_push.upload.cache import UploadIdCache
    from resource_push.upload.engine import NotifyCallback

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FileResource:
    """A file resource, uploaded byte for byte."""

    path: Path


@dataclass(frozen=True)
class ImageResource:
    """An image resource.

    Attributes:
        reference: Parsed image reference.
        external: True when the image lives on an external registry and only
            its digest is registered.
    """

    reference: ImageReference
    external: bool


Resource = Union[FileResource, ImageResource]


@dataclass
class UploadParams:
    """Everything one resource upload needs.

    Attributes:
        artifact_id: Owning artifact identity, e.g. ``cs:~me/wordpress-3``.
        resource_name: Name of the resource declared in the artifact metadata.
        reference: File path or image reference as given by the user.
        meta: Resources declared by the artifact.
        store: Artifact store client.
        cache: Upload-identifier cache, or None to disable resumption.
        resolver: Registry digest resolver for image resources.
        base_dir: Directory relative file paths are resolved against.
        progress: Optional byte-count progress sink for file uploads.
        notify: Optional sink for user-facing notes.
    """

    artifact_id: str
    resource_name: str
    reference: str
    meta: ArtifactMeta
    store: ResourceStore
    cache: UploadIdCache | None = None
    resolver: RegistryDigestResolver | None = None
    base_dir: Path | None = None
    progress: ProgressCallback | None = None
    notify: NotifyCallback | None = None


def parse_resource(
    resource_type: str, reference: str, base_dir: Path | None = None
) -> Resource:
    """Interpret a user-supplied reference for a declared resource type.

    Args:
        resource_type: Declared type, ``file`` or ``oci-image``.
        reference: File path, or image reference optionally prefixed with
            ``external::``.
        base_dir: Directory relative file paths are resolved against.
            Defaults to the current directory.

    Returns:
        FileResource or ImageResource.

    Raises:
        InvalidReferenceError: If an image reference is malformed.
        UnsupportedResourceError: If the resource type is unknown.
    """
    if resource_type == ResourceType.FILE:
        path = Path(reference).expanduser()
        if not path.is_absolute():
            path = (base_dir or Path.cwd()) / path
        return FileResource(path=path)

    if resource_type == ResourceType.OCI_IMAGE:
        bare, external = split_external(reference)
        return ImageResource(reference=parse_reference(bare), external=external)

    raise UnsupportedResourceError(f"unsupported resource type {resource_type!r}")


def upload_resource(params: UploadParams) -> int:
    """Upload one resource and return the revision the store assigned.

    Raises:
        ResourceError: If the artifact does not declare the resource.
        UnsupportedResourceError: For unknown types and non-external images.
        InvalidReferenceError: If an image reference is malformed.
        UploadFailedError: If a file upload fails.
        ResourcePushError: For registry and store failures.
    """
    declared = params.meta.resources.get(params.resource_name)
    if declared is None:
        raise ResourceError(f"no such resource {params.resource_name!r}")

    resource = parse_resource(declared.type, params.reference, params.base_dir)
    log = logger.bind(artifact_id=params.artifact_id, resource_name=params.resource_name)

    if isinstance(resource, FileResource):
        return _upload_file(params, resource, declared.filename, log)
    return _upload_image(params, resource, log)


def _upload_file(
    params: UploadParams, resource: FileResource, filename: str, log: Any
) -> int:
    try:
        f = resource.path.open("rb")
    except OSError as e:
        raise ResourceError(f"cannot open {resource.path}: {e.strerror or e}") from e

    with f:
        size = resource.path.stat().st_size
        log.debug("file_resource_opened", path=str(resource.path), size=size)
        uploader = ResumableUploader(params.store, params.cache, notify=params.notify)
        return uploader.upload(
            params.artifact_id,
            params.resource_name,
            f,
            size,
            filename=filename or resource.path.name,
            progress=params.progress,
        )


def _upload_image(params: UploadParams, resource: ImageResource, log: Any) -> int:
    if not resource.external:
        raise UnsupportedResourceError(
            f"cannot push local image {str(resource.reference)!r}; "
            f"use {EXTERNAL_PREFIX}<image> to register an image hosted on a registry"
        )

    resolver = params.resolver
    if resolver is None:
        owned = RegistryDigestResolver()
        try:
            digest = owned.resolve(resource.reference)
        finally:
            owned.close()
    else:
        digest = resolver.resolve(resource.reference)
    log.info("image_digest_found", image=resource.reference.name, digest=digest)
    return params.store.register_image(
        params.artifact_id, params.resource_name, resource.reference.name, digest
    )


def load_artifact_meta(path: Path) -> ArtifactMeta:
    """Load the resource declarations from an artifact's metadata.yaml.

    Args:
        path: Path to metadata.yaml.

    Returns:
        ArtifactMeta with the declared resources.

    Raises:
        ConfigError: If the file cannot be read or is not valid metadata.
    """
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read artifact metadata {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"invalid artifact metadata {path}: expected a mapping")

    try:
        return ArtifactMeta.model_validate(data)
    except ValueError as e:
        raise ConfigError(f"invalid artifact metadata {path}: {e}") from e


__all__: list[str] = [
    "FileResource",
    "ImageResource",
    "Resource",
    "UploadParams",
    "load_artifact_meta",
    "parse_resource",
    "upload_resource",
]
