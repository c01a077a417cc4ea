"""Container image reference parsing.

References follow the Docker normalisation rules:

    ubuntu                      -> docker.io/library/ubuntu:latest
    me/app:1.2                  -> docker.io/me/app:1.2
    ghcr.io/org/app@sha256:...  -> ghcr.io/org/app@sha256:...
    localhost:5000/app:dev      -> localhost:5000/app:dev

A reference prefixed with ``external::`` names an image hosted on an
external registry whose digest is resolved remotely.

Example:
    >>> ref = parse_reference("ubuntu:22.04")
    >>> ref.name
    'docker.io/library/ubuntu'
    >>> ref.tag_or_digest
    '22.04'
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from resource_push.errors import InvalidReferenceError

EXTERNAL_PREFIX = "external::"

DEFAULT_DOMAIN = "docker.io"
LEGACY_DEFAULT_DOMAIN = "index.docker.io"
OFFICIAL_REPO_PREFIX = "library/"
DOCKER_HUB_REGISTRY_HOST = "registry-1.docker.io"
DEFAULT_TAG = "latest"

_COMPONENT = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
_DOMAIN = re.compile(
    r"^(?:[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?)"
    r"(?:\.(?:[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?))*"
    r"(?::[0-9]+)?$"
)
_TAG = re.compile(r"^[\w][\w.-]{0,127}$")
_DIGEST = re.compile(r"^[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}$")

NAME_TOTAL_LENGTH_MAX = 255


@dataclass(frozen=True)
class ImageReference:
    """A normalised image reference.

    Attributes:
        domain: Registry domain, e.g. docker.io or ghcr.io.
        path: Repository path within the registry, e.g. library/ubuntu.
        tag: Tag, if the reference carried one.
        digest: Digest, if the reference carried one.
    """

    domain: str
    path: str
    tag: str | None = None
    digest: str | None = None

    @property
    def name(self) -> str:
        """Return the fully qualified repository name."""
        return f"{self.domain}/{self.path}"

    @property
    def tag_or_digest(self) -> str:
        """Return what to ask the registry for: the tag, else the digest, else latest."""
        if self.tag:
            return self.tag
        if self.digest:
            return self.digest
        return DEFAULT_TAG

    @property
    def is_canonical(self) -> bool:
        """Check whether the reference pins a digest."""
        return self.digest is not None

    def __str__(self) -> str:
        ref = self.name
        if self.tag:
            ref += f":{self.tag}"
        if self.digest:
            ref += f"@{self.digest}"
        return ref


def split_external(reference: str) -> tuple[str, bool]:
    """Strip the ``external::`` prefix.

    Returns:
        The bare reference and whether the prefix was present.
    """
    if reference.startswith(EXTERNAL_PREFIX):
        return reference[len(EXTERNAL_PREFIX) :], True
    return reference, False


def parse_reference(reference: str) -> ImageReference:
    """Parse and normalise an image reference.

    Args:
        reference: Image reference such as ``ubuntu`` or ``ghcr.io/org/app:v1``.

    Returns:
        The normalised ImageReference.

    Raises:
        InvalidReferenceError: If the reference is malformed.
    """
    if not reference:
        raise InvalidReferenceError(reference, "repository name must have at least one component")

    remainder = reference
    digest: str | None = None
    if "@" in remainder:
        remainder, digest = remainder.split("@", 1)
        if not _DIGEST.match(digest):
            raise InvalidReferenceError(reference, "invalid digest format")

    tag: str | None = None
    last_slash = remainder.rfind("/")
    colon = remainder.rfind(":")
    if colon > last_slash:
        remainder, tag = remainder[:colon], remainder[colon + 1 :]
        if not _TAG.match(tag):
            raise InvalidReferenceError(reference, "invalid tag format")

    domain, path = _split_domain(remainder)
    if not _DOMAIN.match(domain):
        raise InvalidReferenceError(reference, "invalid domain")
    if path.lower() != path:
        raise InvalidReferenceError(reference, "repository name must be lowercase")
    for component in path.split("/"):
        if not _COMPONENT.match(component):
            raise InvalidReferenceError(reference, "invalid reference format")
    if len(domain) + 1 + len(path) > NAME_TOTAL_LENGTH_MAX:
        raise InvalidReferenceError(
            reference, f"repository name must not be more than {NAME_TOTAL_LENGTH_MAX} characters"
        )

    return ImageReference(domain=domain, path=path, tag=tag, digest=digest)


def _split_domain(name: str) -> tuple[str, str]:
    """Split a repository name into domain and path, applying Docker Hub defaults."""
    first, sep, rest = name.partition("/")
    if not sep or ("." not in first and ":" not in first and first != "localhost"):
        domain, path = DEFAULT_DOMAIN, name
    else:
        domain, path = first, rest

    if domain == LEGACY_DEFAULT_DOMAIN:
        domain = DEFAULT_DOMAIN
    if domain == DEFAULT_DOMAIN and "/" not in path:
        path = OFFICIAL_REPO_PREFIX + path
    return domain, path


def registry_endpoint(reference: ImageReference) -> str:
    """Return the v2 API root for the reference's registry.

    Docker Hub's public domain is rewritten to its registry host.

    Example:
        >>> registry_endpoint(parse_reference("ubuntu"))
        'https://registry-1.docker.io/v2/'
    """
    host = reference.domain
    if host == DEFAULT_DOMAIN:
        host = DOCKER_HUB_REGISTRY_HOST
    return f"https://{host}/v2/"


__all__: list[str] = [
    "EXTERNAL_PREFIX",
    "ImageReference",
    "parse_reference",
    "registry_endpoint",
    "split_external",
]
