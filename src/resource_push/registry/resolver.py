"""Registry digest resolution for externally hosted images.

Determines the content digest a v2 registry holds for an image reference
without transferring any layers:

    1. Derive the registry API root from the reference's domain.
    2. Probe the root and exchange the auth challenge for a pull token.
    3. HEAD the manifest for the tag (or digest) with the v2 manifest
       media type in Accept.
    4. Require 200, a ``registry/2.*`` API version header and a non-empty
       Docker-Content-Digest header.
    5. A digest-pinned reference stops here. A tag reference is checked by a
       second HEAD using the discovered digest, which must succeed and report
       the same digest.

The second lookup guards against a registry that resolves a tag to content
it cannot serve by digest. It is a best-effort consistency check: a tag that
moves between the two requests is not detected.

Example:
    >>> resolver = RegistryDigestResolver()
    >>> resolver.resolve(parse_reference("ghcr.io/org/app:v1"))
    'sha256:...'
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from resource_push.errors import (
    DigestMismatchError,
    IncompatibleRegistryError,
    MissingDigestError,
    RegistryResponseError,
    RegistryUnavailableError,
)
from resource_push.registry.auth import RegistryAuthContext, RegistryAuthorizer
from resource_push.registry.reference import ImageReference, registry_endpoint
from resource_push.telemetry.tracing import SPAN_RESOLVE_DIGEST, get_tracer

logger = structlog.get_logger(__name__)

MANIFEST_V2_MEDIA_TYPE = "application/vnd.docker.distribution.manifest.v2+json"
API_VERSION_HEADER = "Docker-Distribution-Api-Version"
CONTENT_DIGEST_HEADER = "Docker-Content-Digest"
API_VERSION_PREFIX = "registry/2."


class RegistryDigestResolver:
    """Resolves image references to registry content digests."""

    def __init__(
        self,
        client: httpx.Client | None = None,
        *,
        timeout: float = 30.0,
        log: Any | None = None,
    ) -> None:
        """Initialize RegistryDigestResolver.

        Args:
            client: HTTP client. Defaults to a new httpx.Client.
            timeout: Request timeout when creating the default client.
            log: Bound structlog logger. Defaults to the module logger.
        """
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)
        self._log = log or logger
        self._authorizer = RegistryAuthorizer(self._client, log=self._log)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def resolve(self, reference: ImageReference) -> str:
        """Return the digest the registry holds for ``reference``.

        Args:
            reference: Parsed image reference.

        Returns:
            The content digest, e.g. ``sha256:...``.

        Raises:
            RegistryUnavailableError: If the registry cannot be reached.
            RegistryAuthError: If the token exchange fails.
            RegistryResponseError: If a manifest lookup is not HTTP 200.
            IncompatibleRegistryError: If the registry is not a v2 registry.
            MissingDigestError: If the registry reports no digest.
            DigestMismatchError: If the lookup by digest reports another digest.
        """
        endpoint = registry_endpoint(reference)
        log = self._log.bind(reference=str(reference), registry=endpoint)

        with get_tracer().start_as_current_span(SPAN_RESOLVE_DIGEST) as span:
            span.set_attribute("resource_push.reference", str(reference))
            span.set_attribute("resource_push.registry", endpoint)

            context = self._authorizer.authorize(endpoint, reference.path)

            response = self._head_manifest(context, reference.tag_or_digest)
            if response.status_code != 200:
                raise RegistryResponseError(
                    f"cannot get information on {reference}", _status(response)
                )
            version = response.headers.get(API_VERSION_HEADER, "")
            if not version.startswith(API_VERSION_PREFIX):
                raise IncompatibleRegistryError(version)
            digest = response.headers.get(CONTENT_DIGEST_HEADER, "")
            if not digest:
                raise MissingDigestError(str(reference))

            if reference.digest is not None:
                log.info("image_digest_resolved", digest=reference.digest, verified=False)
                span.set_attribute("resource_push.digest", reference.digest)
                return reference.digest

            response = self._head_manifest(context, digest)
            if response.status_code != 200:
                raise RegistryResponseError("cannot verify image digest", _status(response))
            confirmed = response.headers.get(CONTENT_DIGEST_HEADER, "")
            if confirmed != digest:
                raise DigestMismatchError(digest, confirmed, str(reference))

            log.info("image_digest_resolved", digest=digest, verified=True)
            span.set_attribute("resource_push.digest", digest)
            return digest

    def _head_manifest(self, context: RegistryAuthContext, tag_or_digest: str) -> httpx.Response:
        url = f"{context.endpoint}{context.repository_path}/manifests/{tag_or_digest}"
        headers = {"Accept": MANIFEST_V2_MEDIA_TYPE, **context.headers()}
        self._log.debug("registry_request", method="HEAD", url=url)
        try:
            return self._client.head(url, headers=headers)
        except httpx.HTTPError as e:
            raise RegistryUnavailableError(context.endpoint, str(e)) from e


def _status(response: httpx.Response) -> str:
    return f"{response.status_code} {response.reason_phrase}".strip()


__all__: list[str] = [
    "API_VERSION_HEADER",
    "CONTENT_DIGEST_HEADER",
    "MANIFEST_V2_MEDIA_TYPE",
    "RegistryDigestResolver",
]
