"""Container registry digest resolution.

Key Components:
- parse_reference / ImageReference: Docker-normalised image references
- RegistryAuthorizer: WWW-Authenticate challenge and bearer token exchange
- RegistryDigestResolver: Manifest HEAD lookups and digest verification
"""

from __future__ import annotations

from resource_push.registry.auth import (
    Challenge,
    RegistryAuthContext,
    RegistryAuthorizer,
    parse_challenges,
)
from resource_push.registry.reference import (
    EXTERNAL_PREFIX,
    ImageReference,
    parse_reference,
    registry_endpoint,
    split_external,
)
from resource_push.registry.resolver import RegistryDigestResolver

__all__: list[str] = [
    "EXTERNAL_PREFIX",
    "Challenge",
    "ImageReference",
    "RegistryAuthContext",
    "RegistryAuthorizer",
    "RegistryDigestResolver",
    "parse_challenges",
    "parse_reference",
    "registry_endpoint",
    "split_external",
]
