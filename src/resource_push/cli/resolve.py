"""Registry digest CLI command.

Example:
    $ resource-push resolve-digest ubuntu:22.04
    sha256:...
"""

from __future__ import annotations

import click

from resource_push.cli.utils import fail, success
from resource_push.errors import ResourcePushError
from resource_push.registry.reference import parse_reference, split_external
from resource_push.registry.resolver import RegistryDigestResolver


@click.command(
    name="resolve-digest",
    help="""\b
Print the digest a registry holds for an image.

IMAGE is an image reference, optionally prefixed with external::.
Docker Hub short names such as ubuntu or me/app are accepted.

Examples:
    $ resource-push resolve-digest ubuntu:22.04

    $ resource-push resolve-digest ghcr.io/org/app@sha256:...
""",
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.argument("image")
@click.option(
    "--timeout",
    type=float,
    default=30.0,
    show_default=True,
    help="Per-request timeout in seconds.",
)
def resolve_digest_command(image: str, timeout: float) -> None:
    """Resolve and print an image digest."""
    bare, _ = split_external(image)
    try:
        reference = parse_reference(bare)
        resolver = RegistryDigestResolver(timeout=timeout)
        try:
            digest = resolver.resolve(reference)
        finally:
            resolver.close()
    except ResourcePushError as e:
        fail(e)

    success(digest)


__all__: list[str] = ["resolve_digest_command"]
