"""Main entry point for the resource-push CLI.

Commands:
    resource-push upload: Upload a file or register an external image
    resource-push resolve-digest: Print an image's registry digest
    resource-push cache prune: Remove expired upload ids

Example:
    $ resource-push --help
    $ resource-push upload cs:~me/wordpress-3 website=./site.tar.gz
    $ resource-push --log-level debug resolve-digest ubuntu
"""

from __future__ import annotations

import sys
from importlib.metadata import version as get_version

import click

from resource_push.cli.cache import cache
from resource_push.cli.resolve import resolve_digest_command
from resource_push.cli.upload import upload_command
from resource_push.cli.utils import fail
from resource_push.errors import ResourcePushError
from resource_push.telemetry.logging import LOG_LEVELS, configure_logging


def _get_version() -> str:
    """Get the resource-push package version.

    Returns:
        Version string from package metadata, or 'unknown' if not installed.
    """
    try:
        return get_version("resource-push")
    except Exception:
        return "unknown"


@click.group(
    name="resource-push",
    help="resource-push - Upload artifact resources to an artifact store.",
    epilog="Use 'resource-push <command> --help' for command-specific help.",
    context_settings={
        "help_option_names": ["-h", "--help"],
    },
)
@click.version_option(
    version=_get_version(),
    prog_name="resource-push",
    message="%(prog)s %(version)s",
)
@click.option(
    "--log-level",
    type=click.Choice(sorted(LOG_LEVELS), case_sensitive=False),
    default="warning",
    show_default=True,
    help="Minimum level of log events written to stderr.",
)
@click.option("--json-logs", is_flag=True, default=False, help="Write log events as JSON.")
@click.pass_context
def cli(ctx: click.Context, log_level: str, json_logs: bool) -> None:
    """Root command group for the resource-push CLI."""
    ctx.ensure_object(dict)
    configure_logging(log_level, json_output=json_logs)


cli.add_command(upload_command)
cli.add_command(resolve_digest_command)
cli.add_command(cache)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the resource-push CLI.

    Args:
        argv: Command-line arguments (uses sys.argv if None).
    """
    try:
        cli(args=argv, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(1)
    except ResourcePushError as e:
        fail(e)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
