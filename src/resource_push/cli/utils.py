"""CLI utility functions and error handling.

Shared helpers for the resource-push CLI:
- Exit code constants matching the exit codes carried by the error types
- Error reporting for ResourcePushError
- Output helpers: results to stdout, notes and errors to stderr

Example:
    from resource_push.cli.utils import fail

    try:
        revision = upload_resource(params)
    except ResourcePushError as e:
        fail(e)
"""

from __future__ import annotations

import sys
from enum import IntEnum
from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from typing import NoReturn

    from resource_push.errors import ResourcePushError


class ExitCode(IntEnum):
    """Exit codes for CLI commands."""

    SUCCESS = 0
    """Command completed successfully."""

    GENERAL_ERROR = 1
    """General error (catch-all for failures)."""

    USAGE_ERROR = 2
    """Invalid usage or configuration."""

    NOT_FOUND = 3
    """A resource, file or upload session was not found."""

    NETWORK_ERROR = 5
    """Network or remote service error."""

    PROTOCOL_ERROR = 6
    """The registry or store answered in a way the client cannot trust."""


def error(message: str, **context: str | int | bool | None) -> None:
    """Print an error message to stderr.

    Args:
        message: Error message to display.
        **context: Optional context key-value pairs to include.

    Example:
        error("cannot open metadata", path="metadata.yaml")
        # Output: Error: cannot open metadata (path=metadata.yaml)
    """
    if context:
        context_str = ", ".join(f"{k}={v}" for k, v in context.items() if v is not None)
        full_message = f"Error: {message} ({context_str})"
    else:
        full_message = f"Error: {message}"

    click.echo(full_message, err=True)


def error_exit(
    message: str,
    exit_code: int = ExitCode.GENERAL_ERROR,
    **context: str | int | bool | None,
) -> NoReturn:
    """Print an error message to stderr and exit with a code.

    Raises:
        SystemExit: Always exits with the specified code.
    """
    error(message, **context)
    sys.exit(exit_code)


def fail(e: ResourcePushError) -> NoReturn:
    """Report a ResourcePushError and exit with its exit code."""
    error_exit(str(e), exit_code=e.exit_code)


def success(message: str) -> None:
    """Print a result to stdout."""
    click.echo(message)


def info(message: str) -> None:
    """Print an informational message to stderr.

    Used for notes such as "resuming previous upload" that should not be
    captured by stdout redirection.
    """
    click.echo(message, err=True)


__all__: list[str] = [
    "ExitCode",
    "error",
    "error_exit",
    "fail",
    "info",
    "success",
]
