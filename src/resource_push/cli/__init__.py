"""resource-push command-line interface.

Example:
    $ resource-push upload cs:~me/wordpress-3 website=./site.tar.gz
"""

from __future__ import annotations

from resource_push.cli.main import cli, main

__all__: list[str] = ["cli", "main"]
