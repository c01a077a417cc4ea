"""Configuration loading for resource-push.

Settings come from three layers, later layers winning:

    1. Defaults in UploaderConfig.
    2. The ``upload:`` section of a YAML config file, if given.
    3. Environment variables:
        RESOURCE_PUSH_STORE_URL   Artifact store API root
        RESOURCE_PUSH_AUTH        Store credentials as user:passwd
        RESOURCE_PUSH_CACHE_PATH  Upload-id cache file; empty disables the cache

CLI flags are applied on top by the commands themselves.

Example:
    >>> config = load_config(Path("resource-push.yaml"))
    >>> config.cache.path
    PosixPath('/home/me/.cache/resource-push/upload-ids.json')
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from resource_push.errors import ConfigError
from resource_push.schemas.config import StoreAuth, UploaderConfig

logger = structlog.get_logger(__name__)

ENV_STORE_URL = "RESOURCE_PUSH_STORE_URL"
ENV_AUTH = "RESOURCE_PUSH_AUTH"
ENV_CACHE_PATH = "RESOURCE_PUSH_CACHE_PATH"

CONFIG_SECTION = "upload"


def parse_auth(value: str) -> StoreAuth | None:
    """Parse ``user:passwd`` credentials.

    Args:
        value: Credentials string. Empty means no authentication.

    Returns:
        StoreAuth, or None for an empty string.

    Raises:
        ConfigError: If the value has no colon or an empty username.

    Examples:
        >>> parse_auth("admin:s3cret").username
        'admin'
        >>> parse_auth("") is None
        True
    """
    if not value:
        return None
    username, sep, password = value.partition(":")
    if not sep:
        raise ConfigError('invalid auth credentials: expected "user:passwd"')
    if not username:
        raise ConfigError("empty username")
    return StoreAuth(username=username, password=password)


def load_config(
    path: Path | None = None, environ: Mapping[str, str] | None = None
) -> UploaderConfig:
    """Load configuration from an optional YAML file and the environment.

    Args:
        path: YAML config file. None skips the file layer.
        environ: Environment mapping. Defaults to os.environ.

    Returns:
        The validated UploaderConfig.

    Raises:
        ConfigError: If the file cannot be read or the result is invalid.
    """
    environ = os.environ if environ is None else environ
    data: dict[str, Any] = {}

    if path is not None:
        data = _read_section(path)
        logger.debug("config_file_loaded", path=str(path))

    if environ.get(ENV_STORE_URL):
        data["store_url"] = environ[ENV_STORE_URL]

    if environ.get(ENV_AUTH):
        auth = parse_auth(environ[ENV_AUTH])
        if auth is not None:
            data["auth"] = auth

    if ENV_CACHE_PATH in environ:
        cache = dict(data.get("cache") or {})
        cache_path = environ[ENV_CACHE_PATH]
        if cache_path:
            cache["path"] = cache_path
            cache["enabled"] = True
        else:
            cache["enabled"] = False
        data["cache"] = cache

    try:
        return UploaderConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e


def _read_section(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text())
    except OSError as e:
        raise ConfigError(f"cannot read config file {path}: {e.strerror or e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in config file {path}: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    section = raw.get(CONFIG_SECTION) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{CONFIG_SECTION}' in {path} must be a mapping")
    return dict(section)


__all__: list[str] = [
    "ENV_AUTH",
    "ENV_CACHE_PATH",
    "ENV_STORE_URL",
    "load_config",
    "parse_auth",
]
