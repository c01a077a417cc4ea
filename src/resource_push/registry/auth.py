"""Registry challenge-response authentication.

A v2 registry answers an unauthenticated request to its API root with
``401 Unauthorized`` and a ``WWW-Authenticate`` challenge, for example:

    WWW-Authenticate: Bearer realm="https://auth.docker.io/token",
                      service="registry.docker.io"

The client exchanges that challenge for a short-lived bearer token scoped
to the repository it wants to read:

    GET https://auth.docker.io/token?service=registry.docker.io
        &scope=repository:library/ubuntu:pull

The token is attached to subsequent requests and never persisted.

Example:
    >>> authorizer = RegistryAuthorizer(httpx.Client())
    >>> context = authorizer.authorize("https://registry-1.docker.io/v2/", "library/ubuntu")
    >>> headers = context.headers()
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from resource_push.errors import RegistryAuthError, RegistryUnavailableError
from resource_push.telemetry.tracing import SPAN_REGISTRY_AUTH, get_tracer

logger = structlog.get_logger(__name__)

PULL_ACTION = "pull"

_CHALLENGE_PARAM = re.compile(r'([A-Za-z0-9_-]+)\s*=\s*(?:"((?:[^"\\]|\\.)*)"|([^\s,]+))')


@dataclass(frozen=True)
class Challenge:
    """One authentication challenge from a WWW-Authenticate header.

    Attributes:
        scheme: Lower-cased scheme, e.g. "bearer" or "basic".
        parameters: Challenge parameters such as realm and service.
    """

    scheme: str
    parameters: dict[str, str]


@dataclass(frozen=True)
class RegistryAuthContext:
    """Authorization state for one digest lookup.

    Attributes:
        endpoint: Registry v2 API root.
        repository_path: Image path within the registry.
        scope: Requested token scope.
        bearer_token: Token from the exchange, or "" when the registry
            issued no bearer challenge.
    """

    endpoint: str
    repository_path: str
    scope: str
    bearer_token: str = ""

    def headers(self) -> dict[str, str]:
        """Return the headers that authorize a request."""
        if not self.bearer_token:
            return {}
        return {"Authorization": f"Bearer {self.bearer_token}"}


def repository_scope(path: str, action: str = PULL_ACTION) -> str:
    """Return the token scope for an action on a repository."""
    return f"repository:{path}:{action}"


def parse_challenges(header: str) -> list[Challenge]:
    """Parse a WWW-Authenticate header into its challenges.

    Args:
        header: Raw header value. May hold several comma-separated challenges.

    Returns:
        Challenges in header order. Malformed input yields what could be parsed.
    """
    challenges: list[Challenge] = []
    scheme: str | None = None
    params: dict[str, str] = {}

    pos = 0
    while pos < len(header):
        while pos < len(header) and header[pos] in " ,":
            pos += 1
        if pos >= len(header):
            break

        param = _CHALLENGE_PARAM.match(header, pos)
        if param is not None and scheme is not None:
            value = param.group(2) if param.group(2) is not None else param.group(3)
            params[param.group(1).lower()] = re.sub(r"\\(.)", r"\1", value)
            pos = param.end()
            continue

        end = pos
        while end < len(header) and header[end] not in " ,":
            end += 1
        if scheme is not None:
            challenges.append(Challenge(scheme=scheme, parameters=params))
        scheme, params = header[pos:end].lower(), {}
        pos = end

    if scheme is not None:
        challenges.append(Challenge(scheme=scheme, parameters=params))
    return challenges


class RegistryAuthorizer:
    """Obtains pull authorization for a repository on a v2 registry."""

    def __init__(self, client: httpx.Client, *, log: Any | None = None) -> None:
        """Initialize RegistryAuthorizer.

        Args:
            client: HTTP client used for the API root ping and token exchange.
            log: Bound structlog logger. Defaults to the module logger.
        """
        self._client = client
        self._log = log or logger

    def authorize(self, endpoint: str, repository_path: str) -> RegistryAuthContext:
        """Probe the registry and exchange its challenge for a pull token.

        Args:
            endpoint: Registry v2 API root, e.g. https://ghcr.io/v2/.
            repository_path: Image path within the registry.

        Returns:
            RegistryAuthContext carrying the bearer token, if one was required.

        Raises:
            RegistryUnavailableError: If the registry or token service is unreachable.
            RegistryAuthError: If the token exchange fails.
        """
        scope = repository_scope(repository_path)
        log = self._log.bind(registry=endpoint, scope=scope)

        with get_tracer().start_as_current_span(SPAN_REGISTRY_AUTH) as span:
            span.set_attribute("resource_push.registry", endpoint)
            span.set_attribute("resource_push.scope", scope)

            try:
                response = self._client.get(endpoint)
            except httpx.HTTPError as e:
                raise RegistryUnavailableError(
                    endpoint, f"cannot get registry authorization response: {e}"
                ) from e

            context = RegistryAuthContext(
                endpoint=endpoint, repository_path=repository_path, scope=scope
            )
            if response.status_code != 401:
                log.debug("registry_auth_not_required", status_code=response.status_code)
                return context

            bearer = next(
                (
                    c
                    for c in parse_challenges(response.headers.get("WWW-Authenticate", ""))
                    if c.scheme == "bearer"
                ),
                None,
            )
            if bearer is None:
                log.debug("registry_auth_no_bearer_challenge")
                return context

            token = self._fetch_token(endpoint, bearer, scope)
            span.set_attribute("resource_push.token_acquired", True)
            log.debug("registry_token_acquired")
            return RegistryAuthContext(
                endpoint=endpoint,
                repository_path=repository_path,
                scope=scope,
                bearer_token=token,
            )

    def _fetch_token(self, endpoint: str, challenge: Challenge, scope: str) -> str:
        realm = challenge.parameters.get("realm")
        if not realm:
            raise RegistryAuthError(endpoint, "bearer challenge has no realm")

        params = {"scope": scope}
        if challenge.parameters.get("service"):
            params["service"] = challenge.parameters["service"]

        try:
            response = self._client.get(realm, params=params)
        except httpx.HTTPError as e:
            raise RegistryUnavailableError(realm, f"token request failed: {e}") from e

        if response.status_code != 200:
            raise RegistryAuthError(
                endpoint,
                f"token request returned {response.status_code} {response.reason_phrase}",
            )
        try:
            data = response.json()
        except ValueError as e:
            raise RegistryAuthError(endpoint, f"invalid token response: {e}") from e

        token = (data.get("token") or data.get("access_token")) if isinstance(data, dict) else None
        if not token:
            raise RegistryAuthError(endpoint, "token response contained no token")
        return str(token)


__all__: list[str] = [
    "Challenge",
    "RegistryAuthContext",
    "RegistryAuthorizer",
    "parse_challenges",
    "repository_scope",
]
