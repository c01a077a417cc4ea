"""Unit test fixtures for resource-push.

Fakes used across the unit tests:
- FakeStore: scripted ResourceStore that records what the engine asked for
- FakeStoreServer: httpx MockTransport handler emulating the store upload API
- FakeRegistry: httpx MockTransport handler emulating a v2 registry and its
  token service
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any, BinaryIO

import httpx
import pytest

from resource_push.errors import ResourcePushError, UploadNotFoundError
from resource_push.store import (
    HTTPResourceStore,
    ProgressCallback,
    ResourceStore,
    SessionStartedCallback,
)
from resource_push.upload.cache import UploadIdCache

IMAGE_DIGEST = "sha256:" + hashlib.sha256(b"manifest").hexdigest()
OTHER_DIGEST = "sha256:" + hashlib.sha256(b"other manifest").hexdigest()
REGISTRY_TOKEN = "pull-token"
STORE_URL = "https://store.example.com/v5"


class FakeStore(ResourceStore):
    """In-memory ResourceStore.

    Attributes:
        sessions: Upload ids the store still knows.
        calls: Upload id passed to each upload() call, in order.
        received: Content read by each upload() call that got that far.
        images: register_image() arguments.
        error: Raised by a fresh upload after its session has started.
    """

    def __init__(
        self,
        *,
        sessions: Iterable[str] = (),
        new_ids: Iterable[str] = ("upload-1", "upload-2"),
        revision: int = 1,
        error: ResourcePushError | None = None,
    ) -> None:
        self.sessions = set(sessions)
        self.calls: list[str] = []
        self.received: list[bytes] = []
        self.images: list[tuple[str, str, str, str]] = []
        self.revision = revision
        self.error = error
        self.closed = False
        self._new_ids = iter(new_ids)

    def upload(
        self,
        upload_id: str,
        artifact_id: str,
        resource_name: str,
        reader: BinaryIO,
        size: int,
        *,
        filename: str = "",
        progress: ProgressCallback | None = None,
        on_session_started: SessionStartedCallback | None = None,
    ) -> int:
        self.calls.append(upload_id)
        if upload_id and upload_id not in self.sessions:
            raise UploadNotFoundError(upload_id)
        if not upload_id:
            upload_id = next(self._new_ids)
            self.sessions.add(upload_id)
            if on_session_started is not None:
                on_session_started(upload_id)
            if self.error is not None:
                raise self.error

        data = reader.read()
        self.received.append(data)
        if progress is not None:
            progress(len(data))
        return self.revision

    def register_image(
        self, artifact_id: str, resource_name: str, image_name: str, digest: str
    ) -> int:
        self.images.append((artifact_id, resource_name, image_name, digest))
        return self.revision

    def close(self) -> None:
        self.closed = True


class FakeRegistry:
    """v2 registry and token service behind an httpx MockTransport.

    Attributes:
        manifests: Tag or digest -> digest reported in Docker-Content-Digest.
            An empty string omits the header.
        challenge: WWW-Authenticate value for the API root, or None for an
            open registry.
        api_version: Docker-Distribution-Api-Version header value.
        manifest_status: Status returned for known manifests.
        token_status: Status returned by the token service.
        requests: Every request received.
    """

    def __init__(self) -> None:
        self.manifests: dict[str, str] = {"latest": IMAGE_DIGEST, IMAGE_DIGEST: IMAGE_DIGEST}
        self.challenge: str | None = (
            'Bearer realm="https://auth.example.com/token",service="registry.example.com"'
        )
        self.api_version = "registry/2.0"
        self.manifest_status = 200
        self.token_status = 200
        self.requests: list[httpx.Request] = []

    @property
    def manifest_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if "/manifests/" in r.url.path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.host == "auth.example.com":
            if self.token_status != 200:
                return httpx.Response(self.token_status)
            return httpx.Response(200, json={"token": REGISTRY_TOKEN})

        if request.url.path == "/v2/":
            if self.challenge is None:
                return httpx.Response(200)
            return httpx.Response(401, headers={"WWW-Authenticate": self.challenge})

        if self.challenge is not None and (
            request.headers.get("Authorization") != f"Bearer {REGISTRY_TOKEN}"
        ):
            return httpx.Response(401)

        _, _, ref = request.url.path.rpartition("/manifests/")
        digest = self.manifests.get(ref)
        if digest is None:
            return httpx.Response(404)
        headers = {"Docker-Distribution-Api-Version": self.api_version}
        if digest:
            headers["Docker-Content-Digest"] = digest
        return httpx.Response(self.manifest_status, headers=headers)


class FakeStoreServer:
    """Multipart upload endpoints of the artifact store behind a MockTransport.

    Attributes:
        sessions: Upload id -> parts acknowledged so far.
        finished: Upload id -> parts listed in the finish request.
        requests: Every request received.
        fail_status: When set, every request fails with this status.
        part_status: When set, part uploads fail with this status.
        start_body: When set, raw body returned for a new session.
    """

    def __init__(
        self, min_part_size: int = 0, max_part_size: int = 0, max_parts: int = 1000
    ) -> None:
        self.min_part_size = min_part_size
        self.max_part_size = max_part_size
        self.max_parts = max_parts
        self.sessions: dict[str, list[dict[str, Any]]] = {}
        self.finished: dict[str, list[dict[str, Any]]] = {}
        self.requests: list[httpx.Request] = []
        self.revision = 3
        self.fail_status: int | None = None
        self.part_status: int | None = None
        self.start_body: bytes | None = None
        self._count = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={"Message": "store is unhappy"})

        path = request.url.path.removeprefix("/v5")
        segments = path.strip("/").split("/")

        if segments[0] == "upload":
            return self._upload(request, segments[1:])
        if "resource" in segments:
            return httpx.Response(200, json={"Revision": self.revision})
        return httpx.Response(404, json={"Message": "not found"})

    def _upload(self, request: httpx.Request, rest: list[str]) -> httpx.Response:
        if not rest:
            if self.start_body is not None:
                return httpx.Response(200, content=self.start_body)
            self._count += 1
            upload_id = f"upload-{self._count}"
            self.sessions[upload_id] = []
            return httpx.Response(
                200,
                json={
                    "UploadId": upload_id,
                    "MinPartSize": self.min_part_size,
                    "MaxPartSize": self.max_part_size,
                    "MaxParts": self.max_parts,
                },
            )

        upload_id = rest[0]
        if upload_id not in self.sessions:
            return httpx.Response(404, json={"Message": f"upload {upload_id} not found"})
        parts = self.sessions[upload_id]

        if len(rest) == 2 and request.method == "PUT":
            if self.part_status is not None:
                return httpx.Response(self.part_status, json={"Message": "no such part"})
            index = int(rest[1])
            body = request.content
            assert request.url.params["hash"] == sha384_hex(body)
            while len(parts) <= index:
                parts.append({})
            parts[index] = {
                "Hash": sha384_hex(body),
                "Size": len(body),
                "Offset": int(request.url.params["offset"]),
                "Complete": True,
            }
            return httpx.Response(200)
        if request.method == "GET":
            return httpx.Response(200, json={"Parts": parts})
        self.finished[upload_id] = json.loads(request.content)["Parts"]
        return httpx.Response(200, json={})

    def put_offsets(self) -> list[int]:
        return [int(r.url.params["offset"]) for r in self.requests if r.method == "PUT"]


def sha384_hex(data: bytes) -> str:
    return hashlib.sha384(data).hexdigest()



@pytest.fixture
def fake_store() -> FakeStore:
    """Provide a FakeStore with no open sessions."""
    return FakeStore()


@pytest.fixture
def make_store() -> Any:
    """Provide the FakeStore class for tests that need custom behaviour."""
    return FakeStore


@pytest.fixture
def cache_path(tmp_path: Path) -> Path:
    """Upload-id cache file in a not yet existing directory."""
    return tmp_path / "cache" / "upload-ids.json"


@pytest.fixture
def upload_cache(cache_path: Path) -> UploadIdCache:
    """Provide an UploadIdCache backed by a temp file."""
    return UploadIdCache(cache_path)


@pytest.fixture
def fake_registry() -> FakeRegistry:
    """Provide a FakeRegistry with a bearer challenge and one tagged image."""
    return FakeRegistry()


@pytest.fixture
def registry_client(fake_registry: FakeRegistry) -> httpx.Client:
    """Provide an httpx client routed to the FakeRegistry."""
    return httpx.Client(transport=httpx.MockTransport(fake_registry.handler))


@pytest.fixture
def image_digest() -> str:
    """Digest the FakeRegistry reports for its image."""
    return IMAGE_DIGEST


@pytest.fixture
def other_digest() -> str:
    """A digest the FakeRegistry does not hold by default."""
    return OTHER_DIGEST


@pytest.fixture
def store_server() -> FakeStoreServer:
    """Provide a FakeStoreServer with no sessions."""
    return FakeStoreServer()


@pytest.fixture
def http_store(store_server: FakeStoreServer) -> Any:
    """Return a factory for HTTPResourceStore clients routed to store_server."""

    def factory(part_size: int = 1024) -> HTTPResourceStore:
        client = httpx.Client(transport=httpx.MockTransport(store_server.handler))
        return HTTPResourceStore(STORE_URL, part_size=part_size, client=client)

    return factory
