import base64
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from urllib.parse import quote

import httpx
import pytest

from paper_research_tool.models import ConnectivityConfig
from paper_research_tool.storage import LocalStore

SERVER_ROOT = "https://dav.example.com/remote.php/dav/files/alice/"
ROOT_PATH = "/remote.php/dav/files/alice/"
APP_PATH = ROOT_PATH + "paper-research-tool/"
USERNAME = "alice"
SECRET = "s3cret"


@dataclass
class StoredFile:
    content: str
    last_modified: datetime


@dataclass
class FakeWebDAVServer:
    """In-memory WebDAV origin served through ``httpx.MockTransport``."""

    files: dict = field(default_factory=dict)
    dir_exists: bool = True
    requests: list = field(default_factory=list)
    bodies: list = field(default_factory=list)
    clock: datetime = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)

    def add_file(self, name: str, content: str, last_modified: datetime) -> None:
        self.dir_exists = True
        self.files[name] = StoredFile(content, last_modified)

    def _authorized(self, request: httpx.Request) -> bool:
        token = base64.b64encode(f"{USERNAME}:{SECRET}".encode()).decode()
        return request.headers.get("authorization") == f"Basic {token}"

    def _multistatus(self, entries) -> str:
        parts = []
        for href, is_dir, size, modified in entries:
            resourcetype = "<d:collection/>" if is_dir else ""
            parts.append(
                "<d:response>"
                f"<d:href>{href}</d:href>"
                "<d:propstat><d:prop>"
                f"<d:resourcetype>{resourcetype}</d:resourcetype>"
                f"<d:getcontentlength>{size}</d:getcontentlength>"
                f"<d:getlastmodified>{format_datetime(modified, usegmt=True)}</d:getlastmodified>"
                "</d:prop><d:status>HTTP/1.1 200 OK</d:status></d:propstat>"
                "</d:response>"
            )
        return (
            '<?xml version="1.0" encoding="utf-8"?>'
            '<d:multistatus xmlns:d="DAV:">' + "".join(parts) + "</d:multistatus>"
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append((request.method, path))
        self.bodies.append(request.content)

        if not self._authorized(request):
            return httpx.Response(401)

        if request.method == "OPTIONS":
            return httpx.Response(
                200,
                headers={
                    "Allow": "OPTIONS, GET, PUT, DELETE, PROPFIND, MKCOL",
                    "DAV": "1, 2",
                },
            )

        if request.method == "PROPFIND" and path == ROOT_PATH:
            return httpx.Response(
                207, text=self._multistatus([(ROOT_PATH, True, 0, self.clock)])
            )

        if request.method == "PROPFIND" and path == APP_PATH:
            if not self.dir_exists:
                return httpx.Response(404)
            entries = [(APP_PATH, True, 0, self.clock)]
            if request.headers.get("depth") == "1":
                for name, stored in self.files.items():
                    entries.append(
                        (
                            APP_PATH + quote(name),
                            False,
                            len(stored.content.encode("utf-8")),
                            stored.last_modified,
                        )
                    )
            return httpx.Response(207, text=self._multistatus(entries))

        if request.method == "MKCOL" and path == APP_PATH:
            if self.dir_exists:
                return httpx.Response(405)
            self.dir_exists = True
            return httpx.Response(201)

        if not path.startswith(APP_PATH):
            return httpx.Response(404)
        name = path[len(APP_PATH):]

        if request.method == "PUT":
            if not self.dir_exists:
                return httpx.Response(409)
            self.clock += timedelta(minutes=1)
            self.files[name] = StoredFile(request.content.decode("utf-8"), self.clock)
            return httpx.Response(201)

        if request.method == "GET":
            if name not in self.files:
                return httpx.Response(404)
            return httpx.Response(200, text=self.files[name].content)

        if request.method == "DELETE":
            if self.files.pop(name, None) is None:
                return httpx.Response(404)
            return httpx.Response(204)

        return httpx.Response(405)


@pytest.fixture(scope="session")
def anyio_backend():
    """Configure anyio to use asyncio backend for all tests."""
    return "asyncio"


@pytest.fixture
def webdav_server():
    return FakeWebDAVServer()


@pytest.fixture
def webdav_config():
    return ConnectivityConfig(
        server_url=SERVER_ROOT, username=USERNAME, secret=SECRET, use_relay=False
    )


@pytest.fixture
async def store(tmp_path):
    """Local store backed by a temporary database."""
    local_store = LocalStore(db_path=str(tmp_path / "state.db"))
    await local_store.initialize()
    yield local_store
