"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import json
import threading
from pathlib import Path

import httpx
import pytest
from click.testing import CliRunner

from albumsync.sync.client import RemoteStoreClient

ENDPOINT = "http://store.test/albums"


class FakeStore:
    """In-memory stand-in for the remote document store.

    Speaks the same GET/POST protocol through ``httpx.MockTransport``.  Set
    ``fail_with`` to answer every request with that status, or give
    ``push_gate`` or ``pull_gate`` an unset ``asyncio.Event`` to hold POSTs
    or GETs until the test sets it.
    """

    def __init__(self, max_body_bytes: int | None = None) -> None:
        self.value: bytes | None = None
        self.max_body_bytes = max_body_bytes
        self.requests: list[httpx.Request] = []
        self.fail_with: int | None = None
        self.push_gate: asyncio.Event | None = None
        self.pull_gate: asyncio.Event | None = None
        self.pushes = 0

    @property
    def document(self) -> object:
        return None if self.value is None else json.loads(self.value)

    def seed(self, document: object) -> None:
        self.value = json.dumps(document).encode("utf-8")

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, text="store unavailable")
        if request.method == "GET":
            if self.pull_gate is not None:
                await self.pull_gate.wait()
            if self.value is None:
                return httpx.Response(404, json={"ok": False})
            return httpx.Response(200, content=self.value)

        body = request.content
        if self.max_body_bytes is not None and len(body) > self.max_body_bytes:
            return httpx.Response(413, text="too large")
        if self.push_gate is not None:
            await self.push_gate.wait()
        self.value = body
        self.pushes += 1
        return httpx.Response(200, json={"ok": True})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture()
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def make_client(store: FakeStore):
    """Return a factory for clients talking to ``store``.

    Usage::

        client = make_client()
        client = make_client(max_payload_bytes=100)
    """

    def _make(**kwargs) -> RemoteStoreClient:
        kwargs.setdefault("transport", store.transport())
        return RemoteStoreClient(ENDPOINT, **kwargs)

    return _make


@pytest.fixture()
def albumsync_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the config/cache directory at a temporary path."""
    home = tmp_path / "home"
    monkeypatch.setenv("ALBUMSYNC_HOME", str(home))
    for var in (
        "ALBUMSYNC_ENDPOINT",
        "ALBUMSYNC_PULL_INTERVAL",
        "ALBUMSYNC_QUIET_PERIOD",
        "ALBUMSYNC_TIMEOUT",
        "ALBUMSYNC_MAX_PAYLOAD_BYTES",
        "ALBUMSYNC_CACHE_PATH",
        "ALBUMSYNC_AUTHOR",
    ):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture()
def live_server(tmp_path: Path):
    """Run the reference document store on an ephemeral port.

    Yields ``(base_url, server)``.
    """
    from albumsync.sync.server import create_server

    server = create_server("127.0.0.1", 0, max_body_bytes=4096, quiet=True)
    host, port = server.server_address[:2]
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    yield f"http://{host}:{port}", server

    server.shutdown()
    server.server_close()


@pytest.fixture()
def cli_runner() -> CliRunner:
    """Return a Click CliRunner for invoking CLI commands."""
    return CliRunner()


@pytest.fixture()
def cli_env(albumsync_home: Path, live_server) -> dict[str, str]:
    """Return env pointing the CLI at the live server and a temp home."""
    base_url, _ = live_server
    return {
        "ALBUMSYNC_HOME": str(albumsync_home),
        "ALBUMSYNC_ENDPOINT": f"{base_url}/albums",
        "ALBUMSYNC_QUIET_PERIOD": "0",
    }


@pytest.fixture()
def invoke(cli_runner: CliRunner, cli_env: dict[str, str]):
    """Return a helper that invokes CLI commands with the right environment.

    Usage::

        result = invoke("album", "create", "Holiday")
    """
    from albumsync.cli.main import cli

    def _invoke(*args: str, **kwargs):
        return cli_runner.invoke(cli, list(args), env=cli_env, obj={}, **kwargs)

    return _invoke


@pytest.fixture()
def invoke_json(invoke):
    """Like invoke, but appends --json and parses the response.

    Returns (parsed_dict, exit_code) tuple.
    """

    def _invoke_json(*args: str) -> tuple[dict, int]:
        result = invoke(*args, "--json")
        parsed = json.loads(result.output)
        return parsed, result.exit_code

    return _invoke_json


@pytest.fixture()
def create_album(invoke_json):
    """Create an album through the CLI and return its wire dict.

    Usage::

        album = create_album("Holiday")
    """

    def _create(name: str, *extra: str) -> dict:
        parsed, code = invoke_json("album", "create", name, *extra)
        assert code == 0, parsed
        return parsed["data"]

    return _create


@pytest.fixture()
def add_photo(invoke_json):
    """Add one photo to an album through the CLI and return its wire dict."""

    def _add(album_id: str, url: str = "https://cdn.test/photo.jpg") -> dict:
        parsed, code = invoke_json("photo", "add", album_id, url)
        assert code == 0, parsed
        return parsed["data"][0]

    return _add
