"""Reference key/value document store.

Speaks the same protocol as the hosted store the web client talks to: one
JSON value per URL path, ``GET`` to read it (404 if never written) and
``POST`` to overwrite it.  Useful for local development, demos and
end-to-end tests; it is not meant to face the internet.
"""

from __future__ import annotations

import hashlib
import json
import sys
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from albumsync.storage.fs import atomic_write

DEFAULT_MAX_BODY_BYTES = 1_000_000
_MAX_DISCARD_BYTES = 64 * 1024 * 1024


def _err(code: str, message: str) -> bytes:
    return (
        json.dumps({"ok": False, "error": {"code": code, "message": message}}, sort_keys=True)
        + "\n"
    ).encode("utf-8")


class DocumentStore:
    """Thread-safe in-memory key -> raw JSON bytes, optionally mirrored to disk."""

    def __init__(self, data_dir: Path | None = None) -> None:
        self.data_dir = data_dir
        self._values: dict[str, bytes] = {}
        self._lock = threading.Lock()
        if data_dir is not None:
            data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        # Hash the key so arbitrary URL paths map to safe file names.
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]
        return self.data_dir / f"{digest}.json"

    def get(self, key: str) -> bytes | None:
        with self._lock:
            if key in self._values:
                return self._values[key]
            if self.data_dir is not None:
                path = self._path(key)
                if path.is_file():
                    value = path.read_bytes()
                    self._values[key] = value
                    return value
            return None

    def put(self, key: str, value: bytes) -> None:
        with self._lock:
            self._values[key] = value
            if self.data_dir is not None:
                atomic_write(self._path(key), value)


def _make_handler_class(store: DocumentStore, max_body_bytes: int, *, quiet: bool) -> type:
    """Create a handler class bound to one :class:`DocumentStore`."""

    class DocumentStoreHandler(BaseHTTPRequestHandler):
        _store: DocumentStore = store
        _max_body_bytes: int = max_body_bytes

        def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
            if not quiet:
                sys.stderr.write(f"{self.address_string()} - {format % args}\n")

        def _key(self) -> str | None:
            path = urlparse(self.path).path.strip("/")
            return path or None

        def _send(self, status: int, body: bytes) -> None:
            self.send_response(status)
            self.send_header("Content-Type", "application/json; charset=utf-8")
            self.send_header("Content-Length", str(len(body)))
            self.send_header("Cache-Control", "no-store")
            self.end_headers()
            self.wfile.write(body)

        def _discard(self, length: int) -> None:
            remaining = min(length, _MAX_DISCARD_BYTES)
            while remaining > 0:
                chunk = self.rfile.read(min(remaining, 65536))
                if not chunk:
                    break
                remaining -= len(chunk)

        def do_GET(self) -> None:  # noqa: N802
            key = self._key()
            if key is None:
                self._send(404, _err("NOT_FOUND", "No key in path"))
                return
            value = self._store.get(key)
            if value is None:
                self._send(404, _err("NOT_FOUND", f"No value stored at '{key}'"))
                return
            self._send(200, value)

        def do_POST(self) -> None:  # noqa: N802
            key = self._key()
            if key is None:
                self._send(404, _err("NOT_FOUND", "No key in path"))
                return

            try:
                length = int(self.headers.get("Content-Length", "0"))
            except ValueError:
                self._send(400, _err("BAD_REQUEST", "Invalid Content-Length"))
                return
            if length > self._max_body_bytes:
                # Read the body off the socket first; closing on unread data
                # resets the connection before the client sees the 413.
                self._discard(length)
                self._send(
                    413,
                    _err(
                        "PAYLOAD_TOO_LARGE",
                        f"Body of {length} bytes exceeds limit of {self._max_body_bytes}",
                    ),
                )
                self.close_connection = True
                return

            body = self.rfile.read(length)
            try:
                json.loads(body)
            except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                self._send(400, _err("BAD_REQUEST", f"Body is not valid JSON: {exc}"))
                return

            self._store.put(key, body)
            self._send(200, b'{"ok": true}\n')

        do_PUT = do_POST  # noqa: N815

    return DocumentStoreHandler


def create_server(
    host: str = "127.0.0.1",
    port: int = 9800,
    *,
    data_dir: Path | None = None,
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES,
    store: DocumentStore | None = None,
    quiet: bool = False,
) -> ThreadingHTTPServer:
    """Create (but do not start) a document store server.

    Pass ``port=0`` to bind an ephemeral port; read it back from
    ``server.server_address``.
    """
    store = store or DocumentStore(data_dir)
    handler = _make_handler_class(store, max_body_bytes, quiet=quiet)
    server = ThreadingHTTPServer((host, port), handler)
    server.daemon_threads = True
    server.document_store = store  # type: ignore[attr-defined]
    return server
