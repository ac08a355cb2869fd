"""HTTP client for the remote key-addressed document store.

The store holds one JSON value under one URL.  ``GET`` returns the whole
collection (or 404 if nothing was ever written); ``POST`` overwrites it.
There is no merge, no partial update and no authentication.

Neither call touches the local replica: deciding what to do with a pulled
snapshot, or with a failed push, is the scheduler's job.
"""

from __future__ import annotations

import logging
import time

import httpx

from albumsync.core.models import (
    Snapshot,
    SnapshotFormatError,
    serialize_snapshot,
    snapshot_from_wire,
)

logger = logging.getLogger(__name__)

_NO_CACHE_HEADERS = {
    "Accept": "application/json",
    "Cache-Control": "no-store, no-cache, max-age=0",
    "Pragma": "no-cache",
}


class RemoteStoreError(Exception):
    """Base class for document store failures."""


class RemoteConnectionError(RemoteStoreError):
    """Raised when a request never got a usable response.

    Covers network failures, timeouts, redirect loops, undecodable bodies and
    malformed endpoint URLs.
    """


class RemoteResponseError(RemoteStoreError):
    """Raised for a non-2xx response that has no more specific meaning."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"Document store returned {status_code}: {message}")
        self.status_code = status_code


class PayloadTooLargeError(RemoteStoreError):
    """Raised when a snapshot is bigger than the store accepts."""

    def __init__(self, size: int, limit: int | None) -> None:
        if limit is not None:
            msg = f"Snapshot is {size} bytes, over the {limit} byte limit of the document store"
        else:
            msg = f"Document store rejected a {size} byte snapshot as too large"
        super().__init__(msg)
        self.size = size
        self.limit = limit


class RemoteStoreClient:
    """Pull and push whole snapshots against one document-store endpoint."""

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = 30.0,
        max_payload_bytes: int | None = 1_000_000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self.max_payload_bytes = max_payload_bytes
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> RemoteStoreClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=True,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def pull(self) -> Snapshot | None:
        """Fetch the current remote snapshot.

        Returns ``None`` when the key has never been written (HTTP 404, or a
        JSON ``null`` body); callers treat that as an empty collection.

        Raises:
            RemoteConnectionError: The request never got a response.
            RemoteResponseError: Any other non-2xx status.
            SnapshotFormatError: The body is not a snapshot.
        """
        client = self._get_client()
        # Unique query value defeats any cache between us and the store.
        params = {"_": str(time.time_ns())}
        try:
            response = await client.get(self.endpoint, params=params, headers=_NO_CACHE_HEADERS)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise RemoteConnectionError(f"Could not reach {self.endpoint}: {exc}") from exc

        if response.status_code == 404:
            logger.info("Document store has no value at %s yet", self.endpoint)
            return None
        if not response.is_success:
            raise RemoteResponseError(response.status_code, response.text[:200])

        try:
            data = response.json()
        except ValueError as exc:  # bad JSON or undecodable text
            raise SnapshotFormatError(f"Document store returned invalid JSON: {exc}") from exc
        if data is None:
            return None

        snapshot = snapshot_from_wire(data)
        logger.debug("Pulled %d albums from %s", len(snapshot), self.endpoint)
        return snapshot

    async def push(self, snapshot: Snapshot) -> None:
        """Overwrite the remote value with the whole *snapshot*.

        Raises:
            PayloadTooLargeError: The body exceeds ``max_payload_bytes`` (checked
                before sending) or the store answered 413.
            RemoteConnectionError: The request never got a response.
            RemoteResponseError: Any other non-2xx status.
        """
        body = serialize_snapshot(snapshot).encode("utf-8")
        size = len(body)
        if self.max_payload_bytes is not None and size > self.max_payload_bytes:
            raise PayloadTooLargeError(size, self.max_payload_bytes)

        client = self._get_client()
        try:
            response = await client.post(
                self.endpoint,
                content=body,
                headers={"Content-Type": "application/json"},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise RemoteConnectionError(f"Could not reach {self.endpoint}: {exc}") from exc

        if response.status_code == 413:
            raise PayloadTooLargeError(size, None)
        if not response.is_success:
            raise RemoteResponseError(response.status_code, response.text[:200])

        logger.debug("Pushed %d albums (%d bytes) to %s", len(snapshot), size, self.endpoint)
