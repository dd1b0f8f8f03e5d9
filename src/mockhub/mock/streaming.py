"""
MockHub Streaming

Long-lived chunked responses fed by out-of-band publishes.

Every streaming mock owns a Broadcaster. Connections attach a client to it and
immediately receive every chunk published so far; later publishes are written
to all attached clients. The broadcaster lock makes "append + snapshot clients"
and "register client + replay buffer" mutually exclusive, so a chunk is never
both missed by the replay and skipped by the live write.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from functools import partial
from typing import Any, List, Mapping, Optional, Union

import anyio
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from ..errors import ClientWriteFailure

Chunk = Union[bytes, bytearray, memoryview, str]

CHUNK_TYPES = (str, bytes, bytearray, memoryview)

logger = logging.getLogger("mockhub.streaming")

_END_OF_STREAM = None


def chunk_to_bytes(chunk: Chunk) -> bytes:
    """
    Wire form of a chunk (str is UTF-8 encoded).

    Raises:
        TypeError: If the chunk is not text or bytes
    """
    if isinstance(chunk, str):
        return chunk.encode('utf-8')
    if isinstance(chunk, (bytes, bytearray, memoryview)):
        return bytes(chunk)
    raise TypeError(f"chunk must be str or bytes, got {type(chunk).__name__}")


class QueueClient:
    """
    Non-owning handle on one open streaming connection.

    Chunks are queued on the event loop that serves the connection, so
    ``write`` may be called from any thread.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def write(self, chunk: Chunk):
        """
        Queue a chunk for delivery.

        Raises:
            ClientWriteFailure: If the stream was closed or its loop is gone
        """
        if self.closed:
            raise ClientWriteFailure("client stream is closed")
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, chunk)
        except RuntimeError as e:
            self.closed = True
            raise ClientWriteFailure(str(e)) from e

    def close(self):
        """End the stream after the chunks already queued."""
        if self.closed:
            return
        self.closed = True
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, _END_OF_STREAM)
        except RuntimeError:
            # Loop already stopped: the connection is gone with it
            pass

    async def get(self) -> Optional[Chunk]:
        return await self._queue.get()


class Broadcaster:
    """
    Attached clients and the replay buffer of one streaming mock.

    Example:
        stream = Broadcaster('GET /events')
        stream.publish('a')
        stream.attach(client)   # client receives 'a' (replay)
        stream.publish('b')     # client receives 'b' (live)
        stream.detach(client)
    """

    def __init__(self, name: str = ''):
        self.name = name
        self._clients: List[Any] = []
        self._chunks: List[Chunk] = []
        self._closed = False
        self._lock = threading.Lock()

    @property
    def clients(self) -> List[Any]:
        with self._lock:
            return list(self._clients)

    @property
    def chunks(self) -> List[Chunk]:
        with self._lock:
            return list(self._chunks)

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def attach(self, client) -> bool:
        """
        Register a client and replay the buffered chunks to it, in order.

        A broadcaster that was closed (its mock replaced or its listener
        destroyed) ends the client right away instead.

        Returns:
            True if the client was attached
        """
        with self._lock:
            if self._closed:
                client.close()
                logger.debug(f"Client rejected by closed stream {self.name}")
                return False
            self._clients.append(client)
            for chunk in self._chunks:
                client.write(chunk)
            replayed = len(self._chunks)
        logger.debug(f"Client attached to {self.name} (replayed {replayed} chunks)")
        return True

    def detach(self, client) -> bool:
        """
        Remove a client by identity.

        Returns:
            True if the client was attached, False if it had already left
        """
        with self._lock:
            for index, attached in enumerate(self._clients):
                if attached is client:
                    del self._clients[index]
                    break
            else:
                return False
        logger.debug(f"Client detached from {self.name}")
        return True

    def publish(self, chunk: Chunk) -> int:
        """
        Buffer a chunk and write it to every attached client.

        A client that fails to accept the chunk is skipped; delivery to the
        others continues.

        Returns:
            Number of clients the chunk was handed to
        """
        delivered = 0
        with self._lock:
            self._chunks.append(chunk)
            for client in list(self._clients):
                try:
                    client.write(chunk)
                except ClientWriteFailure:
                    continue
                delivered += 1
        return delivered

    def close_all(self) -> int:
        """
        End every attached stream and refuse later attaches.

        Returns:
            Number of clients closed
        """
        with self._lock:
            self._closed = True
            clients = list(self._clients)
            self._clients.clear()
        for client in clients:
            client.close()
        return len(clients)


class ChunkStream(Response):
    """
    Keep-alive response that streams the chunks of a Broadcaster.

    The body is sent with chunked transfer encoding, one body message per
    chunk. The client stays attached until the peer disconnects or the
    broadcaster closes it.
    """

    media_type = "text/plain"

    def __init__(
        self,
        stream: Broadcaster,
        status_code: int = 200,
        headers: Optional[Mapping[str, str]] = None,
        media_type: Optional[str] = None
    ):
        self.stream = stream
        self.status_code = status_code
        self.media_type = self.media_type if media_type is None else media_type
        self.background = None
        self.init_headers({'Cache-Control': 'no-cache', **(headers or {})})

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        client = QueueClient(asyncio.get_running_loop())
        self.stream.attach(client)
        try:
            await send({
                "type": "http.response.start",
                "status": self.status_code,
                "headers": self.raw_headers,
            })

            async with anyio.create_task_group() as task_group:

                async def wrap(func) -> None:
                    await func()
                    task_group.cancel_scope.cancel()

                task_group.start_soon(wrap, partial(self._pump, client, send))
                await wrap(partial(self._listen_for_disconnect, receive))
        finally:
            client.close()
            self.stream.detach(client)

    async def _pump(self, client: QueueClient, send: Send) -> None:
        try:
            while True:
                chunk = await client.get()
                if chunk is _END_OF_STREAM:
                    break
                await send({"type": "http.response.body", "body": chunk_to_bytes(chunk), "more_body": True})
            await send({"type": "http.response.body", "body": b"", "more_body": False})
        except OSError:
            # Peer went away mid-write
            return

    async def _listen_for_disconnect(self, receive: Receive) -> None:
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                break
