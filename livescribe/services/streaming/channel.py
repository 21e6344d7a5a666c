"""Persistent duplex transcription channel over a websocket."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Awaitable, Callable, Dict, Optional

from websockets.asyncio.client import connect as websocket_connect
from websockets.exceptions import ConnectionClosed

from ...config import Settings, get_settings
from ...data.models import ChannelConnection, ConnectionStatus, TranscriptFragment
from ...errors import ChannelError, ChannelExhausted
from ...logging import get_logger
from .events import ErrorEvent, TranscriptEvent, parse_event
from .reconnect import ReconnectPolicy

LOGGER = get_logger(__name__)

Connector = Callable[..., Awaitable[Any]]


class StreamingTranscriptionChannel:
    """Stream raw audio frames and receive transcript events asynchronously.

    A supervisor task owns the websocket. It opens the connection, pumps
    inbound events to ``on_fragment``, and on an unexpected close asks the
    :class:`ReconnectPolicy` when to try again. Every attempt gets a fresh
    :class:`ChannelConnection`; nothing outside this class keeps a reference
    to the socket, so a reconnect never leaves a stale handle behind.

    Only an open connection accepts audio. Chunks offered while connecting or
    reconnecting are dropped, trading completeness for continuity.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        token: Optional[str] = None,
        *,
        settings: Optional[Settings] = None,
        policy: Optional[ReconnectPolicy] = None,
        connector: Optional[Connector] = None,
        on_fragment: Optional[Callable[[TranscriptFragment], None]] = None,
        on_exhausted: Optional[Callable[[ChannelExhausted], None]] = None,
    ) -> None:
        settings = settings or get_settings()
        self.url = url or settings.stream_url
        self.token = token if token is not None else settings.auth_token
        self.policy = policy or ReconnectPolicy.from_settings(settings)
        self.on_fragment = on_fragment
        self.on_exhausted = on_exhausted
        self._connector = connector or websocket_connect
        self._connection: Optional[ChannelConnection] = None
        self._socket: Any = None
        self._outbox: Optional[asyncio.Queue[bytes]] = None
        self._supervisor: Optional[asyncio.Task] = None
        self._opened = asyncio.Event()
        self._closing = False
        self._exhausted = False
        self.dropped_chunks = 0

    @property
    def connection(self) -> Optional[ChannelConnection]:
        return self._connection

    @property
    def status(self) -> ConnectionStatus:
        if self._connection is None:
            return ConnectionStatus.CLOSED
        return self._connection.status

    @property
    def is_open(self) -> bool:
        return self.status is ConnectionStatus.OPEN and self._outbox is not None

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def _headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    async def connect(self) -> None:
        """Start the supervisor; returns without waiting for the socket to open."""

        if self._supervisor is not None and not self._supervisor.done():
            return
        self._closing = False
        self._exhausted = False
        self.policy.reset()
        self._supervisor = asyncio.get_running_loop().create_task(self._run())

    async def wait_until_open(self, timeout: Optional[float] = None) -> bool:
        try:
            await asyncio.wait_for(self._opened.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def send_chunk(self, data: bytes) -> bool:
        if not self.is_open:
            self.dropped_chunks += 1
            return False
        assert self._outbox is not None
        self._outbox.put_nowait(bytes(data))
        return True

    async def disconnect(self) -> None:
        """Close the channel on purpose; no reconnect follows."""

        self._closing = True
        connection = self._connection
        if connection is not None and connection.status is ConnectionStatus.OPEN:
            connection.status = ConnectionStatus.CLOSING
        socket = self._socket
        if socket is not None:
            with contextlib.suppress(Exception):
                await socket.close()
        supervisor, self._supervisor = self._supervisor, None
        if supervisor is not None:
            supervisor.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await supervisor
        if connection is not None:
            connection.status = ConnectionStatus.CLOSED
        LOGGER.info("Transcription channel disconnected")

    def _new_connection(self) -> ChannelConnection:
        self._connection = ChannelConnection(attempt_count=self.policy.attempt_count)
        return self._connection

    async def _run(self) -> None:
        connection = self._new_connection()
        while True:
            error = await self._attempt(connection)
            if self._closing:
                return
            delay = self.policy.next_delay()
            if delay is None:
                self._give_up(error)
                return
            connection = self._new_connection()
            LOGGER.info(
                "Reconnecting to %s in %s ms (attempt %s/%s)",
                self.url,
                delay,
                self.policy.attempt_count,
                self.policy.max_attempts,
            )
            await asyncio.sleep(delay / 1000.0)
            if self._closing:
                return

    async def _attempt(self, connection: ChannelConnection) -> Optional[ChannelError]:
        try:
            socket = await self._connector(self.url, additional_headers=self._headers())
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = ChannelError(f"Cannot connect to {self.url}: {exc}")
            connection.last_error = error
            connection.status = ConnectionStatus.CLOSED
            LOGGER.warning("%s", error)
            return error
        return await self._serve(connection, socket)

    async def _serve(self, connection: ChannelConnection, socket: Any) -> Optional[ChannelError]:
        outbox: asyncio.Queue[bytes] = asyncio.Queue()
        self._socket = socket
        self._outbox = outbox
        connection.status = ConnectionStatus.OPEN
        self.policy.reset()
        self._opened.set()
        LOGGER.info("Transcription channel open at %s", self.url)
        sender = asyncio.get_running_loop().create_task(self._send_loop(socket, outbox))

        error: Optional[ChannelError] = None
        try:
            async for message in socket:
                self._handle_message(message)
            if not self._closing:
                error = ChannelError("Channel closed by the server")
        except ConnectionClosed as exc:
            if not self._closing:
                error = ChannelError(f"Channel closed unexpectedly: {exc}")
        except (OSError, RuntimeError) as exc:
            error = ChannelError(f"Channel failed: {exc}")
        finally:
            self._opened.clear()
            self._outbox = None
            self._socket = None
            sender_error = await self._collect_sender(sender)
            with contextlib.suppress(Exception):
                await socket.close()
            connection.status = ConnectionStatus.CLOSED

        if sender_error is not None and not self._closing:
            error = sender_error
        if error is not None:
            connection.last_error = error
            LOGGER.warning("%s", error)
        return error

    async def _collect_sender(self, sender: "asyncio.Task[Optional[ChannelError]]") -> Optional[ChannelError]:
        if not sender.done():
            sender.cancel()
        try:
            return await sender
        except asyncio.CancelledError:
            return None
        except Exception as exc:
            return ChannelError(f"Audio sender failed: {exc}")

    async def _send_loop(self, socket: Any, outbox: "asyncio.Queue[bytes]") -> Optional[ChannelError]:
        """Send queued frames in order; a failed send closes the socket so the reader ends too."""

        while True:
            data = await outbox.get()
            try:
                await socket.send(data)
            except ConnectionClosed:
                return None
            except (OSError, RuntimeError) as exc:
                LOGGER.warning("Sending audio to %s failed: %s", self.url, exc)
                with contextlib.suppress(Exception):
                    await socket.close()
                return ChannelError(f"Failed to send audio: {exc}")

    def _handle_message(self, message: Any) -> None:
        event = parse_event(message)
        if isinstance(event, TranscriptEvent):
            if self.on_fragment is None:
                return
            try:
                self.on_fragment(TranscriptFragment(text=event.data, is_final=True))
            except Exception:  # pragma: no cover - callbacks should not break the channel
                LOGGER.exception("Fragment callback raised an exception")
        elif isinstance(event, ErrorEvent):
            LOGGER.warning("Transcription provider reported an error: %s", event.message)

    def _give_up(self, error: Optional[ChannelError]) -> None:
        self._exhausted = True
        exhausted = ChannelExhausted(self.policy.attempt_count, error)
        LOGGER.error("%s", exhausted)
        if self.on_exhausted is None:
            return
        try:
            self.on_exhausted(exhausted)
        except Exception:  # pragma: no cover - callbacks should not break the channel
            LOGGER.exception("Exhausted callback raised an exception")


__all__ = ["Connector", "StreamingTranscriptionChannel"]
