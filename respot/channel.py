"""Multiplexed data channels carried over the session connection."""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Union

log = logging.getLogger(__name__)

_ONE_SECOND = 1.0


class ChannelError(Exception):
    """Raised when a channel fails or its connection goes away."""

    def __init__(self, message: str = "channel error") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class HeaderEvent:
    id: int
    data: bytes


@dataclass(frozen=True)
class DataEvent:
    data: bytes


ChannelEvent = Union[HeaderEvent, DataEvent]


class _State(enum.Enum):
    HEADER = enum.auto()
    DATA = enum.auto()
    CLOSED = enum.auto()


class Channel:
    """Receiving end of one channel: a stream of header and data events."""

    def __init__(self, error_command: int) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._error_command = error_command
        self._state = _State.HEADER
        self._pending = b""
        self._receiver_closed = False

    def _deliver(self, cmd: int, data: bytes) -> None:
        if self._receiver_closed:
            raise ChannelError()
        self._queue.put_nowait((cmd, data))

    def _disconnect(self) -> None:
        self._queue.put_nowait(None)

    async def _recv_packet(self) -> bytes:
        item = await self._queue.get()
        if item is None:
            raise ChannelError()
        cmd, packet = item
        if cmd == self._error_command:
            code = int.from_bytes(packet[:2], "big")
            log.error("channel error: %d %d", len(packet), code)
            self._state = _State.CLOSED
            raise ChannelError()
        return packet

    def __aiter__(self) -> Channel:
        return self

    async def __anext__(self) -> ChannelEvent:
        while True:
            if self._state is _State.CLOSED:
                log.error("Polling already terminated channel")
                raise StopAsyncIteration

            if self._state is _State.HEADER:
                data = self._pending or await self._recv_packet()
                if len(data) < 2:
                    raise ChannelError("truncated channel header")
                length = int.from_bytes(data[:2], "big")
                data = data[2:]
                if length == 0:
                    self._pending = b""
                    self._state = _State.DATA
                    continue
                if len(data) < length:
                    raise ChannelError("truncated channel header")
                self._pending = data[length:]
                return HeaderEvent(data[0], bytes(data[1:length]))

            data = await self._recv_packet()
            if not data:
                self._receiver_closed = True
                self._state = _State.CLOSED
                raise StopAsyncIteration
            return DataEvent(bytes(data))

    async def headers(self) -> AsyncIterator[tuple[int, bytes]]:
        """Yield ``(id, data)`` headers until the first non-header event."""
        while True:
            try:
                event = await self.__anext__()
            except StopAsyncIteration:
                return
            if not isinstance(event, HeaderEvent):
                return
            yield event.id, event.data

    async def data(self) -> AsyncIterator[bytes]:
        """Yield the data chunks, skipping headers."""
        while True:
            try:
                event = await self.__anext__()
            except StopAsyncIteration:
                return
            if isinstance(event, DataEvent):
                yield event.data


class ChannelManager:
    """Allocates channels and routes incoming packets to them."""

    def __init__(self, error_command: int) -> None:
        self._error_command = error_command
        self._lock = threading.Lock()
        self._sequence = 0
        self._channels: dict[int, Channel] = {}
        self._rate_estimate = 0
        self._measurement_start: Optional[float] = None
        self._measurement_bytes = 0
        self._invalid = False

    def allocate(self) -> tuple[int, Channel]:
        channel = Channel(self._error_command)
        with self._lock:
            seq = self._sequence
            self._sequence = (self._sequence + 1) & 0xFFFF
            if self._invalid:
                channel._disconnect()
            else:
                self._channels[seq] = channel
        return seq, channel

    def dispatch(self, cmd: int, data: bytes) -> None:
        """Route a packet whose first two bytes name the channel."""
        if len(data) < 2:
            raise ChannelError("packet too short for a channel id")
        channel_id = int.from_bytes(data[:2], "big")
        payload = bytes(data[2:])

        with self._lock:
            now = time.monotonic()
            if self._measurement_start is None:
                self._measurement_start = now
            else:
                elapsed = now - self._measurement_start
                if elapsed > _ONE_SECOND:
                    elapsed_ms = int(elapsed * 1000)
                    self._rate_estimate = 1000 * self._measurement_bytes // elapsed_ms
                    self._measurement_start = now
                    self._measurement_bytes = 0
            self._measurement_bytes += len(payload)

            channel = self._channels.get(channel_id)
            if channel is not None:
                channel._deliver(cmd, payload)

    def download_rate_estimate(self) -> int:
        """Estimated download rate in bytes per second."""
        with self._lock:
            return self._rate_estimate

    def shutdown(self) -> None:
        """Refuse new channels and signal everyone waiting on existing ones."""
        with self._lock:
            self._invalid = True
            for channel in self._channels.values():
                channel._disconnect()
            self._channels.clear()