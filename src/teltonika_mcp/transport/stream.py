"""Stream reassembly and device conversation over a byte stream.

TCP delivers frames in arbitrary pieces. :class:`Reassembler` buffers
the pieces and re-runs a decoder over everything received until the
decoder stops raising :class:`~teltonika_mcp.errors.Incomplete`.

:class:`TeltonikaStream` drives it over a blocking file-like object and
:class:`AsyncTeltonikaStream` over an asyncio reader/writer pair. Neither
opens sockets; wrap an accepted socket with ``sock.makefile("rwb",
buffering=0)`` or pass the pair from ``asyncio.start_server``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Protocol, TypeVar

from ..errors import DecodeError, Incomplete
from ..models.avl import AVLDatagram, AVLFrame, CommandFrame
from ..protocol.commands import (
    build_command,
    build_datagram_ack,
    build_frame_ack,
    build_identifier_reply,
)
from ..protocol.parser import decode_datagram, decode_frame, decode_identifier

logger = logging.getLogger(__name__)

DEFAULT_IMEI_BUF_CAPACITY = 128
DEFAULT_PACKET_BUF_CAPACITY = 2048

T = TypeVar("T")
Decoder = Callable[[bytes], tuple[Any, int]]


class ConnectionClosed(ConnectionError):
    """The byte source reached end of stream before a unit was decoded."""


class ReassemblerState(Enum):
    ACCUMULATING = "accumulating"
    COMPLETE = "complete"
    FAILED = "failed"


class EmptyReadPolicy(Enum):
    """What a zero-byte read means to a decode loop."""

    CLOSED = "closed"  # raise ConnectionClosed
    EMPTY_RESPONSE = "empty_response"  # nothing buffered: complete with None


@dataclass
class StreamConfig:
    """Read sizes and zero-read handling for a stream.

    Capacities only size each read call; they do not limit how large a
    frame may grow.
    """

    imei_buf_capacity: int = DEFAULT_IMEI_BUF_CAPACITY
    packet_buf_capacity: int = DEFAULT_PACKET_BUF_CAPACITY
    frame_empty_read: EmptyReadPolicy = EmptyReadPolicy.CLOSED
    command_empty_read: EmptyReadPolicy = EmptyReadPolicy.EMPTY_RESPONSE


class Reassembler(Generic[T]):
    """Accumulates chunks until ``decoder`` yields one complete unit.

    Usage::

        reassembler = Reassembler(decode_frame)
        while (frame := reassembler.feed(sock.recv(2048))) is None:
            pass

    A reassembler decodes exactly one unit. Bytes left over after that
    unit are dropped.
    """

    def __init__(
        self,
        decoder: Decoder,
        capacity: int = DEFAULT_PACKET_BUF_CAPACITY,
        empty_read: EmptyReadPolicy = EmptyReadPolicy.CLOSED,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"Capacity must be positive, got {capacity}")
        self._decoder = decoder
        self._capacity = capacity
        self._empty_read = empty_read
        self._buffer = bytearray()
        self._state = ReassemblerState.ACCUMULATING
        self._needed: int | None = None
        self._consumed = 0

    @property
    def state(self) -> ReassemblerState:
        return self._state

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def buffered(self) -> bytes:
        return bytes(self._buffer)

    @property
    def consumed(self) -> int:
        """Bytes of the buffer taken by the decoded unit, 0 until complete."""
        return self._consumed

    @property
    def needed(self) -> int | None:
        """Minimum additional bytes reported by the last decode attempt."""
        return self._needed

    def feed(self, chunk: bytes) -> T | None:
        """Append ``chunk`` and try to decode the whole buffer.

        Returns:
            The decoded unit, or ``None`` while more bytes are needed.
            Also ``None`` for an empty chunk on an empty buffer under
            :attr:`EmptyReadPolicy.EMPTY_RESPONSE`, which completes the
            reassembler.

        Raises:
            ConnectionClosed: On an empty chunk the policy treats as
                end of stream.
            DecodeError: If the buffered bytes are malformed.
            RuntimeError: If the reassembler already finished.
        """
        if self._state is not ReassemblerState.ACCUMULATING:
            raise RuntimeError(f"Reassembler is {self._state.value}")

        if not chunk:
            return self._end_of_stream()

        self._buffer += chunk
        try:
            value, consumed = self._decoder(bytes(self._buffer))
        except Incomplete as e:
            self._needed = e.needed
            logger.debug(
                "Buffered %d byte(s), need %s more",
                len(self._buffer),
                e.needed if e.needed is not None else "some",
            )
            return None
        except DecodeError as e:
            self._state = ReassemblerState.FAILED
            logger.warning("Decode failed after %d byte(s): %s", len(self._buffer), e)
            raise

        self._state = ReassemblerState.COMPLETE
        self._needed = None
        self._consumed = consumed
        if consumed < len(self._buffer):
            logger.debug("Dropping %d byte(s) after decoded unit", len(self._buffer) - consumed)
        return value

    def _end_of_stream(self) -> None:
        if self._empty_read is EmptyReadPolicy.EMPTY_RESPONSE and not self._buffer:
            self._state = ReassemblerState.COMPLETE
            return None
        self._state = ReassemblerState.FAILED
        raise ConnectionClosed(
            f"Connection closed with {len(self._buffer)} byte(s) buffered"
        )

    def pull(self, source: ByteSource) -> T | None:
        """Read from ``source`` until a unit is decoded."""
        while True:
            value = self.feed(source.read(self._capacity))
            if self._state is ReassemblerState.COMPLETE:
                return value

    async def pull_async(self, reader: AsyncByteSource) -> T | None:
        """Await reads from ``reader`` until a unit is decoded."""
        while True:
            value = self.feed(await reader.read(self._capacity))
            if self._state is ReassemblerState.COMPLETE:
                return value


class ByteSource(Protocol):
    def read(self, size: int, /) -> bytes: ...


class ByteStream(ByteSource, Protocol):
    def write(self, data: bytes, /) -> Any: ...

    def flush(self) -> Any: ...


class AsyncByteSource(Protocol):
    async def read(self, n: int = -1) -> bytes: ...


class AsyncByteSink(Protocol):
    def write(self, data: bytes) -> Any: ...

    async def drain(self) -> None: ...


class TeltonikaStream:
    """Blocking conversation with one device.

    ``inner`` is any object whose ``read(n)`` returns up to ``n`` bytes
    (``b""`` at end of stream) and that has ``write()`` and ``flush()``.

    Usage::

        stream = TeltonikaStream(conn.makefile("rwb", buffering=0))
        imei = stream.read_imei()
        stream.write_imei_approval()
        frame = stream.read_frame()
        stream.write_frame_ack(frame)
    """

    def __init__(self, inner: ByteStream, config: StreamConfig | None = None) -> None:
        self._inner = inner
        self._config = config or StreamConfig()

    @property
    def inner(self) -> ByteStream:
        return self._inner

    @property
    def config(self) -> StreamConfig:
        return self._config

    def into_inner(self) -> ByteStream:
        return self._inner

    def _pull(self, decoder: Decoder, capacity: int, empty_read: EmptyReadPolicy):
        return Reassembler(decoder, capacity, empty_read).pull(self._inner)

    def read_imei(self) -> str:
        """Read the IMEI handshake sent when the device connects.

        Raises:
            ConnectionClosed: If the stream ends first.
            DecodeError: If the handshake cannot be decoded.
        """
        imei = self._pull(
            decode_identifier,
            self._config.imei_buf_capacity,
            EmptyReadPolicy.CLOSED,
        )
        logger.info("Device identified as %s", imei)
        return imei

    def read_frame(self) -> AVLFrame | CommandFrame:
        """Read one TCP frame (telemetry or command response)."""
        return self._pull(
            decode_frame,
            self._config.packet_buf_capacity,
            self._config.frame_empty_read,
        )

    def read_frame_and_bytes(self) -> tuple[AVLFrame | CommandFrame, bytes]:
        """Read one frame and also return the raw bytes it was decoded from."""
        reassembler = Reassembler(
            decode_frame,
            self._config.packet_buf_capacity,
            self._config.frame_empty_read,
        )
        frame = reassembler.pull(self._inner)
        return frame, reassembler.buffered[: reassembler.consumed]

    def read_command_response(self) -> CommandFrame | None:
        """Read the device's answer to a command.

        Returns ``None`` if the device closed without answering and the
        configured policy treats that as an empty response.
        """
        frame = self._pull(
            decode_frame,
            self._config.packet_buf_capacity,
            self._config.command_empty_read,
        )
        if frame is not None and not isinstance(frame, CommandFrame):
            raise TypeError(f"Expected a command response, got {frame.codec.name} telemetry")
        return frame

    def read_datagram(self) -> AVLDatagram:
        """Read one UDP datagram from a datagram-backed source."""
        return self._pull(
            decode_datagram,
            self._config.packet_buf_capacity,
            self._config.frame_empty_read,
        )

    def _write_all(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            written = self._inner.write(view)
            if written is None:  # file-likes that do not report a count
                break
            view = view[written:]
        self._inner.flush()

    def write_imei_approval(self) -> None:
        logger.info("Approving device")
        self._write_all(build_identifier_reply(True))

    def write_imei_denial(self) -> None:
        logger.info("Denying device")
        self._write_all(build_identifier_reply(False))

    def write_frame_ack(self, frame: AVLFrame | None) -> None:
        """Acknowledge ``frame``; ``None`` acknowledges zero records."""
        self._write_all(build_frame_ack(frame))

    def write_datagram_ack(self, datagram: AVLDatagram | None) -> None:
        self._write_all(build_datagram_ack(datagram))

    def write_command(self, commands: str | list[str]) -> None:
        """Send one or more Codec 12 commands to the device."""
        frame = build_command(commands)
        logger.info("Sending command frame (%d bytes)", len(frame))
        self._write_all(frame)


class AsyncTeltonikaStream:
    """Asyncio conversation with one device.

    Usage::

        async def handle(reader, writer):
            stream = AsyncTeltonikaStream(reader, writer)
            imei = await stream.read_imei()
            await stream.write_imei_approval()
    """

    def __init__(
        self,
        reader: AsyncByteSource,
        writer: AsyncByteSink,
        config: StreamConfig | None = None,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._config = config or StreamConfig()

    @property
    def reader(self) -> AsyncByteSource:
        return self._reader

    @property
    def writer(self) -> AsyncByteSink:
        return self._writer

    @property
    def config(self) -> StreamConfig:
        return self._config

    async def _pull(self, decoder: Decoder, capacity: int, empty_read: EmptyReadPolicy):
        return await Reassembler(decoder, capacity, empty_read).pull_async(self._reader)

    async def read_imei(self) -> str:
        imei = await self._pull(
            decode_identifier,
            self._config.imei_buf_capacity,
            EmptyReadPolicy.CLOSED,
        )
        logger.info("Device identified as %s", imei)
        return imei

    async def read_frame(self) -> AVLFrame | CommandFrame:
        return await self._pull(
            decode_frame,
            self._config.packet_buf_capacity,
            self._config.frame_empty_read,
        )

    async def read_command_response(self) -> CommandFrame | None:
        frame = await self._pull(
            decode_frame,
            self._config.packet_buf_capacity,
            self._config.command_empty_read,
        )
        if frame is not None and not isinstance(frame, CommandFrame):
            raise TypeError(f"Expected a command response, got {frame.codec.name} telemetry")
        return frame

    async def read_datagram(self) -> AVLDatagram:
        return await self._pull(
            decode_datagram,
            self._config.packet_buf_capacity,
            self._config.frame_empty_read,
        )

    async def _write_all(self, data: bytes) -> None:
        self._writer.write(data)
        await self._writer.drain()

    async def write_imei_approval(self) -> None:
        logger.info("Approving device")
        await self._write_all(build_identifier_reply(True))

    async def write_imei_denial(self) -> None:
        logger.info("Denying device")
        await self._write_all(build_identifier_reply(False))

    async def write_frame_ack(self, frame: AVLFrame | None) -> None:
        await self._write_all(build_frame_ack(frame))

    async def write_datagram_ack(self, datagram: AVLDatagram | None) -> None:
        await self._write_all(build_datagram_ack(datagram))

    async def write_command(self, commands: str | list[str]) -> None:
        frame = build_command(commands)
        logger.info("Sending command frame (%d bytes)", len(frame))
        await self._write_all(frame)
