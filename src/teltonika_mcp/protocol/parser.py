"""Decoders for Teltonika TCP frames, UDP datagrams and records.

Every ``decode_*`` function takes a buffer and an optional start offset
and returns ``(value, consumed)``. A buffer that stops short of the end
of the unit raises :class:`~teltonika_mcp.errors.Incomplete`; any other
:class:`~teltonika_mcp.errors.DecodeError` means the bytes are malformed.

See :mod:`.framing` for the frame and datagram layouts.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone

from ..errors import (
    ChecksumMismatch,
    CountMismatch,
    Incomplete,
    InvalidMarker,
    InvalidPreamble,
    InvalidTimestamp,
    UnsupportedCodec,
)
from ..models.avl import (
    AVLDatagram,
    AVLFrame,
    AVLRecord,
    Codec,
    CommandFrame,
    CommandType,
    EventGenerationCause,
    IOEvent,
    IOValueKind,
    IO_GROUP_ORDER,
    Priority,
)
from ..utils.crc import crc16
from .framing import COORDINATE_SCALE, CRC_SIZE, DATAGRAM_MARKER, PREAMBLE
from .reader import ByteReader

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def decode_timestamp(millis: int, *, offset: int | None = None) -> datetime:
    """Map milliseconds since the Unix epoch to an aware UTC datetime."""
    try:
        return _EPOCH + timedelta(milliseconds=millis)
    except OverflowError:
        raise InvalidTimestamp(
            f"Timestamp {millis} ms is out of range",
            offset=offset,
            field="timestamp",
        ) from None


def decode_coordinate(raw: int) -> float:
    """Scale a signed 32-bit coordinate to decimal degrees.

    ``raw`` is the two's-complement value already read as signed.
    """
    return raw / COORDINATE_SCALE


def decode_identifier(data: bytes, offset: int = 0) -> tuple[str, int]:
    """Decode the IMEI sent by the device when it opens a connection.

    A 2-byte length followed by that many single-byte characters.
    """
    reader = ByteReader(data, offset)
    return _read_identifier(reader), reader.offset - offset


def _read_identifier(reader: ByteReader) -> str:
    length = reader.read_u16("imei_length")
    return reader.read_bytes(length, "imei").decode("latin-1")


def _read_codec(reader: ByteReader) -> Codec:
    start = reader.offset
    return Codec.from_byte(reader.read_u8("codec"), offset=start)


def _read_io_value(reader: ByteReader, kind: IOValueKind, count_width: int) -> int | bytes:
    if kind is IOValueKind.VARIABLE:
        length = reader.read_uint(count_width, "io_value_length")
        return reader.read_bytes(length, "io_value")
    return reader.read_uint(kind.width, f"io_{kind.name.lower()}_value")


def _read_io_events(reader: ByteReader, codec: Codec) -> list[IOEvent]:
    layout = codec.layout
    events: list[IOEvent] = []
    for kind in IO_GROUP_ORDER:
        if kind is IOValueKind.VARIABLE and not layout.variable_events:
            continue
        group_size = reader.read_uint(layout.count_width, f"io_{kind.name.lower()}_count")
        for _ in range(group_size):
            event_id = reader.read_uint(layout.id_width, "io_id")
            value = _read_io_value(reader, kind, layout.count_width)
            events.append(IOEvent(id=event_id, kind=kind, value=value))
    return events


def _read_record(reader: ByteReader, codec: Codec) -> AVLRecord:
    if not codec.is_telemetry:
        raise UnsupportedCodec(
            f"Codec {codec.name} does not carry AVL records",
            offset=reader.offset,
            field="codec",
        )
    layout = codec.layout

    start = reader.offset
    timestamp = decode_timestamp(reader.read_u64("timestamp"), offset=start)
    start = reader.offset
    priority = Priority.from_byte(reader.read_u8("priority"), offset=start)

    longitude = decode_coordinate(reader.read_int32("longitude"))
    latitude = decode_coordinate(reader.read_int32("latitude"))
    altitude = reader.read_u16("altitude")
    angle = reader.read_u16("angle")
    satellites = reader.read_u8("satellites")
    speed = reader.read_u16("speed")

    trigger_event_id = reader.read_uint(layout.id_width, "trigger_event_id")
    generation_cause = None
    if layout.generation_cause:
        start = reader.offset
        generation_cause = EventGenerationCause.from_byte(
            reader.read_u8("generation_cause"), offset=start
        )

    start = reader.offset
    io_count = reader.read_uint(layout.count_width, "io_count")
    io_events = _read_io_events(reader, codec)
    if len(io_events) != io_count:
        raise CountMismatch(
            f"Record declares {io_count} IO element(s) but carries {len(io_events)}",
            offset=start,
            field="io_count",
        )

    return AVLRecord(
        timestamp=timestamp,
        priority=priority,
        longitude=longitude,
        latitude=latitude,
        altitude=altitude,
        angle=angle,
        satellites=satellites,
        speed=speed,
        trigger_event_id=trigger_event_id,
        generation_cause=generation_cause,
        io_events=tuple(io_events),
    )


def decode_record(data: bytes, codec: Codec, offset: int = 0) -> tuple[AVLRecord, int]:
    """Decode a single AVL record laid out for ``codec``."""
    reader = ByteReader(data, offset)
    record = _read_record(reader, codec)
    return record, reader.offset - offset


def _read_records(reader: ByteReader, codec: Codec) -> tuple[AVLRecord, ...]:
    """Read ``N1``, ``N1`` records, then check the trailing ``N2``."""
    start = reader.offset
    count = reader.read_u8("record_count")
    records = tuple(_read_record(reader, codec) for _ in range(count))
    trailer_offset = reader.offset
    trailer = reader.read_u8("record_count_trailer")
    if trailer != count:
        raise CountMismatch(
            f"Leading record count {count} does not match trailing count {trailer}",
            offset=trailer_offset,
            field="record_count_trailer",
        )
    logger.debug("Read %d record(s) starting at offset %d", count, start)
    return records


def _read_command_payload(reader: ByteReader) -> tuple[CommandType, tuple[str, ...]]:
    start = reader.offset
    count = reader.read_u8("response_count")
    type_offset = reader.offset
    command_type = CommandType.from_byte(reader.read_u8("command_type"), offset=type_offset)
    responses = []
    for _ in range(count):
        length = reader.read_u32("response_length")
        responses.append(reader.read_bytes(length, "response").decode("latin-1"))
    trailer_offset = reader.offset
    trailer = reader.read_u8("response_count_trailer")
    if trailer != count:
        raise CountMismatch(
            f"Leading response count {count} does not match trailing count {trailer}",
            offset=trailer_offset,
            field="response_count_trailer",
        )
    logger.debug("Read %d %s(s) starting at offset %d", count, command_type.name.lower(), start)
    return command_type, tuple(responses)


def decode_frame(data: bytes, offset: int = 0) -> tuple[AVLFrame | CommandFrame, int]:
    """Decode one TCP frame.

    Returns an :class:`AVLFrame` for telemetry codecs (8, 8E, 16) and a
    :class:`CommandFrame` for Codec 12.
    """
    reader = ByteReader(data, offset)
    if reader.remaining < len(PREAMBLE):
        raise Incomplete(len(PREAMBLE) - reader.remaining, offset=offset, field="preamble")
    reader.expect(PREAMBLE, "preamble", InvalidPreamble)

    data_size = reader.read_u32("data_size")
    if reader.remaining < data_size + CRC_SIZE:
        raise Incomplete(
            data_size + CRC_SIZE - reader.remaining,
            offset=reader.offset,
            field="data",
        )
    payload_offset = reader.offset
    payload = reader.sub_reader(data_size, "data")
    computed_crc = crc16(data[payload_offset : payload_offset + data_size])

    codec = _read_codec(payload)
    if codec.is_telemetry:
        records = _read_records(payload, codec)
    elif codec is Codec.C12:
        command_type, responses = _read_command_payload(payload)
    else:
        raise UnsupportedCodec(
            f"Codec {codec.name} frames are not supported",
            offset=payload_offset,
            field="codec",
        )
    if payload.remaining:
        logger.debug(
            "Ignoring %d trailing byte(s) inside frame data at offset %d",
            payload.remaining,
            payload.offset,
        )

    crc_offset = reader.offset
    frame_crc = reader.read_u32("crc16")
    if frame_crc != computed_crc:
        raise ChecksumMismatch(frame_crc, computed_crc, offset=crc_offset)

    logger.debug("Decoded %s frame, crc=0x%04X", codec.name, frame_crc)
    if codec.is_telemetry:
        frame: AVLFrame | CommandFrame = AVLFrame(codec=codec, records=records, crc16=frame_crc)
    else:
        frame = CommandFrame(
            codec=codec,
            command_type=command_type,
            responses=responses,
            crc16=frame_crc,
        )
    return frame, reader.offset - offset


def decode_datagram(data: bytes, offset: int = 0) -> tuple[AVLDatagram, int]:
    """Decode one UDP datagram. Datagrams carry no checksum."""
    reader = ByteReader(data, offset)
    length = reader.read_u16("length")
    packet = reader.sub_reader(length, "packet")

    packet_id = packet.read_u16("packet_id")
    packet.expect(DATAGRAM_MARKER, "marker", InvalidMarker)
    avl_packet_id = packet.read_u8("avl_packet_id")
    imei = _read_identifier(packet)

    codec_offset = packet.offset
    codec = _read_codec(packet)
    if not codec.is_telemetry:
        raise UnsupportedCodec(
            f"Codec {codec.name} is not valid in a datagram",
            offset=codec_offset,
            field="codec",
        )
    records = _read_records(packet, codec)

    logger.debug(
        "Decoded datagram packet_id=0x%04X imei=%s with %d record(s)",
        packet_id,
        imei,
        len(records),
    )
    datagram = AVLDatagram(
        packet_id=packet_id,
        avl_packet_id=avl_packet_id,
        imei=imei,
        codec=codec,
        records=records,
    )
    return datagram, reader.offset - offset


def iter_frames(data: bytes) -> Iterator[AVLFrame | CommandFrame]:
    """Yield every frame of a capture holding frames back to back.

    Raises:
        Incomplete: If the capture ends in the middle of a frame.
        DecodeError: If any frame is malformed.
    """
    offset = 0
    while offset < len(data):
        frame, consumed = decode_frame(data, offset)
        offset += consumed
        yield frame
