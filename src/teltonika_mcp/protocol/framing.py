"""TCP frame envelope and telemetry encoders.

Frame layout::

    +----------+-----------+-------------------------------+----------+
    | Preamble | Data size |             Data              |  CRC-16  |
    | 4 bytes  | 4 bytes   | Codec, payload, ... (N bytes) |  4 bytes |
    +----------+-----------+-------------------------------+----------+

- Preamble: four zero bytes
- Data size: big-endian length of the data field
- CRC-16: CRC-16/ARC over the data field, big-endian in a 4-byte field

Datagram layout (UDP, no checksum)::

    +--------+-----------+------+---------------+------+-------+----+---------+----+
    | Length | Packet id | 0x01 | AVL packet id | IMEI | Codec | N1 | Records | N2 |
    | 2      | 2         | 1    | 1             | 2+n  | 1     | 1  |         | 1  |
    +--------+-----------+------+---------------+------+-------+----+---------+----+

The encoders here are the exact inverse of :mod:`.parser`. Devices only
send telemetry, so they exist for simulators and test fixtures.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

from ..models.avl import (
    AVLRecord,
    Codec,
    IOEvent,
    IOValueKind,
    IO_GROUP_ORDER,
)
from ..utils.crc import crc16

PREAMBLE = b"\x00\x00\x00\x00"
DATAGRAM_MARKER = b"\x01"
CRC_SIZE = 4
COORDINATE_SCALE = 10_000_000

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def build_frame(data: bytes) -> bytes:
    """Wrap ``data`` (codec byte onward) in preamble, size and CRC."""
    return (
        PREAMBLE
        + len(data).to_bytes(4, "big")
        + data
        + crc16(data).to_bytes(CRC_SIZE, "big")
    )


def encode_identifier(imei: str) -> bytes:
    """Encode the IMEI handshake message."""
    raw = imei.encode("latin-1")
    return len(raw).to_bytes(2, "big") + raw


def encode_coordinate(degrees: float) -> bytes:
    """Encode decimal degrees as a two's-complement 32-bit integer."""
    return round(degrees * COORDINATE_SCALE).to_bytes(4, "big", signed=True)


def _encode_io_value(event: IOEvent, count_width: int) -> bytes:
    if event.kind is IOValueKind.VARIABLE:
        value = bytes(event.value)
        return len(value).to_bytes(count_width, "big") + value
    return int(event.value).to_bytes(event.kind.width, "big")


def encode_record(record: AVLRecord, codec: Codec) -> bytes:
    """Encode one record laid out for ``codec``.

    IO events are written grouped by value kind, whatever their order in
    ``record.io_events``.

    Raises:
        ValueError: If the codec carries no records, or the record holds
            data the codec cannot express.
    """
    if not codec.is_telemetry:
        raise ValueError(f"Codec {codec.name} does not carry AVL records")
    layout = codec.layout

    millis = (record.timestamp - _EPOCH) // timedelta(milliseconds=1)
    buf = bytearray()
    buf += millis.to_bytes(8, "big")
    buf.append(record.priority)
    buf += encode_coordinate(record.longitude)
    buf += encode_coordinate(record.latitude)
    buf += record.altitude.to_bytes(2, "big")
    buf += record.angle.to_bytes(2, "big")
    buf.append(record.satellites)
    buf += record.speed.to_bytes(2, "big")
    buf += record.trigger_event_id.to_bytes(layout.id_width, "big")
    if layout.generation_cause:
        if record.generation_cause is None:
            raise ValueError("Codec 16 records need a generation cause")
        buf.append(record.generation_cause)

    groups: dict[IOValueKind, list[IOEvent]] = {kind: [] for kind in IO_GROUP_ORDER}
    for event in record.io_events:
        groups[event.kind].append(event)
    if groups[IOValueKind.VARIABLE] and not layout.variable_events:
        raise ValueError(f"Codec {codec.name} cannot carry variable-length IO values")

    buf += len(record.io_events).to_bytes(layout.count_width, "big")
    for kind in IO_GROUP_ORDER:
        if kind is IOValueKind.VARIABLE and not layout.variable_events:
            continue
        buf += len(groups[kind]).to_bytes(layout.count_width, "big")
        for event in groups[kind]:
            buf += event.id.to_bytes(layout.id_width, "big")
            buf += _encode_io_value(event, layout.count_width)
    return bytes(buf)


def encode_records(codec: Codec, records: Sequence[AVLRecord]) -> bytes:
    """Encode codec byte, N1, the records and N2."""
    if len(records) > 0xFF:
        raise ValueError(f"At most 255 records fit in one unit, got {len(records)}")
    body = b"".join(encode_record(record, codec) for record in records)
    count = bytes([len(records)])
    return bytes([codec]) + count + body + count


def encode_avl_frame(codec: Codec, records: Sequence[AVLRecord]) -> bytes:
    """Build a complete telemetry TCP frame."""
    return build_frame(encode_records(codec, records))


def encode_datagram(
    packet_id: int,
    avl_packet_id: int,
    imei: str,
    codec: Codec,
    records: Sequence[AVLRecord],
) -> bytes:
    """Build a complete telemetry UDP datagram."""
    packet = (
        packet_id.to_bytes(2, "big")
        + DATAGRAM_MARKER
        + bytes([avl_packet_id])
        + encode_identifier(imei)
        + encode_records(codec, records)
    )
    return len(packet).to_bytes(2, "big") + packet
