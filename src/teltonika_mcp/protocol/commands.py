"""Codec 12 command builder and the server-side acknowledgements.

Codec 12 data field::

    +-------+-----+------+------------------------------------+-----+
    | Codec | N1  | Type | N1 x (size: 4 bytes, command bytes) | N2  |
    | 0x0C  | 1   | 1    | variable                            | 1   |
    +-------+-----+------+------------------------------------+-----+

Type is 0x05 for commands sent to the device and 0x06 for its responses.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..models.avl import AVLDatagram, AVLFrame, Codec, CommandType
from .framing import DATAGRAM_MARKER, build_frame

IMEI_ACCEPTED = b"\x01"
IMEI_REJECTED = b"\x00"
MAX_COMMANDS = 0xFF


def build_command_data(
    commands: Sequence[str],
    command_type: CommandType = CommandType.COMMAND,
) -> bytes:
    """Build the Codec 12 data field (codec byte through N2)."""
    if not commands:
        raise ValueError("At least one command is required")
    if len(commands) > MAX_COMMANDS:
        raise ValueError(
            f"At most {MAX_COMMANDS} commands fit in one frame, got {len(commands)}"
        )
    count = bytes([len(commands)])
    body = bytearray()
    body.append(Codec.C12)
    body += count
    body.append(command_type)
    for command in commands:
        raw = command.encode("latin-1")
        body += len(raw).to_bytes(4, "big")
        body += raw
    body += count
    return bytes(body)


def build_command(commands: str | Sequence[str]) -> bytes:
    """Build a Codec 12 frame carrying one or more commands.

    Args:
        commands: A single command string or a sequence of them,
            e.g. ``"getinfo"`` or ``["getver", "getstatus"]``.

    Returns:
        The full TCP frame: preamble, size, data and CRC.
    """
    if isinstance(commands, str):
        commands = [commands]
    return build_frame(build_command_data(commands))


def build_identifier_reply(accepted: bool) -> bytes:
    """Build the one-byte reply to the IMEI handshake."""
    return IMEI_ACCEPTED if accepted else IMEI_REJECTED


def build_frame_ack(frame: AVLFrame | None) -> bytes:
    """Build the 4-byte record count acknowledging a TCP frame.

    ``None`` acknowledges nothing and tells the device to resend.
    """
    count = len(frame.records) if frame is not None else 0
    return count.to_bytes(4, "big")


def build_datagram_ack(datagram: AVLDatagram | None) -> bytes:
    """Build the acknowledgement for a UDP datagram.

    Mirrors the datagram header: count (2), packet id (2), 0x01,
    AVL packet id (1), then the accepted record count (4).
    """
    if datagram is None:
        count = packet_id = avl_packet_id = 0
    else:
        count = len(datagram.records)
        packet_id = datagram.packet_id
        avl_packet_id = datagram.avl_packet_id
    return (
        count.to_bytes(2, "big")
        + packet_id.to_bytes(2, "big")
        + DATAGRAM_MARKER
        + bytes([avl_packet_id])
        + count.to_bytes(4, "big")
    )
