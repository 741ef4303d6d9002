"""MCP server entry point for the Teltonika protocol codec.

Exposes decoding and encoding tools, catalog resources, and prompts via
the Model Context Protocol using the official Python MCP SDK with stdio
transport. The tools work on hex captures and capture files; they never
talk to a device.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from .errors import DecodeError
from .models.avl import AVLDatagram, Codec, CommandFrame, EventGenerationCause, Priority
from .protocol.commands import (
    build_command,
    build_datagram_ack,
    build_frame_ack,
    build_identifier_reply,
)
from .protocol.parser import (
    decode_datagram,
    decode_frame,
    decode_identifier,
    iter_frames,
)
from .utils.crc import crc16

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "teltonika",
    instructions="Decode and encode Teltonika AVL protocol data from hex captures",
)

CODEC_DESCRIPTIONS = {
    Codec.C8: "Codec 8: 1-byte IO ids and counts",
    Codec.C8_EXT: "Codec 8 Extended: 2-byte IO ids and counts, variable-length IO values",
    Codec.C16: "Codec 16: 2-byte IO ids, 1-byte counts, generation cause per record",
    Codec.C12: "Codec 12: GPRS commands and responses",
    Codec.C13: "Codec 13: GPRS messages with timestamp (not decoded)",
    Codec.C14: "Codec 14: GPRS commands with IMEI check (not decoded)",
}


def _parse_hex(hex_data: str) -> bytes:
    """Accept hex with optional spaces, colons or a 0x prefix."""
    cleaned = hex_data.strip().replace(" ", "").replace(":", "").replace("\n", "")
    if cleaned.lower().startswith("0x"):
        cleaned = cleaned[2:]
    return bytes.fromhex(cleaned)


def _error(e: Exception) -> dict[str, Any]:
    if isinstance(e, DecodeError):
        result: dict[str, Any] = {
            "error": str(e),
            "kind": e.kind,
            "offset": e.offset,
            "field": e.field,
        }
        needed = getattr(e, "needed", None)
        if needed is not None:
            result["needed"] = needed
        return result
    return {"error": str(e)}


# ─── DECODING TOOLS ──────────────────────────────────────────────────

@mcp.tool()
def decode_frame_hex(hex_data: str) -> dict[str, Any]:
    """Decode one TCP frame (Codec 8, 8 Extended, 16 or 12).

    Args:
        hex_data: The frame as hex, starting at the 00000000 preamble.
    """
    try:
        data = _parse_hex(hex_data)
        frame, consumed = decode_frame(data)
    except ValueError as e:
        return _error(e)

    result = frame.to_dict()
    result["consumed"] = consumed
    if consumed < len(data):
        result["trailing_bytes"] = len(data) - consumed
    return result


@mcp.tool()
def decode_datagram_hex(hex_data: str) -> dict[str, Any]:
    """Decode one UDP datagram.

    Args:
        hex_data: The datagram as hex, starting at the 2-byte length.
    """
    try:
        datagram, consumed = decode_datagram(_parse_hex(hex_data))
    except ValueError as e:
        return _error(e)

    result = datagram.to_dict()
    result["consumed"] = consumed
    return result


@mcp.tool()
def decode_identifier_hex(hex_data: str) -> dict[str, Any]:
    """Decode the IMEI handshake a device sends after connecting.

    Args:
        hex_data: Hex such as 000F333536333037303432343431303133.
    """
    try:
        imei, consumed = decode_identifier(_parse_hex(hex_data))
    except ValueError as e:
        return _error(e)
    return {"imei": imei, "consumed": consumed}


@mcp.tool()
def decode_capture_file(path: str, limit: int = 100) -> dict[str, Any]:
    """Decode a binary capture holding TCP frames back to back.

    Args:
        path: Path to the capture file.
        limit: Maximum number of frames to return (default 100).
    """
    capture = Path(path)
    if not capture.is_file():
        return {"error": f"File not found: {path}"}

    data = capture.read_bytes()
    frames = []
    try:
        for frame in iter_frames(data):
            if len(frames) >= limit:
                break
            frames.append(frame.to_dict())
    except DecodeError as e:
        result = _error(e)
        result["frames"] = frames
        return result

    return {"path": str(capture), "size": len(data), "frames": frames}


# ─── ENCODING TOOLS ──────────────────────────────────────────────────

@mcp.tool()
def encode_command(commands: list[str]) -> dict[str, Any]:
    """Build a Codec 12 frame carrying SMS/GPRS commands.

    Args:
        commands: Command strings, e.g. ["getinfo"] or ["getver", "getstatus"].
    """
    try:
        frame = build_command(commands)
    except ValueError as e:
        return _error(e)
    return {
        "hex": frame.hex().upper(),
        "length": len(frame),
        "crc16": int.from_bytes(frame[-4:], "big"),
    }


@mcp.tool()
def build_ack(kind: str, hex_data: str = "", accepted: bool = True) -> dict[str, Any]:
    """Build the server acknowledgement for a received unit.

    Args:
        kind: "imei", "frame" or "datagram".
        hex_data: The received frame or datagram as hex (unused for "imei").
            An empty string acknowledges zero records.
        accepted: For "imei", whether the device is accepted.
    """
    try:
        if kind == "imei":
            ack = build_identifier_reply(accepted)
        elif kind == "frame":
            frame = decode_frame(_parse_hex(hex_data))[0] if hex_data else None
            if isinstance(frame, CommandFrame):
                return {"error": "Command frames are not acknowledged"}
            ack = build_frame_ack(frame)
        elif kind == "datagram":
            datagram: AVLDatagram | None = (
                decode_datagram(_parse_hex(hex_data))[0] if hex_data else None
            )
            ack = build_datagram_ack(datagram)
        else:
            return {"error": f"Unknown ack kind '{kind}'. Valid: imei, frame, datagram"}
    except ValueError as e:
        return _error(e)
    return {"kind": kind, "hex": ack.hex().upper()}


@mcp.tool()
def compute_checksum(hex_data: str) -> dict[str, Any]:
    """Compute the CRC-16/ARC checksum used by TCP frames.

    Args:
        hex_data: The data field (codec byte through trailing count) as hex.
    """
    try:
        value = crc16(_parse_hex(hex_data))
    except ValueError as e:
        return _error(e)
    return {"crc16": value, "hex": f"{value:08X}"}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("teltonika://catalog/codecs")
def resource_codecs() -> str:
    """Known codec ids and what each carries."""
    codecs = [
        {
            "id": f"0x{codec.value:02X}",
            "name": codec.name,
            "telemetry": codec.is_telemetry,
            "description": CODEC_DESCRIPTIONS[codec],
        }
        for codec in Codec
    ]
    return json.dumps({"codecs": codecs})


@mcp.resource("teltonika://catalog/priorities")
def resource_priorities() -> str:
    """Record priority values."""
    return json.dumps({"priorities": [{"id": p.value, "name": p.name} for p in Priority]})


@mcp.resource("teltonika://catalog/generation-causes")
def resource_generation_causes() -> str:
    """Codec 16 event generation causes."""
    causes = [{"id": c.value, "name": c.name} for c in EventGenerationCause]
    return json.dumps({"generation_causes": causes})


# ─── MCP PROMPTS ─────────────────────────────────────────────────────

@mcp.prompt()
def diagnose_capture(hex_data: str) -> str:
    """Guide the AI through diagnosing a frame a device sent.

    Args:
        hex_data: The captured bytes as hex.
    """
    return f"""Diagnose this Teltonika capture: {hex_data}

Steps:
- Decide whether it is a TCP frame (starts with 00000000) or a UDP datagram
  (starts with a 2-byte length) and call decode_frame_hex or decode_datagram_hex.
- If decoding fails, report the error kind, field and offset, and point at
  the bytes around that offset.
- For "Incomplete", say how many bytes are missing; the capture was cut short.
- For "ChecksumMismatch", recompute the CRC with compute_checksum over the
  data field to confirm which side is wrong.
- For decoded telemetry, summarize records in order: time, position, speed,
  and the IO ids reported (their meaning depends on the device model)."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
