"""Tests for the MCP tool functions."""

import json
import sys
from unittest.mock import MagicMock, patch

from conftest import (
    CODEC8_FRAME_1,
    CODEC8_FRAME_3,
    CODEC12_RESPONSE,
    IMEI_HANDSHAKE,
    UDP_DATAGRAM,
)


def _get_server_module():
    """Import server module with FastMCP mocked to avoid init issues."""
    mock_fastmcp_cls = MagicMock()
    mock_fastmcp_instance = MagicMock()
    # Make the @mcp.tool() decorator a no-op that returns the function unchanged
    mock_fastmcp_instance.tool.return_value = lambda fn: fn
    mock_fastmcp_instance.resource.return_value = lambda fn: fn
    mock_fastmcp_instance.prompt.return_value = lambda fn: fn
    mock_fastmcp_cls.return_value = mock_fastmcp_instance

    with patch.dict(sys.modules, {}):
        with patch("mcp.server.fastmcp.FastMCP", mock_fastmcp_cls):
            sys.modules.pop("teltonika_mcp.server", None)
            import teltonika_mcp.server as server_mod

    return server_mod


def test_decode_frame_hex():
    server = _get_server_module()
    result = server.decode_frame_hex(CODEC8_FRAME_1)
    assert result["type"] == "avl_frame"
    assert result["codec"] == "C8"
    assert result["crc16"] == 0xC7CF
    assert result["consumed"] == 66
    assert "trailing_bytes" not in result
    assert result["records"][0]["timestamp"] == "2019-06-10T10:04:46+00:00"


def test_decode_frame_hex_accepts_separators():
    """Spaces, colons and a 0x prefix are ignored."""
    server = _get_server_module()
    spaced = " ".join(CODEC12_RESPONSE[i : i + 2] for i in range(0, len(CODEC12_RESPONSE), 2))
    result = server.decode_frame_hex("0x" + spaced.replace(" ", ":", 3))
    assert result["type"] == "command_frame"
    assert result["responses"] == ["getinfo"]


def test_decode_frame_hex_trailing_bytes():
    server = _get_server_module()
    result = server.decode_frame_hex(CODEC8_FRAME_1 + "0000")
    assert result["trailing_bytes"] == 2


def test_decode_frame_hex_incomplete():
    server = _get_server_module()
    result = server.decode_frame_hex(CODEC8_FRAME_1[:16])
    assert result["kind"] == "Incomplete"
    assert result["needed"] == 58
    assert result["field"] == "data"


def test_decode_frame_hex_checksum_error():
    server = _get_server_module()
    result = server.decode_frame_hex(CODEC8_FRAME_1[:-4] + "0000")
    assert result["kind"] == "ChecksumMismatch"
    assert result["offset"] == 62


def test_decode_frame_hex_not_hex():
    server = _get_server_module()
    result = server.decode_frame_hex("not hex")
    assert "error" in result
    assert "kind" not in result


def test_decode_datagram_hex():
    server = _get_server_module()
    result = server.decode_datagram_hex(UDP_DATAGRAM)
    assert result["type"] == "avl_datagram"
    assert result["imei"] == "352093086403655"
    assert result["packet_id"] == 0xCAFE
    assert result["consumed"] == 63


def test_decode_identifier_hex():
    server = _get_server_module()
    assert server.decode_identifier_hex(IMEI_HANDSHAKE) == {
        "imei": "356307042441013",
        "consumed": 17,
    }


def test_decode_capture_file(tmp_path):
    server = _get_server_module()
    capture = tmp_path / "capture.bin"
    capture.write_bytes(bytes.fromhex(CODEC8_FRAME_1 + CODEC8_FRAME_3 + CODEC12_RESPONSE))
    result = server.decode_capture_file(str(capture))
    assert [f["crc16"] for f in result["frames"]] == [0xC7CF, 0x252C, 0x8017]
    assert result["size"] == capture.stat().st_size


def test_decode_capture_file_limit(tmp_path):
    server = _get_server_module()
    capture = tmp_path / "capture.bin"
    capture.write_bytes(bytes.fromhex(CODEC8_FRAME_1 * 3))
    result = server.decode_capture_file(str(capture), limit=2)
    assert len(result["frames"]) == 2


def test_decode_capture_file_truncated(tmp_path):
    """Frames decoded before the failure are still returned."""
    server = _get_server_module()
    capture = tmp_path / "capture.bin"
    capture.write_bytes(bytes.fromhex(CODEC8_FRAME_1 + CODEC8_FRAME_3[:30]))
    result = server.decode_capture_file(str(capture))
    assert result["kind"] == "Incomplete"
    assert len(result["frames"]) == 1


def test_decode_capture_file_missing(tmp_path):
    server = _get_server_module()
    result = server.decode_capture_file(str(tmp_path / "missing.bin"))
    assert "error" in result


def test_encode_command():
    server = _get_server_module()
    result = server.encode_command(["getinfo"])
    assert result == {
        "hex": "000000000000000F0C010500000007676574696E666F0100004312",
        "length": 27,
        "crc16": 0x4312,
    }


def test_encode_command_empty():
    server = _get_server_module()
    assert "error" in server.encode_command([])


def test_build_ack_imei():
    server = _get_server_module()
    assert server.build_ack("imei")["hex"] == "01"
    assert server.build_ack("imei", accepted=False)["hex"] == "00"


def test_build_ack_frame():
    server = _get_server_module()
    assert server.build_ack("frame", CODEC8_FRAME_3) == {"kind": "frame", "hex": "00000002"}
    assert server.build_ack("frame")["hex"] == "00000000"


def test_build_ack_command_frame():
    server = _get_server_module()
    assert "error" in server.build_ack("frame", CODEC12_RESPONSE)


def test_build_ack_datagram():
    server = _get_server_module()
    assert server.build_ack("datagram", UDP_DATAGRAM)["hex"] == "0001CAFE010500000001"
    assert server.build_ack("datagram")["hex"] == "00000000010000000000"


def test_build_ack_unknown_kind():
    server = _get_server_module()
    assert "error" in server.build_ack("sms")


def test_build_ack_bad_frame():
    server = _get_server_module()
    result = server.build_ack("frame", CODEC8_FRAME_1[:20])
    assert result["kind"] == "Incomplete"


def test_compute_checksum():
    server = _get_server_module()
    assert server.compute_checksum("313233343536373839") == {
        "crc16": 0xBB3D,
        "hex": "0000BB3D",
    }


def test_resources_are_json():
    server = _get_server_module()
    codecs = json.loads(server.resource_codecs())["codecs"]
    assert [c["id"] for c in codecs] == ["0x08", "0x8E", "0x10", "0x0C", "0x0D", "0x0E"]
    assert [c["telemetry"] for c in codecs] == [True, True, True, False, False, False]
    priorities = json.loads(server.resource_priorities())["priorities"]
    assert [p["name"] for p in priorities] == ["LOW", "HIGH", "PANIC"]
    causes = json.loads(server.resource_generation_causes())["generation_causes"]
    assert len(causes) == 8


def test_diagnose_capture_prompt():
    server = _get_server_module()
    prompt = server.diagnose_capture("00000000")
    assert "00000000" in prompt
    assert "decode_frame_hex" in prompt


def test_main_runs_stdio():
    server = _get_server_module()
    with patch.object(server.logging, "basicConfig"):
        server.main()
    server.mcp.run.assert_called_once_with(transport="stdio")
