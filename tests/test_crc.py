"""Tests for CRC-16/ARC calculation."""

from teltonika_mcp.utils.crc import crc16


def test_crc16_empty():
    """CRC of empty data is the initial register value."""
    assert crc16(b"") == 0


def test_crc16_check_value():
    """Published CRC-16/ARC check value for "123456789"."""
    assert crc16(b"123456789") == 0xBB3D


def test_crc16_codec8_data_field():
    """CRC over the data field of a captured Codec 8 frame."""
    data = bytes.fromhex(
        "08010000016B40D9AD80010000000000000000000000000000000103021503010101425E10000001"
    )
    assert crc16(data) == 0xF22A


def test_crc16_codec12_command():
    """CRC over the data field of a "getinfo" command."""
    data = bytes.fromhex("0C010500000007676574696E666F01")
    assert crc16(data) == 0x4312


def test_crc16_deterministic():
    """Same input should always produce same output."""
    data = b"\x08\x01\x02\x03"
    assert crc16(data) == crc16(data)


def test_crc16_does_not_mutate_input():
    """The input buffer is left untouched."""
    data = bytearray(b"\x10\x20\x30")
    crc16(data)
    assert data == bytearray(b"\x10\x20\x30")


def test_crc16_fits_16_bits():
    """Result always fits in 16 bits."""
    assert 0 <= crc16(bytes(range(256)) * 4) <= 0xFFFF
