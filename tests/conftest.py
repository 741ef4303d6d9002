"""Shared captures for protocol tests.

The hex captures come from the Teltonika data sending protocol
documentation and real device traffic.
"""

import pytest

# Codec 8, one record, five IO elements (ids 21, 1, 66, 241, 78)
CODEC8_FRAME_1 = (
    "000000000000003608010000016B40D8EA30010000000000000000000000000000000105"
    "021503010101425E0F01F10000601A014E0000000000000000010000C7CF"
)
# Codec 8, one record, three IO elements
CODEC8_FRAME_2 = (
    "000000000000002808010000016B40D9AD800100000000000000000000000000000001030215"
    "03010101425E100000010000F22A"
)
# Codec 8, two records
CODEC8_FRAME_3 = (
    "000000000000004308020000016B40D57B4801000000000000000000000000000000010101"
    "01000000000000016B40D5C198010000000000000000000000000000000101010101000000"
    "020000252C"
)
# Codec 8 Extended, one record with 2-byte ids and counts
CODEC8_EXT_FRAME = (
    "000000000000004A8E010000016B412CEE00010000000000000000000000000000000001000500"
    "0100010100010011001D00010010015E2C880002000B000000003544C87A000E000000001DD7E0"
    "6A00000100002994"
)
# Codec 16, two records with generation cause ON_CHANGE
CODEC16_FRAME = (
    "000000000000005F10020000016BDBC7833000000000000000000000000000000000000B0504"
    "0200010000030002000B00270042563A00000000016BDBC78718000000000000000000000000"
    "00000000000B05040200010000030002000B00260042563A00000200005FB3"
)
# Codec 12 "getinfo" command and the matching response frame
CODEC12_COMMAND = "000000000000000F0C010500000007676574696E666F0100004312"
CODEC12_RESPONSE = "000000000000000F0C010600000007676574696E666F0100008017"
# UDP datagram, Codec 8, packet id 0xCAFE, AVL packet id 0x05
UDP_DATAGRAM = (
    "003DCAFE0105000F33353230393330383634303336353508010000016B4F815B300100000000"
    "00000000000000000000000103021503010101425DBC000001"
)
# IMEI handshake
IMEI_HANDSHAKE = "000F333536333037303432343431303133"
# Codec 8 record body from CODEC8_FRAME_1
CODEC8_RECORD = (
    "0000016B40D8EA30010000000000000000000000000000000105021503010101425E0F01F1"
    "0000601A014E0000000000000000"
)


@pytest.fixture
def codec8_frame() -> bytes:
    return bytes.fromhex(CODEC8_FRAME_1)


@pytest.fixture
def codec8_ext_frame() -> bytes:
    return bytes.fromhex(CODEC8_EXT_FRAME)


@pytest.fixture
def codec16_frame() -> bytes:
    return bytes.fromhex(CODEC16_FRAME)


@pytest.fixture
def command_response_frame() -> bytes:
    return bytes.fromhex(CODEC12_RESPONSE)


@pytest.fixture
def udp_datagram() -> bytes:
    return bytes.fromhex(UDP_DATAGRAM)


@pytest.fixture
def imei_handshake() -> bytes:
    return bytes.fromhex(IMEI_HANDSHAKE)


@pytest.fixture
def codec8_record() -> bytes:
    return bytes.fromhex(CODEC8_RECORD)


@pytest.fixture
def all_frames() -> list[bytes]:
    return [
        bytes.fromhex(h)
        for h in (
            CODEC8_FRAME_1,
            CODEC8_FRAME_2,
            CODEC8_FRAME_3,
            CODEC8_EXT_FRAME,
            CODEC16_FRAME,
            CODEC12_RESPONSE,
        )
    ]
