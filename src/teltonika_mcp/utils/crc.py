"""CRC-16/ARC (IBM) checksum used by the Teltonika TCP frames.

Reflected polynomial 0xA001, initial value 0, no final XOR.
"""

from __future__ import annotations

POLYNOMIAL = 0xA001


def crc16(data: bytes) -> int:
    """Compute the 16-bit checksum of ``data``."""
    crc = 0
    for byte in data:
        crc ^= byte
        for _ in range(8):
            if crc & 1:
                crc = (crc >> 1) ^ POLYNOMIAL
            else:
                crc >>= 1
    return crc
