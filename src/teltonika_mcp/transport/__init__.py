"""Byte-stream transports: reassembly plus blocking and asyncio device streams."""

from .stream import (
    AsyncTeltonikaStream,
    ConnectionClosed,
    EmptyReadPolicy,
    Reassembler,
    ReassemblerState,
    StreamConfig,
    TeltonikaStream,
)
