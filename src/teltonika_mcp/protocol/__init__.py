"""Protocol layer: frame envelope, CRC, decoders, command and ack builders."""

from .commands import (
    build_command,
    build_datagram_ack,
    build_frame_ack,
    build_identifier_reply,
)
from .framing import build_frame, encode_avl_frame, encode_datagram
from .parser import (
    decode_datagram,
    decode_frame,
    decode_identifier,
    decode_record,
    iter_frames,
)
