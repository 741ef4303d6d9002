"""Data model for decoded AVL frames, datagrams and command responses."""

from .avl import (
    AVLDatagram,
    AVLFrame,
    AVLRecord,
    Codec,
    CodecLayout,
    CommandFrame,
    CommandType,
    EventGenerationCause,
    IOEvent,
    IOValueKind,
    IO_GROUP_ORDER,
    Priority,
)
