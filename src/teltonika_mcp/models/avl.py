"""AVL data model: codecs, records, IO events, frames and datagrams.

Every wire enum is an ``IntEnum`` whose values are the bytes seen on the
wire. Decoders build them with ``from_byte()``, which raises a
``DecodeError`` for unknown bytes instead of guessing a default.

Decoded values are frozen dataclasses holding tuples, so a frame cannot
change after the decode that produced it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum

from ..errors import UnrecognizedCodec, UnrecognizedEnumValue


@dataclass(frozen=True)
class CodecLayout:
    """Field widths that vary between the telemetry codecs."""

    id_width: int
    count_width: int
    variable_events: bool = False
    generation_cause: bool = False


class Codec(IntEnum):
    """Codec ids.

    | TCP/UDP | GPRS |
    |---------|------|
    | C8      | C12  |
    | C8_EXT  | C13  |
    | C16     | C14  |
    """

    C8 = 0x08
    C8_EXT = 0x8E
    C16 = 0x10
    C12 = 0x0C
    C13 = 0x0D
    C14 = 0x0E

    @classmethod
    def from_byte(cls, value: int, *, offset: int | None = None) -> Codec:
        try:
            return cls(value)
        except ValueError:
            raise UnrecognizedCodec(
                f"Unknown codec 0x{value:02X}", offset=offset, field="codec"
            ) from None

    @property
    def is_telemetry(self) -> bool:
        return self in _LAYOUTS

    @property
    def is_command(self) -> bool:
        return not self.is_telemetry

    @property
    def layout(self) -> CodecLayout:
        """Width table for telemetry codecs.

        Raises:
            KeyError: For command-family codecs, which carry no records.
        """
        return _LAYOUTS[self]


_LAYOUTS: dict[Codec, CodecLayout] = {
    Codec.C8: CodecLayout(id_width=1, count_width=1),
    Codec.C8_EXT: CodecLayout(id_width=2, count_width=2, variable_events=True),
    Codec.C16: CodecLayout(id_width=2, count_width=1, generation_cause=True),
}


class _WireEnum(IntEnum):
    @classmethod
    def from_byte(cls, value: int, *, offset: int | None = None):
        try:
            return cls(value)
        except ValueError:
            raise UnrecognizedEnumValue(
                f"Unknown {cls.__name__} value 0x{value:02X}",
                offset=offset,
                field=cls._field_name(),
            ) from None

    @classmethod
    def _field_name(cls) -> str:
        return cls.__name__


class Priority(_WireEnum):
    """Record priority, as configured on the device."""

    LOW = 0x00
    HIGH = 0x01
    PANIC = 0x02

    @classmethod
    def _field_name(cls) -> str:
        return "priority"


class EventGenerationCause(_WireEnum):
    """Why a Codec 16 record was generated."""

    ON_EXIT = 0
    ON_ENTRANCE = 1
    ON_BOTH = 2
    RESERVED = 3
    HYSTERESIS = 4
    ON_CHANGE = 5
    EVENTUAL = 6
    PERIODICAL = 7

    @classmethod
    def _field_name(cls) -> str:
        return "generation_cause"


class CommandType(_WireEnum):
    """Type tag of a Codec 12 payload."""

    COMMAND = 0x05
    RESPONSE = 0x06

    @classmethod
    def _field_name(cls) -> str:
        return "command_type"


class IOValueKind(Enum):
    """IO value group, in the order the groups appear on the wire."""

    U8 = 1
    U16 = 2
    U32 = 4
    U64 = 8
    VARIABLE = 0

    @property
    def width(self) -> int | None:
        """Fixed value width in bytes, ``None`` for length-prefixed values."""
        return self.value or None


IO_GROUP_ORDER: tuple[IOValueKind, ...] = (
    IOValueKind.U8,
    IOValueKind.U16,
    IOValueKind.U32,
    IOValueKind.U64,
    IOValueKind.VARIABLE,
)


@dataclass(frozen=True)
class IOEvent:
    """Raw IO element. ``id`` meaning comes from the device's AVL ID list."""

    id: int
    kind: IOValueKind
    value: int | bytes

    def to_dict(self) -> dict:
        value = self.value.hex() if isinstance(self.value, bytes) else self.value
        return {"id": self.id, "kind": self.kind.name, "value": value}


@dataclass(frozen=True)
class AVLRecord:
    """Location and IO status at one point in time."""

    timestamp: datetime
    priority: Priority
    longitude: float
    latitude: float
    altitude: int
    angle: int
    satellites: int
    speed: int
    trigger_event_id: int
    generation_cause: EventGenerationCause | None = None
    io_events: tuple[IOEvent, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "priority": self.priority.name,
            "longitude": self.longitude,
            "latitude": self.latitude,
            "altitude": self.altitude,
            "angle": self.angle,
            "satellites": self.satellites,
            "speed": self.speed,
            "trigger_event_id": self.trigger_event_id,
            "generation_cause": (
                self.generation_cause.name if self.generation_cause is not None else None
            ),
            "io_events": [event.to_dict() for event in self.io_events],
        }


@dataclass(frozen=True)
class AVLFrame:
    """Telemetry frame received over TCP."""

    codec: Codec
    records: tuple[AVLRecord, ...]
    crc16: int

    def to_dict(self) -> dict:
        return {
            "type": "avl_frame",
            "codec": self.codec.name,
            "records": [record.to_dict() for record in self.records],
            "crc16": self.crc16,
        }


@dataclass(frozen=True)
class CommandFrame:
    """Codec 12 frame carrying commands or their responses."""

    codec: Codec
    command_type: CommandType
    responses: tuple[str, ...]
    crc16: int

    def to_dict(self) -> dict:
        return {
            "type": "command_frame",
            "codec": self.codec.name,
            "command_type": self.command_type.name,
            "responses": list(self.responses),
            "crc16": self.crc16,
        }


@dataclass(frozen=True)
class AVLDatagram:
    """Telemetry datagram received over UDP."""

    packet_id: int
    avl_packet_id: int
    imei: str
    codec: Codec
    records: tuple[AVLRecord, ...]

    def to_dict(self) -> dict:
        return {
            "type": "avl_datagram",
            "packet_id": self.packet_id,
            "avl_packet_id": self.avl_packet_id,
            "imei": self.imei,
            "codec": self.codec.name,
            "records": [record.to_dict() for record in self.records],
        }
