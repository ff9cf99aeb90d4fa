"""Conversions between raw byte buffers and bus messages."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field
from typing import Union


class ScalarType(enum.Enum):
    """Fixed-size scalar kinds, packed little-endian."""

    INT8 = "b"
    INT16 = "h"
    INT32 = "i"
    INT64 = "q"
    UINT8 = "B"
    UINT16 = "H"
    UINT32 = "I"
    UINT64 = "Q"
    FLOAT32 = "f"
    FLOAT64 = "d"

    @property
    def struct(self) -> struct.Struct:
        return struct.Struct("<" + self.value)

    @property
    def size(self) -> int:
        return self.struct.size

    @property
    def is_float(self) -> bool:
        return self in (ScalarType.FLOAT32, ScalarType.FLOAT64)


@dataclass
class Header:
    """Message header: frame name and time stamp in seconds."""

    frame_id: str = ""
    stamp: float = 0.0


@dataclass
class UInt8MultiArray:
    """A plain array of bytes."""

    data: bytes = b""


@dataclass
class UdpPacket:
    """A UDP datagram together with where it came from."""

    header: Header = field(default_factory=Header)
    address: str = ""
    src_port: int = 0
    data: bytes = b""


ByteMessage = Union[UInt8MultiArray, UdpPacket]


def scalar_to_bytes(value: int | float, kind: ScalarType) -> bytes:
    """Pack one scalar value into its raw bytes."""
    if not kind.is_float and not isinstance(value, int):
        raise TypeError(f"{kind.name} needs an integer, got {type(value).__name__}")
    try:
        return kind.struct.pack(value)
    except struct.error as exc:
        raise ValueError(f"{value!r} does not fit in {kind.name}") from exc


def scalar_from_bytes(buffer: bytes | bytearray | memoryview, kind: ScalarType) -> int | float:
    """Read one scalar value from the start of ``buffer``."""
    if len(buffer) < kind.size:
        raise ValueError(
            f"{kind.name} needs {kind.size} bytes, buffer has {len(buffer)}"
        )
    (value,) = kind.struct.unpack_from(bytes(buffer[: kind.size]))
    return value


def to_multi_array(buffer: bytes | bytearray | memoryview, bytes_transferred: int) -> UInt8MultiArray:
    """Wrap the first ``bytes_transferred`` bytes of ``buffer`` in a message."""
    if bytes_transferred < 0 or bytes_transferred > len(buffer):
        raise ValueError(
            f"cannot take {bytes_transferred} bytes from a buffer of {len(buffer)}"
        )
    return UInt8MultiArray(data=bytes(buffer[:bytes_transferred]))


def to_udp_packet(buffer: bytes | bytearray | memoryview) -> UdpPacket:
    """Wrap a whole buffer in a UDP packet message."""
    return UdpPacket(data=bytes(buffer))


def from_msg(msg: ByteMessage) -> bytes:
    """Return the raw bytes carried by a byte message."""
    if not isinstance(msg, (UInt8MultiArray, UdpPacket)):
        raise TypeError(f"cannot take raw bytes from {type(msg).__name__}")
    return bytes(msg.data)