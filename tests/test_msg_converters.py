import math
import struct

import pytest

from cuadriga.msg_converters import (
    Header,
    ScalarType,
    UdpPacket,
    UInt8MultiArray,
    from_msg,
    scalar_from_bytes,
    scalar_to_bytes,
    to_multi_array,
    to_udp_packet,
)

INTEGER_CASES = [
    (ScalarType.INT8, -128),
    (ScalarType.INT8, 127),
    (ScalarType.INT16, -32768),
    (ScalarType.INT32, 45),
    (ScalarType.INT64, -(2**63)),
    (ScalarType.UINT8, 255),
    (ScalarType.UINT16, 8000),
    (ScalarType.UINT32, 115200),
    (ScalarType.UINT64, 2**64 - 1),
]


@pytest.mark.parametrize("kind,value", INTEGER_CASES)
def test_integer_round_trip(kind, value):
    raw = scalar_to_bytes(value, kind)
    assert len(raw) == kind.size
    assert scalar_from_bytes(raw, kind) == value


@pytest.mark.parametrize("kind", [ScalarType.FLOAT32, ScalarType.FLOAT64])
def test_float_round_trip(kind):
    pi = 3.14159265359
    raw = scalar_to_bytes(pi, kind)
    assert len(raw) == kind.size
    assert scalar_from_bytes(raw, kind) == pytest.approx(pi, rel=1e-6)


def test_int32_is_little_endian():
    assert scalar_to_bytes(1, ScalarType.INT32) == b"\x01\x00\x00\x00"


def test_reads_only_the_leading_bytes():
    raw = scalar_to_bytes(7, ScalarType.UINT16) + b"\xff\xff"
    assert scalar_from_bytes(raw, ScalarType.UINT16) == 7


@pytest.mark.parametrize(
    "kind,value",
    [(ScalarType.UINT8, 256), (ScalarType.INT8, -129), (ScalarType.UINT32, -1)],
)
def test_out_of_range_raises(kind, value):
    with pytest.raises(ValueError):
        scalar_to_bytes(value, kind)


def test_float_for_integer_kind_raises():
    with pytest.raises(TypeError):
        scalar_to_bytes(1.5, ScalarType.INT32)


def test_short_buffer_raises():
    with pytest.raises(ValueError):
        scalar_from_bytes(b"\x00\x01", ScalarType.INT32)


def test_nan_survives_float64():
    raw = scalar_to_bytes(float("nan"), ScalarType.FLOAT64)
    assert len(raw) == 8
    value = scalar_from_bytes(raw, ScalarType.FLOAT64)
    assert math.isnan(value) is True


def test_to_multi_array_takes_transferred_bytes():
    buffer = bytearray(b"?E\r" + bytes(2045))
    msg = to_multi_array(buffer, 3)
    assert msg.data == bytes(buffer[:3])
    assert from_msg(msg) == b"?E\r"


def test_to_multi_array_rejects_overrun():
    with pytest.raises(ValueError):
        to_multi_array(b"abc", 4)
    with pytest.raises(ValueError):
        to_multi_array(b"abc", -1)


def test_udp_packet_round_trip_sums_sequence():
    buffer = b"".join(scalar_to_bytes(i, ScalarType.INT32) for i in range(10))
    packet = to_udp_packet(buffer)
    raw = from_msg(packet)
    assert raw == buffer
    total = sum(value for (value,) in struct.iter_unpack("<i", raw))
    assert total == 45


def test_udp_packet_defaults():
    packet = to_udp_packet(b"\x01")
    assert packet.header == Header()
    assert packet.address == ""
    assert packet.src_port == 0


def test_from_msg_copies_data():
    msg = UInt8MultiArray(data=b"\x21\x41")
    assert from_msg(msg) == msg.data
    packet = UdpPacket(address="127.0.0.1", src_port=8000, data=b"xyz")
    assert from_msg(packet) == b"xyz"


def test_from_msg_rejects_other_types():
    with pytest.raises(TypeError):
        from_msg(b"raw")