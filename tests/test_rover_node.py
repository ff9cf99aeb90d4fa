import math

import pytest

from cuadriga.lifecycle import Bus
from cuadriga.msg_converters import UInt8MultiArray
from cuadriga.protocol import BATTERY_SCALE, CONTROLLER_SCALE
from cuadriga.rover_node import (
    POSITION_TOPIC,
    SERIAL_READ_TOPIC,
    SERIAL_WRITE_TOPIC,
    RoverNode,
)

LAT0 = 40.0
LON0 = -3.0


def _collect(bus, topic):
    received = []
    bus.subscribe(topic, received.append)
    return received


def test_first_fix_sets_origin():
    node = RoverNode(Bus())
    assert node.process_gps(LAT0, LON0, 5.0) is None
    assert node.origin == (LAT0, LON0, 5.0)
    assert node.parameters["flag_origen"] is True


def test_trajectory_ignored_without_origin():
    node = RoverNode(Bus())
    assert node.process_trajectory([(LAT0, LON0, 0.0)]) == []


def test_trajectory_converted_relative_to_origin():
    node = RoverNode(Bus())
    node.process_gps(LAT0, LON0, 0.0)
    points = node.process_trajectory([(LAT0, LON0, 0.0), (LAT0 + 0.001, LON0, 0.0)])
    assert points[0] == pytest.approx((0.0, 0.0))
    assert points[1][1] > 0


def test_navigation_sends_commands_and_position():
    bus = Bus()
    writes = _collect(bus, SERIAL_WRITE_TOPIC)
    positions = _collect(bus, POSITION_TOPIC)
    node = RoverNode(bus, {"enable_navegacion": True})
    node.process_gps(LAT0, LON0, 0.0)
    node.process_trajectory([(LAT0, LON0 + 0.001, 0.0)])
    commands = node.process_gps(LAT0, LON0, 0.0)
    assert commands == (b"!A00\r", b"!B2A\r")
    assert [m.data for m in writes] == list(commands)
    assert positions == [pytest.approx((0.0, 0.0))]


def test_navigation_stops_at_end_of_path():
    node = RoverNode(Bus(), {"enable_navegacion": True})
    node.process_gps(LAT0, LON0, 0.0)
    node.process_trajectory([(LAT0, LON0, 0.0)])
    commands = node.process_gps(LAT0, LON0, 0.0)
    assert commands[1] == b"!B00\r"
    assert node.trajectory == []
    assert node.linear_velocity == 0.0


def test_joystick_drives_when_not_navigating():
    bus = Bus()
    writes = _collect(bus, SERIAL_WRITE_TOPIC)
    node = RoverNode(bus)
    node.process_joystick([0.0, 1.0])
    assert [m.data for m in writes] == [b"!B7F\r", b"!A00\r"]


def test_joystick_ignored_when_navigating():
    bus = Bus()
    writes = _collect(bus, SERIAL_WRITE_TOPIC)
    node = RoverNode(bus, {"enable_navegacion": True})
    assert node.process_joystick([0.5, 0.5]) is None
    assert writes == []


def test_orientation_is_normalised():
    node = RoverNode(Bus())
    assert node.process_orientation(-math.pi / 2) == pytest.approx(3 * math.pi / 2)
    assert node.heading == pytest.approx(3 * math.pi / 2)


def test_voltage_reply_updates_voltages():
    bus = Bus()
    node = RoverNode(bus)
    stream = b"?E\r80\r40\rXYZW"
    for byte in stream:
        bus.publish(SERIAL_READ_TOPIC, UInt8MultiArray(data=bytes([byte])))
    assert node.battery_voltage == pytest.approx(0x80 * BATTERY_SCALE)
    assert node.controller_voltage == pytest.approx(0x40 * CONTROLLER_SCALE)


def test_short_burst_is_ignored():
    bus = Bus()
    node = RoverNode(bus)
    for byte in b"?E\r80\rW":
        bus.publish(SERIAL_READ_TOPIC, UInt8MultiArray(data=bytes([byte])))
    assert node.battery_voltage is None


def test_trajectory_topic_pairs_values():
    node = RoverNode(Bus())
    assert node.process_trajectory_topic([1.0, 2.0, 3.0, 4.0]) == [(1.0, 2.0), (3.0, 4.0)]


def test_trajectory_topic_odd_length_raises():
    node = RoverNode(Bus())
    with pytest.raises(ValueError):
        node.process_trajectory_topic([1.0, 2.0, 3.0])


def test_tick_sends_voltage_query_in_window():
    bus = Bus()
    writes = _collect(bus, SERIAL_WRITE_TOPIC)
    node = RoverNode(bus)
    sent = [node.tick() for _ in range(6)]
    assert sent == [b"\x00", b"\x00", b"\x00", b"?E\r", b"?E\r", b"\x00"]
    assert [m.data for m in writes] == sent


def test_bad_parameter_type_raises():
    with pytest.raises(TypeError):
        RoverNode(Bus(), {"enable_navegacion": "yes"})