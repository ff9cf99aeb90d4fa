"""The rover node: GPS navigation, joystick driving and controller replies."""

from __future__ import annotations

import argparse
import logging
import time
from typing import Any, Iterable, Sequence

from cuadriga.lifecycle import Bus
from cuadriga.msg_converters import UInt8MultiArray
from cuadriga.navigation import follow_the_carrot, llh_to_xy, normalize_heading
from cuadriga.protocol import QueryParser, QueryReport, encode_velocity

_log = logging.getLogger(__name__)

SERIAL_WRITE_TOPIC = "/serial_write"
POSITION_TOPIC = "/posicion_grafica"
SERIAL_READ_TOPIC = "/serial_read"
GPS_TOPIC = "cuadriga/fixposition/navsatfix"
ORIENTATION_TOPIC = "cuadriga/fixposition/ypr"
TRAJECTORY_TOPIC = "/trayectoria_gpx"
JOYSTICK_TOPIC = "/ARGJ801/joy"

MAX_LINEAR = 1.2
MAX_ANGULAR = 6.0
PWM_FULL_SCALE = 127

VOLTAGE_QUERY = b"?E\r"

_DEFAULTS: dict[str, Any] = {
    "flag_origen": False,
    "enable_navegacion": False,
    "v_lineal": 0.3,
}


def _check_parameters(parameters: dict[str, Any]) -> dict[str, Any]:
    merged = dict(_DEFAULTS)
    for name, value in parameters.items():
        default = _DEFAULTS.get(name)
        if isinstance(default, bool) and not isinstance(value, bool):
            raise TypeError(f"parameter {name!r} expects bool, got {type(value).__name__}")
        if isinstance(default, float):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeError(
                    f"parameter {name!r} expects float, got {type(value).__name__}"
                )
            value = float(value)
        merged[name] = value
    return merged


class RoverNode:
    """Turns GPS fixes, headings, paths and joystick input into motor commands.

    Commands are written to ``/serial_write`` as controller byte strings;
    controller replies arrive byte by byte on ``/serial_read``.
    """

    def __init__(self, bus: Bus, parameters: dict[str, Any] | None = None) -> None:
        self.bus = bus
        self.parameters = _check_parameters(parameters or {})
        self.origin: tuple[float, float, float] = (0.0, 0.0, 0.0)
        self.position: tuple[float, float] = (0.0, 0.0)
        self.heading = 0.0
        self.trajectory: list[tuple[float, float]] = []
        self.linear_velocity = 2.0
        self.angular_velocity = 0.0
        self.battery_voltage: float | None = None
        self.controller_voltage: float | None = None
        self._parser = QueryParser()
        self._timer = 0

        bus.subscribe(SERIAL_READ_TOPIC, self.process_query)
        bus.subscribe(
            GPS_TOPIC,
            lambda msg: self.process_gps(msg.latitude, msg.longitude, msg.altitude),
        )
        bus.subscribe(ORIENTATION_TOPIC, lambda msg: self.process_orientation(msg.x))
        bus.subscribe(
            TRAJECTORY_TOPIC,
            lambda msg: self.process_trajectory(
                (p.latitude, p.longitude, p.altitude) for p in msg.waypoints
            ),
        )
        bus.subscribe(JOYSTICK_TOPIC, lambda msg: self.process_joystick(msg.axes))

    def _send(self, command: bytes) -> None:
        self.bus.publish(SERIAL_WRITE_TOPIC, UInt8MultiArray(data=command))

    def process_query(self, msg: UInt8MultiArray) -> QueryReport | None:
        """Feed the first byte of a serial message to the reply parser."""
        if not msg.data:
            return None
        report = self._parser.feed(msg.data[0])
        if report is not None:
            if report.battery_voltage is not None:
                self.battery_voltage = report.battery_voltage
            if report.controller_voltage is not None:
                self.controller_voltage = report.controller_voltage
        return report

    def process_gps(
        self, latitude: float, longitude: float, altitude: float
    ) -> tuple[bytes, bytes] | None:
        """Take a GPS fix; when navigating, send and return the two commands."""
        if not self.parameters["flag_origen"]:
            self.origin = (latitude, longitude, altitude)
            self.parameters["flag_origen"] = True
            _log.info("Geographic origin: (%f, %f)", latitude, longitude)

        if not (self.trajectory and self.parameters["enable_navegacion"]):
            return None

        self.position = llh_to_xy(latitude, longitude, altitude, self.origin[0], self.origin[1])
        _log.info("Position: (%f, %f)", *self.position)
        self.bus.publish(POSITION_TOPIC, self.position)

        command = follow_the_carrot(self.trajectory, self.position, self.heading)
        self.trajectory = list(command.remaining)
        self.linear_velocity = command.linear
        if command.angular is not None:
            self.angular_velocity = command.angular

        v_norm = min(max(self.linear_velocity / MAX_LINEAR, 0.0), 1.0)
        v_pwm = int(v_norm * PWM_FULL_SCALE)
        # A left turn is a positive w but needs a negative channel value.
        w_sign = 1.0 if self.angular_velocity < 0 else -1.0
        w_pwm = int(abs(self.angular_velocity) / MAX_ANGULAR * w_sign * PWM_FULL_SCALE)
        _log.info("v: %.2f | v_pwm: %d | w: %.2f | w_pwm: %d",
                  self.linear_velocity, v_pwm, self.angular_velocity, w_pwm)

        commands = encode_velocity(v_pwm, w_pwm)
        for cmd in commands:
            self._send(cmd)
        return commands

    def process_orientation(self, yaw: float) -> float:
        """Store the heading, normalised; returns it."""
        self.heading = normalize_heading(yaw)
        return self.heading

    def process_trajectory(
        self, waypoints: Iterable[Sequence[float]]
    ) -> list[tuple[float, float]]:
        """Load (latitude, longitude, altitude) waypoints once the origin is known."""
        if self.parameters["flag_origen"]:
            lat0, lon0 = self.origin[0], self.origin[1]
            self.trajectory = []
            for lat, lon, alt in waypoints:
                point = llh_to_xy(lat, lon, alt, lat0, lon0)
                self.trajectory.append(point)
                _log.info("Waypoint (%.6f, %.6f) -> XY (%.2f, %.2f)", lat, lon, *point)
        _log.info("Trajectory loaded with %d points.", len(self.trajectory))
        return list(self.trajectory)

    def process_trajectory_topic(self, data: Sequence[float]) -> list[tuple[float, float]]:
        """Pair a flat list of coordinates into points."""
        values = [float(v) for v in data]
        if len(values) % 2:
            raise ValueError("the coordinate list length is not a multiple of 2")
        points = list(zip(values[::2], values[1::2]))
        for point in points:
            _log.info("Point loaded: (%.2f, %.2f)", *point)
        return points

    def process_joystick(self, axes: Sequence[float]) -> tuple[bytes, bytes] | None:
        """Drive from the joystick unless navigation is enabled.

        The linear command is sent before the angular one.
        """
        if self.parameters["enable_navegacion"]:
            return None
        v_pwm = axes[1] * PWM_FULL_SCALE
        w_pwm = -axes[0] * PWM_FULL_SCALE
        channel_a, channel_b = encode_velocity(v_pwm, w_pwm)
        self._send(channel_b)
        self._send(channel_a)
        return channel_b, channel_a

    def tick(self) -> bytes:
        """Advance the one-second timer and send the periodic query byte string."""
        self._timer += 1
        _log.info("Timer at %i seconds", self._timer)
        command = VOLTAGE_QUERY if 3 < self._timer < 6 else b"\x00"
        self._send(command)
        return command


def main(argv: list[str] | None = None) -> int:
    """Run the rover node until interrupted."""
    parser = argparse.ArgumentParser(description="Run the rover navigation node.")
    parser.add_argument("--navigate", action="store_true", help="enable GPS navigation")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    node = RoverNode(Bus(), {"enable_navegacion": args.navigate})
    try:
        while True:
            _log.info("................")
            time.sleep(1.0)
    except KeyboardInterrupt:
        pass
    _log.info("Node finished (%d waypoints left)", len(node.trajectory))
    return 0