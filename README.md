# cuadriga

Pieces for driving a skid-steer rover: the motor controller's ASCII command
and reply format, GPS-to-local conversion and waypoint following, a rover node
that turns GPS fixes, headings and joystick axes into controller commands, a
joystick reader, and a small in-process message bus with managed node life
cycles.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Commands

| Command | What it does |
| --- | --- |
| `cuadriga-rover [--navigate]` | Creates a rover node on a fresh in-process bus (with navigation enabled when `--navigate` is given) and logs a line every second until interrupted. |
| `cuadriga-joy-enumerate` | Prints a table of the connected joysticks and the device id of each. |

## Library overview

### Message bus and life cycle

`cuadriga.lifecycle.Bus` delivers each message passed to
`publish(topic, msg)` to every callback registered with
`subscribe(topic, callback)`; `unsubscribe` removes one again.

`cuadriga.lifecycle.LifecycleNode` moves between the `State` values
`UNCONFIGURED`, `INACTIVE`, `ACTIVE` and `FINALIZED` through `configure`,
`activate`, `deactivate`, `cleanup` and `shutdown`. Each transition calls the
matching `on_*` hook and returns the resulting state. A hook returning
`CallbackReturn.FAILURE` leaves the node where it was; one returning
`CallbackReturn.ERROR` or raising finalizes it. A transition asked for from a
state that does not allow it changes nothing. `declare_parameter(name,
default)` returns the value given to the constructor for that name, checked
against the default's type, or the default.

### Message conversion

`cuadriga.msg_converters` packs and unpacks little-endian scalars of each
`ScalarType` (`scalar_to_bytes`, `scalar_from_bytes`), wraps buffers as
`UInt8MultiArray` (`to_multi_array`) or `UdpPacket` (`to_udp_packet`), and
returns the payload of either with `from_msg`.

### Motor-controller protocol

`cuadriga.protocol.encode_velocity(v_pwm, w_pwm)` returns the two channel
commands, angular on channel A and linear on channel B. Each is `!`, the
channel letter (lower case for a negative value), two upper-case hexadecimal
digits of the magnitude and a carriage return:

```python
from cuadriga.protocol import encode_velocity

encode_velocity(42, -10)   # (b"!a0A\r", b"!B2A\r")
```

`QueryParser.feed(byte)` gathers the controller's reply bytes into
carriage-return terminated words. A burst ends on a `W` byte, or on any byte
once twelve bytes have been gathered; shorter bursts are dropped as noise.
A completed burst comes back as a `QueryReport`; for a `?E` query it carries
the battery voltage (value × 55/256) and controller voltage (value × 28.5/256).
`ascii_to_char` and `hex_to_dec` are the helpers it uses.

### Navigation

`cuadriga.navigation.llh_to_xy` gives the east/north offset in metres of a
latitude/longitude from an origin. `compute_lookahead_point` finds the point a
given distance along a path past the robot's projection onto it.
`follow_the_carrot(trajectory, position, heading)` drops waypoints closer than
0.5 m and steers towards the next one at 0.4 m/s with an angular gain of 0.6,
returning a `CarrotCommand` (or `None` for an empty trajectory).
`normalize_heading` reduces a heading modulo a full turn.

### Rover node

`cuadriga.rover_node.RoverNode(bus, parameters)` subscribes to the bus topics
for controller replies, GPS fixes, heading, GPX trajectories and joystick
messages, and publishes controller commands on `/serial_write` and its
position on `/posicion_grafica`. Its methods can also be called directly:

- `process_gps(latitude, longitude, altitude)` fixes the origin on the first
  fix; with a trajectory loaded and `enable_navegacion` set, it runs one
  follow-the-carrot step and sends and returns the two commands.
- `process_orientation(yaw)`, `process_trajectory(waypoints)`,
  `process_trajectory_topic(data)` and `process_joystick(axes)` take heading,
  waypoints, flat coordinate lists and joystick axes.
- `process_query(msg)` feeds the first byte of a reply message to the parser.
- `tick()` advances a one-second counter and sends `?E\r` on the fourth and
  fifth tick, a single zero byte otherwise.

### Joystick

`cuadriga.joy.Joy(bus, parameters, clock)` keeps a `JoyMessage` of axes and
buttons for one controller and publishes it on `/ARGJ801/joy`. It applies a
smooth dead zone and inverts axes (`convert_raw_axis`), supports sticky
buttons, maps hats onto axis pairs, coalesces axis changes and repeats the
state at the autorepeat rate. Events can be fed in as `JoyEvent` values with
`dispatch` and published with `publish_if_ready`; `run()` reads real
controller events through pygame until `stop()` is called. Rumble requests
arrive as `JoyFeedback` on `joy/set_feedback`.

`cuadriga.joy_enumerate.format_devices(names)` builds the table printed by
`cuadriga-joy-enumerate`.

## What this package does not do

It has no serial or UDP transport. The bus is in-process only: nothing
carries `/serial_write` commands to a real motor controller, and nothing
feeds GPS fixes, headings or controller replies into `cuadriga-rover` from
outside, so that command on its own only idles. Connecting the node to
hardware is left to the code that embeds it.