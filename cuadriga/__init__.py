"""Motor-controller protocol, waypoint navigation, joystick input and lifecycle nodes for a rover."""

__version__ = "0.1.0"