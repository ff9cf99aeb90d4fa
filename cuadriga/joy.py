"""Joystick node: turns game controller events into joystick messages."""

from __future__ import annotations

import enum
import logging
import math
import os
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Sequence

from cuadriga.lifecycle import Bus
from cuadriga.msg_converters import Header

_log = logging.getLogger(__name__)

JOY_TOPIC = "/ARGJ801/joy"
FEEDBACK_TOPIC = "joy/set_feedback"
FRAME_ID = "joy"

AXIS_MAX = 32767
AXIS_MIN = -32768

HAT_CENTERED = 0
HAT_UP = 1
HAT_RIGHT = 2
HAT_DOWN = 4
HAT_LEFT = 8

RUMBLE_DURATION_MS = 1000
IDLE_INTERVAL_MS = 200

DEAD_MAN_BUTTON = 5
X_INC_BUTTON = 13
X_DEC_BUTTON = 14
Z_LEFT_BUTTON = 15
Z_RIGHT_BUTTON = 16
VELOCITY_STEP = 0.1


@dataclass
class JoyMessage:
    """State of every axis and button of the controller."""

    header: Header = field(default_factory=Header)
    axes: list[float] = field(default_factory=list)
    buttons: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class JoyFeedback:
    """A feedback request; only rumble with id 0 is supported."""

    TYPE_LED = 0
    TYPE_RUMBLE = 1
    TYPE_BUZZER = 2

    type: int = TYPE_LED
    id: int = 0
    intensity: float = 0.0


class EventType(enum.Enum):
    """Kinds of controller event the node reacts to."""

    AXIS_MOTION = "axis_motion"
    BUTTON_DOWN = "button_down"
    BUTTON_UP = "button_up"
    HAT_MOTION = "hat_motion"
    DEVICE_ADDED = "device_added"
    DEVICE_REMOVED = "device_removed"


@dataclass(frozen=True)
class JoyEvent:
    """One controller event.

    ``which`` is the instance id of the controller, or the device index for
    a device that was just added. ``index`` is the axis, button or hat
    number; ``value`` is the raw axis value or the hat bit mask.
    """

    type: EventType
    which: int = 0
    index: int = 0
    value: int = 0


def _param(parameters: dict[str, Any], name: str, default: Any) -> Any:
    if name not in parameters:
        return default
    value = parameters[name]
    if isinstance(default, bool):
        ok = isinstance(value, bool)
    elif isinstance(default, int):
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif isinstance(default, float):
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        if ok:
            value = float(value)
    else:
        ok = isinstance(value, type(default))
    if not ok:
        raise TypeError(
            f"parameter {name!r} expects {type(default).__name__}, got {type(value).__name__}"
        )
    return value


class Joy:
    """Tracks one controller and publishes its state on ``/ARGJ801/joy``.

    Axis values are reported between -1.0 and 1.0 with forward and left
    positive, after removing a smooth dead zone. Buttons may be sticky,
    toggling on each press. State is re-published at the autorepeat rate.
    """

    def __init__(
        self,
        bus: Bus,
        parameters: dict[str, Any] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        params = dict(parameters or {})
        self.bus = bus
        self._clock = clock or time.monotonic

        self.dev_id = _param(params, "device_id", 0)
        self.dev_name = _param(params, "device_name", "")

        self.scaled_deadzone = _param(params, "deadzone", 0.05)
        if not 0.0 <= self.scaled_deadzone <= 1.0:
            raise ValueError("Deadzone must be between 0.0 and 1.0")
        self.unscaled_deadzone = AXIS_MAX * self.scaled_deadzone
        if self.scaled_deadzone == 1.0:
            self.scale = -math.inf
        else:
            self.scale = -1.0 / (1.0 - self.scaled_deadzone) / AXIS_MAX

        self.autorepeat_rate = _param(params, "autorepeat_rate", 55.0)
        if self.autorepeat_rate < 0.0:
            raise ValueError("Autorepeat rate must be >= 0.0")
        if self.autorepeat_rate > 1000.0:
            raise ValueError("Autorepeat rate must be <= 1000.0")
        if self.autorepeat_rate > 0.0:
            self.autorepeat_interval_ms = int(1000.0 / self.autorepeat_rate)
        else:
            self.autorepeat_interval_ms = IDLE_INTERVAL_MS

        self.sticky_buttons = _param(params, "sticky_buttons", False)

        self.coalesce_interval_ms = _param(params, "coalesce_interval_ms", 1)
        if self.coalesce_interval_ms < 0:
            raise ValueError("coalesce_interval_ms must be positive")

        self.publish_soon = False
        self.publish_soon_time = self._clock()
        self._last_publish = self._clock()

        self.cmd_vel_x = 0.0
        self.cmd_w_z = 0.0
        self._last_x_inc = 0
        self._last_x_dec = 0
        self._last_z_left = 0
        self._last_z_right = 0

        self.msg = JoyMessage()
        self.instance_id = 0
        self.attached = False
        self.num_axes = 0
        self.rumble: Callable[[float], Any] | None = None

        self._stop = threading.Event()
        self._pygame: Any = None
        self._joystick: Any = None

        bus.subscribe(FEEDBACK_TOPIC, self.feedback)

    @property
    def twist(self) -> tuple[float, float]:
        """Linear x and angular z of the button-driven velocity command."""
        return self.cmd_vel_x, -self.cmd_w_z

    def convert_raw_axis(self, value: int) -> float:
        """Scale a raw 16-bit axis value to [-1, 1], inverted, with dead zone."""
        if not AXIS_MIN <= value <= AXIS_MAX:
            raise ValueError(f"axis value {value} is outside the 16-bit range")
        if value == AXIS_MIN:
            value = -AXIS_MAX
        raw = float(value)
        if raw > self.unscaled_deadzone:
            raw -= self.unscaled_deadzone
        elif raw < -self.unscaled_deadzone:
            raw += self.unscaled_deadzone
        else:
            raw = 0.0
        return raw * self.scale

    def handle_axis(self, event: JoyEvent) -> bool:
        """Update one axis; True when the change should be published now."""
        if event.which != self.instance_id:
            return False
        if event.index >= len(self.msg.axes):
            _log.warning("Saw axes too large for this device, ignoring")
            return False
        last = self.msg.axes[event.index]
        self.msg.axes[event.index] = self.convert_raw_axis(event.value)
        if last == self.msg.axes[event.index]:
            return False
        if self.coalesce_interval_ms > 0 and not self.publish_soon:
            self.publish_soon = True
            self.publish_soon_time = self._clock()
            return False
        elapsed_ms = (self._clock() - self.publish_soon_time) * 1000.0
        if elapsed_ms >= self.coalesce_interval_ms:
            self.publish_soon = False
            return True
        return False

    def _button_index_ok(self, event: JoyEvent) -> bool:
        if event.which != self.instance_id:
            return False
        if event.index >= len(self.msg.buttons):
            _log.warning("Saw button too large for this device, ignoring")
            return False
        return True

    def handle_button_down(self, event: JoyEvent) -> bool:
        """Press a button, or toggle it when buttons are sticky."""
        if not self._button_index_ok(event):
            return False
        if self.sticky_buttons:
            self.msg.buttons[event.index] = 1 - self.msg.buttons[event.index]
        else:
            self.msg.buttons[event.index] = 1
        return True

    def handle_button_up(self, event: JoyEvent) -> bool:
        """Release a button; sticky buttons ignore releases."""
        if not self._button_index_ok(event):
            return False
        if self.sticky_buttons:
            return False
        self.msg.buttons[event.index] = 0
        return True

    def handle_hat(self, event: JoyEvent, num_axes: int | None = None) -> bool:
        """Map a hat onto its pair of axes after the ordinary axes."""
        if event.which != self.instance_id:
            return False
        if num_axes is None:
            num_axes = self.num_axes
        if num_axes < 0:
            _log.warning("Failed to get axes")
            return False
        start = num_axes + event.index * 2
        if start + 1 >= len(self.msg.axes):
            _log.warning("Saw hat too large for this device, ignoring")
            return False
        axes = self.msg.axes
        if event.value & HAT_LEFT:
            axes[start] = 1.0
        if event.value & HAT_RIGHT:
            axes[start] = -1.0
        if event.value & HAT_UP:
            axes[start + 1] = 1.0
        if event.value & HAT_DOWN:
            axes[start + 1] = -1.0
        if event.value == HAT_CENTERED:
            axes[start] = 0.0
            axes[start + 1] = 0.0
        return True

    def attach_device(
        self,
        instance_id: int,
        num_buttons: int,
        num_axes: int,
        num_hats: int,
        initial_axes: Sequence[int] | None = None,
    ) -> None:
        """Size the message for a newly opened controller."""
        if instance_id < 0:
            raise ValueError("Failed to get instance ID for joystick")
        if num_buttons < 0:
            raise ValueError("Failed to get number of buttons")
        if num_axes < 0:
            raise ValueError("Failed to get number of axes")
        if num_hats < 0:
            raise ValueError("Failed to get number of hats")
        self.instance_id = instance_id
        self.num_axes = num_axes
        self.msg.buttons = [0] * num_buttons
        self.msg.axes = [0.0] * (num_axes + num_hats * 2)
        for i, raw in enumerate(list(initial_axes or ())[:num_axes]):
            self.msg.axes[i] = self.convert_raw_axis(raw)
        self.attached = True

    def detach_device(self, instance_id: int) -> bool:
        """Forget the controller if it is the one attached."""
        if instance_id != self.instance_id:
            return False
        self.msg.buttons = []
        self.msg.axes = []
        self.num_axes = 0
        self.rumble = None
        self.attached = False
        if self._joystick is not None:
            try:
                self._joystick.quit()
            except Exception as exc:  # the device may already be gone
                _log.debug("Closing joystick failed: %s", exc)
            self._joystick = None
        return True

    def feedback(self, msg: JoyFeedback) -> bool:
        """Play a rumble request; False when it is ignored."""
        if self.rumble is None:
            return False
        if msg.type != JoyFeedback.TYPE_RUMBLE:
            return False
        if msg.id != 0:
            return False
        if not 0.0 <= msg.intensity <= 1.0:
            return False
        try:
            self.rumble(msg.intensity)
        except Exception as exc:
            _log.debug("Rumble failed: %s", exc)
        return True

    def dispatch(self, event: JoyEvent | None) -> bool:
        """Handle one event, or a wait timeout when ``event`` is None.

        Returns whether the state should be published.
        """
        if event is None:
            now = self._clock()
            elapsed_ms = int((now - self._last_publish) * 1000.0)
            if (
                self.autorepeat_rate > 0.0 and elapsed_ms >= self.autorepeat_interval_ms
            ) or self.publish_soon:
                self._last_publish = now
                self.publish_soon = False
                return True
            return False
        if event.type is EventType.AXIS_MOTION:
            return self.handle_axis(event)
        if event.type is EventType.BUTTON_DOWN:
            return self.handle_button_down(event)
        if event.type is EventType.BUTTON_UP:
            return self.handle_button_up(event)
        if event.type is EventType.HAT_MOTION:
            return self.handle_hat(event)
        if event.type is EventType.DEVICE_ADDED:
            self._device_added(event.which)
            return False
        if event.type is EventType.DEVICE_REMOVED:
            self.detach_device(event.which)
            return False
        _log.info("Unknown event type %s", event.type)
        return False

    def _button(self, index: int) -> int:
        buttons = self.msg.buttons
        return buttons[index] if index < len(buttons) else 0

    def publish_if_ready(self, should_publish: bool) -> JoyMessage | None:
        """Publish the state when a controller is attached and it is due."""
        if not (self.attached and should_publish):
            return None
        self.msg.header = Header(frame_id=FRAME_ID, stamp=self._clock())

        x_inc = self._button(X_INC_BUTTON)
        x_dec = self._button(X_DEC_BUTTON)
        z_left = self._button(Z_LEFT_BUTTON)
        z_right = self._button(Z_RIGHT_BUTTON)
        if self._button(DEAD_MAN_BUTTON) == 1:
            if x_inc == 1 and self._last_x_inc == 0:
                self.cmd_vel_x += VELOCITY_STEP
            if x_dec == 1 and self._last_x_dec == 0:
                self.cmd_vel_x -= VELOCITY_STEP
            if z_left == 1 and self._last_z_left == 0:
                self.cmd_w_z += VELOCITY_STEP
            if z_right == 1 and self._last_z_right == 0:
                self.cmd_w_z -= VELOCITY_STEP
        else:
            self.cmd_vel_x = 0.0
            self.cmd_w_z = 0.0
        self._last_x_inc = x_inc
        self._last_x_dec = x_dec
        self._last_z_left = z_left
        self._last_z_right = z_right

        out = replace(self.msg, axes=list(self.msg.axes), buttons=list(self.msg.buttons))
        self.bus.publish(JOY_TOPIC, out)
        return out

    def _device_added(self, device_index: int) -> None:
        pg = self._pygame
        if pg is None:
            _log.warning("Cannot open joystick %d: no event backend is running", device_index)
            return
        if self.dev_name:
            found = None
            for i in range(pg.joystick.get_count()):
                try:
                    name = pg.joystick.Joystick(i).get_name()
                except pg.error as exc:
                    _log.warning("Could not get joystick name: %s", exc)
                    continue
                if name == self.dev_name:
                    found = i
                    break
            if found is None:
                _log.warning("Could not get joystick with name %s", self.dev_name)
                return
            self.dev_id = found
        if device_index != self.dev_id:
            return
        try:
            joystick = pg.joystick.Joystick(self.dev_id)
            joystick.init()
            num_axes = joystick.get_numaxes()
            initial = [
                max(AXIS_MIN, min(AXIS_MAX, round(joystick.get_axis(i) * AXIS_MAX)))
                for i in range(num_axes)
            ]
            self.attach_device(
                joystick.get_instance_id(),
                joystick.get_numbuttons(),
                num_axes,
                joystick.get_numhats(),
                initial,
            )
        except (pg.error, ValueError) as exc:
            _log.warning("Unable to open joystick %d: %s", self.dev_id, exc)
            return
        self._joystick = joystick
        if hasattr(joystick, "rumble"):
            self.rumble = lambda level: joystick.rumble(level, level, RUMBLE_DURATION_MS)
        else:
            _log.info("No haptic (rumble) available, skipping initialization")
        _log.info(
            "Opened joystick: %s.  deadzone: %f", joystick.get_name(), self.scaled_deadzone
        )

    def _translate(self, pg: Any, ev: Any) -> JoyEvent | None:
        if ev.type == pg.JOYAXISMOTION:
            raw = max(AXIS_MIN, min(AXIS_MAX, round(ev.value * AXIS_MAX)))
            return JoyEvent(EventType.AXIS_MOTION, ev.instance_id, ev.axis, raw)
        if ev.type == pg.JOYBUTTONDOWN:
            return JoyEvent(EventType.BUTTON_DOWN, ev.instance_id, ev.button)
        if ev.type == pg.JOYBUTTONUP:
            return JoyEvent(EventType.BUTTON_UP, ev.instance_id, ev.button)
        if ev.type == pg.JOYHATMOTION:
            x, y = ev.value
            mask = HAT_CENTERED
            if x < 0:
                mask |= HAT_LEFT
            if x > 0:
                mask |= HAT_RIGHT
            if y > 0:
                mask |= HAT_UP
            if y < 0:
                mask |= HAT_DOWN
            return JoyEvent(EventType.HAT_MOTION, ev.instance_id, ev.hat, mask)
        if ev.type == pg.JOYDEVICEADDED:
            return JoyEvent(EventType.DEVICE_ADDED, ev.device_index)
        if ev.type == pg.JOYDEVICEREMOVED:
            return JoyEvent(EventType.DEVICE_REMOVED, ev.instance_id)
        return None

    def run(self) -> None:
        """Read controller events and publish until :meth:`stop` is called."""
        os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
        os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
        import pygame

        try:
            pygame.display.init()
            pygame.joystick.init()
        except pygame.error as exc:
            raise RuntimeError(f"SDL could not be initialized: {exc}") from exc
        self._pygame = pygame
        self._stop.clear()
        try:
            while not self._stop.is_set():
                wait_ms = self.autorepeat_interval_ms
                if self.publish_soon:
                    wait_ms = min(wait_ms, self.coalesce_interval_ms)
                ev = pygame.event.wait(max(wait_ms, 1))
                if ev.type == pygame.NOEVENT:
                    should_publish = self.dispatch(None)
                else:
                    event = self._translate(pygame, ev)
                    if event is None:
                        _log.debug("Unknown event type %d", ev.type)
                        should_publish = False
                    else:
                        should_publish = self.dispatch(event)
                self.publish_if_ready(should_publish)
        finally:
            self.detach_device(self.instance_id)
            self._pygame = None
            pygame.joystick.quit()
            pygame.display.quit()

    def stop(self) -> None:
        """Ask :meth:`run` to return."""
        self._stop.set()