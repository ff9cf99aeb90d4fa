"""Wire format of the motor controller: velocity commands and query replies."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Iterable

_log = logging.getLogger(__name__)

CARRIAGE_RETURN = 13
QUERY_MARK = 63  # '?'
VOLTAGE_QUERY = 69  # 'E'
BURST_END = 87  # 'W'
MIN_BURST = 12

BATTERY_SCALE = 55.0 / 256
CONTROLLER_SCALE = 28.5 / 256

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


def _hex2(value: int) -> bytes:
    # Two characters at most, as the controller's fixed-width field takes.
    return f"{abs(int(value)):02X}"[:2].encode("ascii")


def encode_velocity(v_pwm: int | float, w_pwm: int | float) -> tuple[bytes, bytes]:
    """Build the channel A (angular) and channel B (linear) commands.

    Each command is ``!``, a channel letter (lower case for reverse), two
    hexadecimal digits of the magnitude, and a carriage return.
    """
    w = int(w_pwm)
    v = int(v_pwm)
    channel_a = b"!" + (b"a" if w < 0 else b"A") + _hex2(w) + b"\r"
    channel_b = b"!" + (b"b" if v < 0 else b"B") + _hex2(v) + b"\r"
    return channel_a, channel_b


def ascii_to_char(code: int) -> str:
    """The printable character for ``code``, or NUL if it is not printable."""
    if 32 <= code <= 126:
        return chr(code)
    return "\0"


def hex_to_dec(chars: Iterable[str]) -> int:
    """Read the leading hexadecimal number of ``chars``; 0 when there is none."""
    text = "".join(chars).lstrip(" \t\n\v\f\r")
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    digits = "".join(itertools.takewhile(_HEX_DIGITS.__contains__, text))
    if not digits:
        return 0
    return sign * int(digits, 16)


@dataclass(frozen=True)
class QueryReport:
    """A complete reply burst from the controller."""

    separator: int
    classifier: int
    words: tuple[tuple[int, ...], ...]
    battery_voltage: float | None = None
    controller_voltage: float | None = None


@dataclass
class QueryParser:
    """Splits the controller's byte stream into reply bursts.

    Bytes are gathered into carriage-return terminated words. A burst ends
    on a ``W`` byte, or on any byte once twelve bytes have been gathered;
    bursts shorter than that are treated as noise and dropped.
    """

    _current: list[int] = field(default_factory=list)
    _words: list[tuple[int, ...]] = field(default_factory=list)
    _count: int = 0
    _chars: list[str] = field(default_factory=lambda: ["\0", "\0"])

    def feed(self, byte: int) -> QueryReport | None:
        """Take one byte; return a report when it completes a burst."""
        if byte != BURST_END and self._count < MIN_BURST:
            if byte == CARRIAGE_RETURN:
                if self._current:
                    self._words.append(tuple(self._current))
                    self._current = []
            else:
                self._current.append(byte)
            self._count += 1
            return None
        report = self._finish() if self._count >= MIN_BURST else None
        self._words = []
        self._count = 0
        return report

    def _finish(self) -> QueryReport | None:
        words = self._words
        if not words:
            return None
        head = words[0]
        try:
            if head[0] == 0:
                separator, classifier = head[1], head[2]
            else:
                separator, classifier = head[0], head[1]
        except IndexError:
            return None
        for row, word in enumerate(words):
            _log.info("Row %d: [ %s ]", row, ", ".join(map(str, word)))
        battery = controller = None
        if separator == QUERY_MARK:
            battery_next = True
            for word in words[1:]:
                for j, code in enumerate(word[:2]):
                    self._chars[j] = ascii_to_char(code)
                if classifier == VOLTAGE_QUERY:
                    value = hex_to_dec(self._chars)
                    if battery_next:
                        battery = value * BATTERY_SCALE
                        _log.info("Battery voltage: %f", battery)
                    else:
                        controller = value * CONTROLLER_SCALE
                        _log.info("Controller voltage: %f", controller)
                    battery_next = not battery_next
        return QueryReport(separator, classifier, tuple(words), battery, controller)