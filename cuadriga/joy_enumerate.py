"""Lists the connected game controllers with their device ids."""

from __future__ import annotations

import argparse
import os
import sys
from typing import Iterable

HEADER = "Joystick Device ID : Joystick Device Name"
RULE = "-----------------------------------------"


def format_devices(names: Iterable[str]) -> list[str]:
    """The listing lines: a header, a rule, then one line per device."""
    lines = [HEADER, RULE]
    lines.extend(f"{index:18d} : {name}" for index, name in enumerate(names))
    return lines


def main(argv: list[str] | None = None) -> int:
    """Print every controller the system knows about."""
    argparse.ArgumentParser(description="List connected joysticks.").parse_args(argv)
    os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")
    import pygame

    try:
        pygame.joystick.init()
    except pygame.error as exc:
        print(f"SDL could not be initialized: {exc}", file=sys.stderr)
        return 1
    try:
        names = [
            pygame.joystick.Joystick(i).get_name()
            for i in range(pygame.joystick.get_count())
        ]
        for line in format_devices(names):
            print(line)
    finally:
        pygame.joystick.quit()
    return 0