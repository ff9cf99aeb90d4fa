"""Geodetic conversion and path-following geometry for the rover."""

from __future__ import annotations

import itertools
import math
from dataclasses import dataclass
from typing import Iterable, Sequence

Point = tuple[float, float]

EQUATORIAL_RADIUS = 6378137.0
POLAR_RADIUS = 6356752.3142

LOOK_AHEAD_DISTANCE = 0.5
CARROT_SPEED = 0.4
ANGULAR_GAIN = 0.6

_DEGENERATE = 1e-6


@dataclass(frozen=True)
class CarrotCommand:
    """Velocities chosen by one follow-the-carrot step.

    ``angular`` is None when the path has been completed; the previous
    angular velocity is then left as it was. ``remaining`` holds the
    waypoints not yet reached, the current target first.
    """

    linear: float
    angular: float | None
    remaining: tuple[Point, ...]
    target_local: Point | None = None

    @property
    def finished(self) -> bool:
        return not self.remaining


def llh_to_xy(
    latitude: float,
    longitude: float,
    altitude: float,
    latitude0: float,
    longitude0: float,
) -> Point:
    """East/north offset in metres of a point from the origin (latitude0, longitude0)."""
    lat0 = math.radians(latitude0)
    lon0 = math.radians(longitude0)
    lat = math.radians(latitude)
    lon = math.radians(longitude)
    a, b = EQUATORIAL_RADIUS, POLAR_RADIUS
    denom = math.sqrt((a * math.cos(lat0)) ** 2 + (b * math.sin(lat0)) ** 2)
    rx = (a * a / denom + altitude) * math.cos(lat0)
    ry = b * b / denom + altitude
    return (-(lon0 - lon) * rx, (lat - lat0) * ry)


def compute_lookahead_point(
    x: float, y: float, path: Sequence[Sequence[float]], lookahead: float
) -> Point:
    """The point ``lookahead`` metres along ``path`` past the robot's projection.

    The robot is projected onto the nearest segment line; the target arc
    length is clamped to the start and end of the path.
    """
    points = [(float(px), float(py)) for px, py in path]
    if not points:
        raise ValueError("path must hold at least one point")
    if len(points) < 2:
        return points[-1]

    segments = list(itertools.pairwise(points))
    lengths = [math.hypot(q[0] - p[0], q[1] - p[1]) for p, q in segments]
    arc = list(itertools.accumulate(lengths, initial=0.0))

    best_d2 = math.inf
    best_seg = 0
    best_t = 0.0
    for i, (p, q) in enumerate(segments):
        vx, vy = q[0] - p[0], q[1] - p[1]
        wx, wy = x - p[0], y - p[1]
        denom = vx * vx + vy * vy
        if denom < _DEGENERATE:
            continue
        t = (wx * vx + wy * vy) / denom
        px, py = p[0] + t * vx, p[1] + t * vy
        d2 = (px - x) ** 2 + (py - y) ** 2
        if d2 < best_d2:
            best_d2, best_seg, best_t = d2, i, t

    s0 = arc[best_seg] + best_t * lengths[best_seg]
    s_target = min(max(s0 + lookahead, 0.0), arc[-1])

    j = next(
        (i for i in range(len(segments)) if arc[i + 1] >= s_target),
        len(segments) - 1,
    )
    c, d = segments[j]
    vx, vy = d[0] - c[0], d[1] - c[1]
    seg_len = lengths[j]
    t_star = 0.0 if seg_len < _DEGENERATE else (s_target - arc[j]) / seg_len
    return (c[0] + t_star * vx, c[1] + t_star * vy)


def follow_the_carrot(
    trajectory: Iterable[Sequence[float]], position: Sequence[float], heading: float
) -> CarrotCommand | None:
    """One follow-the-carrot step; None when there is no trajectory at all.

    Waypoints closer than the look-ahead distance are dropped; the first
    remaining one is steered towards at a fixed speed.
    """
    points = [(float(px), float(py)) for px, py in trajectory]
    if not points:
        return None
    x, y = float(position[0]), float(position[1])

    def reached(point: Point) -> bool:
        return math.hypot(point[0] - x, point[1] - y) < LOOK_AHEAD_DISTANCE

    remaining = tuple(itertools.dropwhile(reached, points))
    if not remaining:
        return CarrotCommand(linear=0.0, angular=None, remaining=())

    gx, gy = remaining[0]
    cos_h, sin_h = math.cos(heading), math.sin(heading)
    local_x = cos_h * (gx - x) + sin_h * (gy - y)
    local_y = cos_h * (gy - y) - sin_h * (gx - x)
    alpha = math.atan2(local_y, local_x)
    if alpha > math.pi:
        alpha -= 2 * math.pi
    if alpha < -math.pi:
        alpha += 2 * math.pi
    return CarrotCommand(
        linear=CARROT_SPEED,
        angular=ANGULAR_GAIN * alpha,
        remaining=remaining,
        target_local=(local_x, local_y),
    )


def normalize_heading(angle: float) -> float:
    """Shift a heading by a full turn and reduce it modulo a full turn."""
    return math.fmod(angle + 2 * math.pi, 2 * math.pi)