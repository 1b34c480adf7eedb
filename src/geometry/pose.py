"""
Point, quaternion and pose primitives shared by the click tool and the map codec.

Quaternions are stored (x, y, z, w) to match geometry_msgs/Quaternion.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

import numpy as np

# Direction lengths below this are treated as "no direction"
_EPS = 1e-12

# Arrows and robots point along +X in their own frame
FORWARD_AXIS = (1.0, 0.0, 0.0)


@dataclass(frozen=True)
class Point3:
    """A position in the scene's world frame (metres)."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @classmethod
    def from_iterable(cls, values: Iterable[float]) -> Point3:
        x, y, z = (float(v) for v in values)
        return cls(x, y, z)

    @classmethod
    def from_dict(cls, data: dict) -> Point3:
        return cls(float(data.get("x", 0.0)), float(data.get("y", 0.0)), float(data.get("z", 0.0)))

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "z": self.z}

    def __add__(self, other: Point3) -> Point3:
        return Point3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: Point3) -> Point3:
        return Point3(self.x - other.x, self.y - other.y, self.z - other.z)


@dataclass(frozen=True)
class Orientation:
    """Unit quaternion (x, y, z, w)."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 1.0

    @classmethod
    def identity(cls) -> Orientation:
        return cls(0.0, 0.0, 0.0, 1.0)

    @classmethod
    def from_dict(cls, data: dict) -> Orientation:
        return cls(
            float(data.get("x", 0.0)),
            float(data.get("y", 0.0)),
            float(data.get("z", 0.0)),
            float(data.get("w", 1.0)),
        )

    @classmethod
    def from_yaw(cls, yaw_rad: float) -> Orientation:
        """Rotation of *yaw_rad* about +Z."""
        half = yaw_rad / 2.0
        return cls(0.0, 0.0, math.sin(half), math.cos(half))

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z, self.w], dtype=np.float64)

    def norm(self) -> float:
        return float(np.linalg.norm(self.as_array()))

    def normalized(self) -> Orientation:
        n = self.norm()
        if n < _EPS:
            return Orientation.identity()
        q = self.as_array() / n
        return Orientation(*(float(v) for v in q))

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "z": self.z, "w": self.w}


@dataclass(frozen=True)
class Pose:
    """Position plus orientation."""

    position: Point3 = field(default_factory=Point3)
    orientation: Orientation = field(default_factory=Orientation.identity)

    @classmethod
    def from_dict(cls, data: dict) -> Pose:
        return cls(
            position=Point3.from_dict(data.get("position", {})),
            orientation=Orientation.from_dict(data.get("orientation", {})),
        )

    def to_dict(self) -> dict:
        return {
            "position": self.position.to_dict(),
            "orientation": self.orientation.to_dict(),
        }


def _as_vec3(v: Point3 | Sequence[float] | np.ndarray) -> np.ndarray:
    if isinstance(v, Point3):
        return v.as_array()
    arr = np.asarray(v, dtype=np.float64)
    if arr.shape != (3,):
        raise ValueError(f"Expected a 3-vector, got shape {arr.shape}")
    return arr


def quaternion_from_unit_vectors(
    v_from: Sequence[float] | np.ndarray,
    v_to: Sequence[float] | np.ndarray,
) -> Orientation:
    """Shortest-arc rotation taking unit vector *v_from* onto unit vector *v_to*.

    Both inputs must already be normalized. When they point in opposite
    directions the rotation is 180 degrees about an axis orthogonal to
    *v_from*.
    """
    a = _as_vec3(v_from)
    b = _as_vec3(v_to)

    r = float(np.dot(a, b)) + 1.0
    if r < 1e-6:
        # Antiparallel: any axis orthogonal to a works
        if abs(a[0]) > abs(a[2]):
            q = np.array([-a[1], a[0], 0.0, 0.0])
        else:
            q = np.array([0.0, -a[2], a[1], 0.0])
    else:
        c = np.cross(a, b)
        q = np.array([c[0], c[1], c[2], r])

    q /= np.linalg.norm(q)
    return Orientation(*(float(v) for v in q))


def orientation_from_points(
    p1: Point3,
    p2: Point3,
    forward: Sequence[float] = FORWARD_AXIS,
) -> Orientation:
    """Orientation that turns the *forward* axis to face from *p1* towards *p2*.

    Coincident points have no direction, so the identity orientation is
    returned instead of a NaN quaternion.
    """
    direction = _as_vec3(p2) - _as_vec3(p1)
    length = float(np.linalg.norm(direction))
    if length < _EPS or not math.isfinite(length):
        return Orientation.identity()

    axis = _as_vec3(forward)
    axis = axis / np.linalg.norm(axis)
    return quaternion_from_unit_vectors(axis, direction / length)


def rotate_vector(q: Orientation, v: Sequence[float] | np.ndarray) -> np.ndarray:
    """Apply rotation *q* to 3-vector *v*."""
    u = np.array([q.x, q.y, q.z], dtype=np.float64)
    vec = _as_vec3(v)
    t = 2.0 * np.cross(u, vec)
    return vec + q.w * t + np.cross(u, t)


def yaw_from_orientation(q: Orientation) -> float:
    """Heading about +Z in radians, in (-pi, pi]."""
    siny_cosp = 2.0 * (q.w * q.z + q.x * q.y)
    cosy_cosp = 1.0 - 2.0 * (q.y * q.y + q.z * q.z)
    return math.atan2(siny_cosp, cosy_cosp)


def distance(p1: Point3, p2: Optional[Point3]) -> float:
    if p2 is None:
        return 0.0
    return float(np.linalg.norm(p2.as_array() - p1.as_array()))
