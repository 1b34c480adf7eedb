"""Vector, quaternion and pose helpers."""

from src.geometry.pose import (
    FORWARD_AXIS,
    Orientation,
    Point3,
    Pose,
    orientation_from_points,
    quaternion_from_unit_vectors,
    rotate_vector,
    yaw_from_orientation,
)

__all__ = [
    "FORWARD_AXIS",
    "Orientation",
    "Point3",
    "Pose",
    "orientation_from_points",
    "quaternion_from_unit_vectors",
    "rotate_vector",
    "yaw_from_orientation",
]
