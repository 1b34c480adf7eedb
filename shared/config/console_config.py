"""
Runtime configuration for the navigation console.

Every value comes from an environment variable with a default, so a
``.env`` file next to the entry point (loaded by python-dotenv) or the
process environment can override it.
"""

import os

from src.interaction.publish_click import ModeSwitchPolicy, UncertaintyDeviation


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


class ConsoleConfig:
    """Configuration for the console service.

    Topics follow the usual ROS 2 navigation names:
        /clicked_point  — geometry_msgs/PointStamped
        /goal_pose      — geometry_msgs/PoseStamped
        /initialpose    — geometry_msgs/PoseWithCovarianceStamped
    """

    CONSOLE_HOST = os.getenv("CONSOLE_HOST", "0.0.0.0")
    CONSOLE_PORT = int(os.getenv("CONSOLE_PORT", "8095"))
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")

    # Frame stamped on every outgoing navigation message
    FIXED_FRAME = os.getenv("FIXED_FRAME", "map")

    POINT_TOPIC = os.getenv("POINT_TOPIC", "/clicked_point")
    POSE_TOPIC = os.getenv("POSE_TOPIC", "/goal_pose")
    POSE_ESTIMATE_TOPIC = os.getenv("POSE_ESTIMATE_TOPIC", "/initialpose")

    # Standard deviations for the initial-pose covariance (m, m, rad)
    POSE_ESTIMATE_X_DEV = _env_float("POSE_ESTIMATE_X_DEV", 0.5)
    POSE_ESTIMATE_Y_DEV = _env_float("POSE_ESTIMATE_Y_DEV", 0.5)
    POSE_ESTIMATE_THETA_DEV = _env_float("POSE_ESTIMATE_THETA_DEV", 0.26)

    # "keep" lets a gesture survive a mode switch, "reset" cancels it
    MODE_SWITCH_POLICY = os.getenv("MODE_SWITCH_POLICY", ModeSwitchPolicy.KEEP.value)

    @classmethod
    def uncertainty(cls) -> UncertaintyDeviation:
        return UncertaintyDeviation(
            x=cls.POSE_ESTIMATE_X_DEV,
            y=cls.POSE_ESTIMATE_Y_DEV,
            theta=cls.POSE_ESTIMATE_THETA_DEV,
        )

    @classmethod
    def mode_switch_policy(cls) -> ModeSwitchPolicy:
        return ModeSwitchPolicy(cls.MODE_SWITCH_POLICY.lower())

    @classmethod
    def topics(cls) -> dict[str, str]:
        """Topic per publish mode value."""
        return {
            "point": cls.POINT_TOPIC,
            "pose": cls.POSE_TOPIC,
            "pose_estimate": cls.POSE_ESTIMATE_TOPIC,
        }
