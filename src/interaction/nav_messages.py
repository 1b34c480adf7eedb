"""Wrap click-tool events in stamped ROS messages for the bridge."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Mapping, Optional

from pydantic import BaseModel

from shared.messages.navigation import (
    Header,
    PointMsg,
    PointStamped,
    PoseMsg,
    PoseStamped,
    PoseWithCovariance,
    PoseWithCovarianceStamped,
    QuaternionMsg,
    RosTime,
)
from src.geometry.pose import Point3, Pose
from src.interaction.publish_click import PublishClickEvent, PublishMode, UncertaintyDeviation

COVARIANCE_SIZE = 36
# Diagonal slots of the row-major 6x6 (x, y, z, roll, pitch, yaw) covariance
COV_X, COV_Y, COV_YAW = 0, 7, 35


def make_covariance_array(x_dev: float, y_dev: float, theta_dev: float) -> list[float]:
    """36-element covariance with only the x, y and yaw variances set."""
    covariance = [0.0] * COVARIANCE_SIZE
    covariance[COV_X] = x_dev * x_dev
    covariance[COV_Y] = y_dev * y_dev
    covariance[COV_YAW] = theta_dev * theta_dev
    return covariance


def ros_time_from_datetime(dt: datetime) -> RosTime:
    """Split a timestamp into {sec, nsec} at millisecond precision."""
    ms = int(dt.timestamp() * 1000)
    return RosTime(sec=ms // 1000, nsec=(ms % 1000) * 1_000_000)


def datetime_from_ros_time(stamp: RosTime) -> datetime:
    return datetime.fromtimestamp(stamp.sec + stamp.nsec / 1e9, tz=timezone.utc)


def format_topic_name(topic: str) -> str:
    return topic if topic.startswith("/") else f"/{topic}"


def _header(frame_id: str, stamp: Optional[datetime]) -> Header:
    return Header(
        stamp=ros_time_from_datetime(stamp or datetime.now(timezone.utc)),
        frame_id=frame_id,
    )


def _pose_msg(pose: Pose) -> PoseMsg:
    return PoseMsg(
        position=PointMsg(**pose.position.to_dict()),
        orientation=QuaternionMsg(**pose.orientation.to_dict()),
    )


def make_point_message(point: Point3, frame_id: str, stamp: Optional[datetime] = None) -> PointStamped:
    return PointStamped(header=_header(frame_id, stamp), point=PointMsg(**point.to_dict()))


def make_pose_message(pose: Pose, frame_id: str, stamp: Optional[datetime] = None) -> PoseStamped:
    return PoseStamped(header=_header(frame_id, stamp), pose=_pose_msg(pose))


def make_pose_estimate_message(
    pose: Pose,
    frame_id: str,
    x_dev: float,
    y_dev: float,
    theta_dev: float,
    stamp: Optional[datetime] = None,
) -> PoseWithCovarianceStamped:
    return PoseWithCovarianceStamped(
        header=_header(frame_id, stamp),
        pose=PoseWithCovariance(
            pose=_pose_msg(pose),
            covariance=make_covariance_array(x_dev, y_dev, theta_dev),
        ),
    )


def make_message_for_event(
    event: PublishClickEvent,
    frame_id: str,
    topics: Mapping[str, str],
    deviation: Optional[UncertaintyDeviation] = None,
    stamp: Optional[datetime] = None,
) -> tuple[str, BaseModel]:
    """Pick the topic and build the stamped message for a click-tool event.

    Pose estimates use the deviation carried by the event, falling back to
    *deviation* and then to the defaults.
    """
    topic = format_topic_name(topics[event.type.value])

    if event.type is PublishMode.POINT:
        return topic, make_point_message(event.point, frame_id, stamp)

    if event.type is PublishMode.POSE:
        return topic, make_pose_message(event.pose, frame_id, stamp)

    dev = event.uncertainty or deviation or UncertaintyDeviation()
    return topic, make_pose_estimate_message(event.pose, frame_id, dev.x, dev.y, dev.theta, stamp)
