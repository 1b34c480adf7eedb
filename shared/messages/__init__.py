"""Pydantic message schemas for the navigation console."""

from shared.messages.navigation import (
    Header,
    MapMetaData,
    OccupancyGridMessage,
    OccupancyGridUpdateMessage,
    PointMsg,
    PointStamped,
    PoseMsg,
    PoseStamped,
    PoseWithCovariance,
    PoseWithCovarianceStamped,
    QuaternionMsg,
    RosTime,
)
