"""Pydantic models mirroring the ROS geometry/nav messages the console exchanges."""

from pydantic import BaseModel, Field


class RosTime(BaseModel):
    """builtin_interfaces/Time as carried over the bridge ({sec, nsec})."""

    sec: int = 0
    nsec: int = Field(default=0, ge=0, lt=1_000_000_000)


class Header(BaseModel):
    stamp: RosTime = Field(default_factory=RosTime)
    frame_id: str = ""


class PointMsg(BaseModel):
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


class QuaternionMsg(BaseModel):
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 1.0


class PoseMsg(BaseModel):
    position: PointMsg = Field(default_factory=PointMsg)
    orientation: QuaternionMsg = Field(default_factory=QuaternionMsg)


class PointStamped(BaseModel):
    """geometry_msgs/PointStamped, published for a single click."""

    header: Header
    point: PointMsg


class PoseStamped(BaseModel):
    """geometry_msgs/PoseStamped, published as a navigation goal."""

    header: Header
    pose: PoseMsg


class PoseWithCovariance(BaseModel):
    pose: PoseMsg
    covariance: list[float] = Field(
        min_length=36,
        max_length=36,
        description="Row-major 6x6 covariance over (x, y, z, roll, pitch, yaw)",
    )


class PoseWithCovarianceStamped(BaseModel):
    """geometry_msgs/PoseWithCovarianceStamped, published as an initial pose estimate."""

    header: Header
    pose: PoseWithCovariance


class MapMetaData(BaseModel):
    width: int = Field(ge=0)
    height: int = Field(ge=0)
    resolution: float = Field(gt=0, description="Cell edge length in metres")
    origin: PoseMsg = Field(default_factory=PoseMsg)


class OccupancyGridMessage(BaseModel):
    """nav_msgs/OccupancyGrid: row-major cells, row 0 at the map's bottom edge."""

    header: Header = Field(default_factory=Header)
    info: MapMetaData
    data: list[int]

    class Config:
        json_schema_extra = {
            "example": {
                "header": {"stamp": {"sec": 0, "nsec": 0}, "frame_id": "map"},
                "info": {
                    "width": 2,
                    "height": 2,
                    "resolution": 0.05,
                    "origin": {
                        "position": {"x": 0.0, "y": 0.0, "z": 0.0},
                        "orientation": {"x": 0.0, "y": 0.0, "z": 0.0, "w": 1.0},
                    },
                },
                "data": [0, 100, -1, 50],
            }
        }


class OccupancyGridUpdateMessage(BaseModel):
    """map_msgs/OccupancyGridUpdate: a rectangular patch of new cell values."""

    header: Header = Field(default_factory=Header)
    x: int = Field(ge=0)
    y: int = Field(ge=0)
    width: int = Field(ge=0)
    height: int = Field(ge=0)
    data: list[int]
