"""
Click-to-publish tool — turns pointer events over the 3D scene into
navigation commands.

One click publishes a Point. Pose and PoseEstimate take two clicks: the
first places the position, the second sets the heading (the arrow points
from the first click towards the second).

    idle --start()--> place-first-point --click--> place-second-point --click--> idle
                                  \\--click (point mode)--> idle

The tool never touches a renderer. It exposes the marker to draw through
``feedback()`` and reports through two synchronous callbacks:

    on_publish(event)       once per completed gesture
    on_state_change(active) whenever the tool enters or leaves idle

All calls must come from a single thread (the UI/event-loop thread).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from src.geometry.pose import Orientation, Point3, Pose, distance, orientation_from_points

logger = logging.getLogger(__name__)


class PublishMode(str, Enum):
    """What a completed gesture publishes."""

    POINT = "point"
    POSE = "pose"
    POSE_ESTIMATE = "pose_estimate"  # pose with covariance

    @property
    def required_points(self) -> int:
        return 1 if self is PublishMode.POINT else 2


class InteractionState(str, Enum):
    IDLE = "idle"
    PLACE_FIRST_POINT = "place-first-point"
    PLACE_SECOND_POINT = "place-second-point"


class ModeSwitchPolicy(str, Enum):
    """What happens to an in-progress gesture when the publish mode changes."""

    KEEP = "keep"  # gesture continues, the next click is read in the new mode
    RESET = "reset"  # gesture is cancelled, tool returns to idle


class PointerEventKind(str, Enum):
    MOVE = "move"
    CLICK = "click"


class MarkerKind(str, Enum):
    SPHERE = "sphere"
    ARROW = "arrow"


# Marker colours (0xRRGGBB)
SPHERE_COLOR = 0xFFFF00
POSE_ARROW_COLOR = 0xFF00FF
POSE_ESTIMATE_ARROW_COLOR = 0x00FFFF


@dataclass(frozen=True)
class UncertaintyDeviation:
    """Standard deviations for a pose estimate: x, y in metres, theta in radians."""

    x: float = 0.5
    y: float = 0.5
    theta: float = 0.26

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "theta": self.theta}


@dataclass(frozen=True)
class PublishClickEvent:
    """Payload of a completed gesture.

    ``point`` is set for POINT, ``pose`` for POSE and POSE_ESTIMATE;
    POSE_ESTIMATE also carries the deviation the covariance is built from.
    """

    type: PublishMode
    point: Optional[Point3] = None
    pose: Optional[Pose] = None
    uncertainty: Optional[UncertaintyDeviation] = None

    def to_dict(self) -> dict:
        data: dict = {"type": self.type.value}
        if self.point is not None:
            data["point"] = self.point.to_dict()
        if self.pose is not None:
            data["pose"] = self.pose.to_dict()
        if self.uncertainty is not None:
            data["uncertainty"] = self.uncertainty.to_dict()
        return data


@dataclass(frozen=True)
class ClickFeedback:
    """What the renderer should draw for the tool right now."""

    marker: MarkerKind
    visible: bool
    color: int
    position: Optional[Point3] = None
    orientation: Optional[Orientation] = None

    def to_dict(self) -> dict:
        return {
            "marker": self.marker.value,
            "visible": self.visible,
            "color": f"#{self.color:06x}",
            "position": self.position.to_dict() if self.position else None,
            "orientation": self.orientation.to_dict() if self.orientation else None,
        }


@dataclass(frozen=True)
class ToolSnapshot:
    mode: PublishMode
    state: InteractionState
    point1: Optional[Point3]
    point2: Optional[Point3]
    feedback: ClickFeedback

    @property
    def active(self) -> bool:
        return self.state is not InteractionState.IDLE

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "state": self.state.value,
            "active": self.active,
            "point1": self.point1.to_dict() if self.point1 else None,
            "point2": self.point2.to_dict() if self.point2 else None,
            "feedback": self.feedback.to_dict(),
        }


PublishCallback = Callable[[PublishClickEvent], None]
StateChangeCallback = Callable[[bool], None]


class PublishClickTool:
    """State machine behind the console's "publish point / pose / pose estimate" tool."""

    def __init__(
        self,
        publish_mode: PublishMode = PublishMode.POINT,
        uncertainty: Optional[UncertaintyDeviation] = None,
        mode_switch_policy: ModeSwitchPolicy = ModeSwitchPolicy.KEEP,
        on_publish: Optional[PublishCallback] = None,
        on_state_change: Optional[StateChangeCallback] = None,
    ):
        self._mode = PublishMode(publish_mode)
        self._state = InteractionState.IDLE
        self._point1: Optional[Point3] = None
        self._point2: Optional[Point3] = None
        self.uncertainty = uncertainty or UncertaintyDeviation()
        self.mode_switch_policy = ModeSwitchPolicy(mode_switch_policy)
        self._on_publish = on_publish
        self._on_state_change = on_state_change

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def publish_mode(self) -> PublishMode:
        return self._mode

    @property
    def state(self) -> InteractionState:
        return self._state

    @property
    def point1(self) -> Optional[Point3]:
        return self._point1

    @property
    def point2(self) -> Optional[Point3]:
        return self._point2

    def is_active(self) -> bool:
        return self._state is not InteractionState.IDLE

    def on_publish(self, callback: Optional[PublishCallback]) -> None:
        self._on_publish = callback

    def on_state_change(self, callback: Optional[StateChangeCallback]) -> None:
        self._on_state_change = callback

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------

    def set_publish_mode(self, mode: PublishMode | str) -> ToolSnapshot:
        """Switch what the next completed gesture publishes.

        Under ``ModeSwitchPolicy.KEEP`` an in-progress gesture carries on;
        under ``RESET`` it is cancelled as if ``stop()`` were called.
        """
        mode = PublishMode(mode)
        if mode is not self._mode:
            logger.debug("Publish mode %s -> %s (state %s)", self._mode.value, mode.value, self._state.value)
            self._mode = mode
            if self.mode_switch_policy is ModeSwitchPolicy.RESET and self.is_active():
                self.stop()
        return self.snapshot()

    def set_uncertainty(self, uncertainty: UncertaintyDeviation) -> ToolSnapshot:
        self.uncertainty = uncertainty
        return self.snapshot()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin a gesture. Restarting mid-gesture drops any sampled points."""
        self._point1 = None
        self._point2 = None
        self._set_state(InteractionState.PLACE_FIRST_POINT)

    def stop(self) -> None:
        """Cancel back to idle. Safe from any state; repeated calls do nothing."""
        self._set_state(InteractionState.IDLE)

    def _set_state(self, state: InteractionState) -> None:
        previous = self._state
        self._state = state

        if state is InteractionState.IDLE:
            self._point1 = None
            self._point2 = None

        was_active = previous is not InteractionState.IDLE
        now_active = state is not InteractionState.IDLE
        if was_active != now_active:
            logger.debug("Click tool %s", "active" if now_active else "idle")
            if self._on_state_change:
                self._on_state_change(now_active)

    # ------------------------------------------------------------------
    # Pointer input
    # ------------------------------------------------------------------

    def handle_mouse_move(self, world_point: Optional[Point3]) -> None:
        """Track the pointer to preview the next sample. No state change."""
        if world_point is None:
            return

        if self._state is InteractionState.PLACE_FIRST_POINT:
            self._point1 = world_point
        elif self._state is InteractionState.PLACE_SECOND_POINT:
            self._point2 = world_point

    def handle_click(self, world_point: Optional[Point3]) -> Optional[PublishClickEvent]:
        """Commit a sample. Returns the published event when this click completes a gesture."""
        if world_point is None:
            return None

        if self._state is InteractionState.PLACE_FIRST_POINT:
            self._point1 = world_point
            if self._mode is PublishMode.POINT:
                event = PublishClickEvent(type=PublishMode.POINT, point=world_point)
                self._publish(event)
                self._set_state(InteractionState.IDLE)
                return event
            self._set_state(InteractionState.PLACE_SECOND_POINT)
            return None

        if self._state is InteractionState.PLACE_SECOND_POINT:
            self._point2 = world_point
            if self._mode is PublishMode.POINT:
                # Switched to point mode mid-gesture: the click itself is the point
                event = PublishClickEvent(type=PublishMode.POINT, point=world_point)
            else:
                event = self._make_pose_event(self._point1, world_point)
            self._publish(event)
            self._set_state(InteractionState.IDLE)
            return event

        return None

    def handle_pointer(
        self, kind: PointerEventKind | str, world_point: Optional[Point3]
    ) -> Optional[PublishClickEvent]:
        """Dispatch a (kind, point) pair from the pointer source."""
        kind = PointerEventKind(kind)
        if kind is PointerEventKind.CLICK:
            return self.handle_click(world_point)
        self.handle_mouse_move(world_point)
        return None

    def _make_pose_event(self, point1: Point3, point2: Point3) -> PublishClickEvent:
        pose = Pose(position=point1, orientation=orientation_from_points(point1, point2))
        if self._mode is PublishMode.POSE_ESTIMATE:
            return PublishClickEvent(type=self._mode, pose=pose, uncertainty=self.uncertainty)
        return PublishClickEvent(type=self._mode, pose=pose)

    def _publish(self, event: PublishClickEvent) -> None:
        if event.pose is not None:
            p = event.pose.position
            logger.info(
                "Publishing %s at (%.2f, %.2f, %.2f), heading arrow %.2f m",
                event.type.value, p.x, p.y, p.z, distance(p, self._point2),
            )
            if distance(p, self._point2) == 0.0:
                logger.debug("Second click on the first point, using identity orientation")
        else:
            p = event.point
            logger.info("Publishing point at (%.2f, %.2f, %.2f)", p.x, p.y, p.z)

        if self._on_publish:
            self._on_publish(event)

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    def feedback(self) -> ClickFeedback:
        """Marker for the current state: a sphere in point mode, an arrow otherwise."""
        if self._mode is PublishMode.POINT:
            position = self._point1
            if self._state is InteractionState.PLACE_SECOND_POINT and self._point2 is not None:
                position = self._point2
            return ClickFeedback(
                marker=MarkerKind.SPHERE,
                visible=position is not None,
                color=SPHERE_COLOR,
                position=position,
            )

        color = POSE_ESTIMATE_ARROW_COLOR if self._mode is PublishMode.POSE_ESTIMATE else POSE_ARROW_COLOR
        if self._point1 is None:
            return ClickFeedback(marker=MarkerKind.ARROW, visible=False, color=color)

        if self._point2 is not None:
            orientation = orientation_from_points(self._point1, self._point2)
        else:
            orientation = Orientation.identity()
        return ClickFeedback(
            marker=MarkerKind.ARROW,
            visible=True,
            color=color,
            position=self._point1,
            orientation=orientation,
        )

    def snapshot(self) -> ToolSnapshot:
        return ToolSnapshot(
            mode=self._mode,
            state=self._state,
            point1=self._point1,
            point2=self._point2,
            feedback=self.feedback(),
        )
