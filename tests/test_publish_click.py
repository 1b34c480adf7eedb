"""Tests for the click-to-publish state machine."""

import pytest

from src.geometry.pose import Orientation, Point3, orientation_from_points
from src.interaction.publish_click import (
    InteractionState,
    MarkerKind,
    ModeSwitchPolicy,
    POSE_ARROW_COLOR,
    POSE_ESTIMATE_ARROW_COLOR,
    PointerEventKind,
    PublishClickTool,
    PublishMode,
    SPHERE_COLOR,
    UncertaintyDeviation,
)


class TestLifecycle:
    def test_initial_state(self, make_tool, recorder):
        tool = make_tool()
        assert tool.state is InteractionState.IDLE
        assert not tool.is_active()
        assert tool.point1 is None and tool.point2 is None
        assert recorder.active_changes == []

    def test_start_notifies_active(self, make_tool, recorder):
        tool = make_tool()
        tool.start()
        assert tool.state is InteractionState.PLACE_FIRST_POINT
        assert recorder.active_changes == [True]

    def test_restart_discards_preview(self, make_tool, recorder):
        tool = make_tool(PublishMode.POSE)
        tool.start()
        tool.handle_mouse_move(Point3(1, 1, 0))
        tool.start()
        assert tool.state is InteractionState.PLACE_FIRST_POINT
        assert tool.point1 is None
        assert recorder.active_changes == [True]

    def test_restart_from_second_point(self, make_tool):
        tool = make_tool(PublishMode.POSE)
        tool.start()
        tool.handle_click(Point3(1, 1, 0))
        tool.start()
        assert tool.state is InteractionState.PLACE_FIRST_POINT
        assert tool.point1 is None

    def test_stop_clears_points(self, make_tool, recorder):
        tool = make_tool(PublishMode.POSE)
        tool.start()
        tool.handle_click(Point3(1, 1, 0))
        tool.handle_mouse_move(Point3(2, 1, 0))
        tool.stop()
        assert tool.state is InteractionState.IDLE
        assert tool.point1 is None and tool.point2 is None
        assert recorder.active_changes == [True, False]
        assert recorder.events == []

    @pytest.mark.parametrize("clicks", [0, 1])
    def test_stop_twice_notifies_once(self, make_tool, recorder, clicks):
        tool = make_tool(PublishMode.POSE)
        tool.start()
        for _ in range(clicks):
            tool.handle_click(Point3(0, 0, 0))
        tool.stop()
        tool.stop()
        assert tool.state is InteractionState.IDLE
        assert recorder.active_changes == [True, False]

    def test_stop_from_idle_is_silent(self, make_tool, recorder):
        tool = make_tool()
        tool.stop()
        tool.stop()
        assert tool.state is InteractionState.IDLE
        assert recorder.active_changes == []


class TestIgnoredInput:
    def test_idle_ignores_pointer(self, make_tool, recorder):
        tool = make_tool()
        tool.handle_mouse_move(Point3(1, 2, 3))
        assert tool.handle_click(Point3(1, 2, 3)) is None
        assert tool.state is InteractionState.IDLE
        assert tool.point1 is None
        assert recorder.events == []

    def test_none_point_is_ignored(self, make_tool, recorder):
        tool = make_tool(PublishMode.POSE)
        tool.start()
        tool.handle_mouse_move(None)
        assert tool.handle_click(None) is None
        assert tool.state is InteractionState.PLACE_FIRST_POINT
        tool.handle_click(Point3(0, 0, 0))
        tool.handle_mouse_move(None)
        tool.handle_click(None)
        assert tool.state is InteractionState.PLACE_SECOND_POINT
        assert tool.point2 is None
        assert recorder.events == []


class TestPointMode:
    def test_single_click_publishes(self, make_tool, recorder):
        tool = make_tool(PublishMode.POINT)
        tool.start()
        tool.handle_mouse_move(Point3(0.5, 0.5, 0))
        assert recorder.events == []

        event = tool.handle_click(Point3(1, 2, 0))
        assert event is not None
        assert recorder.events == [event]
        assert event.type is PublishMode.POINT
        assert event.point == Point3(1, 2, 0)
        assert event.pose is None
        assert tool.state is InteractionState.IDLE
        assert recorder.active_changes == [True, False]

    def test_extra_click_after_publish_ignored(self, make_tool, recorder):
        tool = make_tool(PublishMode.POINT)
        tool.start()
        tool.handle_click(Point3(1, 2, 0))
        tool.handle_click(Point3(3, 4, 0))
        assert len(recorder.events) == 1

    def test_event_dict(self, make_tool):
        tool = make_tool(PublishMode.POINT)
        tool.start()
        event = tool.handle_click(Point3(1, 2, 0))
        assert event.to_dict() == {"type": "point", "point": {"x": 1, "y": 2, "z": 0}}


class TestPoseModes:
    def test_pose_scenario(self, make_tool, recorder):
        tool = make_tool()
        tool.set_publish_mode(PublishMode.POSE)
        tool.start()

        tool.handle_mouse_move(Point3(0.9, 2.1, 0))
        assert recorder.events == []

        assert tool.handle_click(Point3(1, 2, 0)) is None
        assert tool.state is InteractionState.PLACE_SECOND_POINT
        assert recorder.events == []

        tool.handle_mouse_move(Point3(1.5, 2, 0))
        assert recorder.events == []

        tool.handle_click(Point3(2, 2, 0))
        assert len(recorder.events) == 1
        event = recorder.events[0]
        assert event.type is PublishMode.POSE
        assert event.pose.position == Point3(1, 2, 0)
        assert event.pose.orientation.as_array() == pytest.approx([0, 0, 0, 1])
        assert event.uncertainty is None
        assert tool.state is InteractionState.IDLE
        assert tool.point1 is None
        assert recorder.active_changes == [True, False]

    def test_pose_heading(self, make_tool, recorder):
        tool = make_tool(PublishMode.POSE)
        tool.start()
        tool.handle_click(Point3(0, 0, 0))
        tool.handle_click(Point3(0, 3, 0))
        orientation = recorder.events[0].pose.orientation
        assert orientation == orientation_from_points(Point3(0, 0, 0), Point3(0, 3, 0))

    def test_second_click_on_first_point(self, make_tool, recorder):
        tool = make_tool(PublishMode.POSE)
        tool.start()
        tool.handle_click(Point3(1, 1, 0))
        tool.handle_click(Point3(1, 1, 0))
        assert recorder.events[0].pose.orientation == Orientation.identity()

    def test_pose_estimate_carries_uncertainty(self, make_tool, recorder):
        dev = UncertaintyDeviation(x=0.3, y=0.4, theta=0.1)
        tool = make_tool(PublishMode.POSE_ESTIMATE, uncertainty=dev)
        tool.start()
        tool.handle_click(Point3(0, 0, 0))
        tool.handle_click(Point3(-1, 0, 0))
        event = recorder.events[0]
        assert event.type is PublishMode.POSE_ESTIMATE
        assert event.uncertainty == dev
        assert event.to_dict()["uncertainty"] == {"x": 0.3, "y": 0.4, "theta": 0.1}

    def test_one_event_per_gesture(self, make_tool, recorder):
        tool = make_tool(PublishMode.POSE)
        for i in range(3):
            tool.start()
            tool.handle_click(Point3(i, 0, 0))
            tool.handle_click(Point3(i, 1, 0))
        assert len(recorder.events) == 3
        assert recorder.active_changes == [True, False] * 3

    def test_handle_pointer_dispatch(self, make_tool, recorder):
        tool = make_tool(PublishMode.POSE)
        tool.start()
        assert tool.handle_pointer(PointerEventKind.MOVE, Point3(1, 0, 0)) is None
        assert tool.point1 == Point3(1, 0, 0)
        tool.handle_pointer("click", Point3(1, 0, 0))
        event = tool.handle_pointer("click", Point3(1, 1, 0))
        assert event is recorder.events[0]

    def test_required_points(self):
        assert PublishMode.POINT.required_points == 1
        assert PublishMode.POSE.required_points == 2
        assert PublishMode.POSE_ESTIMATE.required_points == 2


class TestModeSwitch:
    def test_keep_policy_continues_gesture(self, make_tool, recorder):
        tool = make_tool(PublishMode.POSE)
        tool.start()
        tool.handle_click(Point3(0, 0, 0))
        snap = tool.set_publish_mode(PublishMode.POSE_ESTIMATE)
        assert snap.state is InteractionState.PLACE_SECOND_POINT
        assert snap.mode is PublishMode.POSE_ESTIMATE

        tool.handle_click(Point3(1, 0, 0))
        assert recorder.events[0].type is PublishMode.POSE_ESTIMATE
        assert recorder.active_changes == [True, False]

    def test_keep_policy_switch_to_point_mid_gesture(self, make_tool, recorder):
        tool = make_tool(PublishMode.POSE)
        tool.start()
        tool.handle_click(Point3(0, 0, 0))
        tool.set_publish_mode(PublishMode.POINT)
        tool.handle_click(Point3(4, 5, 0))
        event = recorder.events[0]
        assert event.type is PublishMode.POINT
        assert event.point == Point3(4, 5, 0)
        assert event.pose is None

    def test_reset_policy_cancels_gesture(self, make_tool, recorder):
        tool = make_tool(PublishMode.POSE, mode_switch_policy=ModeSwitchPolicy.RESET)
        tool.start()
        tool.handle_click(Point3(0, 0, 0))
        snap = tool.set_publish_mode(PublishMode.POINT)
        assert snap.state is InteractionState.IDLE
        assert snap.point1 is None
        assert recorder.active_changes == [True, False]
        assert recorder.events == []

    def test_reset_policy_same_mode_is_noop(self, make_tool):
        tool = make_tool(PublishMode.POSE, mode_switch_policy=ModeSwitchPolicy.RESET)
        tool.start()
        tool.set_publish_mode("pose")
        assert tool.is_active()

    def test_set_uncertainty_returns_snapshot(self, make_tool):
        tool = make_tool(PublishMode.POSE_ESTIMATE)
        snap = tool.set_uncertainty(UncertaintyDeviation(1.0, 1.0, 0.5))
        assert tool.uncertainty.theta == 0.5
        assert snap.mode is PublishMode.POSE_ESTIMATE
        assert not snap.active

    def test_invalid_mode(self, make_tool):
        with pytest.raises(ValueError):
            make_tool().set_publish_mode("waypoint")


class TestFeedback:
    def test_idle_point_mode_hidden_sphere(self, make_tool):
        fb = make_tool(PublishMode.POINT).feedback()
        assert fb.marker is MarkerKind.SPHERE
        assert not fb.visible
        assert fb.color == SPHERE_COLOR

    def test_point_preview(self, make_tool):
        tool = make_tool(PublishMode.POINT)
        tool.start()
        assert not tool.feedback().visible
        tool.handle_mouse_move(Point3(1, 1, 0))
        fb = tool.feedback()
        assert fb.visible
        assert fb.position == Point3(1, 1, 0)

    def test_arrow_first_point_preview(self, make_tool):
        tool = make_tool(PublishMode.POSE)
        tool.start()
        tool.handle_mouse_move(Point3(2, 2, 0))
        fb = tool.feedback()
        assert fb.marker is MarkerKind.ARROW
        assert fb.visible
        assert fb.position == Point3(2, 2, 0)
        assert fb.orientation == Orientation.identity()
        assert fb.color == POSE_ARROW_COLOR

    def test_arrow_tracks_second_point(self, make_tool):
        tool = make_tool(PublishMode.POSE_ESTIMATE)
        tool.start()
        tool.handle_click(Point3(0, 0, 0))
        fb = tool.feedback()
        assert fb.orientation == Orientation.identity()
        assert fb.color == POSE_ESTIMATE_ARROW_COLOR

        tool.handle_mouse_move(Point3(0, 1, 0))
        fb = tool.feedback()
        assert fb.position == Point3(0, 0, 0)
        assert fb.orientation == orientation_from_points(Point3(0, 0, 0), Point3(0, 1, 0))

    def test_hidden_after_publish(self, make_tool):
        tool = make_tool(PublishMode.POSE)
        tool.start()
        tool.handle_click(Point3(0, 0, 0))
        tool.handle_click(Point3(1, 0, 0))
        assert not tool.feedback().visible

    def test_snapshot_dict(self, make_tool):
        tool = make_tool(PublishMode.POSE)
        tool.start()
        tool.handle_click(Point3(0, 0, 0))
        d = tool.snapshot().to_dict()
        assert d["mode"] == "pose"
        assert d["state"] == "place-second-point"
        assert d["active"] is True
        assert d["point1"] == {"x": 0, "y": 0, "z": 0}
        assert d["feedback"]["marker"] == "arrow"
        assert d["feedback"]["color"] == "#ff00ff"


class TestCallbacks:
    def test_callbacks_optional(self):
        tool = PublishClickTool(publish_mode=PublishMode.POINT)
        tool.start()
        event = tool.handle_click(Point3(1, 1, 1))
        assert event.point == Point3(1, 1, 1)

    def test_replace_callbacks(self, recorder):
        tool = PublishClickTool()
        tool.on_publish(recorder.on_publish)
        tool.on_state_change(recorder.on_state_change)
        tool.start()
        tool.handle_click(Point3(0, 0, 0))
        assert len(recorder.events) == 1
        assert recorder.active_changes == [True, False]
