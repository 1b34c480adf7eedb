"""
Shared test fixtures and configuration for the navconsole test suite.

OpenCV is only needed by the map-image helpers and the console server; tests
that touch them use ``pytest.importorskip("cv2")`` so the rest of the suite
runs without it.
"""

import sys
from pathlib import Path

import pytest

# Ensure project root on path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.geometry.pose import Point3, Pose
from src.interaction.publish_click import PublishClickTool, PublishMode
from src.map.occupancy_grid import OccupancyGrid


class Recorder:
    """Collects the click tool's callback invocations."""

    def __init__(self):
        self.events = []
        self.active_changes = []

    def on_publish(self, event):
        self.events.append(event)

    def on_state_change(self, active):
        self.active_changes.append(active)


# ---------------------------------------------------------------------------
# Shared fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def make_tool(recorder):
    """Factory for a click tool wired to the shared recorder."""

    def _make(mode=PublishMode.POINT, **kwargs):
        return PublishClickTool(
            publish_mode=mode,
            on_publish=recorder.on_publish,
            on_state_change=recorder.on_state_change,
            **kwargs,
        )

    return _make


@pytest.fixture
def small_grid():
    """2x2 grid, row-major with row 0 at the bottom: [[0, 100], [-1, 50]]."""
    return OccupancyGrid(width=2, height=2, resolution=1.0, origin=Pose(), cells=[0, 100, -1, 50])


@pytest.fixture
def offset_grid():
    """4x3 grid at 0.05 m/cell with its origin away from the world origin."""
    return OccupancyGrid(
        width=4,
        height=3,
        resolution=0.05,
        origin=Pose(position=Point3(-1.0, 2.0, 0.0)),
        cells=[0, 10, 20, 30, 40, 50, 60, 70, 80, 90, 100, -1],
    )
