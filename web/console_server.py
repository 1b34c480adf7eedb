#!/usr/bin/env python3
"""Console Server — map texture and click-to-publish backend for the operator console.

Runs on port 8095. The browser resolves pointer positions to world points
(ray/plane picking) and posts them here; completed gestures are wrapped in
stamped navigation messages and handed to the message bus. Occupancy grids
posted by the bridge are encoded into the map texture served at
/api/map/raster.png.
"""
from dotenv import load_dotenv
load_dotenv()

import argparse
import logging
import math
import os
import sys
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

# Ensure project root is in sys.path
_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from shared.bus.publisher import NavCommandPublisher
from shared.config.console_config import ConsoleConfig
from shared.messages.navigation import OccupancyGridMessage, OccupancyGridUpdateMessage, PointMsg
from src.geometry.pose import Point3, yaw_from_orientation
from src.interaction.nav_messages import make_message_for_event
from src.interaction.publish_click import (
    PointerEventKind,
    PublishClickEvent,
    PublishClickTool,
    PublishMode,
    UncertaintyDeviation,
)
from src.map.map_image import encode_png, grid_from_image
from src.map.occupancy_grid import GridShapeError, OccupancyGridCodec, OccupancyGridUpdate

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
# Optional map image loaded at startup (e.g. a saved .pgm)
MAP_IMAGE = os.getenv("MAP_IMAGE", "")
MAP_RESOLUTION = float(os.getenv("MAP_RESOLUTION", "0.05"))

# ---------------------------------------------------------------------------
# Global state
# ---------------------------------------------------------------------------
codec = OccupancyGridCodec()
publisher = NavCommandPublisher()
tool = PublishClickTool(
    uncertainty=ConsoleConfig.uncertainty(),
    mode_switch_policy=ConsoleConfig.mode_switch_policy(),
)

_start_time = time.time()


# ---------------------------------------------------------------------------
# Tool callbacks
# ---------------------------------------------------------------------------
def _on_publish(event: PublishClickEvent) -> None:
    """Wrap a completed gesture in its stamped message and send it."""
    topic, message = make_message_for_event(
        event,
        frame_id=ConsoleConfig.FIXED_FRAME,
        topics=ConsoleConfig.topics(),
        deviation=tool.uncertainty,
    )
    if event.pose is not None:
        logger.info(
            "Sending %s on %s (yaw %.1f deg)",
            event.type.value,
            topic,
            math.degrees(yaw_from_orientation(event.pose.orientation)),
        )
    publisher.submit(topic, message)


tool.on_publish(_on_publish)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Console server starting on port %d", ConsoleConfig.CONSOLE_PORT)
    await publisher.connect()

    if MAP_IMAGE:
        try:
            codec.update(grid_from_image(MAP_IMAGE, MAP_RESOLUTION))
            logger.info("Loaded initial map from %s", MAP_IMAGE)
        except (FileNotFoundError, GridShapeError) as e:
            logger.warning("Could not load initial map %s: %s", MAP_IMAGE, e)

    logger.info("Console server ready")
    yield

    tool.stop()
    await publisher.close()
    logger.info("Console server stopped")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(title="navconsole Console Server", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

@app.get("/api/console/status")
async def console_status():
    """Tool state, current map and bus delivery counters."""
    grid = codec.grid
    return {
        "ok": True,
        "uptime_s": round(time.time() - _start_time, 1),
        "tool": {
            "mode": tool.publish_mode.value,
            "state": tool.state.value,
            "active": tool.is_active(),
        },
        "map": {
            "loaded": grid is not None,
            "width": grid.width if grid else 0,
            "height": grid.height if grid else 0,
            "resolution": grid.resolution if grid else 0.0,
            "encodes": codec.encode_count,
        },
        "bus": {
            "connected": publisher.is_connected,
            "published": publisher.published_count,
            "failed": publisher.failed_count,
            "pending": publisher.pending,
        },
    }


# ---------------------------------------------------------------------------
# Click tool
# ---------------------------------------------------------------------------

class PointerRequest(BaseModel):
    kind: PointerEventKind
    point: Optional[PointMsg] = Field(default=None, description="World point, null when picking missed")


class ModeRequest(BaseModel):
    mode: PublishMode


class UncertaintyRequest(BaseModel):
    x: float = Field(ge=0)
    y: float = Field(ge=0)
    theta: float = Field(ge=0)


@app.post("/api/click/start")
async def click_start():
    tool.start()
    return tool.snapshot().to_dict()


@app.post("/api/click/stop")
async def click_stop():
    tool.stop()
    return tool.snapshot().to_dict()


@app.post("/api/click/mode")
async def click_mode(req: ModeRequest):
    return tool.set_publish_mode(req.mode).to_dict()


@app.get("/api/click/uncertainty")
async def get_uncertainty():
    return tool.uncertainty.to_dict()


@app.post("/api/click/uncertainty")
async def set_uncertainty(req: UncertaintyRequest):
    snap = tool.set_uncertainty(UncertaintyDeviation(x=req.x, y=req.y, theta=req.theta))
    return {"uncertainty": tool.uncertainty.to_dict(), "tool": snap.to_dict()}


@app.post("/api/click/pointer")
async def click_pointer(req: PointerRequest):
    """Feed one pointer event; returns the tool state and any published event."""
    point = Point3(req.point.x, req.point.y, req.point.z) if req.point else None
    event = tool.handle_pointer(req.kind, point)
    return {
        "tool": tool.snapshot().to_dict(),
        "published": event.to_dict() if event else None,
    }


@app.get("/api/click/feedback")
async def click_feedback():
    """Marker the scene should draw for the tool."""
    return tool.feedback().to_dict()


@app.get("/api/click/history")
async def click_history():
    """Recently sent navigation messages."""
    return {"messages": list(publisher.history)}


# ---------------------------------------------------------------------------
# Occupancy map
# ---------------------------------------------------------------------------

@app.post("/api/map/grid")
async def post_grid(msg: OccupancyGridMessage):
    """Replace the map with a full OccupancyGrid snapshot."""
    try:
        result = codec.update_from_message(msg)
    except GridShapeError as e:
        return JSONResponse({"ok": False, "error": str(e)}, status_code=422)
    return {
        "ok": True,
        "placement": result.placement.to_dict(),
        "placement_changed": result.placement_changed,
    }


@app.post("/api/map/grid/update")
async def post_grid_update(msg: OccupancyGridUpdateMessage):
    """Apply an OccupancyGridUpdate patch to the current map."""
    try:
        result = codec.apply_update(OccupancyGridUpdate.from_message(msg))
    except GridShapeError as e:
        return JSONResponse({"ok": False, "error": str(e)}, status_code=422)
    return {"ok": True, "placement_changed": result.placement_changed}


@app.get("/api/map/placement")
async def get_placement():
    """World footprint of the map quad."""
    if codec.placement is None:
        return JSONResponse({"error": "No map received yet"}, status_code=404)
    return codec.placement.to_dict()


@app.get("/api/map/raster.png")
async def get_raster():
    """Current map texture as PNG (row 0 = top, already flipped)."""
    if codec.raster is None:
        return JSONResponse({"error": "No map received yet"}, status_code=404)
    return Response(content=encode_png(codec.raster), media_type="image/png")


@app.post("/api/map/clear")
async def clear_map():
    codec.clear()
    return {"ok": True}


@app.get("/")
async def root():
    return {"service": "navconsole Console Server", "port": ConsoleConfig.CONSOLE_PORT}


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(description="navconsole Console Server")
    parser.add_argument("--port", type=int, default=ConsoleConfig.CONSOLE_PORT)
    parser.add_argument("--host", type=str, default=ConsoleConfig.CONSOLE_HOST)
    parser.add_argument("--debug", action="store_true", help="Enable DEBUG-level logging to logs/console.log")
    parser.add_argument("--log-dir", type=str, default=None, help="Custom log output directory (default: logs/)")
    args = parser.parse_args()

    from shared.utils.logging_config import setup_logging
    setup_logging(server_name="console", debug=args.debug, log_dir=args.log_dir)

    uvicorn.run(app, host=args.host, port=args.port, log_level="info")


if __name__ == "__main__":
    main()
