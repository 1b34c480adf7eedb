"""Map image import/export (PGM for saved maps, PNG for the browser texture)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from src.geometry.pose import Pose
from src.map.occupancy_grid import OccupancyGrid, RasterBuffer, decode_raster

logger = logging.getLogger(__name__)


def write_pgm(raster: RasterBuffer, filepath: str | Path) -> bool:
    """Save the raster's intensity channel as a binary PGM (P5)."""
    path = Path(filepath)
    if path.suffix.lower() != ".pgm":
        raise ValueError(f"Map images are saved as .pgm, got {path.name}")
    path.parent.mkdir(parents=True, exist_ok=True)
    ok = bool(cv2.imwrite(str(path), np.ascontiguousarray(raster.gray)))
    if ok:
        logger.info("Saved %dx%d map image to %s", raster.width, raster.height, path)
    else:
        logger.warning("Failed to write map image %s", path)
    return ok


def read_raster(filepath: str | Path) -> RasterBuffer:
    """Load a grayscale map image (PGM/PNG) as an RGBA raster."""
    gray = cv2.imread(str(filepath), cv2.IMREAD_GRAYSCALE)
    if gray is None:
        raise FileNotFoundError(f"Cannot read map image {filepath}")
    return RasterBuffer.from_gray(gray)


def grid_from_image(
    filepath: str | Path,
    resolution: float,
    origin: Optional[Pose] = None,
) -> OccupancyGrid:
    """Seed an occupancy grid from a map image written by ``write_pgm``."""
    return decode_raster(read_raster(filepath), resolution, origin)


def encode_png(raster: RasterBuffer) -> bytes:
    """PNG bytes of the RGBA raster, as served to the browser texture loader."""
    bgra = cv2.cvtColor(raster.pixels, cv2.COLOR_RGBA2BGRA)
    ok, buf = cv2.imencode(".png", bgra)
    if not ok:
        raise RuntimeError("PNG encoding failed")
    return buf.tobytes()
