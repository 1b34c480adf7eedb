"""Occupancy grid <-> RGBA raster codec.

Occupancy grids are row-major with row 0 at the *bottom* of the mapped area
(nav_msgs/OccupancyGrid convention). Rasters are row-major with row 0 at the
*top*. Every encode and decode therefore flips rows: grid cell (x, y) lives
at raster row ``height - 1 - y``, column ``x``.

Cell values: -1 unknown, 0 free, 100 occupied, 1..99 occupancy probability.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence

import numpy as np

from src.geometry.pose import Orientation, Point3, Pose

logger = logging.getLogger(__name__)

UNKNOWN_CELL = -1
FREE_CELL = 0
OCCUPIED_CELL = 100

UNKNOWN_INTENSITY = 128
FREE_INTENSITY = 255
OCCUPIED_INTENSITY = 0
OPAQUE = 255


class GridShapeError(ValueError):
    """Grid or patch dimensions or cell data cannot form a valid grid."""
    pass


_CELL_MIN, _CELL_MAX = int(np.iinfo(np.int16).min), int(np.iinfo(np.int16).max)


def _cell_array(values) -> np.ndarray:
    """Flatten *values* into int16 cells, rejecting anything int16 cannot hold."""
    try:
        wide = np.asarray(values, dtype=np.int64).ravel()
    except (OverflowError, TypeError, ValueError) as e:
        raise GridShapeError(f"Invalid cell data: {e}") from e
    if wide.size and (wide.min() < _CELL_MIN or wide.max() > _CELL_MAX):
        raise GridShapeError(
            f"Cell values must lie in [{_CELL_MIN}, {_CELL_MAX}], "
            f"got [{int(wide.min())}, {int(wide.max())}]"
        )
    return wide.astype(np.int16)


@dataclass(eq=False)
class OccupancyGrid:
    """Immutable occupancy grid snapshot.

    ``cells`` is stored as a read-only int16 array of ``width * height``
    values; build a new grid (or use ``with_cells``) instead of editing it.
    """

    width: int
    height: int
    resolution: float
    origin: Pose = field(default_factory=Pose)
    cells: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int16))

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise GridShapeError(f"Negative grid size {self.width}x{self.height}")
        if not self.resolution > 0:
            raise GridShapeError(f"Resolution must be positive, got {self.resolution}")
        cells = _cell_array(self.cells)
        expected = self.width * self.height
        if cells.size != expected:
            raise GridShapeError(
                f"Grid {self.width}x{self.height} needs {expected} cells, got {cells.size}"
            )
        cells.flags.writeable = False
        self.cells = cells

    @classmethod
    def from_message(cls, msg) -> OccupancyGrid:
        """Build from an ``OccupancyGridMessage`` (or anything shaped like one)."""
        info = msg.info
        origin = Pose(
            position=Point3(
                info.origin.position.x, info.origin.position.y, info.origin.position.z
            ),
            orientation=Orientation(
                info.origin.orientation.x,
                info.origin.orientation.y,
                info.origin.orientation.z,
                info.origin.orientation.w,
            ),
        )
        return cls(
            width=info.width,
            height=info.height,
            resolution=info.resolution,
            origin=origin,
            cells=msg.data,
        )

    def as_2d(self) -> np.ndarray:
        """(height, width) view, row 0 = bottom of the map."""
        return self.cells.reshape(self.height, self.width)

    def cell(self, x: int, y: int) -> int:
        return int(self.cells[y * self.width + x])

    def with_cells(self, cells: np.ndarray) -> OccupancyGrid:
        return replace(self, cells=cells)

    def geometry_key(self) -> tuple:
        """Everything that affects where the map sits in the world."""
        return (self.width, self.height, self.resolution, self.origin)


@dataclass
class OccupancyGridUpdate:
    """Rectangular patch of cells, (x, y) is its bottom-left cell in the grid."""

    x: int
    y: int
    width: int
    height: int
    cells: Sequence[int]

    @classmethod
    def from_message(cls, msg) -> OccupancyGridUpdate:
        return cls(x=msg.x, y=msg.y, width=msg.width, height=msg.height, cells=msg.data)


@dataclass(eq=False)
class RasterBuffer:
    """RGBA pixels shaped (height, width, 4), row 0 at the top."""

    width: int
    height: int
    pixels: np.ndarray

    @classmethod
    def empty(cls, width: int, height: int) -> RasterBuffer:
        return cls(width, height, np.zeros((height, width, 4), dtype=np.uint8))

    @classmethod
    def from_gray(cls, gray: np.ndarray) -> RasterBuffer:
        gray = np.asarray(gray, dtype=np.uint8)
        if gray.ndim != 2:
            raise GridShapeError(f"Expected a 2-D grayscale image, got shape {gray.shape}")
        h, w = gray.shape
        raster = cls.empty(w, h)
        raster.pixels[..., :3] = gray[..., None]
        raster.pixels[..., 3] = OPAQUE
        return raster

    @property
    def gray(self) -> np.ndarray:
        """Intensity channel (the raster is grayscale, R == G == B)."""
        return self.pixels[..., 0]

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()


@dataclass(frozen=True)
class MapPlacement:
    """World footprint of the rendered map quad."""

    width_m: float
    height_m: float
    center: Point3
    orientation: Orientation

    def to_dict(self) -> dict:
        return {
            "width_m": self.width_m,
            "height_m": self.height_m,
            "center": self.center.to_dict(),
            "orientation": self.orientation.to_dict(),
        }


@dataclass
class EncodeResult:
    raster: RasterBuffer
    placement: MapPlacement
    placement_changed: bool


def cell_intensities(cells: np.ndarray) -> np.ndarray:
    """Map occupancy values to 8-bit intensities.

    -1 -> 128, 0 -> 255, 100 -> 0, 0 < v < 100 -> floor(255 - v/100 * 255).
    Values outside [-1, 100] render as unknown.
    """
    v = np.asarray(cells, dtype=np.int32)
    out = np.full(v.shape, UNKNOWN_INTENSITY, dtype=np.uint8)
    known = (v >= FREE_CELL) & (v <= OCCUPIED_CELL)
    # Integer form of floor(255 - v * 255 / 100), free of float rounding
    out[known] = (255 - (v[known] * 255 + 99) // 100).astype(np.uint8)

    invalid = ~known & (v != UNKNOWN_CELL)
    if invalid.any():
        logger.debug("%d cells outside [-1, 100] rendered as unknown", int(invalid.sum()))
    return out


def intensities_to_cells(gray: np.ndarray) -> np.ndarray:
    """Inverse of ``cell_intensities``: 128 -> -1, otherwise nearest occupancy."""
    g = np.asarray(gray, dtype=np.int32)
    occupancy = np.clip(np.rint((255 - g) * 100.0 / 255.0), FREE_CELL, OCCUPIED_CELL)
    return np.where(g == UNKNOWN_INTENSITY, UNKNOWN_CELL, occupancy).astype(np.int16)


def compute_placement(grid: OccupancyGrid) -> MapPlacement:
    """Footprint ``width*resolution x height*resolution`` centred at origin + half extent."""
    width_m = grid.width * grid.resolution
    height_m = grid.height * grid.resolution
    origin = grid.origin.position
    center = Point3(origin.x + width_m / 2.0, origin.y + height_m / 2.0, origin.z)
    return MapPlacement(
        width_m=width_m,
        height_m=height_m,
        center=center,
        orientation=grid.origin.orientation,
    )


def encode_grid(grid: OccupancyGrid, out: Optional[RasterBuffer] = None) -> RasterBuffer:
    """Encode *grid* into an RGBA raster, flipping rows.

    If *out* has matching dimensions its pixel array is overwritten in place.
    """
    if out is None or out.pixels.shape != (grid.height, grid.width, 4):
        out = RasterBuffer.empty(grid.width, grid.height)

    gray = cell_intensities(grid.as_2d())[::-1]
    out.pixels[..., :3] = gray[..., None]
    out.pixels[..., 3] = OPAQUE
    return out


def decode_raster(
    raster: RasterBuffer,
    resolution: float,
    origin: Optional[Pose] = None,
) -> OccupancyGrid:
    """Rebuild an occupancy grid from a raster produced by ``encode_grid``."""
    cells = intensities_to_cells(raster.gray[::-1])
    return OccupancyGrid(
        width=raster.width,
        height=raster.height,
        resolution=resolution,
        origin=origin or Pose(),
        cells=cells.ravel(),
    )


class OccupancyGridCodec:
    """Keeps the current grid, its raster and its placement in step.

    Full snapshots go through ``update``; partial cell changes through
    ``apply_update``. The raster's pixel array is reused between updates of
    the same size, so consumers that keep a frame must copy it. A rejected
    update leaves the last good grid, raster and placement untouched.

    Not thread-safe: callers serialize access.
    """

    def __init__(self):
        self._grid: Optional[OccupancyGrid] = None
        self._raster: Optional[RasterBuffer] = None
        self._placement: Optional[MapPlacement] = None
        self._geometry_key: Optional[tuple] = None
        self.encode_count: int = 0

    @property
    def grid(self) -> Optional[OccupancyGrid]:
        return self._grid

    @property
    def raster(self) -> Optional[RasterBuffer]:
        return self._raster

    @property
    def placement(self) -> Optional[MapPlacement]:
        return self._placement

    def update(self, grid: OccupancyGrid) -> EncodeResult:
        """Replace the current grid with *grid* and re-encode."""
        if grid.cells.size != grid.width * grid.height:
            logger.warning("Rejected grid %dx%d with %d cells", grid.width, grid.height, grid.cells.size)
            raise GridShapeError(
                f"Grid {grid.width}x{grid.height} needs {grid.width * grid.height} cells, "
                f"got {grid.cells.size}"
            )

        self._raster = encode_grid(grid, out=self._raster)
        self._grid = grid
        self.encode_count += 1

        key = grid.geometry_key()
        placement_changed = key != self._geometry_key
        if placement_changed:
            self._placement = compute_placement(grid)
            self._geometry_key = key
            logger.info(
                "Map geometry %dx%d @ %.3f m/cell, footprint %.2f x %.2f m",
                grid.width,
                grid.height,
                grid.resolution,
                self._placement.width_m,
                self._placement.height_m,
            )

        return EncodeResult(self._raster, self._placement, placement_changed)

    def update_from_message(self, msg) -> EncodeResult:
        try:
            grid = OccupancyGrid.from_message(msg)
        except GridShapeError as e:
            logger.warning("Rejected grid message: %s", e)
            raise
        return self.update(grid)

    def apply_update(self, patch: OccupancyGridUpdate) -> EncodeResult:
        """Overwrite a rectangle of cells and re-encode only those pixels."""
        if self._grid is None or self._raster is None:
            raise GridShapeError("Cannot apply a cell update before the first full grid")

        grid = self._grid
        cells = _cell_array(patch.cells)
        if patch.x < 0 or patch.y < 0 or patch.width < 0 or patch.height < 0:
            raise GridShapeError(f"Negative patch bounds ({patch.x}, {patch.y}, {patch.width}, {patch.height})")
        if patch.x + patch.width > grid.width or patch.y + patch.height > grid.height:
            logger.warning(
                "Rejected patch %dx%d at (%d, %d) outside %dx%d grid",
                patch.width, patch.height, patch.x, patch.y, grid.width, grid.height,
            )
            raise GridShapeError(
                f"Patch {patch.width}x{patch.height} at ({patch.x}, {patch.y}) "
                f"exceeds grid {grid.width}x{grid.height}"
            )
        if cells.size != patch.width * patch.height:
            logger.warning("Rejected patch %dx%d with %d cells", patch.width, patch.height, cells.size)
            raise GridShapeError(
                f"Patch {patch.width}x{patch.height} needs {patch.width * patch.height} cells, "
                f"got {cells.size}"
            )

        block = cells.reshape(patch.height, patch.width)
        merged = grid.as_2d().copy()
        merged[patch.y:patch.y + patch.height, patch.x:patch.x + patch.width] = block
        self._grid = grid.with_cells(merged.ravel())

        # Grid rows y..y+h-1 land on raster rows H-y-h..H-y-1, reversed
        top = grid.height - patch.y - patch.height
        bottom = grid.height - patch.y
        gray = cell_intensities(block)[::-1]
        region = self._raster.pixels[top:bottom, patch.x:patch.x + patch.width]
        region[..., :3] = gray[..., None]
        region[..., 3] = OPAQUE
        self.encode_count += 1

        return EncodeResult(self._raster, self._placement, False)

    def clear(self) -> None:
        self._grid = None
        self._raster = None
        self._placement = None
        self._geometry_key = None
