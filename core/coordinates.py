"""
core.coordinates

Pure conversions between the editor's coordinate spaces:

- beat position  <-> normalized screen offset (0..100, percent)
- offset (x, y)  <-> placement-grid cell (row 0 at the bottom)
- grid cell      <-> world position of the cell center
- pointer drag   ->  discrete cut direction
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from core.entity_models import NUM_COLS, NUM_ROWS, Direction

Vector3 = Tuple[float, float, float]


@dataclass(frozen=True)
class GridCell:
    row_index: int
    col_index: int


@dataclass(frozen=True)
class PointerPosition:
    """Page coordinates; y grows downward."""
    x: float
    y: float


def normalize(
    value: float,
    cur_min: float,
    cur_max: float,
    new_min: float,
    new_max: float,
) -> float:
    """Linear map of `value` from [cur_min, cur_max] to [new_min, new_max]. Not clipped."""
    if cur_max == cur_min:
        raise ValueError("normalize() needs a non-empty source range")
    ratio = (value - cur_min) / (cur_max - cur_min)
    return new_min + ratio * (new_max - new_min)


def beat_to_offset(beat_num: float, start_beat: float, num_beats_to_show: float) -> float:
    """
    Percentage [0, 100] of the visible window. Beats outside the window
    extrapolate linearly; callers clip.
    """
    return normalize(beat_num, start_beat, start_beat + num_beats_to_show, 0.0, 100.0)


def offset_to_beat(offset: float, start_beat: float, num_beats_to_show: float) -> float:
    return normalize(offset, 0.0, 100.0, start_beat, start_beat + num_beats_to_show)


def _offset_to_index(offset: float, count: int) -> int:
    idx = int(math.floor(offset / 100.0 * count))
    return max(0, min(count - 1, idx))


def offset_to_grid_cell(x_offset: float, y_offset: float) -> GridCell:
    """
    (x, y) percentages over the grid area -> cell. y is measured from the
    bottom edge. Offsets past an edge land in the edge cell.
    """
    return GridCell(
        row_index=_offset_to_index(y_offset, NUM_ROWS),
        col_index=_offset_to_index(x_offset, NUM_COLS),
    )


def grid_cell_to_offset(cell: GridCell) -> Tuple[float, float]:
    """Center of `cell` as (x, y) percentages."""
    x = (cell.col_index + 0.5) / NUM_COLS * 100.0
    y = (cell.row_index + 0.5) / NUM_ROWS * 100.0
    return x, y


def grid_cell_to_world_position(cell: GridCell, width: float, origin: Sequence[float]) -> Vector3:
    """
    World-space center of a grid cell. The grid is `width` wide, four
    square cells across, centered on `origin`.
    """
    cell_size = width / NUM_COLS
    return (
        origin[0] - cell_size * 1.5 + cell.col_index * cell_size,
        origin[1] - cell_size * 1 + cell.row_index * cell_size,
        origin[2],
    )


def world_position_to_grid_cell(position: Sequence[float], width: float, origin: Sequence[float]) -> GridCell:
    """Inverse of grid_cell_to_world_position (nearest cell, clamped to the grid)."""
    cell_size = width / NUM_COLS
    if cell_size <= 0:
        raise ValueError("width must be positive")
    col = round((position[0] - origin[0] + cell_size * 1.5) / cell_size)
    row = round((position[1] - origin[1] + cell_size * 1) / cell_size)
    return GridCell(
        row_index=max(0, min(NUM_ROWS - 1, int(row))),
        col_index=max(0, min(NUM_COLS - 1, int(col))),
    )


# counter-clockwise from "right", one 45-degree sector each
_SECTORS: Tuple[Direction, ...] = (
    Direction.right,
    Direction.upRight,
    Direction.up,
    Direction.upLeft,
    Direction.left,
    Direction.downLeft,
    Direction.down,
    Direction.downRight,
)


def get_direction_for_drag(
    initial: PointerPosition,
    current: PointerPosition,
    threshold: float = 10.0,
) -> Optional[Direction]:
    """
    Discrete direction of a drag, or None while the pointer is still within
    `threshold` pixels of where it was pressed.
    """
    delta_x = current.x - initial.x
    delta_y = current.y - initial.y

    distance = math.hypot(delta_x, delta_y)
    if distance == 0 or distance < threshold:
        return None

    # screen y grows downward; flip so "up" is a positive angle
    angle = math.degrees(math.atan2(-delta_y, delta_x)) % 360.0
    sector = int(((angle + 22.5) % 360.0) // 45.0)
    return _SECTORS[sector]
