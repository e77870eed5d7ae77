"""
Spatial keys for SPH particles.

The fluid solver looks up neighbours cell by cell on a uniform grid, which
requires the particles to be stored sorted by the index of the cell that
contains them. assign_cell_keys writes that index into the key of every
particle; the bitonic sort then groups the particles of a cell together.

Cell index: x + res_x * (y + res_y * z), with the cell coordinates
floor(pos / cell_size) clamped to the grid.
"""

import numpy as np
import taichi as ti

from .records import PARTICLE_LAYOUT, RecordBuffer


@ti.kernel
def _cell_keys(key: ti.template(), pos: ti.template(), count: ti.i32, cell_size: ti.f32,
               res_x: ti.i32, res_y: ti.i32, res_z: ti.i32):
    for i in range(count):
        c = ti.floor(pos[i] / cell_size, ti.i32)
        cx = ti.min(ti.max(c[0], 0), res_x - 1)
        cy = ti.min(ti.max(c[1], 0), res_y - 1)
        cz = ti.min(ti.max(c[2], 0), res_z - 1)
        key[i] = ti.u32(cx + res_x * (cy + res_y * cz))


def assign_cell_keys(records, cell_size, grid_res, count=None):
    """
    Set each particle key to the linear index of its grid cell.

    Args:
        records: RecordBuffer with a uint32 key and a 3-component `pos` member
        cell_size: edge length of a grid cell
        grid_res: (res_x, res_y, res_z) cells per axis
        count: number of leading records to update (all by default)

    Raises:
        ValueError: layout without `pos`, non-uint32 key or empty grid
    """
    if "pos" not in records.layout.payload or records.layout.payload["pos"][1] != 3:
        raise ValueError("Records need a 3-component 'pos' member")
    if records.layout.key != np.dtype(np.uint32):
        raise ValueError("Cell keys are uint32")
    res_x, res_y, res_z = (int(r) for r in grid_res)
    if min(res_x, res_y, res_z) < 1 or cell_size <= 0:
        raise ValueError(f"Invalid grid: res={grid_res}, cell_size={cell_size}")

    count = records.capacity if count is None else count
    pos = records.payload[records.payload_names.index("pos")]
    _cell_keys(records.key, pos, count, cell_size, res_x, res_y, res_z)


def random_particles(count, extent=1.0, seed=None):
    """
    Structured host array of `count` particles uniformly spread in a cube of
    side `extent`, with zero velocity and forces and unit density.
    """
    rng = np.random.default_rng(seed)
    particles = np.zeros(count, dtype=PARTICLE_LAYOUT.numpy_dtype)
    particles["pos"] = rng.random((count, 3), dtype=np.float32) * extent
    particles["density"] = 1.0
    return particles


def particle_buffer(particles):
    """Upload a structured particle array into a new RecordBuffer."""
    return RecordBuffer.from_numpy(particles, PARTICLE_LAYOUT)
