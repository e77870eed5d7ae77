"""
PyFastSort - GPU bitonic sorting of fixed-layout records with Taichi.

Sorts a large device array of records (a numeric key plus an arbitrary
payload) by key, entirely on the device, with a hybrid local/global bitonic
sorting network. It is the particle sorting stage of an SPH fluid simulation:
particles are keyed by the grid cell that contains them and sorted every step
so that neighbour search walks contiguous memory.

Key Features:
- Local phase: each chunk of LOCAL_SIZE records is sorted by the workgroup
  owning it, in one launch
- Global phase: rounds that cross chunks run as one launch each, the launch
  boundary being the only barrier across workgroups
- Any record layout: key and payload members are separate device fields moved
  together by the comparator
- Sequential reference implementation of the same network for validation
- Field pooling for the record buffers and scratch counters

Core Components:
- bitonic: network index algebra, local/global executors, stage scheduler,
  reference sorter
- records: record layouts and device record buffers
- particles: SPH particle layout helpers and cell keys
- pool: device field pooling
- environment: constants validation and device requirements
- constants: compile-time parameters (LOCAL_SIZE, pass sizes)

Basic Usage:
    import numpy as np
    import taichi as ti
    import pyfastsort as ps

    ti.init(ti.gpu)
    ps.environment.initialise(ps.records.PARTICLE_LAYOUT)

    host = ps.particles.random_particles(1 << 16, seed=0)
    records = ps.particles.particle_buffer(host)
    ps.particles.assign_cell_keys(records, cell_size=1 / 32, grid_res=(32, 32, 32))
    ps.bitonic.sort(records)

    assert records.is_sorted()
    sorted_particles = records.to_numpy()

Constraints:
The number of records sorted must be a power of two and at least LOCAL_SIZE
(1024 by default). The sort is not stable.
"""

__version__ = "0.1.0"

from . import constants
from . import pool
from . import records
from . import bitonic
from . import particles
from . import environment

__all__ = [
    "constants",
    "pool",
    "records",
    "bitonic",
    "particles",
    "environment"
]
