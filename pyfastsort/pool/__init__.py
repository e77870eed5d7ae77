"""
Device Field Pooling for PyFastSort.

Record buffers are structure-of-arrays: one Taichi field per record member.
Sorting the same particle count every frame would otherwise allocate and free
the same set of fields over and over, so fields are recycled through a pool
keyed by (dtype, components, shape).

Core Classes:
- PooledField: one Taichi field with its own snodetree and usage flag
- FieldPool: the pool manager

Pool Management Functions:
- get_temp_field: acquire a field from the global pool
- release_temp_field: return a field to the global pool
- temp_field: same as get_temp_field, meant for a with statement
- pool_stats: total / in_use / available counts
- clear_pool: destroy released fields and free device memory

Usage:
    import pyfastsort as ps
    import taichi as ti

    ti.init(ti.gpu)

    with ps.pool.temp_field(ti.i32, ()) as counter:
        counter.field[None] = 0
        ...

    keys = ps.pool.get_temp_field(ti.f32, (4096,))
    try:
        ...
    finally:
        ps.pool.release_temp_field(keys)
"""

from .pool import (
    PooledField,
    FieldPool,
    get_temp_field,
    release_temp_field,
    pool_stats,
    clear_pool,
    temp_field,
    fieldpool
)

__all__ = [
    "PooledField",
    "FieldPool",
    "get_temp_field",
    "release_temp_field",
    "pool_stats",
    "clear_pool",
    "temp_field",
    "fieldpool"
]
