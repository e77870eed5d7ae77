"""
Hybrid Local/Global Bitonic Sort

Sorts a device array of records by key with a bitonic sorting network split in
two tiers:

    - local phase: rounds whose blocks fit in one chunk of LOCAL_SIZE records
      run inside the workgroup owning the chunk (LocalExecutor)
    - global phase: rounds whose blocks span several chunks run as one kernel
      launch each, launches being the only barrier across workgroups
      (GlobalExecutor)

The StageScheduler (plan_stages / BitonicSorter / sort) decides which tier runs
each round and issues the launches in order. reference_sort replays the same
network sequentially on numpy arrays and serves as a test oracle.

Example Usage:
    ```python
    import numpy as np
    import taichi as ti
    import pyfastsort as ps

    ti.init(ti.gpu)

    keys = np.random.rand(1 << 16).astype(np.float32)
    records = ps.records.RecordBuffer.from_numpy(keys)
    ps.bitonic.sort(records)
    assert records.is_sorted()

    oracle = ps.bitonic.reference_sort(keys.copy())
    ```
"""

from .network import network_rounds, round_pairs, FLIP, DISPERSE
from .local_phase import LocalExecutor
from .global_phase import GlobalExecutor
from .scheduler import (
    StageParams,
    Dispatch,
    BitonicSorter,
    check_count,
    plan_stages,
    sort,
    LOCAL_SORT,
    FLIP_GLOBAL,
    DISPERSE_GLOBAL,
    LOCAL_DISPERSE
)
from .reference import reference_sort, is_sorted, compare_and_swap

__all__ = [
    'network_rounds',
    'round_pairs',
    'FLIP',
    'DISPERSE',
    'LocalExecutor',
    'GlobalExecutor',
    'StageParams',
    'Dispatch',
    'BitonicSorter',
    'check_count',
    'plan_stages',
    'sort',
    'LOCAL_SORT',
    'FLIP_GLOBAL',
    'DISPERSE_GLOBAL',
    'LOCAL_DISPERSE',
    'reference_sort',
    'is_sorted',
    'compare_and_swap'
]
