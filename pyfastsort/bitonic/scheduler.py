"""
Stage Scheduler

Turns a record count into the ordered list of kernel launches of the hybrid
local/global bitonic sort, and issues them. The scheduler only computes
exponents and launch sizes: it never reads or writes records itself.

For N = 2^k records and chunks of LOCAL_SIZE = 2^s records:

    local_sort(k)                                  # phase 0, N/LOCAL_SIZE sorted runs
    for t in k-s-1 .. 0:                           # merged block height 2^(k-t) = 2L .. N
        flip_global(k, t)
        for q in k-t-1 .. s+1:                     # disperse blocks still wider than a chunk
            disperse_global(k, q)
        local_disperse(k)                          # heights L .. 2, inside each chunk

Every launch is a full barrier for the next one. Each launch gets a fresh
StageParams value: there is no shared parameter state between launches.

Usage:
    import pyfastsort as ps

    records = ps.records.RecordBuffer.from_numpy(host)
    ps.bitonic.sort(records)            # whole buffer
    ps.bitonic.sort(records, 4096)      # first 4096 records only

    sorter = ps.bitonic.BitonicSorter(records)
    for dispatch in ps.bitonic.plan_stages(records.capacity):
        print(dispatch)
"""

import logging
import operator
from typing import NamedTuple, Optional

import taichi as ti

from .. import constants as cte
from .. import environment
from . import network as net
from .local_phase import LocalExecutor
from .global_phase import GlobalExecutor

logger = logging.getLogger("pyfastsort")


LOCAL_SORT = "local_sort"
FLIP_GLOBAL = "flip_global"
DISPERSE_GLOBAL = "disperse_global"
LOCAL_DISPERSE = "local_disperse"


class StageParams(NamedTuple):
    """Parameter block of one launch: k = log2(N), e = t (flip) or q (disperse)."""
    k: int
    e: int = 0


class Dispatch(NamedTuple):
    """
    One planned kernel launch.

    Attributes:
        entry: LOCAL_SORT, FLIP_GLOBAL, DISPERSE_GLOBAL or LOCAL_DISPERSE
        params: StageParams passed with the launch
        workgroups: number of workgroups the launch covers
    """
    entry: str
    params: StageParams
    workgroups: int

    def rounds(self, shift):
        """
        Network rounds (see network.network_rounds) this launch performs,
        given chunks of 2^shift records.
        """
        k, e = self.params
        if self.entry == LOCAL_SORT:
            return net.network_rounds(shift)
        if self.entry == LOCAL_DISPERSE:
            return [(net.DISPERSE, d) for d in range(shift - 1, -1, -1)]
        if self.entry == FLIP_GLOBAL:
            return [(net.FLIP, k - e - 1)]
        return [(net.DISPERSE, e - 1)]


def check_count(n):
    """
    Validate a record count.

    Returns:
        int: k = log2(n)

    Raises:
        ValueError: n is not a power of two or is smaller than LOCAL_SIZE
    """
    if isinstance(n, bool):
        raise ValueError(f"Record count must be an integer, got {n!r}")
    try:
        n = operator.index(n)
    except TypeError:
        raise ValueError(f"Record count must be an integer, got {n!r}") from None
    if n < 1 or n & (n - 1):
        raise ValueError(f"Record count must be a power of two, got {n}")
    if n < cte.LOCAL_SIZE:
        raise ValueError(f"Record count must be at least LOCAL_SIZE={cte.LOCAL_SIZE}, got {n}")
    return n.bit_length() - 1


def plan_stages(n):
    """
    Ordered list of Dispatch for sorting n records.

    Raises:
        ValueError: see check_count
    """
    k = check_count(n)
    n = 1 << k
    s = cte.local_shift()
    local_groups = n >> s
    global_groups = max(1, (n >> 1) // cte.GLOBAL_PASS_SIZE)

    plan = [Dispatch(LOCAL_SORT, StageParams(k), local_groups)]
    for t in range(k - s - 1, -1, -1):
        plan.append(Dispatch(FLIP_GLOBAL, StageParams(k, t), global_groups))
        for q in range(k - t - 1, s, -1):
            plan.append(Dispatch(DISPERSE_GLOBAL, StageParams(k, q), global_groups))
        plan.append(Dispatch(LOCAL_DISPERSE, StageParams(k), local_groups))
    return plan


class BitonicSorter:
    """
    Issues the hybrid bitonic sort on one RecordBuffer.

    The executors (and their kernels) are bound to the buffer at construction,
    so device-side setup problems surface here rather than in the middle of a
    sort. The sorter keeps no state between two sorts besides the count of
    launches issued by the last call.

    Args:
        records: RecordBuffer to sort in place

    Raises:
        RuntimeError: the buffer was released
        ValueError: inconsistent LOCAL_SIZE / pass size constants
    """

    def __init__(self, records):
        if getattr(records, "released", False):
            raise RuntimeError("Cannot sort a released record buffer")
        environment.check_constants()
        self.records = records
        self.local = LocalExecutor(records)
        self.glob = GlobalExecutor(records)
        self.dispatch_count = 0

    def _resolve_count(self, count):
        if count is None:
            count = self.records.capacity
        count = 1 << check_count(count)
        if count > self.records.capacity:
            raise ValueError(f"Record count {count} exceeds the buffer capacity {self.records.capacity}")
        return count

    def _issue(self, dispatch):
        k, e = dispatch.params
        logger.debug("dispatch %s k=%d e=%d workgroups=%d", dispatch.entry, k, e, dispatch.workgroups)
        if dispatch.entry == LOCAL_SORT:
            self.local.sort_chunks(k)
        elif dispatch.entry == LOCAL_DISPERSE:
            self.local.disperse_chunks(k)
        elif dispatch.entry == FLIP_GLOBAL:
            self.glob.flip_global(k, e)
        elif dispatch.entry == DISPERSE_GLOBAL:
            self.glob.disperse_global(k, e)
        else:
            raise ValueError(f"Unknown dispatch entry '{dispatch.entry}'")
        self.dispatch_count += 1

    def run(self, plan):
        """Issue a list of Dispatch in order, then wait for the device."""
        self.records._check_alive()
        self.dispatch_count = 0
        for dispatch in plan:
            self._issue(dispatch)
        ti.sync()

    def run_local_phase(self, count: Optional[int] = None):
        """
        Phase 0 only: sort each LOCAL_SIZE chunk of the first `count` records.
        """
        count = self._resolve_count(count)
        self.run(plan_stages(count)[:1])

    def sort(self, count: Optional[int] = None):
        """
        Sort the first `count` records (whole buffer by default) by key,
        non-decreasing. Returns once the device has completed.

        Raises:
            ValueError: count is not a power of two, is below LOCAL_SIZE or
                exceeds the buffer capacity. Nothing is launched.
        """
        count = self._resolve_count(count)
        plan = plan_stages(count)
        self.run(plan)
        logger.info("sorted %d records in %d dispatches", count, self.dispatch_count)


def sort(records, count: Optional[int] = None):
    """
    Sort a RecordBuffer in place by key.

    The BitonicSorter is kept on the buffer so that kernels compile once.

    Args:
        records: RecordBuffer
        count: number of leading records to sort, power of two >= LOCAL_SIZE
            (default: the buffer capacity)
    """
    sorter = getattr(records, "_sorter", None)
    if sorter is None:
        sorter = BitonicSorter(records)
        records._sorter = sorter
    sorter.sort(count)
    return records
