"""
Local-Phase Executor

Sorts every chunk of LOCAL_SIZE consecutive records independently, in a single
kernel launch. A chunk is owned by one workgroup: it performs all the rounds of
its part of the network in order, and the end of a round is the barrier that
makes its writes visible to the next one. No chunk ever reads another chunk,
so the launch needs no synchronisation across workgroups.

Two entry points:
    sort_chunks(k):     full local network (flip + disperse cascade for every
                        block height 2 .. LOCAL_SIZE). Turns unsorted chunks
                        into N / LOCAL_SIZE sorted runs.
    disperse_chunks(k): disperse rounds for block heights LOCAL_SIZE .. 2 only.
                        Finishes a merge once the global passes have brought
                        the remaining disperse block height down to one chunk.

The workgroup is emulated by a single lane: the outer loop of the launch runs
one chunk per lane (block_dim=1), and that lane walks the LOCAL_SIZE / 2
comparators of each round in sequence. This is the fork-join-per-chunk mapping
of the on-chip workgroup model and is valid on every Taichi backend, at the
cost of parallelism when there are few chunks (one thread at N = LOCAL_SIZE).
"""

import taichi as ti
from .. import constants as cte
from . import network as net


@ti.data_oriented
class LocalExecutor:
    """
    Local-phase kernels bound to one RecordBuffer.

    Args:
        records: RecordBuffer to sort in place
    """

    def __init__(self, records):
        self.records = records
        # Frozen here: the kernels embed them when they compile
        self.shift = cte.local_shift()
        self.pass_size = 1 << (self.shift - 1)

    def workgroups(self, k):
        """Number of workgroups (chunks) for 2^k records."""
        return (1 << k) >> self.shift

    def _check_k(self, k, op):
        if k < self.shift or (1 << k) > self.records.capacity:
            raise ValueError(
                f"{op}: 2^{k} records must span whole chunks of 2^{self.shift}"
                f" and fit in the buffer capacity {self.records.capacity}"
            )

    @ti.func
    def _flip_round(self, base, e):
        for lane in range(self.pass_size):
            self.records.compare_and_swap(base + net.flip_low(lane, e), base + net.flip_high(lane, e))

    @ti.func
    def _disperse_round(self, base, e):
        for lane in range(self.pass_size):
            self.records.compare_and_swap(base + net.disperse_low(lane, e), base + net.disperse_high(lane, e))

    @ti.kernel
    def _sort_chunks(self, k: ti.i32):
        ti.loop_config(block_dim=1)
        for chunk in range((1 << k) >> self.shift):
            base = chunk << self.shift
            for e in range(self.shift):
                self._flip_round(base, e)
                d = e - 1
                while d >= 0:
                    self._disperse_round(base, d)
                    d -= 1

    @ti.kernel
    def _disperse_chunks(self, k: ti.i32):
        ti.loop_config(block_dim=1)
        for chunk in range((1 << k) >> self.shift):
            base = chunk << self.shift
            d = self.shift - 1
            while d >= 0:
                self._disperse_round(base, d)
                d -= 1

    def sort_chunks(self, k):
        """
        Full bitonic sort of each chunk.

        Args:
            k: log2 of the record count

        Raises:
            ValueError: 2^k is below LOCAL_SIZE or above the buffer capacity
        """
        self._check_k(k, "sort_chunks")
        self._sort_chunks(k)

    def disperse_chunks(self, k):
        """
        Disperse cascade of each chunk, block heights LOCAL_SIZE down to 2.

        Args:
            k: log2 of the record count

        Raises:
            ValueError: 2^k is below LOCAL_SIZE or above the buffer capacity
        """
        self._check_k(k, "disperse_chunks")
        self._disperse_chunks(k)
