"""
Global-Phase Executor

Performs the rounds of the network whose blocks span more than one chunk. The
two records of a comparator then belong to different workgroups, and there is
no barrier across workgroups inside a launch: each round is therefore its own
kernel launch, working directly on the record fields in device memory, and the
next round only starts once the launch before it is complete (kernels issued
in sequence on the same runtime are ordered).

Operations (k = log2 of the record count):
    flip_global(k, t):     2^t blocks of height 2^(k-t); each block's upper
                           half is compared, mirrored, against its lower half.
    disperse_global(k, q): blocks of height 2^q; upper half compared against
                           the lower half at distance 2^(q-1).

Both launch 2^(k-1) comparator lanes, GLOBAL_PASS_SIZE lanes per workgroup.
A block height <= LOCAL_SIZE is refused: such a round belongs to the local
phase, which runs it inside the workgroup that owns the chunk. So are blocks
taller than 2^k and a 2^k larger than the buffer, before anything is launched.
"""

import taichi as ti
from .. import constants as cte
from . import network as net


@ti.data_oriented
class GlobalExecutor:
    """
    Global-phase kernels bound to one RecordBuffer.

    Args:
        records: RecordBuffer to sort in place
    """

    def __init__(self, records):
        self.records = records
        self.shift = cte.local_shift()
        self.pass_size = cte.GLOBAL_PASS_SIZE

    def workgroups(self, k):
        """Workgroups of one global launch for 2^k records (at least one)."""
        return max(1, (1 << (k - 1)) // self.pass_size)

    def _check_height(self, k, height_exp, op):
        if k < 1 or (1 << k) > self.records.capacity:
            raise ValueError(f"{op}: 2^{k} records do not fit in the buffer capacity {self.records.capacity}")
        if height_exp > k:
            raise ValueError(f"{op}: block height 2^{height_exp} exceeds the 2^{k} records being sorted")
        if height_exp <= self.shift:
            raise ValueError(
                f"{op}: block height 2^{height_exp} fits in one chunk of 2^{self.shift} records;"
                " this round must run in the local phase"
            )

    @ti.kernel
    def _flip(self, k: ti.i32, e: ti.i32):
        ti.loop_config(block_dim=self.pass_size)
        for lane in range(1 << (k - 1)):
            self.records.compare_and_swap(net.flip_low(lane, e), net.flip_high(lane, e))

    @ti.kernel
    def _disperse(self, k: ti.i32, e: ti.i32):
        ti.loop_config(block_dim=self.pass_size)
        for lane in range(1 << (k - 1)):
            self.records.compare_and_swap(net.disperse_low(lane, e), net.disperse_high(lane, e))

    def flip_global(self, k, t):
        """
        One flip round over the whole array.

        Args:
            k: log2 of the record count
            t: round index; blocks are 2^(k-t) records high

        Raises:
            ValueError: 2^(k-t) <= LOCAL_SIZE, t < 0 or 2^k above the buffer capacity
        """
        self._check_height(k, k - t, "flip_global")
        self._flip(k, k - t - 1)

    def disperse_global(self, k, q):
        """
        One disperse round over the whole array.

        Args:
            k: log2 of the record count
            q: blocks are 2^q records high

        Raises:
            ValueError: 2^q <= LOCAL_SIZE, q > k or 2^k above the buffer capacity
        """
        self._check_height(k, q, "disperse_global")
        self._disperse(k, q - 1)
