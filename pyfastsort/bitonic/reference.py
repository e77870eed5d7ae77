"""
Reference Sequential Sorter

Single-threaded replay of the same bitonic network on a numpy array, used as a
test oracle for the device sort. No local/global split here: the rounds are
applied one after the other in network order (network.network_rounds), which
is exactly the sequence of comparator rounds the scheduled launches perform.

Each round is applied as one vectorised compare-and-swap over its disjoint
pairs, which gives the same result as walking the pairs one by one.
"""

import numpy as np

from . import network as net
from .scheduler import check_count


def _keys(array, key):
    return array[key] if array.dtype.names is not None else array


def compare_and_swap(array, i, j, key="key"):
    """
    Comparator primitive on a numpy array: swap entries i < j if key[i] > key[j].

    Works on plain arrays and on structured record arrays (whole records move).
    """
    keys = _keys(array, key)
    if keys[i] > keys[j]:
        tmp = array[i].copy()
        array[i] = array[j]
        array[j] = tmp


def apply_round(array, kind, e, key="key"):
    """Apply one network round (FLIP or DISPERSE, half-block exponent e) in place."""
    lanes = np.arange(array.shape[0] // 2, dtype=np.int64)
    if kind == net.FLIP:
        lo, hi = net.flip_low(lanes, e), net.flip_high(lanes, e)
    else:
        lo, hi = net.disperse_low(lanes, e), net.disperse_high(lanes, e)

    keys = _keys(array, key)
    swap = keys[lo] > keys[hi]
    lo, hi = lo[swap], hi[swap]
    low_records = array[lo]
    array[lo] = array[hi]
    array[hi] = low_records


def reference_sort(array, key="key"):
    """
    Sort `array` in place with the sequential bitonic network and return it.

    Args:
        array: 1D numpy array, plain or structured with a `key` member
        key: name of the key member for structured arrays

    Raises:
        ValueError: same count preconditions as the device sort
    """
    k = check_count(array.shape[0])
    for kind, e in net.network_rounds(k):
        apply_round(array, kind, e, key)
    return array


def is_sorted(array, key="key"):
    """True if keys are non-decreasing."""
    keys = _keys(array, key)
    return bool(np.all(keys[:-1] <= keys[1:]))
