import itertools

import numpy as np
import pytest

from pyfastsort.bitonic import network as net
from pyfastsort.bitonic.reference import apply_round


@pytest.mark.unittest
def test_round_count():
    for k in range(1, 12):
        assert len(net.network_rounds(k)) == k * (k + 1) // 2


@pytest.mark.unittest
def test_network_order():
    assert net.network_rounds(3) == [
        (net.FLIP, 0),
        (net.FLIP, 1), (net.DISPERSE, 0),
        (net.FLIP, 2), (net.DISPERSE, 1), (net.DISPERSE, 0),
    ]


@pytest.mark.unittest
def test_flip_pairs_are_mirrored():
    assert net.round_pairs(net.FLIP, 1, 8) == [(0, 3), (1, 2), (4, 7), (5, 6)]
    assert net.round_pairs(net.FLIP, 2, 8) == [(0, 7), (1, 6), (2, 5), (3, 4)]


@pytest.mark.unittest
def test_disperse_pairs():
    assert net.round_pairs(net.DISPERSE, 1, 8) == [(0, 2), (1, 3), (4, 6), (5, 7)]
    assert net.round_pairs(net.DISPERSE, 0, 8) == [(0, 1), (2, 3), (4, 5), (6, 7)]


@pytest.mark.unittest
def test_rounds_touch_every_slot_once():
    n = 64
    for kind, e in net.network_rounds(6):
        pairs = net.round_pairs(kind, e, n)
        slots = [s for pair in pairs for s in pair]
        assert sorted(slots) == list(range(n))
        assert all(lo < hi for lo, hi in pairs)


@pytest.mark.unittest
def test_index_helpers_accept_numpy_arrays():
    lanes = np.arange(8)
    assert list(net.flip_high(lanes, 2)) == [7, 6, 5, 4, 15, 14, 13, 12]
    assert list(net.disperse_high(lanes, 0)) == [1, 3, 5, 7, 9, 11, 13, 15]


@pytest.mark.unittest
def test_zero_one_principle():
    # a comparator network sorts everything iff it sorts every 0/1 input
    for bits in itertools.product((0, 1), repeat=8):
        data = np.array(bits, dtype=np.int32)
        for kind, e in net.network_rounds(3):
            apply_round(data, kind, e)
        assert np.all(data[:-1] <= data[1:]), bits
