"""
Bitonic Sorting Network Index Algebra

The network used here is the "flip / disperse" formulation of the bitonic
sorter: every comparator sorts ascending, and the direction change of the
classic formulation is replaced by a mirrored pairing (the flip).

For an array of 2^k records and a half-block exponent e (blocks of height
2^(e+1), 2^k / 2 comparator lanes per round):

    flip:      lane -> (base + off, base + 2^(e+1) - 1 - off)
    disperse:  lane -> (base + off, base + off + 2^e)

    with off = lane mod 2^e and base = (lane div 2^e) * 2^(e+1)

A flip on two sorted halves produces two halves where every key of the lower
one is <= every key of the upper one, each half being bitonic; the disperse
cascade (e-1, e-2, ..., 0) then sorts each half.

Full network for 2^k records:

    for e in 0 .. k-1:
        flip(e)
        for d in e-1 .. 0:
            disperse(d)

Comparators within one round touch disjoint pairs and can run concurrently;
consecutive rounds must be separated by a barrier.

All index helpers are ti.pyfunc: callable inside kernels, from plain Python and
on numpy integer arrays.
"""

import taichi as ti


@ti.pyfunc
def flip_low(lane, e):
    """Lower slot compared by `lane` in a flip round of half-block exponent e."""
    return ((lane >> e) << (e + 1)) + (lane & ((1 << e) - 1))


@ti.pyfunc
def flip_high(lane, e):
    """Upper (mirrored) slot compared by `lane` in a flip round."""
    return ((lane >> e) << (e + 1)) + (2 << e) - 1 - (lane & ((1 << e) - 1))


@ti.pyfunc
def disperse_low(lane, e):
    """Lower slot compared by `lane` in a disperse round of half-block exponent e."""
    return ((lane >> e) << (e + 1)) + (lane & ((1 << e) - 1))


@ti.pyfunc
def disperse_high(lane, e):
    """Upper slot compared by `lane` in a disperse round: low + 2^e."""
    return ((lane >> e) << (e + 1)) + (lane & ((1 << e) - 1)) + (1 << e)


FLIP = "flip"
DISPERSE = "disperse"


def network_rounds(k):
    """
    Complete round sequence of the network for 2^k records.

    Returns:
        list of (kind, e) with kind in (FLIP, DISPERSE), in execution order
    """
    rounds = []
    for e in range(k):
        rounds.append((FLIP, e))
        for d in range(e - 1, -1, -1):
            rounds.append((DISPERSE, d))
    return rounds


def round_pairs(kind, e, n):
    """
    All (low, high) pairs of one round over n records, in lane order.

    Debug helper: the kernels compute the same indices per lane.
    """
    low_fn, high_fn = (flip_low, flip_high) if kind == FLIP else (disperse_low, disperse_high)
    return [(low_fn(lane, e), high_fn(lane, e)) for lane in range(n // 2)]
