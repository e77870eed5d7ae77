"""
Environment initialization and management for PyFastSort.

Validates the compile-time constants of the sorting network and reports the
device resources it needs. Taichi itself is initialised by the caller
(ti.init), as for any Taichi program.

The reported workgroup size is the comparator width of one local round. On
Taichi the local phase walks those lanes from a single thread per chunk (see
bitonic.local_phase), so the launch itself uses a block of one.

"""

import logging
from typing import NamedTuple

import taichi as ti

from . import constants as cte
from . import pool
from .records import KEY_ONLY_LAYOUT

logger = logging.getLogger("pyfastsort")


class DeviceLimits(NamedTuple):
    """Device resources required by the sort for one record layout."""
    workgroup_size: int
    local_storage_bytes: int
    global_pass_size: int


def _is_pow2(n):
    return n >= 1 and not (n & (n - 1))


def check_constants():
    """
    Validate the sorting constants against each other.

    Raises:
        ValueError: inconsistent constants
    """
    if cte.LOCAL_SIZE < 2 or not _is_pow2(cte.LOCAL_SIZE):
        raise ValueError(f"LOCAL_SIZE must be a power of two >= 2, got {cte.LOCAL_SIZE}")
    if cte.LOCAL_PASS_SIZE * 2 != cte.LOCAL_SIZE:
        raise ValueError(
            f"LOCAL_PASS_SIZE must be LOCAL_SIZE / 2 ({cte.LOCAL_SIZE // 2}), got {cte.LOCAL_PASS_SIZE}"
        )
    if not _is_pow2(cte.GLOBAL_PASS_SIZE):
        raise ValueError(f"GLOBAL_PASS_SIZE must be a power of two, got {cte.GLOBAL_PASS_SIZE}")


def required_limits(record_layout=KEY_ONLY_LAYOUT):
    """
    Workgroup size and workgroup-local storage needed to sort records of the
    given layout with the current constants.
    """
    return DeviceLimits(
        workgroup_size=cte.LOCAL_PASS_SIZE,
        local_storage_bytes=cte.LOCAL_SIZE * record_layout.record_bytes,
        global_pass_size=cte.GLOBAL_PASS_SIZE,
    )


def initialise(record_layout=None):
    """
    Validate the sorting constants and log the device requirements.

    Must be called once before sorting, after ti.init().

    Args:
        record_layout: layout used to size workgroup storage (key-only if None)

    Returns:
        DeviceLimits

    Raises:
        RuntimeError: already initialised
        ValueError: inconsistent constants
    """
    if cte.INITIALISED:
        raise RuntimeError("PyFastSort already initialized")

    check_constants()

    limits = required_limits(record_layout or KEY_ONLY_LAYOUT)
    logger.info("Required workgroup size: %d", limits.workgroup_size)
    logger.info("Required local storage: %d", limits.local_storage_bytes)
    logger.info("Local phase launch: 1 lane per chunk, %d comparators per round", limits.workgroup_size)
    logger.debug("Global pass size: %d", limits.global_pass_size)

    cte.INITIALISED = True
    return limits


def reboot():
    """
    Destroy pooled fields, reset Taichi and clear the initialised flag.

    Use before changing LOCAL_SIZE or the pass sizes. ti.init() must be called
    again afterwards.
    """
    pool.fieldpool.clear_all()
    ti.reset()
    cte.INITIALISED = False
