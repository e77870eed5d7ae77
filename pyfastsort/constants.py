"""
Global constants and configuration parameters for PyFastSort.

This module defines the compile-time constants that shape the sorting network
on the device. They are read by the Taichi kernels when those kernels are
compiled, so they must be set before the first sort of a session (or after
``pyfastsort.environment.reboot()``).

Constant Categories:
- Local phase: size of the chunk one workgroup sorts on its own and the number
  of comparator lanes in that workgroup
- Global phase: number of comparator lanes per workgroup for the passes whose
  partners live in different chunks
- Utils: initialisation flag

Usage:
    import pyfastsort.constants as cte

    # Smaller chunks for a device with little workgroup storage
    cte.LOCAL_SIZE = 512
    cte.LOCAL_PASS_SIZE = 256
    pyfastsort.environment.initialise()

"""

import math

#########################################
###### UTILS CONSTANTS ##################
#########################################

INITIALISED = False


#########################################
###### LOCAL PHASE CONSTANTS ############
#########################################

# Number of records one workgroup sorts entirely in its own memory.
# Compile-time constant: arrays shorter than this cannot be sorted.
LOCAL_SIZE = 1024

# Comparator lanes per local workgroup: each lane owns one pair per round.
LOCAL_PASS_SIZE = LOCAL_SIZE // 2


#########################################
###### GLOBAL PHASE CONSTANTS ###########
#########################################

# Comparator pairs processed by one global workgroup.
GLOBAL_PASS_SIZE = 256


def local_shift():
    """Exponent of LOCAL_SIZE (log2 of the chunk height)."""
    return int(math.log2(LOCAL_SIZE))
