import argparse
import logging
import time

import numpy as np
import taichi as ti
import matplotlib.pyplot as plt

import pyfastsort as ps

logger = logging.getLogger("pyfastsort")
logger.addHandler(logging.StreamHandler())
logger.setLevel(logging.INFO)


if __name__ == "__main__":

    parser = argparse.ArgumentParser(description="Sort SPH particles by grid cell on the device")
    parser.add_argument("--arch", type=str, default="gpu", choices=["gpu", "cpu", "cuda", "vulkan", "metal"])
    parser.add_argument("--log2-count", type=int, default=18)
    parser.add_argument("--grid", type=int, default=64)
    parser.add_argument("--repeats", type=int, default=10)
    parser.add_argument("--plot", action="store_true", help="plot sort time against particle count")
    args = parser.parse_args()

    ti.init(getattr(ti, args.arch))
    ps.environment.initialise(ps.records.PARTICLE_LAYOUT)

    counts = [1 << k for k in range(ps.constants.local_shift(), args.log2_count + 1)] if args.plot else [1 << args.log2_count]
    timings = []

    for n in counts:
        host = ps.particles.random_particles(n, seed=0)
        records = ps.particles.particle_buffer(host)
        sorter = ps.bitonic.BitonicSorter(records)

        ps.particles.assign_cell_keys(records, 1.0 / args.grid, (args.grid,) * 3)
        sorter.sort()  # compile

        st = time.time()
        for i in range(args.repeats):
            records.load(host)
            ps.particles.assign_cell_keys(records, 1.0 / args.grid, (args.grid,) * 3)
            sorter.sort()
        timings.append((time.time() - st) / args.repeats)

        if not records.is_sorted():
            raise RuntimeError(f"Sort failed for {n} particles")
        print(f"{n} particles: {timings[-1] * 1e3:.3f} ms per sort ({len(ps.bitonic.plan_stages(n))} dispatches)")
        records.release()

    if args.plot:
        fig, ax = plt.subplots()
        ax.loglog(counts, np.array(timings) * 1e3, "o-")
        ax.set_xlabel("particles")
        ax.set_ylabel("sort time (ms)")
        ax.set_title(f"Hybrid bitonic sort ({args.arch})")
        plt.show()
