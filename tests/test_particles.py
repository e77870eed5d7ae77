import numpy as np
import pytest

from pyfastsort import particles as pt
from pyfastsort.bitonic import sort
from pyfastsort.records import RecordBuffer


def numpy_cell_keys(pos, cell_size, res):
    c = np.clip(np.floor(pos / cell_size).astype(np.int64), 0, np.array(res) - 1)
    return (c[:, 0] + res[0] * (c[:, 1] + res[1] * c[:, 2])).astype(np.uint32)


@pytest.mark.device
def test_cell_keys():
    host = pt.random_particles(2048, extent=2.0, seed=3)
    host["pos"][0] = (-1.0, 5.0, 0.0)   # clamped into the grid
    records = pt.particle_buffer(host)

    pt.assign_cell_keys(records, 0.25, (8, 8, 8))

    np.testing.assert_array_equal(records.keys(), numpy_cell_keys(host["pos"], 0.25, (8, 8, 8)))
    assert records.keys()[0] == 7 * 8
    records.release()


@pytest.mark.device
def test_particles_sorted_by_cell():
    host = pt.random_particles(1 << 14, seed=11)
    records = pt.particle_buffer(host)
    pt.assign_cell_keys(records, 1 / 16, (16, 16, 16))

    sort(records)
    result = records.to_numpy()

    assert np.all(np.diff(result["key"].astype(np.int64)) >= 0)
    # each particle still carries the key of its own position
    np.testing.assert_array_equal(result["key"], numpy_cell_keys(result["pos"], 1 / 16, (16, 16, 16)))
    np.testing.assert_array_equal(np.sort(result["pos"][:, 0]), np.sort(host["pos"][:, 0]))
    records.release()


@pytest.mark.device
def test_cell_keys_need_positions():
    records = RecordBuffer.from_numpy(np.zeros(1024, dtype=np.uint32))
    with pytest.raises(ValueError):
        pt.assign_cell_keys(records, 1.0, (4, 4, 4))
    records.release()


@pytest.mark.device
def test_invalid_grid():
    records = pt.particle_buffer(pt.random_particles(1024, seed=0))
    with pytest.raises(ValueError):
        pt.assign_cell_keys(records, 0.0, (4, 4, 4))
    with pytest.raises(ValueError):
        pt.assign_cell_keys(records, 1.0, (4, 0, 4))
    records.release()
