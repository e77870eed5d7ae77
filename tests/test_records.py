import numpy as np
import pytest
import taichi as ti

from pyfastsort.records import RecordLayout, RecordBuffer, PARTICLE_LAYOUT, ti_type


@pytest.mark.unittest
def test_layout_dtype(ident_layout):
    dtype = ident_layout.numpy_dtype
    assert dtype.names == ("key", "ident", "vel")
    assert dtype["vel"].shape == (3,)
    assert ident_layout.record_bytes == 4 + 4 + 12


@pytest.mark.unittest
def test_particle_layout_size():
    # pos, density, velocity, forces + uint32 cell key
    assert PARTICLE_LAYOUT.record_bytes == 4 + 12 + 4 + 12 + 12
    assert PARTICLE_LAYOUT.key == np.dtype(np.uint32)


@pytest.mark.unittest
def test_layout_from_numpy_dtype(ident_layout):
    assert RecordLayout.from_numpy_dtype(ident_layout.numpy_dtype) == ident_layout
    with pytest.raises(ValueError):
        RecordLayout.from_numpy_dtype(np.dtype([("ident", np.int32), ("key", np.float32)]))


@pytest.mark.unittest
@pytest.mark.parametrize("key, payload", [
    (np.bool_, None),
    (np.float32, {"name": "U8"}),
    (np.float32, {"key": np.int32}),
    (np.float32, {"v": (np.float32, 0)}),
])
def test_invalid_layouts(key, payload):
    with pytest.raises(ValueError):
        RecordLayout(key, payload)


@pytest.mark.unittest
def test_ti_type():
    assert ti_type(np.float32) == ti.f32
    assert ti_type(np.uint32) == ti.u32


@pytest.mark.device
def test_buffer_round_trip(rng, make_records, ident_layout):
    host = make_records(rng.random(1024).astype(np.float32))
    records = RecordBuffer.from_numpy(host)

    assert records.layout == ident_layout
    assert records.payload_names == ("ident", "vel")
    result = records.to_numpy()
    for name in host.dtype.names:
        np.testing.assert_array_equal(result[name], host[name])
    assert records.to_numpy(10).shape == (10,)
    records.release()


@pytest.mark.device
def test_load_rejects_mismatch(make_records):
    records = RecordBuffer.allocate(1024)
    with pytest.raises(ValueError):
        records.load(make_records(np.zeros(1024, dtype=np.float32)))
    with pytest.raises(ValueError):
        records.load(np.zeros(512, dtype=records.layout.numpy_dtype))
    records.release()


@pytest.mark.device
def test_count_descents():
    keys = np.arange(1024, dtype=np.float32)
    keys[[10, 500]] = -1.0
    records = RecordBuffer.from_numpy(keys)
    assert records.count_descents() == 2
    assert records.count_descents(10) == 0
    assert not records.is_sorted()
    records.release()


@pytest.mark.device
@pytest.mark.parametrize("count", [2048, -1, "10", 1.5])
def test_count_outside_the_buffer(count):
    records = RecordBuffer.from_numpy(np.arange(1024, dtype=np.float32))
    with pytest.raises(ValueError):
        records.count_descents(count)
    with pytest.raises(ValueError):
        records.to_numpy(count)
    with pytest.raises(ValueError):
        records.keys(count)
    # the sorted buffer still reads as sorted over its full capacity
    assert records.count_descents(1024) == 0
    assert records.keys(0).shape == (0,)
    records.release()


@pytest.mark.device
def test_released_buffer_is_unusable():
    records = RecordBuffer.allocate(1024)
    records.release()
    with pytest.raises(RuntimeError):
        records.to_numpy()
    with pytest.raises(RuntimeError):
        records.count_descents()


@pytest.mark.unittest
def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        RecordBuffer(0)
