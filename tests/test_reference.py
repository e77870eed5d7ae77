import numpy as np
import pytest

from pyfastsort.bitonic import reference as ref


@pytest.mark.unittest
@pytest.mark.parametrize("n", [1024, 2048, 16384])
def test_reference_sorts_keys(rng, n):
    keys = rng.random(n).astype(np.float32)
    result = ref.reference_sort(keys.copy())
    assert ref.is_sorted(result)
    np.testing.assert_array_equal(result, np.sort(keys))


@pytest.mark.unittest
def test_reference_moves_whole_records(rng, make_records):
    keys = rng.integers(0, 50, 4096).astype(np.float32)
    host = make_records(keys)
    result = ref.reference_sort(host.copy())

    assert ref.is_sorted(result)
    # every record comes out intact, exactly once
    by_ident = result[np.argsort(result["ident"])]
    for name in host.dtype.names:
        np.testing.assert_array_equal(by_ident[name], host[name])


@pytest.mark.unittest
def test_reference_is_idempotent(rng):
    keys = np.sort(rng.random(2048))
    result = ref.reference_sort(keys.copy())
    assert result.tobytes() == keys.tobytes()


@pytest.mark.unittest
@pytest.mark.parametrize("n", [1000, 1536, 512, 0])
def test_reference_rejects_bad_counts(n):
    with pytest.raises(ValueError):
        ref.reference_sort(np.zeros(n, dtype=np.float32))


@pytest.mark.unittest
def test_compare_and_swap():
    data = np.array([3.0, 1.0, 2.0])
    ref.compare_and_swap(data, 0, 1)
    assert list(data) == [1.0, 3.0, 2.0]
    ref.compare_and_swap(data, 0, 2)
    assert list(data) == [1.0, 3.0, 2.0]


@pytest.mark.unittest
def test_compare_and_swap_structured(make_records):
    host = make_records(np.array([5.0, 4.0], dtype=np.float32))
    ref.compare_and_swap(host, 0, 1)
    assert list(host["ident"]) == [1, 0]
    assert list(host["vel"][0]) == [4.0, -4.0, 8.0]
