import numpy as np
import pytest
import taichi as ti

ti.init(arch=ti.cpu, random_seed=0)

from pyfastsort.records import RecordLayout  # noqa: E402


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "unittest: mark test as an Unit Test"
    )
    config.addinivalue_line(
        "markers", "device: test launches Taichi kernels"
    )


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def ident_layout():
    # float key, an integer identity and a vector payload
    return RecordLayout(np.float32, {"ident": np.int32, "vel": (np.float32, 3)})


@pytest.fixture
def make_records(ident_layout):
    def make(keys):
        host = np.zeros(keys.shape[0], dtype=ident_layout.numpy_dtype)
        host["key"] = keys
        host["ident"] = np.arange(keys.shape[0])
        host["vel"] = np.stack([keys, -keys, 2 * keys], axis=1)
        return host
    return make
