import pytest

import pyfastsort.constants as cte
from pyfastsort import environment as env
from pyfastsort.records import PARTICLE_LAYOUT


@pytest.fixture
def fresh(monkeypatch):
    monkeypatch.setattr(cte, "INITIALISED", False)


@pytest.mark.unittest
def test_initialise_reports_limits(fresh, caplog):
    with caplog.at_level("INFO", logger="pyfastsort"):
        limits = env.initialise(PARTICLE_LAYOUT)

    assert limits.workgroup_size == 512
    assert limits.local_storage_bytes == 1024 * PARTICLE_LAYOUT.record_bytes
    assert limits.global_pass_size == cte.GLOBAL_PASS_SIZE
    assert "Required workgroup size: 512" in caplog.text
    assert "Local phase launch: 1 lane per chunk, 512 comparators per round" in caplog.text
    assert cte.INITIALISED


@pytest.mark.unittest
def test_initialise_twice(fresh):
    env.initialise()
    with pytest.raises(RuntimeError):
        env.initialise()


@pytest.mark.unittest
@pytest.mark.parametrize("name, value", [
    ("LOCAL_SIZE", 1000),
    ("LOCAL_PASS_SIZE", 256),
    ("GLOBAL_PASS_SIZE", 100),
])
def test_invalid_constants(fresh, monkeypatch, name, value):
    monkeypatch.setattr(cte, name, value)
    with pytest.raises(ValueError):
        env.initialise()
    assert not cte.INITIALISED


@pytest.mark.unittest
def test_check_constants_without_initialise(fresh, monkeypatch):
    env.check_constants()
    monkeypatch.setattr(cte, "LOCAL_PASS_SIZE", cte.LOCAL_SIZE // 4)
    with pytest.raises(ValueError):
        env.check_constants()
    assert not cte.INITIALISED
