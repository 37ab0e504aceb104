import numpy as np
import pytest
from loguru import logger

import cosgrad.backend as backend_mod
from cosgrad.backend import (
    NumpyBackend,
    TritonBackend,
    available_backends,
    get_backend,
    set_backend,
)


@pytest.fixture
def restore_backend():
    prev = get_backend()
    yield
    set_backend(prev)


def test_numpy_is_always_available():
    assert "numpy" in available_backends()
    assert isinstance(NumpyBackend().ops.CosSim, type)


def test_set_backend_by_name_and_instance(restore_backend):
    assert isinstance(set_backend("NumPy"), NumpyBackend)
    inst = NumpyBackend()
    assert set_backend(inst) is inst
    assert get_backend() is inst


def test_set_backend_rejects_unknown(restore_backend):
    with pytest.raises(ValueError):
        set_backend("opencl")
    with pytest.raises(TypeError):
        set_backend(42)


@pytest.mark.skipif(TritonBackend is not None, reason="triton is installed")
def test_triton_unavailable_raises(restore_backend):
    with pytest.raises(ImportError):
        set_backend("triton")


def test_default_backend_from_environment(monkeypatch):
    monkeypatch.setenv(backend_mod.ENV_BACKEND, "numpy")
    assert isinstance(backend_mod._default_backend(), NumpyBackend)
    monkeypatch.setenv(backend_mod.ENV_BACKEND, "bogus")
    with pytest.raises(ValueError):
        backend_mod._default_backend()


def test_switch_is_logged(restore_backend):
    messages = []
    sink = logger.add(messages.append, level="INFO", format="{message}")
    try:
        set_backend("numpy")
    finally:
        logger.remove(sink)
    assert any("numpy" in str(m) for m in messages)


def test_numpy_primitives():
    be = NumpyBackend()
    x = np.arange(6, dtype=np.int64).reshape(2, 3)
    assert be.float_dtype(x) == np.float64
    assert be.empty((2, 1), like=np.ones(2, dtype=np.float32)).dtype == np.float32
    assert float(be.sum(x, scale=0.5)) == 7.5
    np.testing.assert_array_equal(
        be.fill((2, 2), np.float32, np.asarray(3.0), scale=2.0),
        np.full((2, 2), 6.0, dtype=np.float32),
    )
