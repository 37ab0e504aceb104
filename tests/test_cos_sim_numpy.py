import pytest

pytest.importorskip("torch")

from cosgrad.backend import get_backend, set_backend
from cosgrad.tensor import Tensor

from ._cos_sim_shared import (
    BackendHelper,
    run_broadcast_equivalence_cases,
    run_cos_sim_cases,
    run_partial_grad_cases,
)


def _make_tensor(data, requires_grad=True):
    return Tensor(data.copy(), requires_grad=requires_grad)


class _NumpyHelper(BackendHelper):
    def __init__(self):
        super().__init__("numpy")


def setup_module():
    global _PREV_BACKEND
    _PREV_BACKEND = get_backend()
    set_backend("numpy")


def teardown_module():
    set_backend(_PREV_BACKEND)


def test_cos_sim_numpy():
    helper = _NumpyHelper()
    run_cos_sim_cases(helper, _make_tensor)


def test_cos_sim_partial_grad_numpy():
    helper = _NumpyHelper()
    run_partial_grad_cases(helper, _make_tensor)


def test_cos_sim_broadcast_numpy():
    helper = _NumpyHelper()
    run_broadcast_equivalence_cases(helper, _make_tensor)
