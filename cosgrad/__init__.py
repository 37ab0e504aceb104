from cosgrad.backend import (
    NumpyBackend,
    TritonBackend,
    available_backends,
    get_backend,
    set_backend,
)
from cosgrad.framework import run_cos_sim, run_cos_sim_grad
from cosgrad.tensor import Tensor

__all__ = [
    "NumpyBackend",
    "Tensor",
    "TritonBackend",
    "available_backends",
    "get_backend",
    "run_cos_sim",
    "run_cos_sim_grad",
    "set_backend",
]
