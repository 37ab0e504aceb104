import os

from loguru import logger

from .numpy.ops import NumpyBackend

try:  # pragma: no cover - triton is optional
    from .triton.ops import TritonBackend
except ImportError:  # pragma: no cover
    TritonBackend = None

ENV_BACKEND = "COSGRAD_BACKEND"

# name -> backend class; None marks a backend whose libraries are missing
_REGISTRY = {"numpy": NumpyBackend, "triton": TritonBackend}


def _make_backend(name):
    key = name.lower()
    if key not in _REGISTRY:
        raise ValueError(f"unknown backend '{name}', expected one of {sorted(_REGISTRY)}")
    cls = _REGISTRY[key]
    if cls is None:
        raise ImportError(f"{key} backend is unavailable; install triton and torch.")
    return cls()


def _default_backend():
    name = os.environ.get(ENV_BACKEND, "numpy")
    logger.debug(f"resolving default backend {name!r} from ${ENV_BACKEND}")
    return _make_backend(name)


_current = _default_backend()


def get_backend():
    return _current


def set_backend(backend):
    """Switch the active backend by name or instance."""
    global _current
    if isinstance(backend, str):
        backend = _make_backend(backend)
    elif not isinstance(backend, tuple(c for c in _REGISTRY.values() if c)):
        raise TypeError(f"backend must be a name or backend instance, got {type(backend)}")
    _current = backend
    logger.info(f"cosgrad backend set to {backend.name}")
    return backend


def available_backends():
    return [name for name, cls in _REGISTRY.items() if cls is not None]


__all__ = [
    "ENV_BACKEND",
    "NumpyBackend",
    "TritonBackend",
    "available_backends",
    "get_backend",
    "set_backend",
]
