import numpy as np
import torch

from ..op import OPS
from .kernels.cos_sim import _cos_sim_backward, _cos_sim_forward
from .kernels.elementwise import _binary, _fill, _reduce_sum


class TritonBackend:
    name = "triton"

    def __init__(self, device="cuda"):
        try:
            import triton  # noqa: F401
        except Exception as exc:
            raise ImportError("Triton backend requires triton to be installed") from exc
        if not torch.cuda.is_available():
            raise RuntimeError("Triton backend requires CUDA to be available")
        self.device = device
        self.float = torch.float32
        self.int = torch.int32

    @property
    def ops(self):
        return OPS

    def is_array(self, x):
        return isinstance(x, torch.Tensor)

    def wrap(self, x):
        if isinstance(x, np.ndarray):
            x = torch.from_numpy(x)
        if isinstance(x, torch.Tensor):
            # kernels address rows by raw pointer arithmetic
            x = x.to(self.device).contiguous()
        return x

    def unwrap(self, x):
        if isinstance(x, torch.Tensor):
            return x.detach().cpu().numpy()
        return x

    def float_dtype(self, like):
        return torch.promote_types(like.dtype, self.float)

    def empty(self, shape, like):
        return torch.empty(
            tuple(shape), device=like.device, dtype=self.float_dtype(like)
        )

    def ones_like(self, x):
        return _fill(tuple(x.shape), x.dtype, x.device)

    def sum(self, x, scale=1.0):
        return _reduce_sum(x, scale)

    def fill(self, shape, dtype, value, scale=1.0):
        return _fill(tuple(shape), dtype, value.device, scale=scale, src=value)

    def add(self, x, y):
        return _binary(x, y, is_mul=False)

    def mul(self, x, y):
        return _binary(x, y, is_mul=True)

    def cos_sim(self, x, y, out=None, x_norm=None, y_norm=None):
        return _cos_sim_forward(x, y, out, x_norm, y_norm)

    def cos_sim_grad(
        self, x, y, out, x_norm, y_norm, grad_out, grad_x=None, grad_y=None
    ):
        return _cos_sim_backward(
            x, y, out, x_norm, y_norm, grad_out, grad_x=grad_x, grad_y=grad_y
        )
