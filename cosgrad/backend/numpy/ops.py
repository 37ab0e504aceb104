import numpy as np

from ..op import OPS
from ..view import as_matrix, is_broadcast


def _store(buf, value):
    # Fill a caller-owned buffer in place, or hand back the fresh array.
    if buf is None:
        return value
    buf[...] = value.reshape(buf.shape)
    return buf


def cos_sim_forward(x, y, out=None, x_norm=None, y_norm=None):
    """x (rows_x, ...); y (rows_y, ...) -> out, x_norm (rows_x, 1), y_norm (rows_y, 1)"""
    x2 = as_matrix(x)
    y2 = as_matrix(y, cols=x2.shape[1])
    with np.errstate(divide="ignore", invalid="ignore"):
        xn = np.sqrt(np.sum(x2 * x2, axis=1, keepdims=True))
        yn = np.sqrt(np.sum(y2 * y2, axis=1, keepdims=True))
        # a (1, cols) y view broadcasts over every row of x without a copy
        xy = np.sum(x2 * y2, axis=1, keepdims=True)
        z = xy / xn / yn
    return _store(out, z), _store(x_norm, xn), _store(y_norm, yn)


def cos_sim_backward(x, y, out, x_norm, y_norm, grad_out, grad_x=None, grad_y=None):
    """fill grad_x / grad_y when given; a None slot is never computed"""
    if grad_x is None and grad_y is None:
        return None, None
    x2 = as_matrix(x)
    y2 = as_matrix(y, cols=x2.shape[1])
    z = out.reshape(-1, 1)
    dz = grad_out.reshape(-1, 1)
    xn = x_norm.reshape(-1, 1)
    yn = y_norm.reshape(-1, 1)
    with np.errstate(divide="ignore", invalid="ignore"):
        norm_prod = xn * yn
        if grad_x is not None:
            dx = dz * (y2 / norm_prod - z * x2 / (xn * xn))
            grad_x = _store(grad_x, dx)
        if grad_y is not None:
            dy = dz * (x2 / norm_prod - z * y2 / (yn * yn))
            if is_broadcast(x2.shape[0], y2.shape[0]):
                # the single y row fed every output row
                dy = np.sum(dy, axis=0, keepdims=True)
            grad_y = _store(grad_y, dy)
    return grad_x, grad_y


class NumpyBackend:
    name = "numpy"

    def __init__(self):
        self.float = np.float32
        self.int = np.int32

    @property
    def ops(self):
        return OPS

    def is_array(self, x):
        return isinstance(x, np.ndarray)

    def wrap(self, x):
        return np.asarray(x)

    def unwrap(self, x):
        return x

    def float_dtype(self, like):
        # integer inputs still produce floating similarities and gradients
        return np.result_type(like.dtype, self.float)

    def empty(self, shape, like):
        return np.empty(shape, dtype=self.float_dtype(like))

    def ones_like(self, x):
        return np.ones_like(x)

    def sum(self, x, scale=1.0):
        return np.asarray(np.sum(x) * scale, dtype=self.float_dtype(x))

    def fill(self, shape, dtype, value, scale=1.0):
        return np.full(shape, value * scale, dtype=dtype)

    def add(self, x, y):
        return np.add(x, y)

    def mul(self, x, y):
        return np.multiply(x, y)

    def cos_sim(self, x, y, out=None, x_norm=None, y_norm=None):
        return cos_sim_forward(x, y, out, x_norm, y_norm)

    def cos_sim_grad(
        self, x, y, out, x_norm, y_norm, grad_out, grad_x=None, grad_y=None
    ):
        return cos_sim_backward(
            x, y, out, x_norm, y_norm, grad_out, grad_x=grad_x, grad_y=grad_y
        )
