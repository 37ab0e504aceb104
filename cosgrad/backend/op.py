from types import SimpleNamespace


class Op:
    def __init__(self, *tensors, backend):
        self.parents = tensors
        self.backend = backend
        self._intermediate = []  # keep intermediate backend arrays

    def save_for_backward(self, *x):
        self._intermediate.extend(x)

    def needs_grad(self, i):
        return getattr(self.parents[i], "requires_grad", True)

    def forward(self, *args, **kwargs):
        raise NotImplementedError

    def backward(self, *args, **kwargs):
        raise NotImplementedError

    @classmethod
    def apply(cls, *args, backend=None):
        from cosgrad.backend import get_backend  # late import to avoid circular deps
        from cosgrad.tensor import Tensor  # late import to avoid circular deps

        if backend is None:
            backend = get_backend()
        parents = tuple(a for a in args if isinstance(a, Tensor))
        op = cls(*parents, backend=backend)
        fwd_args = [a.data if isinstance(a, Tensor) else a for a in args]
        out = op.forward(*fwd_args)
        ret = Tensor(backend.wrap(out))
        ret._op = op
        return ret


# The ops below only talk to backend primitives, so every backend shares them.


class Sum(Op):
    """scalar reduce for losses or metrics"""

    def scale(self, shape):
        return 1.0

    def forward(self, x):
        shape = tuple(x.shape)
        self.save_for_backward(shape, x.dtype)
        return self.backend.sum(x, scale=self.scale(shape))

    def backward(self, grad):
        shape, dtype = self._intermediate
        return [self.backend.fill(shape, dtype, grad, scale=self.scale(shape))]


class Mean(Sum):
    """scalar mean reduce"""

    def scale(self, shape):
        n = 1
        for dim in shape:
            n *= int(dim)
        return 1.0 / n if n else 0.0


class Mul(Op):
    """elementwise product with a same-shaped tensor or a python scalar"""

    def forward(self, x, y):
        self.save_for_backward(x, y)
        return self.backend.mul(x, y)

    def backward(self, grad):
        x, y = self._intermediate
        grads = [self.backend.mul(grad, y) if self.needs_grad(0) else None]
        if len(self.parents) == 2:
            grads.append(self.backend.mul(grad, x) if self.needs_grad(1) else None)
        return grads


class CosSim(Op):
    """row-wise cosine similarity; y may carry one row shared by all rows of x"""

    def forward(self, x, y):
        out, x_norm, y_norm = self.backend.cos_sim(x, y)
        self.save_for_backward(x, y, out, x_norm, y_norm)
        return out

    def backward(self, grad):
        x, y, out, x_norm, y_norm = self._intermediate
        # only allocate (and so only compute) what the graph asks for
        grad_x = self.backend.empty(x.shape, x) if self.needs_grad(0) else None
        grad_y = self.backend.empty(y.shape, y) if self.needs_grad(1) else None
        grad_x, grad_y = self.backend.cos_sim_grad(
            x, y, out, x_norm, y_norm, grad, grad_x=grad_x, grad_y=grad_y
        )
        return [grad_x, grad_y]


OPS = SimpleNamespace(Sum=Sum, Mean=Mean, Mul=Mul, CosSim=CosSim)
