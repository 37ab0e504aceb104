import numpy as np

from cosgrad.backend import get_backend


class Tensor:
    def __init__(self, data, requires_grad=True):
        if not hasattr(data, "shape") or not hasattr(data, "reshape"):
            raise TypeError(f"Tensor expects a backend array, got {type(data)}")
        self.data = data
        self.grad = None
        self.requires_grad = requires_grad

        self._op = None
        # The Op that produced this tensor; it holds the parents (graph edges)
        # and whatever the op saved during forward. None for leaf tensors.

    @property
    def shape(self):
        return self.data.shape

    @classmethod
    def from_numpy(cls, array, requires_grad=True, backend=None):
        backend = backend or get_backend()
        return cls(backend.wrap(np.array(array, copy=True)), requires_grad)

    def numpy(self, backend=None):
        backend = backend or get_backend()
        return backend.unwrap(self.data)

    def __repr__(self):
        return f"Tensor {self.data} with grad {self.grad}"

    def backward(self):
        # Each op runs once, after every consumer of its output has added to
        # that output's gradient.
        order, seen = [], set()

        def visit(t):
            if id(t) in seen:
                return
            seen.add(id(t))
            if t._op is not None:
                for p in t._op.parents:
                    visit(p)
            order.append(t)

        visit(self)
        if self._op is None:
            return

        # The output of the whole graph seeds d(out)/d(out) = 1.
        if self.grad is None:
            assert _numel(self.data.shape) == 1, "backward() needs a scalar output"
            self.grad = self._op.backend.ones_like(self.data)
        for t in order:
            if t is not self and t._op is not None:
                t.grad = None

        for t in reversed(order):
            if t._op is None or t.grad is None:
                continue
            backend = t._op.backend
            grads = t._op.backward(t.grad)
            # A None gradient means the op skipped a parent that does not require one.
            for p, g in zip(t._op.parents, grads):
                if g is None or not p.requires_grad:
                    continue
                assert tuple(g.shape) == tuple(p.data.shape), (
                    f"grad shape must match tensor shape {g.shape}, {p.data.shape}"
                )
                p.grad = g if p.grad is None else backend.add(p.grad, g)

    def sum(self):
        return get_backend().ops.Sum.apply(self)

    def mean(self):
        return get_backend().ops.Mean.apply(self)

    def mul(self, x):
        return get_backend().ops.Mul.apply(self, x)

    def cos_sim(self, y):
        """row-wise cosine similarity against y, shape (rows, 1)"""
        if not isinstance(y, Tensor):
            y = Tensor(y, requires_grad=False)
        return get_backend().ops.CosSim.apply(self, y)


def _numel(shape):
    n = 1
    for d in shape:
        n *= int(d)
    return n
