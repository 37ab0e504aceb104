"""named-slot operator layer (X, Y, Out, XNorm, YNorm, *@GRAD) over the backends"""

from loguru import logger

from cosgrad.backend import get_backend
from cosgrad.backend.view import is_broadcast, matrix_shape

GRAD_SUFFIX = "@GRAD"


def grad_var_name(name):
    return name + GRAD_SUFFIX


def infer_shape(x_shape, y_shape):
    """validate X/Y shapes and size Out, XNorm, YNorm"""
    x_shape, y_shape = tuple(x_shape), tuple(y_shape)
    if len(x_shape) != len(y_shape):
        raise ValueError(
            f"ranks of X {x_shape} and Y {y_shape} must be the same"
        )
    if len(x_shape) < 2:
        raise ValueError(f"X must be at least 2-D (rows first), got {x_shape}")
    if x_shape[1:] != y_shape[1:]:
        raise ValueError(
            f"X {x_shape} and Y {y_shape} must agree on all but the first dim"
        )
    rows_x, rows_y = x_shape[0], y_shape[0]
    if rows_y not in (1, rows_x):
        raise ValueError(
            f"Y must have 1 row or as many rows as X ({rows_x}), got {rows_y}"
        )
    return {
        "Out": (rows_x, 1),
        "XNorm": (rows_x, 1),
        "YNorm": (rows_y, 1),
    }


class ExecutionContext:
    """inputs and preallocated outputs; a missing or None output slot is not computed"""

    def __init__(self, inputs, outputs=None, backend=None):
        self.inputs = dict(inputs)
        self.outputs = {k: v for k, v in (outputs or {}).items() if v is not None}
        self.backend = backend or get_backend()

    def input(self, name):
        return self.inputs[name]

    def output(self, name):
        return self.outputs.get(name)

    def has_output(self, name):
        return name in self.outputs

    def allocate(self, name, shape, like):
        self.outputs[name] = self.backend.empty(tuple(shape), like)
        return self.outputs[name]


class CosSimKernel:
    """X, Y -> Out, XNorm, YNorm"""

    def compute(self, ctx):
        x = ctx.input("X")
        y = ctx.input("Y")
        out, x_norm, y_norm = ctx.backend.cos_sim(
            x,
            y,
            out=ctx.output("Out"),
            x_norm=ctx.output("XNorm"),
            y_norm=ctx.output("YNorm"),
        )
        ctx.outputs.update({"Out": out, "XNorm": x_norm, "YNorm": y_norm})
        return ctx


class CosSimGradKernel:
    """X, Y, Out, XNorm, YNorm, Out@GRAD -> X@GRAD and/or Y@GRAD"""

    def compute(self, ctx):
        grad_x = ctx.output(grad_var_name("X"))
        grad_y = ctx.output(grad_var_name("Y"))
        ctx.backend.cos_sim_grad(
            ctx.input("X"),
            ctx.input("Y"),
            ctx.input("Out"),
            ctx.input("XNorm"),
            ctx.input("YNorm"),
            ctx.input(grad_var_name("Out")),
            grad_x=grad_x,
            grad_y=grad_y,
        )
        return ctx


def run_cos_sim(x, y, backend=None):
    """allocate outputs per infer_shape and run the forward kernel"""
    ctx = ExecutionContext({"X": x, "Y": y}, backend=backend)
    shapes = infer_shape(x.shape, y.shape)
    rows_x, cols = matrix_shape(x.shape)
    logger.debug(
        f"cos_sim forward on {ctx.backend.name}: rows_x={rows_x} "
        f"rows_y={y.shape[0]} cols={cols} "
        f"broadcast={is_broadcast(rows_x, y.shape[0])}"
    )
    for name, shape in shapes.items():
        ctx.allocate(name, shape, like=x)
    CosSimKernel().compute(ctx)
    return ctx.output("Out"), ctx.output("XNorm"), ctx.output("YNorm")


def run_cos_sim_grad(
    x, y, out, x_norm, y_norm, grad_out, need_x=True, need_y=True, backend=None
):
    """allocate the requested gradient slots and run the backward kernel"""
    ctx = ExecutionContext(
        {
            "X": x,
            "Y": y,
            "Out": out,
            "XNorm": x_norm,
            "YNorm": y_norm,
            grad_var_name("Out"): grad_out,
        },
        backend=backend,
    )
    infer_shape(x.shape, y.shape)
    if need_x:
        ctx.allocate(grad_var_name("X"), x.shape, like=x)
    if need_y:
        ctx.allocate(grad_var_name("Y"), y.shape, like=y)
    logger.debug(
        f"cos_sim backward on {ctx.backend.name}: "
        f"X@GRAD={'yes' if need_x else 'no'} Y@GRAD={'yes' if need_y else 'no'}"
    )
    CosSimGradKernel().compute(ctx)
    return ctx.output(grad_var_name("X")), ctx.output(grad_var_name("Y"))
