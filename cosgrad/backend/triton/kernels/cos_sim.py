import torch
import triton
import triton.language as tl

from ...view import is_broadcast, matrix_shape, row_step
from .elementwise import _float_dtype, _require_contiguous

_BLOCK_N = 1024


@triton.jit
def _cos_sim_forward_kernel(
    x_ptr,
    y_ptr,
    out_ptr,
    x_norm_ptr,
    y_norm_ptr,
    n_cols,
    y_row_step,
    BLOCK_N: tl.constexpr,
):
    # One program per x row; the paired y row is row * y_row_step.
    row = tl.program_id(0)
    y_row = row * y_row_step
    offs = tl.arange(0, BLOCK_N)
    x_row_ptr = x_ptr + row * n_cols
    y_row_ptr = y_ptr + y_row * n_cols

    xx = tl.zeros((BLOCK_N,), dtype=tl.float32)
    yy = tl.zeros((BLOCK_N,), dtype=tl.float32)
    xy = tl.zeros((BLOCK_N,), dtype=tl.float32)
    for n in range(0, n_cols, BLOCK_N):
        n_idx = n + offs
        mask = n_idx < n_cols
        x = tl.load(x_row_ptr + n_idx, mask=mask, other=0.0).to(tl.float32)
        y = tl.load(y_row_ptr + n_idx, mask=mask, other=0.0).to(tl.float32)
        xx += x * x
        yy += y * y
        xy += x * y

    x_norm = tl.sqrt(tl.sum(xx, axis=0))
    y_norm = tl.sqrt(tl.sum(yy, axis=0))
    z = tl.sum(xy, axis=0) / x_norm / y_norm
    tl.store(x_norm_ptr + row, x_norm.to(x_norm_ptr.dtype.element_ty))
    # A shared y row is written once, by program 0.
    tl.store(
        y_norm_ptr + y_row,
        y_norm.to(y_norm_ptr.dtype.element_ty),
        mask=y_row == row,
    )
    tl.store(out_ptr + row, z.to(out_ptr.dtype.element_ty))


@triton.jit
def _cos_sim_backward_rows_kernel(
    x_ptr,
    y_ptr,
    z_ptr,
    x_norm_ptr,
    y_norm_ptr,
    dz_ptr,
    dx_ptr,
    dy_ptr,
    n_cols,
    y_row_step,
    BLOCK_N: tl.constexpr,
    COMPUTE_DX: tl.constexpr,
    COMPUTE_DY: tl.constexpr,
):
    # Row-local gradients: dx always, dy only when y is not shared.
    row = tl.program_id(0)
    y_row = row * y_row_step
    offs = tl.arange(0, BLOCK_N)

    z = tl.load(z_ptr + row).to(tl.float32)
    dz = tl.load(dz_ptr + row).to(tl.float32)
    x_norm = tl.load(x_norm_ptr + row).to(tl.float32)
    y_norm = tl.load(y_norm_ptr + y_row).to(tl.float32)
    norm_prod = x_norm * y_norm
    x_snorm = x_norm * x_norm
    y_snorm = y_norm * y_norm

    for n in range(0, n_cols, BLOCK_N):
        n_idx = n + offs
        mask = n_idx < n_cols
        x = tl.load(x_ptr + row * n_cols + n_idx, mask=mask, other=0.0).to(tl.float32)
        y = tl.load(y_ptr + y_row * n_cols + n_idx, mask=mask, other=0.0).to(
            tl.float32
        )
        if COMPUTE_DX:
            dx = dz * (y / norm_prod - z * x / x_snorm)
            tl.store(
                dx_ptr + row * n_cols + n_idx,
                dx.to(dx_ptr.dtype.element_ty),
                mask=mask,
            )
        if COMPUTE_DY:
            dy = dz * (x / norm_prod - z * y / y_snorm)
            tl.store(
                dy_ptr + row * n_cols + n_idx,
                dy.to(dy_ptr.dtype.element_ty),
                mask=mask,
            )


@triton.jit
def _cos_sim_backward_shared_y_kernel(
    x_ptr,
    y_ptr,
    z_ptr,
    x_norm_ptr,
    y_norm_ptr,
    dz_ptr,
    dy_ptr,
    n_rows,
    n_cols,
    BLOCK_N: tl.constexpr,
):
    # One program per column block of the single y row, reducing over x rows.
    pid = tl.program_id(0)
    n_idx = pid * BLOCK_N + tl.arange(0, BLOCK_N)
    mask = n_idx < n_cols

    y = tl.load(y_ptr + n_idx, mask=mask, other=0.0).to(tl.float32)
    y_norm = tl.load(y_norm_ptr).to(tl.float32)
    y_snorm = y_norm * y_norm

    acc = tl.zeros((BLOCK_N,), dtype=tl.float32)
    for row in range(0, n_rows):
        x = tl.load(x_ptr + row * n_cols + n_idx, mask=mask, other=0.0).to(tl.float32)
        z = tl.load(z_ptr + row).to(tl.float32)
        dz = tl.load(dz_ptr + row).to(tl.float32)
        x_norm = tl.load(x_norm_ptr + row).to(tl.float32)
        norm_prod = x_norm * y_norm
        acc += dz * (x / norm_prod - z * y / y_snorm)

    tl.store(dy_ptr + n_idx, acc.to(dy_ptr.dtype.element_ty), mask=mask)


def _cos_sim_forward(x, y, out=None, x_norm=None, y_norm=None):
    """x (rows_x, ...); y (rows_y, ...) -> out, x_norm (rows_x, 1), y_norm (rows_y, 1)"""
    _require_contiguous(x)
    _require_contiguous(y)
    rows_x, n_cols = matrix_shape(x.shape)
    rows_y, _ = matrix_shape(y.shape)
    dtype = _float_dtype(x.dtype)
    if out is None:
        out = torch.empty((rows_x, 1), device=x.device, dtype=dtype)
    if x_norm is None:
        x_norm = torch.empty((rows_x, 1), device=x.device, dtype=dtype)
    if y_norm is None:
        y_norm = torch.empty((rows_y, 1), device=x.device, dtype=dtype)
    for buf in (out, x_norm, y_norm):
        _require_contiguous(buf)
    if rows_x == 0:
        return out, x_norm, y_norm
    _cos_sim_forward_kernel[(rows_x,)](
        x,
        y,
        out,
        x_norm,
        y_norm,
        n_cols,
        row_step(rows_x, rows_y),
        BLOCK_N=_BLOCK_N,
    )
    return out, x_norm, y_norm


def _cos_sim_backward(x, y, out, x_norm, y_norm, grad_out, grad_x=None, grad_y=None):
    """fill grad_x / grad_y when given; a None slot is never computed"""
    if grad_x is None and grad_y is None:
        return None, None
    for t in (x, y, out, x_norm, y_norm, grad_out):
        _require_contiguous(t)
    rows_x, n_cols = matrix_shape(x.shape)
    rows_y, _ = matrix_shape(y.shape)
    shared_y = is_broadcast(rows_x, rows_y)
    compute_dx = grad_x is not None
    # a shared y row needs the cross-row reduction kernel instead
    compute_dy_rows = grad_y is not None and not shared_y

    if compute_dx:
        _require_contiguous(grad_x)
    if grad_y is not None:
        _require_contiguous(grad_y)

    if compute_dx or compute_dy_rows:
        _cos_sim_backward_rows_kernel[(rows_x,)](
            x,
            y,
            out,
            x_norm,
            y_norm,
            grad_out,
            grad_x if compute_dx else x,
            grad_y if compute_dy_rows else y,
            n_cols,
            row_step(rows_x, rows_y),
            BLOCK_N=_BLOCK_N,
            COMPUTE_DX=compute_dx,
            COMPUTE_DY=compute_dy_rows,
        )
    if grad_y is not None and shared_y:
        blocks = triton.cdiv(n_cols, _BLOCK_N)
        _cos_sim_backward_shared_y_kernel[(blocks,)](
            x,
            y,
            out,
            x_norm,
            y_norm,
            grad_out,
            grad_y,
            rows_x,
            n_cols,
            BLOCK_N=_BLOCK_N,
        )
    return grad_x, grad_y


__all__ = [
    "_cos_sim_forward",
    "_cos_sim_backward",
    "_cos_sim_forward_kernel",
    "_cos_sim_backward_rows_kernel",
    "_cos_sim_backward_shared_y_kernel",
]
