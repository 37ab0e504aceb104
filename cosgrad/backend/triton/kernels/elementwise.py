import torch
import triton
import triton.language as tl

_BLOCK_SIZE = 1024


def _require_contiguous(x):
    # Kernels index rows as ptr + row * n_cols.
    if not x.is_contiguous():
        raise ValueError("Triton backend expects contiguous tensors.")


def _float_dtype(dtype):
    return dtype if dtype.is_floating_point else torch.float32


@triton.jit
def _sum_kernel(x_ptr, out_ptr, n_elements, scale, BLOCK_SIZE: tl.constexpr):
    # A single program walks the buffer; objectives reduce small vectors.
    offs = tl.arange(0, BLOCK_SIZE)
    acc = tl.zeros((BLOCK_SIZE,), dtype=tl.float32)
    for start in range(0, n_elements, BLOCK_SIZE):
        idx = start + offs
        acc += tl.load(x_ptr + idx, mask=idx < n_elements, other=0).to(tl.float32)
    total = tl.sum(acc, axis=0) * scale
    tl.store(out_ptr, total.to(out_ptr.dtype.element_ty))


@triton.jit
def _fill_kernel(
    src_ptr,
    out_ptr,
    n_elements,
    scale,
    FROM_SRC: tl.constexpr,
    BLOCK_SIZE: tl.constexpr,
):
    # out[:] = src[0] * scale, or just scale
    pid = tl.program_id(0)
    offs = pid * BLOCK_SIZE + tl.arange(0, BLOCK_SIZE)
    mask = offs < n_elements
    if FROM_SRC:
        value = tl.load(src_ptr).to(tl.float32) * scale
    else:
        value = scale
    tl.store(out_ptr + offs, value.to(out_ptr.dtype.element_ty), mask=mask)


@triton.jit
def _binary_kernel(
    x_ptr,
    y_ptr,
    out_ptr,
    n_elements,
    scalar,
    IS_MUL: tl.constexpr,
    Y_IS_SCALAR: tl.constexpr,
    BLOCK_SIZE: tl.constexpr,
):
    pid = tl.program_id(0)
    offs = pid * BLOCK_SIZE + tl.arange(0, BLOCK_SIZE)
    mask = offs < n_elements
    x = tl.load(x_ptr + offs, mask=mask, other=0)
    if Y_IS_SCALAR:
        y = scalar
    else:
        y = tl.load(y_ptr + offs, mask=mask, other=0)
    if IS_MUL:
        out = x * y
    else:
        out = x + y
    tl.store(out_ptr + offs, out.to(out_ptr.dtype.element_ty), mask=mask)


def _reduce_sum(x, scale=1.0):
    _require_contiguous(x)
    out = torch.empty((1,), device=x.device, dtype=_float_dtype(x.dtype))
    _sum_kernel[(1,)](x, out, x.numel(), float(scale), BLOCK_SIZE=_BLOCK_SIZE)
    return out


def _fill(shape, dtype, device, scale=1.0, src=None):
    out = torch.empty(shape, device=device, dtype=dtype)
    n_elements = out.numel()
    if n_elements == 0:
        return out
    grid = (triton.cdiv(n_elements, _BLOCK_SIZE),)
    _fill_kernel[grid](
        out if src is None else src,
        out,
        n_elements,
        float(scale),
        FROM_SRC=src is not None,
        BLOCK_SIZE=_BLOCK_SIZE,
    )
    return out


def _binary(x, y, is_mul):
    _require_contiguous(x)
    y_is_scalar = not isinstance(y, torch.Tensor)
    if not y_is_scalar:
        _require_contiguous(y)
        if x.shape != y.shape:
            raise ValueError(f"shape mismatch {tuple(x.shape)} vs {tuple(y.shape)}")
    out = torch.empty_like(x)
    n_elements = x.numel()
    if n_elements == 0:
        return out
    grid = (triton.cdiv(n_elements, _BLOCK_SIZE),)
    _binary_kernel[grid](
        x,
        x if y_is_scalar else y,
        out,
        n_elements,
        float(y) if y_is_scalar else 0.0,
        IS_MUL=is_mul,
        Y_IS_SCALAR=y_is_scalar,
        BLOCK_SIZE=_BLOCK_SIZE,
    )
    return out
