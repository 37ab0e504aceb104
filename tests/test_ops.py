import numpy as np
import pytest

torch = pytest.importorskip("torch")

from cosgrad.backend import get_backend, set_backend
from cosgrad.tensor import Tensor


def setup_module():
    global _PREV_BACKEND
    _PREV_BACKEND = get_backend()
    set_backend("numpy")


def teardown_module():
    set_backend(_PREV_BACKEND)


@pytest.mark.parametrize("shape", [
    (100,),          # 1D Vector
    (32, 32),        # 2D Square Matrix
    (8, 16, 8),      # 3D Tensor
])
def test_op_sum(shape):
    input_np = np.random.randn(*shape).astype(np.float32)

    input_t = Tensor(input_np.copy())
    input_torch = torch.tensor(input_np.copy(), requires_grad=True)

    result_t = input_t.sum()
    result_torch = input_torch.sum()

    np.testing.assert_allclose(
        result_t.data,
        result_torch.detach().numpy(),
        rtol=1e-4,
        atol=1e-4,
        err_msg="Forward pass result for Sum does not match PyTorch"
    )

    result_t.backward()
    result_torch.backward()

    np.testing.assert_allclose(
        input_t.grad,
        input_torch.grad.numpy(),
        rtol=1e-4,
        atol=1e-4,
        err_msg="Backward pass gradient for Sum does not match PyTorch"
    )


@pytest.mark.parametrize("shape", [(100,), (16, 64)])
def test_op_mean(shape):
    input_np = np.random.randn(*shape).astype(np.float32)

    input_t = Tensor(input_np.copy())
    input_torch = torch.tensor(input_np.copy(), requires_grad=True)

    result_t = input_t.mean()
    result_torch = input_torch.mean()
    np.testing.assert_allclose(result_t.data, result_torch.detach().numpy(), rtol=1e-4, atol=1e-4)

    result_t.backward()
    result_torch.backward()
    np.testing.assert_allclose(input_t.grad, input_torch.grad.numpy(), rtol=1e-4, atol=1e-4)


def test_op_mul():
    a_np = np.random.randn(4, 6).astype(np.float32)
    b_np = np.random.randn(4, 6).astype(np.float32)

    a_t, b_t = Tensor(a_np.copy()), Tensor(b_np.copy())
    a_th = torch.tensor(a_np.copy(), requires_grad=True)
    b_th = torch.tensor(b_np.copy(), requires_grad=True)

    out_t = a_t.mul(b_t).mul(0.5).sum()
    out_th = (a_th * b_th * 0.5).sum()
    np.testing.assert_allclose(out_t.data, out_th.detach().numpy(), rtol=1e-4, atol=1e-4)

    out_t.backward()
    out_th.backward()
    np.testing.assert_allclose(a_t.grad, a_th.grad.numpy(), rtol=1e-4, atol=1e-4)
    np.testing.assert_allclose(b_t.grad, b_th.grad.numpy(), rtol=1e-4, atol=1e-4)


def test_shared_intermediate_backpropagates_once():
    x_np = np.random.randn(5, 4).astype(np.float32)
    y_np = np.random.randn(5, 4).astype(np.float32)
    x_t, y_t = Tensor(x_np.copy()), Tensor(y_np.copy())
    x_th = torch.tensor(x_np.copy(), requires_grad=True)
    y_th = torch.tensor(y_np.copy(), requires_grad=True)

    # z feeds both operands of the product
    z_t = x_t.cos_sim(y_t)
    loss_t = z_t.mul(z_t).sum()
    z_th = torch.nn.functional.cosine_similarity(x_th, y_th, dim=1)
    loss_th = (z_th * z_th).sum()
    np.testing.assert_allclose(loss_t.data, loss_th.detach().numpy(), rtol=1e-4, atol=1e-4)

    loss_t.backward()
    loss_th.backward()
    np.testing.assert_allclose(x_t.grad, x_th.grad.numpy(), rtol=1e-4, atol=1e-4)
    np.testing.assert_allclose(y_t.grad, y_th.grad.numpy(), rtol=1e-4, atol=1e-4)


def test_gradients_accumulate_across_uses():
    x_np = np.random.randn(3, 5).astype(np.float32)
    y_np = np.random.randn(3, 5).astype(np.float32)
    x_t, y_t = Tensor(x_np.copy()), Tensor(y_np.copy())
    x_th = torch.tensor(x_np.copy(), requires_grad=True)
    y_th = torch.tensor(y_np.copy(), requires_grad=True)

    # x is a leaf feeding two similarity ops
    x_t.cos_sim(y_t).sum().backward()
    x_t.cos_sim(y_t).sum().backward()
    loss_th = torch.nn.functional.cosine_similarity(x_th, y_th, dim=1).sum()
    (2 * loss_th).backward()
    np.testing.assert_allclose(x_t.grad, x_th.grad.numpy(), rtol=1e-4, atol=1e-4)
    np.testing.assert_allclose(y_t.grad, y_th.grad.numpy(), rtol=1e-4, atol=1e-4)


def test_tensor_rejects_non_arrays():
    with pytest.raises(TypeError):
        Tensor([1.0, 2.0])


def test_backward_needs_scalar():
    t = Tensor(np.ones((2, 2), dtype=np.float32)).cos_sim(np.ones((2, 2), dtype=np.float32))
    with pytest.raises(AssertionError):
        t.backward()
