import numpy as np
import pytest
from NDpy.core import Array, ShapeMismatch, Tensor, constant, variable
from NDpy.ops.elementwise import Elementwise
from NDpy.utils import check_gradient


class TestBasicOps:
    """Tests for arithmetic operations and their gradients"""

    def test_add(self):
        x = variable([1.0, 2.0])
        y = variable([3.0, 4.0])
        z = x + y

        assert z.value.tolist() == [4.0, 6.0]
        assert z.grad(x).tolist() == [1.0, 1.0]
        assert z.grad(y).tolist() == [1.0, 1.0]

    def test_add_broadcast_reduces_gradient(self):
        """Stretched axes are summed in the gradient"""
        x = variable([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        bias = variable([[10.0], [20.0]])
        z = x + bias

        assert z.shape == (2, 3)
        grad_bias = z.grad(bias)
        assert grad_bias.shape == (2, 1)
        assert grad_bias.tolist() == [[3.0], [3.0]]

    def test_subtract(self):
        x = variable([5.0, 3.0])
        y = variable([1.0])
        z = x - y

        assert z.value.tolist() == [4.0, 2.0]
        assert z.grad(x).tolist() == [1.0, 1.0]
        assert z.grad(y).tolist() == [-2.0]

    def test_multiply(self):
        x = variable([2.0, 3.0])
        y = variable([4.0, 5.0])
        z = x * y

        assert z.value.tolist() == [8.0, 15.0]
        assert z.grad(x).tolist() == [4.0, 5.0]
        assert z.grad(y).tolist() == [2.0, 3.0]

    def test_multiply_broadcast(self):
        """Reduced gradient equals the sum of the unreduced gradient"""
        x = variable([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
        w = variable([2.0, 3.0])
        z = x * w

        assert z.grad(w).tolist() == [9.0, 12.0]
        assert z.grad(x).tolist() == [[2.0, 3.0]] * 3

    def test_divide(self):
        x = variable([6.0, 8.0])
        y = variable([2.0, 4.0])
        z = x / y

        assert z.value.tolist() == [3.0, 2.0]
        assert np.allclose(z.grad(x).numpy(), [0.5, 0.25])
        assert np.allclose(z.grad(y).numpy(), [-1.5, -0.5])

    def test_negate(self):
        x = variable([1.0, -2.0])
        z = -x
        assert z.value.tolist() == [-1.0, 2.0]
        assert z.grad(x).tolist() == [-1.0, -1.0]

    def test_incompatible_shapes(self):
        with pytest.raises(ShapeMismatch):
            variable([1.0, 2.0]) + variable([1.0, 2.0, 3.0])

    @pytest.mark.parametrize(
        "fn",
        [
            lambda a, b: a + b,
            lambda a, b: a - b,
            lambda a, b: a * b,
            lambda a, b: a / b,
        ],
    )
    def test_numerical_gradients(self, fn):
        rng = np.random.default_rng(1)
        a = rng.uniform(0.5, 2.0, (2, 3))
        b = rng.uniform(0.5, 2.0, (3,))
        assert check_gradient(fn, a, b)


class TestMatMul:
    def test_matmul_gradient(self):
        a = Tensor.new_variable(Array.from_vec([0, 1, 2, 3, 4, 5], (2, 3)))
        b = Tensor.new_variable(Array.from_vec([4, 5, 6], (3, 1)))
        mul = a.matmul(b)

        assert mul.value.tolist() == [[17.0], [62.0]]
        assert mul.grad(b) == Array.from_vec([3, 5, 7], (3, 1))
        assert mul.grad(a).tolist() == [[4, 5, 6], [4, 5, 6]]

    def test_batched_broadcast_gradient(self):
        """Batch dimensions that were broadcast are reduced"""
        rng = np.random.default_rng(2)
        a = rng.standard_normal((4, 2, 3))
        b = rng.standard_normal((3, 5))

        ta, tb = variable(a), variable(b)
        out = ta @ tb
        grad_b = out.grad(tb)

        assert grad_b.shape == (3, 5)
        expected = np.sum(np.swapaxes(a, -1, -2) @ np.ones((4, 2, 5)), axis=0)
        assert np.allclose(grad_b.numpy(), expected)
        assert check_gradient(lambda x, y: x @ y, a, b)


class TestShapeOps:
    def test_transpose(self):
        x = variable([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        t = x.transpose()

        assert t.shape == (3, 2)
        w = constant([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
        z = t * w
        assert z.grad(x).tolist() == [[1.0, 3.0, 5.0], [2.0, 4.0, 6.0]]

    def test_reshape(self):
        x = variable([[1.0, 2.0], [3.0, 4.0]])
        r = x.reshape(4)
        assert r.shape == (4,)

        z = r * constant([1.0, 2.0, 3.0, 4.0])
        assert z.grad(x).tolist() == [[1.0, 2.0], [3.0, 4.0]]

        with pytest.raises(ShapeMismatch):
            x.reshape(3)


class TestElementwiseOps:
    """Tests for unary element-wise operations"""

    def test_power(self):
        x = variable([1.0, 2.0, 3.0])
        z = x ** 2
        assert z.value.tolist() == [1.0, 4.0, 9.0]
        assert z.grad(x).tolist() == [2.0, 4.0, 6.0]

    def test_power_requires_scalar_exponent(self):
        with pytest.raises(TypeError):
            variable([1.0]).pow(variable([2.0]))

    def test_exp(self):
        x = variable([0.0, 1.0])
        z = x.exp()
        assert np.allclose(z.value.numpy(), [1.0, np.e])
        assert np.allclose(z.grad(x).numpy(), [1.0, np.e])

    def test_log(self):
        x = variable([1.0, np.e])
        z = x.log()
        assert np.allclose(z.value.numpy(), [0.0, 1.0])
        assert np.allclose(z.grad(x).numpy(), [1.0, 1.0 / np.e])

    def test_log_base(self):
        x = variable([8.0])
        z = x.log(base=2)
        assert np.allclose(z.value.numpy(), [3.0])
        assert np.allclose(z.grad(x).numpy(), [1.0 / (8.0 * np.log(2))])

    def test_log_invalid_input(self):
        with pytest.raises(ValueError):
            variable([0.0, 1.0]).log()
        with pytest.raises(ValueError):
            variable([2.0]).log(base=1)

    def test_relu(self):
        x = variable([-1.0, 0.0, 2.0])
        z = x.relu()
        assert z.value.tolist() == [0.0, 0.0, 2.0]
        assert z.grad(x).tolist() == [0.0, 0.0, 1.0]

    def test_sigmoid(self):
        x = variable([0.0])
        z = x.sigmoid()
        assert np.allclose(z.value.numpy(), [0.5])
        assert np.allclose(z.grad(x).numpy(), [0.25])

    def test_forward_result_stored_for_backward(self):
        x = variable([0.0, 1.0])
        z = x.tanh()
        ctx = z.op.ctx

        assert len(ctx.saved_arrays) == 1
        assert ctx.get_intermediate("result") == z.value
        assert np.allclose(z.grad(x).numpy(), 1.0 - np.tanh([0.0, 1.0]) ** 2)

    def test_subclass_must_define_hooks(self):
        assert Elementwise.__abstractmethods__ == frozenset({"_compute", "_derivative"})

        class ForwardOnly(Elementwise):
            @staticmethod
            def _compute(x, **kwargs):
                return x

        with pytest.raises(TypeError):
            ForwardOnly()

    @pytest.mark.parametrize(
        "fn",
        [
            lambda x: x.pow(3),
            lambda x: x.pow(0.5),
            lambda x: x.exp(),
            lambda x: x.log(),
            lambda x: x.log(10),
            lambda x: x.sin(),
            lambda x: x.cos(),
            lambda x: x.tanh(),
            lambda x: x.sigmoid(),
        ],
    )
    def test_numerical_gradients(self, fn):
        x = np.random.default_rng(3).uniform(0.5, 2.0, (2, 3))
        assert check_gradient(fn, x)


class TestReductionOps:
    def test_sum(self):
        x = variable([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        z = x.sum()
        assert z.shape == ()
        assert z.item() == 21.0
        assert z.grad(x).tolist() == [[1.0] * 3] * 2

    def test_sum_axis(self):
        x = variable([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        z = x.sum(axis=0)
        assert z.value.tolist() == [5.0, 7.0, 9.0]

        upstream = Array.from_vec([1.0, 2.0, 3.0], (3,))
        assert z.grad(x, upstream).tolist() == [[1.0, 2.0, 3.0], [1.0, 2.0, 3.0]]

    def test_mean(self):
        x = variable([[1.0, 2.0], [3.0, 4.0]])
        z = x.mean()
        assert z.item() == 2.5
        assert z.grad(x).tolist() == [[0.25, 0.25], [0.25, 0.25]]

    def test_mean_axis_keepdims(self):
        x = variable([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        z = x.mean(axis=1, keepdims=True)
        assert z.shape == (2, 1)
        assert z.value.tolist() == [[2.0], [5.0]]
        assert np.allclose(z.grad(x).numpy(), np.full((2, 3), 1.0 / 3.0))

    def test_mean_over_empty_axis(self):
        """Averaging zero elements gives NaN and an empty gradient"""
        x = Tensor.new_variable(Array.zeros((2, 0)))
        with pytest.warns(RuntimeWarning):
            z = x.mean(axis=1)

        assert z.shape == (2,)
        assert np.isnan(z.numpy()).all()
        grad = z.grad(x)
        assert grad.shape == (2, 0)
        assert grad.size == 0

    def test_mean_over_empty_input(self):
        x = Tensor.new_variable(Array.zeros((0, 3)))
        with pytest.warns(RuntimeWarning):
            z = x.mean()
        assert z.shape == ()
        assert z.grad(x).shape == (0, 3)

    @pytest.mark.parametrize(
        "fn",
        [
            lambda x: x.sum(axis=1),
            lambda x: x.sum(axis=(0, 2), keepdims=True),
            lambda x: x.mean(axis=-1),
            lambda x: x.mean(),
        ],
    )
    def test_numerical_gradients(self, fn):
        x = np.random.default_rng(4).standard_normal((2, 3, 4))
        assert check_gradient(fn, x)
