import logging

import numpy as np
import pytest
from NDpy.core import (
    Array,
    Function,
    GradError,
    OpKind,
    ShapeMismatch,
    constant,
    get_autograd_engine,
    variable,
)
from NDpy.core.function import _REGISTRY


class TestAutogradEngine:
    """Tests for the autograd engine's core functionality."""

    def setup_method(self):
        """Setup method run before each test."""
        self.engine = get_autograd_engine()

    def test_global_engine(self):
        assert get_autograd_engine() is self.engine

    def test_topological_sort(self):
        """Parents are ordered before the tensors computed from them"""
        x = variable([1.0])
        y = x * 2.0
        z = y + x
        order = self.engine._topological_sort(z)

        assert order[-1] is z
        assert order.index(x) < order.index(y) < order.index(z)
        assert len(order) == 3

    def test_topological_sort_skips_constants(self):
        x = variable([1.0])
        c = constant([2.0])
        z = x * c
        order = self.engine._topological_sort(z)
        assert all(node.requires_grad for node in order)
        assert not any(node is c for node in order)

    def test_deep_graph_is_iterative(self):
        """Long chains do not hit the recursion limit"""
        x = variable([1.0])
        y = x
        for _ in range(3000):
            y = y + 1.0
        assert y.grad(x).tolist() == [1.0]

    def test_debug_logging(self, caplog):
        x = variable([1.0, 2.0])
        z = x * x
        with caplog.at_level(logging.DEBUG, logger="NDpy.core.autograd"):
            z.grad(x)
        assert any("reachable nodes" in record.message for record in caplog.records)


class TestGradientComputation:
    """Tests for gradient computation in different graph structures."""

    def test_linear_graph(self):
        """Test gradient computation in a linear graph: z = 2x + y"""
        x = variable([2.0])
        y = variable([3.0])
        z = 2 * x + y

        assert z.grad(x).tolist() == [2.0]
        assert z.grad(y).tolist() == [1.0]

    def test_diamond_graph(self):
        """Gradients from every branch are summed"""
        #     x
        #   /   \
        #  y1   y2
        #   \   /
        #     w
        x = variable([1.0, 2.0])
        y1 = x * 3.0
        y2 = x * x
        w = y1 + y2

        # d/dx (3x + x^2) = 3 + 2x
        assert w.grad(x).tolist() == [5.0, 7.0]

    def test_shared_parent_in_single_operation(self):
        x = variable([3.0])
        z = x * x
        assert z.grad(x).tolist() == [6.0]

    def test_intermediate_target(self):
        x = variable([1.0, 2.0])
        y = x * 2.0
        z = y * y
        assert z.grad(y).tolist() == [4.0, 8.0]

    def test_self_gradient(self):
        x = variable([[1.0, 2.0]])
        assert x.grad(x).tolist() == [[1.0, 1.0]]

    def test_call_independence(self):
        """Repeated calls give identical results"""
        x = variable([1.0, 2.0, 3.0])
        y = (x * x).sum()

        first = y.grad(x)
        second = y.grad(x)
        assert first == second
        assert first.tolist() == [2.0, 4.0, 6.0]

    def test_upstream_gradient(self):
        x = variable([1.0, 2.0])
        z = x * 3.0
        upstream = Array.from_vec([2.0, -1.0], (2,))

        assert z.grad(x, upstream).tolist() == [6.0, -3.0]
        # The caller's upstream array is left untouched
        assert upstream.tolist() == [2.0, -1.0]

    def test_upstream_shape_mismatch(self):
        x = variable([1.0, 2.0])
        z = x * 3.0
        with pytest.raises(ShapeMismatch):
            z.grad(x, Array.ones((3,)))

    def test_unreachable_target(self):
        x = variable([1.0])
        unrelated = variable([2.0])
        z = x * 2.0
        with pytest.raises(GradError):
            z.grad(unrelated)

    def test_constant_target(self):
        x = variable([1.0])
        c = constant([2.0])
        z = x * c
        with pytest.raises(GradError):
            z.grad(c)

    def test_constant_source(self):
        x = variable([1.0])
        c = constant([2.0])
        with pytest.raises(GradError):
            (c * 2.0).grad(x)

    def test_zero_gradient(self):
        x = variable([1.0, 2.0])
        z = x * 0.0
        assert z.grad(x).tolist() == [0.0, 0.0]

    def test_broadcast_reduction_invariant(self):
        """Reduced gradient equals the unreduced gradient summed over stretched axes"""
        rng = np.random.default_rng(5)
        a_data = rng.standard_normal((4, 3))
        b_data = rng.standard_normal((4, 1))
        a, b = variable(a_data), variable(b_data)
        z = a * b

        grad_b = z.grad(b)
        assert grad_b.shape == (4, 1)
        assert np.allclose(grad_b.numpy(), np.sum(a_data, axis=1, keepdims=True))

    def test_nested_gradient_computation(self):
        """Requesting a gradient from inside a backward rule fails"""
        outer = variable([1.0])

        class Nested(Function):
            kind = OpKind.NEGATE

            @staticmethod
            def forward(ctx, x):
                return -x

            @staticmethod
            def backward(ctx, grad_output):
                inner = outer * 2.0
                return (inner.grad(outer),)

        original = _REGISTRY[OpKind.NEGATE]
        _REGISTRY[OpKind.NEGATE] = Nested
        try:
            z = Nested.apply(outer)
            with pytest.raises(GradError, match="Nested"):
                z.grad(outer)
        finally:
            _REGISTRY[OpKind.NEGATE] = original

        # The engine recovers once the failing call has unwound
        assert (outer * 2.0).grad(outer).tolist() == [2.0]


class TestTensorGraphs:
    def test_mlp_like_graph(self):
        """Gradient of a small two-layer network agrees with a manual computation"""
        rng = np.random.default_rng(6)
        x_data = rng.standard_normal((5, 3))
        w1_data = rng.standard_normal((3, 4))
        w2_data = rng.standard_normal((4, 1))

        x = constant(x_data)
        w1 = variable(w1_data)
        w2 = variable(w2_data)
        loss = ((x @ w1).relu() @ w2).mean()

        hidden = x_data @ w1_data
        mask = (hidden > 0).astype(np.float64)
        upstream = np.full((5, 1), 1.0 / 5.0)
        expected_w2 = (hidden * mask).T @ upstream
        expected_w1 = x_data.T @ ((upstream @ w2_data.T) * mask)

        assert np.allclose(loss.grad(w2).numpy(), expected_w2)
        assert np.allclose(loss.grad(w1).numpy(), expected_w1)
