"""
Finite-difference verification of backward rules.
"""

import logging
from typing import Any, Callable, Sequence

import numpy as np
from numpy.typing import NDArray

from ..core.tensor import Tensor, constant, variable

logger = logging.getLogger(__name__)


def numerical_gradient(
    fn: Callable[..., Tensor],
    inputs: Sequence[NDArray[Any]],
    idx: int,
    epsilon: float = 1e-6,
) -> NDArray[Any]:
    """
    Estimates d(sum(fn(*inputs)))/d(inputs[idx]) with central differences.

    Args:
        fn: Function building a Tensor from one Tensor per input
        inputs: Input values as numpy arrays
        idx: Which input to differentiate with respect to
        epsilon: Perturbation size

    Returns:
        Array shaped like inputs[idx]
    """
    values = [np.array(x, dtype=np.float64) for x in inputs]
    inp = values[idx]
    grad = np.zeros_like(inp)

    def evaluate() -> float:
        tensors = (constant(v.copy(), dtype=np.float64) for v in values)
        return float(np.sum(fn(*tensors).numpy()))

    it = np.nditer(inp, flags=["multi_index"])
    while not it.finished:
        ix = it.multi_index
        old_value = inp[ix]

        inp[ix] = old_value + epsilon
        pos_output = evaluate()
        inp[ix] = old_value - epsilon
        neg_output = evaluate()
        inp[ix] = old_value

        grad[ix] = (pos_output - neg_output) / (2 * epsilon)
        it.iternext()

    return grad


def check_gradient(
    fn: Callable[..., Tensor],
    *inputs: Any,
    epsilon: float = 1e-6,
    rtol: float = 1e-4,
    atol: float = 1e-6,
) -> bool:
    """
    Verifies the analytic gradients of fn against numerical gradients.

    Every input becomes a float64 variable Tensor, whatever the configured
    default dtype. The analytic gradient of fn's output (seeded with ones) is
    compared with a central-difference estimate of the gradient of the
    output's sum.

    Args:
        fn: Function building a Tensor from one Tensor per input
        *inputs: Input values (anything numpy.array accepts)
        epsilon: Perturbation size for the numerical estimate
        rtol: Relative tolerance of the comparison
        atol: Absolute tolerance of the comparison

    Returns:
        True if gradients match within tolerance, False otherwise
    """
    values = [np.array(x, dtype=np.float64) for x in inputs]
    tensors = [variable(v, dtype=np.float64) for v in values]
    output = fn(*tensors)

    for idx, tensor in enumerate(tensors):
        analytical = output.grad(tensor).numpy()
        numerical = numerical_gradient(fn, values, idx, epsilon)
        if not np.allclose(analytical, numerical, rtol=rtol, atol=atol):
            logger.debug(
                "gradient mismatch for input %d: max abs error %g",
                idx,
                float(np.max(np.abs(analytical - numerical))) if analytical.size else 0.0,
            )
            return False
    return True
