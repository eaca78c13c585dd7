from abc import abstractmethod
from numbers import Number
from typing import Any, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from ..core.array import Array
from ..core.context import Context
from ..core.function import Function, OpKind, register_function


class Elementwise(Function):
    """
    Base class for unary element-wise operations.

    Subclasses provide ``_compute`` (the forward map on a numpy array) and
    ``_derivative`` (f'(x), given the input and the forward result). The
    backward rule is then ``grad_output * f'(x)``.
    """

    @staticmethod
    @abstractmethod
    def _compute(x: NDArray[Any], **kwargs: Any) -> NDArray[Any]:
        raise NotImplementedError

    @staticmethod
    @abstractmethod
    def _derivative(x: Array, result: Array, **kwargs: Any) -> Array:
        raise NotImplementedError

    @classmethod
    def _validate(cls, x: Array, **kwargs: Any) -> None:
        pass

    @classmethod
    def forward(cls, ctx: Context, x: Array, **kwargs: Any) -> Array:
        cls._validate(x, **kwargs)
        result = x.map(lambda data: cls._compute(data, **kwargs))
        ctx.save_for_backward(x)
        ctx.save_arguments(**kwargs)
        # exp, tanh and sigmoid reuse their output in the derivative
        ctx.store_intermediate("result", result)
        return result

    @classmethod
    def backward(cls, ctx: Context, grad_output: Array) -> Tuple[Optional[Array], ...]:
        if not ctx.needs_input_grad[0]:
            return (None,)
        (x,) = ctx.saved_arrays
        result = ctx.get_intermediate("result")
        return (grad_output * cls._derivative(x, result, **ctx.saved_arguments),)


@register_function
class Power(Elementwise):
    """
    Element-wise power with a scalar exponent.

    Forward: f(x) = x^p
    Backward: f'(x) = p * x^(p-1)
    """

    kind = OpKind.POWER

    @classmethod
    def _validate(cls, x: Array, exponent: Any = None) -> None:
        if isinstance(exponent, bool) or not isinstance(exponent, Number):
            raise TypeError(f"Exponent must be a real scalar, got {type(exponent).__name__}")

    @staticmethod
    def _compute(x: NDArray[Any], exponent: float = 1.0) -> NDArray[Any]:
        return np.power(x, exponent)

    @staticmethod
    def _derivative(x: Array, result: Array, exponent: float = 1.0) -> Array:
        return x.map(lambda data: exponent * np.power(data, exponent - 1))


@register_function
class Exp(Elementwise):
    """
    Exponential operation.

    Forward: f(x) = exp(x)
    Backward: f'(x) = exp(x)
    """

    kind = OpKind.EXP

    @staticmethod
    def _compute(x: NDArray[Any]) -> NDArray[Any]:
        return np.exp(x)

    @staticmethod
    def _derivative(x: Array, result: Array) -> Array:
        return result


@register_function
class Log(Elementwise):
    """
    Logarithm operation, natural unless a base is given.

    Forward: f(x) = ln(x) / ln(base)
    Backward: f'(x) = 1 / (x * ln(base))

    Note: This operation requires positive input values as log is undefined
    for negative numbers and zero.
    """

    kind = OpKind.LOG

    @classmethod
    def _validate(cls, x: Array, base: Optional[float] = None) -> None:
        if np.any(x.numpy() <= 0):
            raise ValueError("Log of negative numbers or zero is undefined")
        if base is not None and (base <= 0 or base == 1):
            raise ValueError(f"Invalid logarithm base: {base}")

    @staticmethod
    def _compute(x: NDArray[Any], base: Optional[float] = None) -> NDArray[Any]:
        if base is None:
            return np.log(x)
        return np.log(x) / np.log(base)

    @staticmethod
    def _derivative(x: Array, result: Array, base: Optional[float] = None) -> Array:
        if base is None:
            return 1.0 / x
        return 1.0 / (x * float(np.log(base)))


@register_function
class Sin(Elementwise):
    kind = OpKind.SIN

    @staticmethod
    def _compute(x: NDArray[Any]) -> NDArray[Any]:
        return np.sin(x)

    @staticmethod
    def _derivative(x: Array, result: Array) -> Array:
        return x.map(np.cos)


@register_function
class Cos(Elementwise):
    kind = OpKind.COS

    @staticmethod
    def _compute(x: NDArray[Any]) -> NDArray[Any]:
        return np.cos(x)

    @staticmethod
    def _derivative(x: Array, result: Array) -> Array:
        return -x.map(np.sin)


@register_function
class Tanh(Elementwise):
    kind = OpKind.TANH

    @staticmethod
    def _compute(x: NDArray[Any]) -> NDArray[Any]:
        return np.tanh(x)

    @staticmethod
    def _derivative(x: Array, result: Array) -> Array:
        return 1.0 - result * result


@register_function
class Sigmoid(Elementwise):
    """
    Logistic sigmoid.

    Forward: f(x) = 1 / (1 + exp(-x))
    Backward: f'(x) = f(x) * (1 - f(x))
    """

    kind = OpKind.SIGMOID

    @staticmethod
    def _compute(x: NDArray[Any]) -> NDArray[Any]:
        return 1.0 / (1.0 + np.exp(-x))

    @staticmethod
    def _derivative(x: Array, result: Array) -> Array:
        return result * (1.0 - result)


@register_function
class ReLU(Elementwise):
    kind = OpKind.RELU

    @staticmethod
    def _compute(x: NDArray[Any]) -> NDArray[Any]:
        return np.maximum(x, 0)

    @staticmethod
    def _derivative(x: Array, result: Array) -> Array:
        # Subgradient 0 at x == 0
        return x.map(lambda data: (data > 0).astype(data.dtype))
