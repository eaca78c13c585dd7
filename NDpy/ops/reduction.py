from typing import Optional, Tuple, Union

from ..core.array import Array
from ..core.context import Context
from ..core.function import Function, OpKind, register_function
from ..core.shape import normalize_axes, size_of

Axis = Optional[Union[int, Tuple[int, ...]]]


def _expand_grad(ctx: Context, grad_output: Array) -> Array:
    # Re-insert the reduced axes as size 1, then stretch back to the input shape.
    input_shape = ctx.saved_arguments["input_shape"]
    axes = ctx.saved_arguments["axes"]
    if axes is None:
        kept_shape = (1,) * len(input_shape)
    else:
        kept_shape = tuple(1 if i in axes else dim for i, dim in enumerate(input_shape))
    return grad_output.reshape(kept_shape).broadcast_to(input_shape).copy()


@register_function
class Sum(Function):
    kind = OpKind.SUM

    @staticmethod
    def forward(ctx: Context, x: Array, axis: Axis = None, keepdims: bool = False) -> Array:
        axes = normalize_axes(axis, x.shape)
        ctx.save_arguments(axes=axes, keepdims=keepdims, input_shape=x.shape)
        return x.sum(axis=axes, keepdims=keepdims)

    @staticmethod
    def backward(ctx: Context, grad_output: Array) -> Tuple[Optional[Array], ...]:
        if not ctx.needs_input_grad[0]:
            return (None,)
        return (_expand_grad(ctx, grad_output),)


@register_function
class Mean(Function):
    """
    Arithmetic mean over the given axes.

    Averaging over an empty axis follows numpy: the forward value is NaN (with
    a RuntimeWarning) and the gradient is the empty array of the input shape.
    """

    kind = OpKind.MEAN

    @staticmethod
    def forward(ctx: Context, x: Array, axis: Axis = None, keepdims: bool = False) -> Array:
        axes = normalize_axes(axis, x.shape)
        ctx.save_arguments(axes=axes, keepdims=keepdims, input_shape=x.shape)
        return x.mean(axis=axes, keepdims=keepdims)

    @staticmethod
    def backward(ctx: Context, grad_output: Array) -> Tuple[Optional[Array], ...]:
        if not ctx.needs_input_grad[0]:
            return (None,)
        input_shape = ctx.saved_arguments["input_shape"]
        axes = ctx.saved_arguments["axes"]

        # Number of elements averaged into each output element
        if axes is None:
            count = size_of(input_shape)
        else:
            count = size_of([input_shape[i] for i in axes])
        grad = _expand_grad(ctx, grad_output)
        # count is 0 only when the input, and so grad, has no elements
        return (grad / count if count else grad,)
