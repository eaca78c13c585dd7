from typing import Optional, Tuple

from ..core.array import Array
from ..core.context import Context
from ..core.function import Function, OpKind, register_function


@register_function
class Transpose(Function):
    """Swaps the last two axes of its input."""

    kind = OpKind.TRANSPOSE

    @staticmethod
    def forward(ctx: Context, x: Array) -> Array:
        return x.transpose()

    @staticmethod
    def backward(ctx: Context, grad_output: Array) -> Tuple[Optional[Array], ...]:
        if not ctx.needs_input_grad[0]:
            return (None,)
        return (grad_output.transpose().contiguous(),)


@register_function
class Reshape(Function):
    kind = OpKind.RESHAPE

    @staticmethod
    def forward(ctx: Context, x: Array, shape: Tuple[int, ...]) -> Array:
        ctx.save_arguments(input_shape=x.shape)
        return x.reshape(shape)

    @staticmethod
    def backward(ctx: Context, grad_output: Array) -> Tuple[Optional[Array], ...]:
        if not ctx.needs_input_grad[0]:
            return (None,)
        return (grad_output.reshape(ctx.saved_arguments["input_shape"]),)
