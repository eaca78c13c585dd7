import logging
from numbers import Integral, Number
from typing import Any, Callable, Optional, Sequence, Tuple, Union

import numpy as np
from numpy.lib.stride_tricks import as_strided
from numpy.typing import DTypeLike, NDArray

from ..config import get_default_dtype
from .errors import ConstructionError, IndexOutOfRange, ShapeMismatch
from .shape import (
    Shape,
    broadcast_shapes,
    broadcast_view,
    check_shape,
    default_strides,
    matmul_shapes,
    normalize_axes,
    size_of,
)

logger = logging.getLogger(__name__)

Index = Union[int, slice, Sequence[Union[int, slice]]]
Axis = Optional[Union[int, Tuple[int, ...]]]


class Array:
    """
    An N-dimensional strided view over a flat numeric buffer.

    Several Arrays may share one buffer (slices, transposes, broadcasts). Writing
    through any of them, with []= or an in-place operator such as +=, is visible
    through all the others. Binary arithmetic never returns a view: every result
    owns a fresh contiguous buffer. Read-only views (see readonly()) reject writes.

    Attributes:
        shape: Size of every dimension
        strides: Buffer step (in elements) for every dimension
        offset: Position of the first element in the buffer
    """

    def __init__(
        self,
        buffer: NDArray[Any],
        shape: Sequence[int],
        strides: Optional[Sequence[int]] = None,
        offset: int = 0,
    ):
        if not isinstance(buffer, np.ndarray) or buffer.ndim != 1:
            raise ConstructionError("Array buffer must be a one-dimensional numpy array")

        shape = check_shape(shape)
        strides = default_strides(shape) if strides is None else tuple(int(s) for s in strides)
        if len(strides) != len(shape):
            raise ConstructionError(
                f"Got {len(strides)} strides for shape {shape}", shape=shape
            )

        if size_of(shape) > 0:
            last = offset + sum((dim - 1) * stride for dim, stride in zip(shape, strides))
            if offset < 0 or min(strides, default=0) < 0 or last >= buffer.size:
                raise ConstructionError(
                    f"Buffer of length {buffer.size} is too small for shape {shape} "
                    f"with strides {strides} and offset {offset}",
                    length=buffer.size,
                    shape=shape,
                )

        self._buffer = buffer
        self._shape: Shape = shape
        self._strides: Shape = strides
        self._offset = int(offset)
        self._readonly = False

    # Construction

    @classmethod
    def from_vec(
        cls, data: Any, shape: Sequence[int], dtype: Optional[DTypeLike] = None
    ) -> "Array":
        """
        Creates an array from flat data laid out in row-major order.

        Args:
            data: Flat sequence (or 1-D numpy array) of numbers
            shape: Shape of the resulting array
            dtype: Element type, defaults to the configured default dtype

        Raises:
            ConstructionError: If len(data) differs from the shape's element count
        """
        shape = check_shape(shape)
        buffer = np.array(data, dtype=_resolve_dtype(dtype))
        if buffer.ndim != 1:
            raise ConstructionError(
                f"Data must be flat, got nested data of shape {buffer.shape}",
                length=buffer.size,
                shape=shape,
            )
        if buffer.size != size_of(shape):
            raise ConstructionError(
                f"Incompatible shapes! Data has length of {buffer.size} "
                f"and given shape is: {shape}",
                length=buffer.size,
                shape=shape,
            )
        return cls(buffer, shape)

    @classmethod
    def full(cls, shape: Sequence[int], value: Number, dtype: Optional[DTypeLike] = None) -> "Array":
        """Creates an array of the given shape filled with value."""
        shape = check_shape(shape)
        return cls(np.full(size_of(shape), value, dtype=_resolve_dtype(dtype)), shape)

    @classmethod
    def zeros(cls, shape: Sequence[int], dtype: Optional[DTypeLike] = None) -> "Array":
        return cls.full(shape, 0, dtype)

    @classmethod
    def ones(cls, shape: Sequence[int], dtype: Optional[DTypeLike] = None) -> "Array":
        return cls.full(shape, 1, dtype)

    @classmethod
    def from_numpy(cls, data: Any) -> "Array":
        """Creates an array holding a copy of a numpy array (dtype preserved)."""
        data = np.asarray(data)
        return cls(np.array(data, order="C").reshape(-1), data.shape)

    def _view(self, shape: Shape, strides: Shape, offset: int) -> "Array":
        view = Array(self._buffer, shape, strides, offset)
        view._readonly = self._readonly
        return view

    # Inspection

    @property
    def shape(self) -> Shape:
        return self._shape

    @property
    def strides(self) -> Shape:
        return self._strides

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def dtype(self) -> np.dtype:
        return self._buffer.dtype

    @property
    def ndim(self) -> int:
        return len(self._shape)

    @property
    def size(self) -> int:
        return size_of(self._shape)

    def is_contiguous(self) -> bool:
        """Whether elements are laid out row-major without gaps."""
        expected = default_strides(self._shape)
        return all(
            dim <= 1 or stride == want
            for dim, stride, want in zip(self._shape, self._strides, expected)
        )

    def shares_buffer(self, other: "Array") -> bool:
        """Whether both arrays are views over the same buffer."""
        return self._buffer is other._buffer

    @property
    def is_readonly(self) -> bool:
        return self._readonly

    def readonly(self) -> "Array":
        """
        Returns a view over the same buffer that rejects writes.

        Views taken from it (slices, transposes, broadcasts) are read-only too.
        Other Arrays aliasing the buffer stay writable.
        """
        view = Array(self._buffer, self._shape, self._strides, self._offset)
        view._readonly = True
        return view

    def _ndarray(self) -> NDArray[Any]:
        # numpy view over exactly the elements this Array addresses.
        itemsize = self._buffer.itemsize
        return as_strided(
            self._buffer[self._offset :],
            shape=self._shape,
            strides=tuple(stride * itemsize for stride in self._strides),
            writeable=not self._readonly,
        )

    def _writable_ndarray(self) -> NDArray[Any]:
        if self._readonly:
            raise ValueError("Assignment destination is a read-only Array")
        return self._ndarray()

    def numpy(self) -> NDArray[Any]:
        """Returns a contiguous numpy copy of the array."""
        return np.array(self._ndarray(), order="C")

    def __array__(self, dtype: Optional[DTypeLike] = None, copy: Optional[bool] = None) -> NDArray[Any]:
        data = self.numpy()
        return data if dtype is None else data.astype(dtype)

    def tolist(self) -> Any:
        return self._ndarray().tolist()

    def item(self, index: Sequence[int] = ()) -> Any:
        """
        Returns the element at a full coordinate as a Python scalar.

        Raises:
            IndexOutOfRange: If index does not address a single element
        """
        index = tuple(index)
        if len(index) != self.ndim or not all(isinstance(i, Integral) for i in index):
            raise IndexOutOfRange(
                index,
                self._shape,
                f"Expected {self.ndim} integer coordinates, got {index!r}",
            )
        return self.slice(index)._ndarray()[()].item()

    def __len__(self) -> int:
        if not self._shape:
            raise TypeError("len() of a 0-d Array")
        return self._shape[0]

    # Views

    def slice(self, ranges: Index) -> "Array":
        """
        Returns a view selecting a sub-region of the array.

        Each entry of ranges addresses one leading axis: an int picks a single
        position and removes the axis, a slice keeps the axis. Axes without an
        entry are kept whole. Negative positions are not supported.

        Raises:
            IndexOutOfRange: If an entry falls outside its axis
        """
        if not isinstance(ranges, (tuple, list)):
            ranges = (ranges,)
        if len(ranges) > self.ndim:
            raise IndexOutOfRange(
                ranges,
                self._shape,
                f"Too many indices ({len(ranges)}) for array of shape {self._shape}",
            )

        offset = self._offset
        shape = []
        strides = []
        for axis, (dim, stride) in enumerate(zip(self._shape, self._strides)):
            entry = ranges[axis] if axis < len(ranges) else slice(None)
            if isinstance(entry, slice):
                start = 0 if entry.start is None else entry.start
                stop = dim if entry.stop is None else entry.stop
                step = 1 if entry.step is None else entry.step
                if not all(isinstance(v, Integral) for v in (start, stop, step)):
                    raise IndexOutOfRange(entry, self._shape)
                if step <= 0 or not 0 <= start <= stop <= dim:
                    raise IndexOutOfRange(entry, self._shape)
                offset += start * stride
                shape.append(len(range(start, stop, step)))
                strides.append(stride * step)
            elif isinstance(entry, Integral) and not isinstance(entry, bool):
                if not 0 <= entry < dim:
                    raise IndexOutOfRange(entry, self._shape)
                offset += entry * stride
            else:
                raise TypeError(f"Invalid index entry: {entry!r}")

        return self._view(tuple(shape), tuple(strides), offset)

    def __getitem__(self, key: Index) -> "Array":
        return self.slice(key)

    def __setitem__(self, key: Index, value: Union["Array", Number]) -> None:
        """Writes value into the addressed region of the shared buffer."""
        target = self.slice(key)
        if isinstance(value, Array):
            value = broadcast_view(value, target.shape)._ndarray()
        target._writable_ndarray()[...] = value

    def transpose(self) -> "Array":
        """
        Swaps the last two axes, returning a view.

        Raises:
            ShapeMismatch: If the array has fewer than 2 dimensions
        """
        if self.ndim < 2:
            raise ShapeMismatch(
                self._shape,
                self._shape,
                f"Array with less than 2 dimensions cannot be transposed. Got shape: {self._shape}",
            )
        shape = self._shape[:-2] + (self._shape[-1], self._shape[-2])
        strides = self._strides[:-2] + (self._strides[-1], self._strides[-2])
        return self._view(shape, strides, self._offset)

    def transpose_assign(self) -> None:
        """Turns this Array itself into its transposed view. The buffer is untouched."""
        transposed = self.transpose()
        self._shape = transposed.shape
        self._strides = transposed.strides

    @property
    def T(self) -> "Array":
        return self.transpose()

    def broadcast_to(self, shape: Sequence[int]) -> "Array":
        return broadcast_view(self, shape)

    def reshape(self, *shape: Any) -> "Array":
        """
        Returns the same elements with a new shape.

        A view is returned when the array is contiguous, otherwise a copy.

        Raises:
            ShapeMismatch: If the element count changes
        """
        if len(shape) == 1 and isinstance(shape[0], (tuple, list)):
            shape = shape[0]
        shape = check_shape(shape)
        if size_of(shape) != self.size:
            raise ShapeMismatch(
                self._shape, shape, f"Cannot reshape array of shape {self._shape} into {shape}"
            )
        if not self.is_contiguous():
            return self.copy().reshape(shape)
        return self._view(shape, default_strides(shape), self._offset)

    def contiguous(self) -> "Array":
        """Returns self when already contiguous, otherwise a contiguous copy."""
        return self if self.is_contiguous() else self.copy()

    def copy(self) -> "Array":
        return Array._from_ndarray(self._ndarray())

    # Arithmetic

    @staticmethod
    def _from_ndarray(data: Any) -> "Array":
        data = np.asarray(data)
        return Array(np.array(data, order="C").reshape(-1), data.shape)

    def _binary(self, other: Union["Array", Number], op: Callable[..., Any]) -> "Array":
        if isinstance(other, Array):
            shape = broadcast_shapes(self._shape, other._shape)
            left = broadcast_view(self, shape)._ndarray()
            right = broadcast_view(other, shape)._ndarray()
            return Array._from_ndarray(op(left, right))
        if isinstance(other, Number):
            return Array._from_ndarray(op(self._ndarray(), other))
        return NotImplemented

    def _reflected(self, other: Number, op: Callable[..., Any]) -> "Array":
        if isinstance(other, Number):
            return Array._from_ndarray(op(other, self._ndarray()))
        return NotImplemented

    def __add__(self, other: Union["Array", Number]) -> "Array":
        return self._binary(other, np.add)

    def __sub__(self, other: Union["Array", Number]) -> "Array":
        return self._binary(other, np.subtract)

    def __mul__(self, other: Union["Array", Number]) -> "Array":
        return self._binary(other, np.multiply)

    def __truediv__(self, other: Union["Array", Number]) -> "Array":
        return self._binary(other, np.true_divide)

    def __pow__(self, exponent: Union["Array", Number]) -> "Array":
        return self._binary(exponent, np.power)

    def __radd__(self, other: Number) -> "Array":
        return self._reflected(other, np.add)

    def __rsub__(self, other: Number) -> "Array":
        return self._reflected(other, np.subtract)

    def __rmul__(self, other: Number) -> "Array":
        return self._reflected(other, np.multiply)

    def __rtruediv__(self, other: Number) -> "Array":
        return self._reflected(other, np.true_divide)

    def __neg__(self) -> "Array":
        return Array._from_ndarray(np.negative(self._ndarray()))

    def map(self, func: Callable[[NDArray[Any]], Any]) -> "Array":
        """
        Applies a vectorised function to every element.

        Args:
            func: Callable taking and returning a numpy array of the same shape
                (numpy ufuncs such as np.sin work directly)
        """
        return Array._from_ndarray(func(self._ndarray()))

    # In-place arithmetic: results are written into this Array's own region of
    # the buffer, so they are visible through every alias. The other operand
    # must broadcast to this Array's shape.

    def _assign(self, other: Union["Array", Number], op: Callable[..., Any]) -> "Array":
        if isinstance(other, Array):
            value = broadcast_view(other, self._shape)._ndarray()
        elif isinstance(other, Number):
            value = other
        else:
            return NotImplemented
        target = self._writable_ndarray()
        op(target, value, out=target)
        return self

    def __iadd__(self, other: Union["Array", Number]) -> "Array":
        return self._assign(other, np.add)

    def __isub__(self, other: Union["Array", Number]) -> "Array":
        return self._assign(other, np.subtract)

    def __imul__(self, other: Union["Array", Number]) -> "Array":
        return self._assign(other, np.multiply)

    def __itruediv__(self, other: Union["Array", Number]) -> "Array":
        return self._assign(other, np.true_divide)

    def neg_assign(self) -> None:
        target = self._writable_ndarray()
        np.negative(target, out=target)

    def map_assign(self, func: Callable[[NDArray[Any]], Any]) -> None:
        """Replaces every element with func applied to it, in place."""
        target = self._writable_ndarray()
        target[...] = func(target.copy())

    def matmul(self, other: "Array") -> "Array":
        """
        Batched matrix product over the last two axes.

        Operands are [..., M, K] and [..., K, N]; leading dimensions are batch
        dimensions and broadcast against each other. Every M x K / K x N block
        pair is made contiguous and handed to BLAS GEMM.

        Raises:
            ShapeMismatch: If the inner dimensions differ, an operand is not at
                least 2-D, or the batch dimensions do not broadcast
        """
        if not isinstance(other, Array):
            return NotImplemented
        batch_shape, m, k, n = matmul_shapes(self._shape, other._shape)
        dtype = np.result_type(self.dtype, other.dtype)

        left = broadcast_view(self, batch_shape + (m, k))
        right = broadcast_view(other, batch_shape + (k, n))

        out = np.zeros(size_of(batch_shape) * m * n, dtype=dtype)
        blocks = out.reshape(batch_shape + (m, n))

        copies = 0
        for index in np.ndindex(*batch_shape):
            block_a = left.slice(index)
            block_b = right.slice(index)
            copies += (not block_a.is_contiguous()) + (not block_b.is_contiguous())
            _gemm(block_a.contiguous(), block_b.contiguous(), blocks[index])

        logger.debug(
            "matmul %s @ %s: %d GEMM blocks, %d contiguous copies",
            self._shape,
            other._shape,
            size_of(batch_shape),
            copies,
        )
        return Array(out, batch_shape + (m, n))

    def __matmul__(self, other: "Array") -> "Array":
        return self.matmul(other)

    # Reductions

    def _reduce(self, func: Callable[..., Any], axis: Axis, keepdims: bool) -> "Array":
        axes = normalize_axes(axis, self._shape)
        return Array._from_ndarray(func(self._ndarray(), axis=axes, keepdims=keepdims))

    def sum(self, axis: Axis = None, keepdims: bool = False) -> "Array":
        return self._reduce(np.sum, axis, keepdims)

    def mean(self, axis: Axis = None, keepdims: bool = False) -> "Array":
        return self._reduce(np.mean, axis, keepdims)

    def max(self, axis: Axis = None, keepdims: bool = False) -> "Array":
        return self._reduce(np.max, axis, keepdims)

    def min(self, axis: Axis = None, keepdims: bool = False) -> "Array":
        return self._reduce(np.min, axis, keepdims)

    def prod(self, axis: Axis = None, keepdims: bool = False) -> "Array":
        return self._reduce(np.prod, axis, keepdims)

    # Comparison and formatting

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Array):
            return NotImplemented
        return self._shape == other._shape and bool(
            np.array_equal(self._ndarray(), other._ndarray())
        )

    __hash__ = None  # type: ignore[assignment]

    def allclose(self, other: "Array", rtol: float = 1e-5, atol: float = 1e-8) -> bool:
        """Whether both arrays have the same shape and nearly equal elements."""
        return self._shape == other._shape and bool(
            np.allclose(self._ndarray(), other._ndarray(), rtol=rtol, atol=atol)
        )

    def _render(self) -> str:
        return _render_nested(self._ndarray(), 0)

    def __str__(self) -> str:
        return f"{self._render()} shape={self._shape}"

    def __repr__(self) -> str:
        return f"Array({self._render()}, shape={self._shape}, dtype={self.dtype})"


def _resolve_dtype(dtype: Optional[DTypeLike]) -> np.dtype:
    # np.dtype objects are falsy, so "dtype or default" cannot be used here.
    return get_default_dtype() if dtype is None else np.dtype(dtype)


def _gemm(a: Array, b: Array, out: NDArray[Any]) -> None:
    # a and b are contiguous; numpy.dot on 2-D float blocks dispatches to BLAS ?gemm.
    m, k = a.shape
    n = b.shape[1]
    flat_a = a._buffer[a.offset : a.offset + m * k].reshape(m, k)
    flat_b = b._buffer[b.offset : b.offset + k * n].reshape(k, n)
    np.dot(flat_a.astype(out.dtype, copy=False), flat_b.astype(out.dtype, copy=False), out=out)


def _format_element(value: Any) -> str:
    if isinstance(value, np.floating):
        return np.format_float_positional(value, trim="-")
    return str(value)


def _render_nested(data: NDArray[Any], level: int) -> str:
    if data.ndim == 0:
        return _format_element(data[()])
    if data.ndim == 1:
        return "[" + ", ".join(_format_element(x) for x in data) + "]"
    separator = "\n" * (data.ndim - 1) + " " * (level + 1)
    return "[" + separator.join(_render_nested(sub, level + 1) for sub in data) + "]"


def array(data: Any, dtype: Optional[DTypeLike] = None) -> Array:
    """
    Creates an array from (possibly nested) Python or numpy data.

    Args:
        data: Number, nested sequence or numpy array
        dtype: Element type, defaults to the configured default dtype
    """
    data = np.array(data, dtype=_resolve_dtype(dtype))
    return Array(data.reshape(-1), data.shape)
