"""
Package-wide configuration.

The only setting is the default floating point dtype used when arrays are
created without an explicit dtype. Its initial value is read once from the
``NDPY_DEFAULT_DTYPE`` environment variable.
"""

import os
from contextlib import contextmanager
from typing import Iterator

import numpy as np
from numpy.typing import DTypeLike

ENV_DEFAULT_DTYPE = "NDPY_DEFAULT_DTYPE"


def _validate_dtype(dtype: DTypeLike) -> np.dtype:
    try:
        resolved = np.dtype(dtype)
    except TypeError as exc:
        raise ValueError(f"Unknown dtype: {dtype!r}") from exc
    if not np.issubdtype(resolved, np.floating):
        raise ValueError(f"Default dtype must be a floating point type, got {resolved}")
    return resolved


_default_dtype = _validate_dtype(os.environ.get(ENV_DEFAULT_DTYPE, "float64"))


def get_default_dtype() -> np.dtype:
    """Returns the dtype used for arrays created without an explicit dtype."""
    return _default_dtype


def set_default_dtype(dtype: DTypeLike) -> None:
    """
    Sets the dtype used for arrays created without an explicit dtype.

    Args:
        dtype: Any numpy floating point dtype specifier

    Raises:
        ValueError: If dtype is unknown or not a floating point type
    """
    global _default_dtype
    _default_dtype = _validate_dtype(dtype)


@contextmanager
def default_dtype(dtype: DTypeLike) -> Iterator[np.dtype]:
    """Temporarily overrides the default dtype."""
    previous = get_default_dtype()
    set_default_dtype(dtype)
    try:
        yield get_default_dtype()
    finally:
        set_default_dtype(previous)
