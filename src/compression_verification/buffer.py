"""
Owned data buffers that are passed between the pipeline stages.
"""

__all__ = ["Buffer", "CompressedPayload", "ValueRange"]

from abc import ABC, abstractmethod
from dataclasses import dataclass
from types import TracebackType

import numpy as np
from typing_extensions import Self, override  # MSPV 3.11 / 3.12

from .errors import BufferReleasedError


@dataclass(frozen=True)
class ValueRange:
    """
    The minimum and maximum value of a buffer.
    """

    min: float
    max: float


class _Owned(ABC):
    __slots__ = ()

    @abstractmethod
    def release(self) -> None:
        pass

    @property
    @abstractmethod
    def released(self) -> bool:
        pass

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: None | type[BaseException],
        exc_value: None | BaseException,
        traceback: None | TracebackType,
    ) -> None:
        self.release()


class Buffer(_Owned):
    """
    An owned, contiguous, one-dimensional array of a single floating-point
    precision.

    The buffer can be used as a context manager, which releases the storage
    on exit. Accessing the data of a released buffer raises a
    [`BufferReleasedError`][compression_verification.errors.BufferReleasedError].

    Parameters
    ----------
    data : np.ndarray
        The data, which is flattened into a contiguous array that is owned by
        the buffer.
    """

    __slots__ = ("_data", "_dtype", "_size", "_value_range")
    _data: None | np.ndarray
    _dtype: np.dtype
    _size: int
    _value_range: None | ValueRange

    def __init__(self, data: np.ndarray):
        data = np.ascontiguousarray(data).reshape(-1)
        self._data = data
        self._dtype = data.dtype
        self._size = data.size
        self._value_range = None

    @property
    def data(self) -> np.ndarray:
        if self._data is None:
            raise BufferReleasedError()
        return self._data

    @property
    def dtype(self) -> np.dtype:
        return self._dtype

    @property
    def size(self) -> int:
        return self._size

    @property
    def nbytes(self) -> int:
        return self._size * self._dtype.itemsize

    @property
    def value_range(self) -> ValueRange:
        """
        The minimum and maximum value of the buffer, computed on first access.
        """

        if self._value_range is None:
            data = self.data
            if data.size == 0:
                self._value_range = ValueRange(min=float("nan"), max=float("nan"))
            else:
                self._value_range = ValueRange(
                    min=float(np.min(data)), max=float(np.max(data))
                )
        return self._value_range

    @property
    @override
    def released(self) -> bool:
        return self._data is None

    @override
    def release(self) -> None:
        self._data = None

    def __len__(self) -> int:
        return self._size

    @override
    def __repr__(self) -> str:
        state = "released" if self.released else f"size={self._size}"
        return f"{type(self).__name__}(dtype={self._dtype.name}, {state})"


class CompressedPayload(_Owned):
    """
    An owned, opaque sequence of compressed bytes.

    Parameters
    ----------
    data : bytes
        The compressed bytes.
    """

    __slots__ = ("_data", "_size")
    _data: None | bytes
    _size: int

    def __init__(self, data: bytes):
        self._data = bytes(data)
        self._size = len(self._data)

    @property
    def data(self) -> bytes:
        if self._data is None:
            raise BufferReleasedError()
        return self._data

    @property
    def nbytes(self) -> int:
        return self._size

    @property
    @override
    def released(self) -> bool:
        return self._data is None

    @override
    def release(self) -> None:
        self._data = None

    def __len__(self) -> int:
        return self._size

    @override
    def __repr__(self) -> str:
        state = "released" if self.released else f"nbytes={self._size}"
        return f"{type(self).__name__}({state})"
