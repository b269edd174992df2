"""
Immutable configuration of a verification run.
"""

__all__ = [
    "Shape",
    "Precision",
    "ErrorBoundMode",
    "NormKind",
    "Device",
    "BackendConfig",
    "RunConfig",
    "SYNTHETIC_INPUT",
]

import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import numpy as np
from typing_extensions import Self, override  # MSPV 3.11 / 3.12

from .errors import (
    ConfigurationError,
    UnsupportedDimensionalityError,
    lookup_enum_or_raise,
)

SYNTHETIC_INPUT = "random"
""" Input identifier that selects deterministic synthetic data. """


class Shape:
    """
    Extents of an N-dimensional array with 1 to 5 dimensions.

    Parameters
    ----------
    extents : Iterable[int]
        The positive extent of the array along each dimension.
    """

    __slots__ = ("_extents",)
    _extents: tuple[int, ...]

    def __init__(self, extents: Iterable[int]):
        extents = tuple(int(e) for e in extents)

        UnsupportedDimensionalityError.check_or_raise(len(extents))

        for e in extents:
            if e <= 0:
                raise ConfigurationError(
                    f"array extents must be positive but found {e} in {extents}"
                )

        self._extents = extents

    @property
    def extents(self) -> tuple[int, ...]:
        return self._extents

    @property
    def ndim(self) -> int:
        return len(self._extents)

    @property
    def size(self) -> int:
        """
        The total number of elements.
        """

        return math.prod(self._extents)

    def nbytes(self, precision: "Precision") -> int:
        return self.size * precision.itemsize

    def __len__(self) -> int:
        return len(self._extents)

    def __iter__(self) -> Iterator[int]:
        return iter(self._extents)

    def __getitem__(self, index: int) -> int:
        return self._extents[index]

    @override
    def __eq__(self, value: object, /) -> bool:
        return isinstance(value, Shape) and value._extents == self._extents

    @override
    def __hash__(self) -> int:
        return hash(self._extents)

    @override
    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self._extents)!r})"

    @override
    def __str__(self) -> str:
        return f"{self.ndim} ( {' '.join(str(e) for e in self._extents)} )"


class Precision(Enum):
    """
    Floating-point precision of the elements of a run.
    """

    single = np.dtype(np.float32)
    """32-bit IEEE 754 floating point."""

    double = np.dtype(np.float64)
    """64-bit IEEE 754 floating point."""

    @property
    def dtype(self) -> np.dtype:
        return self.value

    @property
    def itemsize(self) -> int:
        return self.value.itemsize

    @classmethod
    def from_flag(cls, flag: str) -> Self:
        """
        Parse the one-letter precision flag, `s` or `d`.
        """

        match flag:
            case "s":
                return cls.single
            case "d":
                return cls.double
            case _:
                raise ConfigurationError(
                    f"unknown precision {flag!r}, use one of 's', 'd'"
                )


class ErrorBoundMode(Enum):
    """
    Interpretation of the user-provided tolerance.
    """

    abs = "absolute"
    """The tolerance bounds the error directly."""

    rel = "relative"
    """The tolerance is a fraction of the norm of the data."""

    @classmethod
    def from_name(cls, name: str) -> Self:
        return lookup_enum_or_raise(cls, name)


class NormKind(Enum):
    """
    The metric used for both the data norm and the reconstruction error.
    """

    l2 = "L^2"
    linf = "L^infty"

    @classmethod
    def from_smoothness(cls, s: float) -> Self:
        """
        Derive the metric from the smoothness parameter `s`.

        Only `s = +inf` selects the L-infinity metric, any other value selects
        the L2 metric.
        """

        if math.isnan(s):
            raise ConfigurationError("the smoothness parameter s must not be NaN")

        return cls.linf if s == math.inf else cls.l2


class Device(Enum):
    """
    The device on which the compression backend executes.
    """

    cpu = "CPU"
    gpu = "GPU"

    @classmethod
    def from_name(cls, name: str) -> Self:
        return lookup_enum_or_raise(cls, name)


@dataclass(frozen=True, kw_only=True)
class BackendConfig:
    """
    Backend-specific options that are forwarded, uninterpreted, to every
    compress and decompress call.
    """

    huffman_dict_size: int = 8192
    """Number of symbols in the Huffman dictionary, including the escape."""

    huffman_block_size: int = 1024 * 30
    """Number of symbols that are Huffman-encoded per independent block."""

    enable_lz4: bool = False
    """Apply block-wise LZ4 after the Huffman stage."""

    lz4_block_size: int = 1 << 15
    """Number of bytes per LZ4 block."""

    reduce_memory_footprint: bool = True
    """Quantize the data in blocks instead of all at once."""

    sync_and_check_kernels: bool = True
    """Synchronize and check the device after every stage."""

    timing: bool = True
    """Log the time spent in every backend stage."""

    def __post_init__(self) -> None:
        if self.huffman_dict_size < 2:
            raise ConfigurationError(
                f"huffman_dict_size must be at least 2 but is {self.huffman_dict_size}"
            )
        for name in ("huffman_block_size", "lz4_block_size"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(
                    f"{name} must be positive but is {getattr(self, name)}"
                )


@dataclass(frozen=True, kw_only=True)
class RunConfig:
    """
    The complete configuration of one verification run.
    """

    input: str | Path
    precision: Precision
    shape: Shape
    mode: ErrorBoundMode
    tolerance: float
    s: float
    device: Device
    enforce_size: bool = False
    backend: BackendConfig = field(default_factory=BackendConfig)

    def __post_init__(self) -> None:
        if not isinstance(self.shape, Shape):
            object.__setattr__(self, "shape", Shape(self.shape))

        if math.isnan(self.tolerance) or self.tolerance < 0:
            raise ConfigurationError(
                f"tolerance must be non-negative but is {self.tolerance}"
            )

        # validates s
        NormKind.from_smoothness(self.s)

    @property
    def norm_kind(self) -> NormKind:
        return NormKind.from_smoothness(self.s)

    @property
    def is_synthetic(self) -> bool:
        return str(self.input) == SYNTHETIC_INPUT

    @property
    def original_size_bytes(self) -> int:
        return self.shape.nbytes(self.precision)
