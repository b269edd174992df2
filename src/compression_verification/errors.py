"""
Error types raised while configuring and running a verification.
"""

__all__ = [
    "VerificationError",
    "ConfigurationError",
    "UnsupportedDimensionalityError",
    "DataSourceError",
    "DataNotFoundError",
    "SizeMismatchError",
    "ShortReadError",
    "BackendError",
    "InsufficientMemoryError",
    "EmptyInputError",
    "LengthMismatchError",
    "BufferReleasedError",
    "lookup_enum_or_raise",
]

from enum import Enum
from pathlib import Path
from typing import TypeVar

from typing_extensions import (
    Never,  # MSPV 3.11
    override,  # MSPV 3.12
)

Ei = TypeVar("Ei", bound=Enum)
""" Any enum type (invariant). """


class VerificationError(Exception):
    """
    Base class of all errors that end a verification run.

    Every error carries the process `exit_code` that the command-line
    interface uses when the error terminates the run.
    """

    __slots__: tuple[str, ...] = ()

    exit_code: int = 1


class ConfigurationError(VerificationError, ValueError):
    """The run was configured with invalid arguments."""

    __slots__: tuple[str, ...] = ()

    # malformed arguments print the usage and exit successfully
    exit_code = 0


class UnsupportedDimensionalityError(ConfigurationError):
    __slots__: tuple[str, ...] = ()

    MIN_DIMS: int = 1
    MAX_DIMS: int = 5

    def __init__(self, ndim: int) -> None:
        super().__init__(ndim)

    @classmethod
    def check_or_raise(cls, ndim: int) -> None | Never:
        if cls.MIN_DIMS <= ndim <= cls.MAX_DIMS:
            return None
        raise cls(ndim)

    @property
    def ndim(self) -> int:
        (ndim,) = self.args
        return ndim

    @override
    def __str__(self) -> str:
        return (
            f"unsupported number of dimensions {self.ndim}, only "
            + f"{self.MIN_DIMS} to {self.MAX_DIMS} dimensions are supported"
        )


class DataSourceError(VerificationError, OSError):
    """The input data could not be loaded."""

    __slots__: tuple[str, ...] = ()

    def __init__(self, path: Path, *args: int) -> None:
        # bypass OSError's (errno, strerror) argument interpretation
        Exception.__init__(self, path, *args)

    @property
    def path(self) -> Path:
        return self.args[0]


class DataNotFoundError(DataSourceError):
    __slots__: tuple[str, ...] = ()

    exit_code = 1

    def __init__(self, path: Path) -> None:
        super().__init__(path)

    @override
    def __str__(self) -> str:
        return f"cannot open input file {str(self.path)!r}"


class SizeMismatchError(DataSourceError):
    __slots__: tuple[str, ...] = ()

    exit_code = 2

    def __init__(self, path: Path, found: int, expected: int) -> None:
        super().__init__(path, found, expected)

    @property
    def found(self) -> int:
        (_path, found, _expected) = self.args
        return found

    @property
    def expected(self) -> int:
        (_path, _found, expected) = self.args
        return expected

    @override
    def __str__(self) -> str:
        return (
            f"{str(self.path)!r} contains {self.found} bytes when "
            + f"{self.expected} were expected"
        )


class ShortReadError(DataSourceError):
    __slots__: tuple[str, ...] = ()

    exit_code = 3

    def __init__(self, path: Path, read: int, requested: int) -> None:
        super().__init__(path, read, requested)

    @property
    def read(self) -> int:
        (_path, read, _requested) = self.args
        return read

    @property
    def requested(self) -> int:
        (_path, _read, requested) = self.args
        return requested

    @override
    def __str__(self) -> str:
        return (
            f"reading {str(self.path)!r} returned {self.read} bytes but "
            + f"{self.requested} were requested"
        )


class BackendError(VerificationError, RuntimeError):
    """The compression backend failed to compress or decompress."""

    __slots__: tuple[str, ...] = ()

    exit_code = 4

    def __init__(self, message: str, backend: None | str = None) -> None:
        super().__init__(message, backend)

    @property
    def message(self) -> str:
        (message, _backend) = self.args
        return message

    @property
    def backend(self) -> None | str:
        (_message, backend) = self.args
        return backend

    @override
    def __str__(self) -> str:
        if self.backend is None:
            return self.message
        return f"{self.backend}: {self.message}"


class InsufficientMemoryError(VerificationError, MemoryError):
    """The data of the run does not fit into memory."""

    __slots__: tuple[str, ...] = ()

    exit_code = 6

    def __init__(self, nbytes: int) -> None:
        super().__init__(nbytes)

    @property
    def nbytes(self) -> int:
        (nbytes,) = self.args
        return nbytes

    @override
    def __str__(self) -> str:
        return f"cannot allocate {self.nbytes} bytes for the data"


class EmptyInputError(VerificationError, ValueError):
    __slots__: tuple[str, ...] = ()

    exit_code = 5

    def __init__(self, what: str) -> None:
        super().__init__(what)

    @override
    def __str__(self) -> str:
        (what,) = self.args
        return f"cannot compute the {what} of an empty buffer"


class LengthMismatchError(VerificationError, ValueError):
    __slots__: tuple[str, ...] = ()

    exit_code = 5

    def __init__(self, original: int, reconstructed: int) -> None:
        super().__init__(original, reconstructed)

    @staticmethod
    def check_or_raise(original: int, reconstructed: int) -> None | Never:
        if original == reconstructed:
            return None
        raise LengthMismatchError(original, reconstructed)

    @property
    def original(self) -> int:
        (original, _reconstructed) = self.args
        return original

    @property
    def reconstructed(self) -> int:
        (_original, reconstructed) = self.args
        return reconstructed

    @override
    def __str__(self) -> str:
        return (
            f"original has {self.original} elements but the reconstruction "
            + f"has {self.reconstructed}"
        )


class BufferReleasedError(RuntimeError):
    __slots__: tuple[str, ...] = ()

    @override
    def __str__(self) -> str:
        return "buffer has already been released"


def lookup_enum_or_raise(
    enum: type[Ei], name: str, error: type[Exception] = ConfigurationError
) -> Ei | Never:
    if name in enum.__members__:
        return enum.__members__[name]

    raise error(
        f"unknown {enum.__name__} {name!r}, use one of "
        + f"{', '.join(repr(m) for m in enum.__members__)}"
    )
