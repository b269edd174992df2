"""
Loading of the original data, either synthesized or read from a file.
"""

__all__ = ["DataSource", "SYNTHETIC_SEED"]

import logging
from pathlib import Path

import numpy as np

from .buffer import Buffer
from .config import SYNTHETIC_INPUT, Precision
from .errors import (
    ConfigurationError,
    DataNotFoundError,
    InsufficientMemoryError,
    ShortReadError,
    SizeMismatchError,
)

logger = logging.getLogger(__name__)

SYNTHETIC_SEED = 7117
""" Seed of the generator for synthetic data. """

SYNTHETIC_LOW = 1
SYNTHETIC_HIGH = 100


class DataSource:
    """
    Produces the original data buffer of a run.

    Parameters
    ----------
    synthetic_marker : str
        The input identifier that selects deterministic synthetic data instead
        of reading from a file.
    """

    __slots__ = ("_synthetic_marker",)
    _synthetic_marker: str

    def __init__(self, *, synthetic_marker: str = SYNTHETIC_INPUT):
        self._synthetic_marker = synthetic_marker

    def load(
        self,
        identifier: str | Path,
        expected_byte_count: int,
        enforce_size: bool,
        precision: Precision,
    ) -> Buffer:
        """
        Load `expected_byte_count` bytes of `precision` elements.

        Parameters
        ----------
        identifier : str | Path
            Either the synthetic marker or the path of a raw binary file in
            native byte order.
        expected_byte_count : int
            The number of bytes to load, a multiple of the element size.
        enforce_size : bool
            If [`True`][True], the file must contain exactly
            `expected_byte_count` bytes.
        precision : Precision
            The precision of the elements.

        Returns
        -------
        buffer : Buffer
            The loaded data, with its
            [`value_range`][compression_verification.buffer.Buffer.value_range]
            computed.

        Raises
        ------
        DataNotFoundError
            If the file does not exist.
        SizeMismatchError
            If `enforce_size` is set and the file size differs.
        ShortReadError
            If the file contains fewer than `expected_byte_count` bytes.
        """

        if expected_byte_count < 0 or expected_byte_count % precision.itemsize != 0:
            raise ConfigurationError(
                f"cannot load {expected_byte_count} bytes of {precision.name} "
                + f"precision elements of {precision.itemsize} bytes"
            )

        if str(identifier) == self._synthetic_marker:
            size = expected_byte_count // precision.itemsize
            buffer = self.synthesize(size, precision)
        else:
            buffer = self._read(
                Path(identifier), expected_byte_count, enforce_size, precision
            )

        value_range = buffer.value_range
        logger.info("Min: %f, Max: %f", value_range.min, value_range.max)

        return buffer

    @staticmethod
    def synthesize(size: int, precision: Precision) -> Buffer:
        """
        Generate `size` deterministic pseudo-random integers in [1, 100].

        The values are drawn from numpy's
        [`PCG64`][numpy.random.PCG64] generator seeded with
        [`SYNTHETIC_SEED`][compression_verification.data.SYNTHETIC_SEED], so
        equally sized buffers are bit-identical across runs and precisions.
        """

        rng = np.random.Generator(np.random.PCG64(seed=SYNTHETIC_SEED))

        # sizes beyond the address space fail with a ValueError or OverflowError
        try:
            data = rng.integers(SYNTHETIC_LOW, SYNTHETIC_HIGH + 1, size=size)
            return Buffer(data.astype(precision.dtype))
        except (MemoryError, OverflowError, ValueError) as err:
            raise InsufficientMemoryError(size * precision.itemsize) from err

    @staticmethod
    def _read(
        path: Path, expected_byte_count: int, enforce_size: bool, precision: Precision
    ) -> Buffer:
        logger.info("Loading file: %s", path)

        try:
            file = path.open("rb")
        except (FileNotFoundError, IsADirectoryError, PermissionError) as err:
            raise DataNotFoundError(path) from err

        with file:
            file_size = path.stat().st_size

            if enforce_size and file_size != expected_byte_count:
                raise SizeMismatchError(path, file_size, expected_byte_count)

            # regular files that are too short are rejected before reading
            if path.is_file() and file_size < expected_byte_count:
                raise ShortReadError(path, file_size, expected_byte_count)

            try:
                raw = file.read(expected_byte_count)
            except (MemoryError, OverflowError) as err:
                raise InsufficientMemoryError(expected_byte_count) from err

        if len(raw) != expected_byte_count:
            raise ShortReadError(path, len(raw), expected_byte_count)

        try:
            data = np.frombuffer(raw, dtype=precision.dtype).copy()
        except MemoryError as err:
            raise InsufficientMemoryError(expected_byte_count) from err

        return Buffer(data)
