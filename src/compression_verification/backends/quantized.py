"""
Reference error-bounded compressor that is shared by the CPU and GPU backends.

The data is uniformly quantized with a step that is derived from the absolute
tolerance, delta-predicted along the flattened array, and losslessly encoded.
Every stage is written against an array module (`numpy` or `cupy`), so both
devices run the same arithmetic.
"""

__all__ = ["QuantizingBackend", "FORMAT_VERSION"]

import logging
import math
import time
from abc import abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from io import BytesIO
from types import ModuleType
from typing import Any

import numpy as np
import varint
from typing_extensions import override  # MSPV 3.12

from ..buffer import Buffer, CompressedPayload
from ..config import (
    BackendConfig,
    Device,
    ErrorBoundMode,
    NormKind,
    Precision,
    Shape,
)
from ..errors import BackendError, VerificationError
from ..lossless import Lossless
from ..norms import absolute_tolerance, norm
from .abc import CompressionBackend

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
""" Version of the payload format. """

# float64 represents every integer code up to this magnitude exactly, and the
#  deltas of such codes cannot overflow int64
_MAX_CODE = 2**52


class QuantizingBackend(CompressionBackend):
    """
    Error-bounded quantization backend for an array module.

    For the L-infinity metric, the quantization step is the absolute
    tolerance. For the L2 metric, the step is the absolute tolerance divided
    by the square root of the number of elements. In both cases, the rounding
    error of every element is at most half a step, so the reconstruction
    error is at most half of the tolerance, up to the rounding of the result
    into the working precision.
    """

    __slots__ = ()

    @abstractmethod
    def _array_module(self) -> ModuleType:
        """
        The array module, e.g. `numpy`, that implements this backend.
        """

        pass

    def _synchronize(self, xp: ModuleType) -> None:
        pass

    def _release_memory(self, xp: ModuleType) -> None:
        pass

    @override
    def compress(
        self,
        shape: Shape,
        precision: Precision,
        s: float,
        tolerance: float,
        mode: ErrorBoundMode,
        device: Device,
        original: Buffer,
        config: BackendConfig,
    ) -> CompressedPayload:
        self._check_device(device)

        if original.dtype != precision.dtype:
            raise BackendError(
                f"cannot compress {original.dtype.name} data with "
                + f"{precision.name} precision",
                backend=self.kind,
            )
        if original.size != shape.size:
            raise BackendError(
                f"cannot compress {original.size} elements with shape {list(shape)}",
                backend=self.kind,
            )

        kind = NormKind.from_smoothness(s)
        data = original.data

        try:
            data_norm = norm(data, kind)
        except VerificationError as err:
            raise BackendError(str(err), backend=self.kind) from err

        eb_abs = absolute_tolerance(mode, tolerance, data_norm)

        if not (math.isfinite(eb_abs) and eb_abs > 0):
            raise BackendError(
                f"the absolute tolerance must be positive and finite but is {eb_abs}",
                backend=self.kind,
            )

        step = eb_abs if kind == NormKind.linf else eb_abs / math.sqrt(shape.size)

        logger.info("Start compressing")

        xp = self._array_module()

        with self._stage("Quantization", xp, config):
            codes = self._quantize(xp, data, step, config)

        with self._stage("Lossless encoding", xp, config):
            body = Lossless.for_config(config).encode(self._to_host(xp, codes))

        del codes
        if config.reduce_memory_footprint:
            self._release_memory(xp)

        return CompressedPayload(_encode_payload(shape, precision, step, body))

    @override
    def decompress(
        self,
        shape: Shape,
        precision: Precision,
        device: Device,
        payload: CompressedPayload,
        config: BackendConfig,
    ) -> Buffer:
        self._check_device(device)

        logger.info("Start decompressing")

        try:
            payload_shape, dtype, step, body = _decode_payload(payload.data)
        except (EOFError, ValueError, TypeError, UnicodeDecodeError) as err:
            raise BackendError(
                f"malformed payload: {err}", backend=self.kind
            ) from err

        if payload_shape != tuple(shape) or dtype != precision.dtype:
            raise BackendError(
                f"payload of {dtype.name} data with shape {list(payload_shape)} "
                + f"cannot be decompressed as {precision.name} precision data "
                + f"with shape {list(shape)}",
                backend=self.kind,
            )

        xp = self._array_module()

        with self._stage("Lossless decoding", xp, config):
            try:
                deltas = Lossless.for_config(config).decode(body)
            except (
                AssertionError,
                EOFError,
                IndexError,
                KeyError,
                RuntimeError,
                TypeError,
                ValueError,
            ) as err:
                raise BackendError(
                    f"malformed payload: {err}", backend=self.kind
                ) from err

        if deltas.size != shape.size or deltas.dtype != np.dtype(np.int64):
            raise BackendError(
                f"payload decodes to {deltas.size} {deltas.dtype.name} codes "
                + f"instead of {shape.size} int64 codes",
                backend=self.kind,
            )

        with self._stage("Dequantization", xp, config):
            codes = xp.cumsum(self._to_device(xp, deltas.reshape(-1)), dtype=xp.int64)
            reconstructed = (codes.astype(xp.float64) * step).astype(precision.dtype)

        buffer = Buffer(self._to_host(xp, reconstructed))

        del codes, reconstructed
        if config.reduce_memory_footprint:
            self._release_memory(xp)

        return buffer

    def _check_device(self, device: Device) -> None:
        if device != self.device:
            raise BackendError(
                f"cannot execute on the {device.value} device", backend=self.kind
            )

    def _to_device(self, xp: ModuleType, a: np.ndarray) -> Any:
        return xp.asarray(a)

    def _to_host(self, xp: ModuleType, a: Any) -> np.ndarray:
        return np.asarray(a)

    def _quantize(
        self, xp: ModuleType, data: np.ndarray, step: float, config: BackendConfig
    ) -> Any:
        block_size = (
            config.huffman_block_size if config.reduce_memory_footprint else data.size
        )

        codes = xp.empty(data.size, dtype=xp.int64)

        for start in range(0, data.size, max(block_size, 1)):
            block = self._to_device(xp, data[start : start + block_size])
            scaled = xp.rint(block.astype(xp.float64) / step)

            if config.sync_and_check_kernels:
                self._synchronize(xp)

            if not bool(xp.all(xp.isfinite(block))):
                raise BackendError(
                    "cannot compress data with non-finite values", backend=self.kind
                )
            if bool(xp.any(xp.abs(scaled) > _MAX_CODE)):
                raise BackendError(
                    f"the quantization step {step} is too small for the "
                    + "magnitude of the data",
                    backend=self.kind,
                )

            codes[start : start + block_size] = scaled.astype(xp.int64)

        deltas = codes.copy()
        deltas[1:] -= codes[:-1]

        return deltas

    @contextmanager
    def _stage(
        self, name: str, xp: ModuleType, config: BackendConfig
    ) -> Iterator[None]:
        start = time.perf_counter()

        yield

        if config.sync_and_check_kernels:
            self._synchronize(xp)

        if config.timing:
            logger.info("%s time: %.6f s", name, time.perf_counter() - start)


def _encode_payload(
    shape: Shape, precision: Precision, step: float, body: bytes
) -> bytes:
    dtype = precision.dtype

    # message: version ndim extents dtype step body
    message = [varint.encode(FORMAT_VERSION)]

    message.append(varint.encode(shape.ndim))
    for e in shape:
        message.append(varint.encode(e))

    message.append(varint.encode(len(dtype.str)))
    message.append(dtype.str.encode("ascii"))

    message.append(np.array(step, dtype="<f8").tobytes())

    message.append(body)

    return b"".join(message)


def _decode_payload(
    payload: bytes,
) -> tuple[tuple[int, ...], np.dtype, float, bytes]:
    b_io = BytesIO(payload)

    version = varint.decode_stream(b_io)
    if version != FORMAT_VERSION:
        raise ValueError(f"unsupported payload format version {version}")

    shape = tuple(
        varint.decode_stream(b_io) for _ in range(varint.decode_stream(b_io))
    )

    dtype = np.dtype(b_io.read(varint.decode_stream(b_io)).decode("ascii"))

    step_bytes = b_io.read(8)
    if len(step_bytes) != 8:
        raise ValueError("truncated quantization step")
    step = float(np.frombuffer(step_bytes, dtype="<f8", count=1)[0])

    if not (math.isfinite(step) and step > 0):
        raise ValueError(f"invalid quantization step {step}")

    return shape, dtype, step, b_io.read()
