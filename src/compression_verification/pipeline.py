"""
Implementation of the [`VerificationPipeline`][compression_verification.pipeline.VerificationPipeline], which verifies that a compression round trip meets its error tolerance.
"""

__all__ = ["VerificationPipeline", "PipelineState", "RunResult", "PhaseTiming"]

import logging
import math
import time
from contextlib import ExitStack
from dataclasses import dataclass
from enum import Enum

from .backends import BackendKind
from .backends.abc import CompressionBackend
from .buffer import Buffer, ValueRange
from .config import ErrorBoundMode, NormKind, RunConfig
from .data import DataSource
from .errors import BackendError, UnsupportedDimensionalityError
from .norms import absolute_tolerance, error, norm

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    """
    The states of a verification run, in order.
    """

    configured = "configured"
    loaded = "loaded"
    normed = "normed"
    compressed = "compressed"
    decompressed = "decompressed"
    verified = "verified"
    success = "success"
    failure = "failure"


@dataclass(frozen=True)
class PhaseTiming:
    """
    Wall-clock time and throughput of one backend call.
    """

    seconds: float
    nbytes: int

    @property
    def throughput(self) -> float:
        """
        The processed bytes per second, infinite if no time was measured.
        """

        if self.seconds <= 0:
            return math.inf
        return self.nbytes / self.seconds


@dataclass(frozen=True, kw_only=True)
class RunResult:
    """
    The outcome of one verification run.
    """

    original_size_bytes: int
    compressed_size_bytes: int
    measured_error: float
    """The error in the units of the tolerance, i.e. relative in relative mode."""
    tolerance_met: bool

    norm_kind: NormKind
    mode: ErrorBoundMode
    norm: float
    tolerance: float
    absolute_error: float
    absolute_tolerance: float
    compression: PhaseTiming
    decompression: PhaseTiming
    value_range: ValueRange
    """The minimum and maximum of the original data."""

    @property
    def compression_ratio(self) -> float:
        """
        The original size divided by the compressed size.

        The ratio is not truncated, so ratios below one are reported as such.
        """

        if self.compressed_size_bytes == 0:
            return math.inf
        return self.original_size_bytes / self.compressed_size_bytes


class VerificationPipeline:
    """
    Runs one compress-decompress round trip and checks the reconstruction
    error against the tolerance.

    Parameters
    ----------
    config : RunConfig
        The configuration of the run.
    backend : None | CompressionBackend
        The backend that compresses and decompresses. By default, the backend
        for the configured device is used.
    source : None | DataSource
        The source of the original data.
    """

    __slots__ = ("_config", "_backend", "_source", "_state")
    _config: RunConfig
    _backend: CompressionBackend
    _source: DataSource
    _state: PipelineState

    def __init__(
        self,
        config: RunConfig,
        *,
        backend: None | CompressionBackend = None,
        source: None | DataSource = None,
    ):
        self._config = config
        self._backend = (
            backend if backend is not None else BackendKind.for_device(config.device)
        )
        self._source = source if source is not None else DataSource()
        self._state = PipelineState.configured

    @property
    def config(self) -> RunConfig:
        return self._config

    @property
    def state(self) -> PipelineState:
        return self._state

    def run(self) -> RunResult:
        """
        Run the verification.

        Every buffer that the pipeline owns is released when this method
        returns, both on success and on failure.

        Returns
        -------
        result : RunResult
            The sizes, errors, and whether the tolerance was met.

        Raises
        ------
        VerificationError
            If loading the data, computing the norm, or the backend fail. All
            errors are fatal and the run is not retried.
        """

        config = self._config

        if self._state != PipelineState.configured:
            raise RuntimeError(
                f"cannot run a pipeline in the {self._state.value} state"
            )

        try:
            result = self._run(config)
        except Exception:
            self._transition(PipelineState.failure)
            raise

        self._transition(
            PipelineState.success if result.tolerance_met else PipelineState.failure
        )

        return result

    def _run(self, config: RunConfig) -> RunResult:
        shape = config.shape

        UnsupportedDimensionalityError.check_or_raise(shape.ndim)

        with ExitStack() as stack:
            original: Buffer = stack.enter_context(
                self._source.load(
                    config.input,
                    config.original_size_bytes,
                    config.enforce_size,
                    config.precision,
                )
            )
            self._transition(PipelineState.loaded)

            kind = config.norm_kind
            data_norm = float(norm(original.data, kind))
            eb_abs = absolute_tolerance(config.mode, config.tolerance, data_norm)
            self._transition(PipelineState.normed)

            start = time.perf_counter()
            payload = stack.enter_context(
                self._backend.compress(
                    shape,
                    config.precision,
                    config.s,
                    config.tolerance,
                    config.mode,
                    config.device,
                    original,
                    config.backend,
                )
            )
            compression = PhaseTiming(
                seconds=time.perf_counter() - start, nbytes=original.nbytes
            )
            self._transition(PipelineState.compressed)
            logger.info(
                "Compression time: %.6f s (%.3f GB/s)",
                compression.seconds,
                compression.throughput / 1e9,
            )

            start = time.perf_counter()
            reconstructed: Buffer = stack.enter_context(
                self._backend.decompress(
                    shape,
                    config.precision,
                    config.device,
                    payload,
                    config.backend,
                )
            )
            decompression = PhaseTiming(
                seconds=time.perf_counter() - start, nbytes=original.nbytes
            )
            self._transition(PipelineState.decompressed)
            logger.info(
                "Decompression time: %.6f s (%.3f GB/s)",
                decompression.seconds,
                decompression.throughput / 1e9,
            )

            if (
                reconstructed.size != shape.size
                or reconstructed.dtype != original.dtype
            ):
                raise BackendError(
                    f"decompressed {reconstructed.size} "
                    + f"{reconstructed.dtype.name} elements instead of "
                    + f"{shape.size} {original.dtype.name} elements",
                    backend=self._backend.kind,
                )

            abs_error = float(error(original.data, reconstructed.data, kind))
            self._transition(PipelineState.verified)

            # strictly less in the units of the tolerance, an error equal to
            #  the tolerance fails
            if config.mode == ErrorBoundMode.rel:
                measured_error = _relative_error(abs_error, data_norm)
                tolerance_met = measured_error < config.tolerance
            else:
                measured_error = abs_error
                tolerance_met = abs_error < eb_abs

            return RunResult(
                original_size_bytes=original.nbytes,
                compressed_size_bytes=payload.nbytes,
                measured_error=measured_error,
                tolerance_met=tolerance_met,
                norm_kind=kind,
                mode=config.mode,
                norm=data_norm,
                tolerance=config.tolerance,
                absolute_error=abs_error,
                absolute_tolerance=eb_abs,
                compression=compression,
                decompression=decompression,
                value_range=original.value_range,
            )

    def _transition(self, state: PipelineState) -> None:
        logger.debug("%s -> %s", self._state.value, state.value)
        self._state = state


def _relative_error(abs_error: float, data_norm: float) -> float:
    if data_norm > 0:
        return abs_error / data_norm
    return 0.0 if abs_error == 0 else math.inf
