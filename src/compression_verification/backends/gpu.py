"""
Compression backend that executes on a CUDA GPU with cupy.
"""

__all__ = ["GpuBackend"]

import logging
from types import ModuleType
from typing import Any

import numpy as np
from typing_extensions import override  # MSPV 3.12

from ..config import Device
from ..errors import BackendError
from .quantized import QuantizingBackend

logger = logging.getLogger(__name__)


class GpuBackend(QuantizingBackend):
    """
    The reference quantization backend, executed with
    [`cupy`](https://cupy.dev) on the current CUDA device.

    The quantization and dequantization run on the device, while the
    lossless stage runs on the host. The `cupy` package is an optional
    dependency, which is installed with the `gpu` extra.
    """

    __slots__ = ()

    kind = "gpu"
    device = Device.gpu

    @override
    def _array_module(self) -> ModuleType:
        try:
            import cupy
        except ImportError as err:
            raise BackendError(
                "the GPU backend requires cupy, install the `gpu` extra",
                backend=self.kind,
            ) from err

        try:
            num_devices = cupy.cuda.runtime.getDeviceCount()
        except cupy.cuda.runtime.CUDARuntimeError as err:
            raise BackendError(
                f"cannot query the CUDA devices: {err}", backend=self.kind
            ) from err

        if num_devices <= 0:
            raise BackendError("no CUDA device is available", backend=self.kind)

        properties = cupy.cuda.runtime.getDeviceProperties(cupy.cuda.Device().id)
        logger.debug("Using CUDA device %s", properties["name"].decode())

        return cupy

    @override
    def _synchronize(self, xp: ModuleType) -> None:
        try:
            xp.cuda.get_current_stream().synchronize()
        except xp.cuda.runtime.CUDARuntimeError as err:
            raise BackendError(f"CUDA kernel failed: {err}", backend=self.kind) from err

    @override
    def _release_memory(self, xp: ModuleType) -> None:
        xp.get_default_memory_pool().free_all_blocks()

    @override
    def _to_host(self, xp: ModuleType, a: Any) -> np.ndarray:
        return xp.asnumpy(a)
