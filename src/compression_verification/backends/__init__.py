"""
Implementations of the [`CompressionBackend`][compression_verification.backends.abc.CompressionBackend]s.
"""

__all__ = ["BackendKind", "CompressionBackend"]

from enum import Enum

from ..config import Device
from .abc import CompressionBackend
from .cpu import CpuBackend
from .gpu import GpuBackend


class BackendKind(Enum):
    """
    Enumeration of all supported backends, one per
    [`Device`][compression_verification.config.Device].
    """

    cpu = CpuBackend
    """Reference quantization backend on the CPU."""

    gpu = GpuBackend
    """Reference quantization backend on a CUDA GPU."""

    @classmethod
    def for_device(cls, device: Device) -> CompressionBackend:
        """
        Instantiate the backend that executes on the `device`.
        """

        return cls[device.name].value()
