"""
Compression backend that executes on the CPU with numpy.
"""

__all__ = ["CpuBackend"]

from types import ModuleType

import numpy as np
from typing_extensions import override  # MSPV 3.12

from ..config import Device
from .quantized import QuantizingBackend


class CpuBackend(QuantizingBackend):
    """
    The reference quantization backend, executed with numpy on the CPU.
    """

    __slots__ = ()

    kind = "cpu"
    device = Device.cpu

    @override
    def _array_module(self) -> ModuleType:
        return np
