import numpy as np

from compression_verification.backends.abc import CompressionBackend
from compression_verification.buffer import Buffer, CompressedPayload
from compression_verification.config import Device
from compression_verification.data import DataSource
from compression_verification.errors import BackendError


class IdentityBackend(CompressionBackend):
    __slots__ = ("payloads", "reconstructions", "tolerances")

    kind = "identity"
    device = Device.cpu

    def __init__(self):
        self.payloads = []
        self.reconstructions = []
        self.tolerances = []

    def compress(
        self, shape, precision, s, tolerance, mode, device, original, config
    ):
        self.tolerances.append((tolerance, mode))
        payload = CompressedPayload(original.data.tobytes())
        self.payloads.append(payload)
        return payload

    def decompress(self, shape, precision, device, payload, config):
        buffer = Buffer(np.frombuffer(payload.data, dtype=precision.dtype).copy())
        self.reconstructions.append(buffer)
        return buffer


class OffsetBackend(IdentityBackend):
    __slots__ = ("_offset",)

    kind = "offset"

    def __init__(self, offset: float):
        super().__init__()
        self._offset = offset

    def decompress(self, shape, precision, device, payload, config):
        decoded = np.frombuffer(payload.data, dtype=precision.dtype).copy()
        decoded[0] += self._offset
        buffer = Buffer(decoded)
        self.reconstructions.append(buffer)
        return buffer


class MockBackend(IdentityBackend):
    __slots__ = ("_decoded",)

    kind = "mock"

    def __init__(self, decoded: np.ndarray):
        super().__init__()
        self._decoded = decoded

    def compress(
        self, shape, precision, s, tolerance, mode, device, original, config
    ):
        payload = CompressedPayload(b"")
        self.payloads.append(payload)
        return payload

    def decompress(self, shape, precision, device, payload, config):
        assert len(payload) == 0
        buffer = Buffer(np.copy(self._decoded))
        self.reconstructions.append(buffer)
        return buffer


class FailingBackend(IdentityBackend):
    __slots__ = ("_phase",)

    kind = "failing"

    def __init__(self, phase: str):
        super().__init__()
        self._phase = phase

    def compress(
        self, shape, precision, s, tolerance, mode, device, original, config
    ):
        if self._phase == "compress":
            raise BackendError("compression failed", backend=self.kind)
        return super().compress(
            shape, precision, s, tolerance, mode, device, original, config
        )

    def decompress(self, shape, precision, device, payload, config):
        if self._phase == "decompress":
            raise BackendError("decompression failed", backend=self.kind)
        return super().decompress(shape, precision, device, payload, config)


class TrackingSource(DataSource):
    def __init__(self):
        super().__init__()
        self.buffers = []

    def load(self, identifier, expected_byte_count, enforce_size, precision):
        buffer = super().load(identifier, expected_byte_count, enforce_size, precision)
        self.buffers.append(buffer)
        return buffer
