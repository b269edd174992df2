"""
Abstract base class for the compression backends.
"""

__all__ = ["CompressionBackend"]

from abc import ABC, abstractmethod

from ..buffer import Buffer, CompressedPayload
from ..config import BackendConfig, Device, ErrorBoundMode, Precision, Shape


class CompressionBackend(ABC):
    """
    Compression backend abstract base class.

    A backend compresses a buffer under an error bound into an opaque payload
    and reconstructs a buffer of the original shape and precision from it.
    Both operations are blocking and return only on completion or failure.
    """

    __slots__ = ()
    kind: str
    """Backend kind."""

    device: Device
    """The device on which the backend executes."""

    @abstractmethod
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
        """
        Compress the `original` buffer.

        Parameters
        ----------
        shape : Shape
            The shape of the `original` data.
        precision : Precision
            The precision of the `original` data.
        s : float
            The smoothness parameter, which also selects the error metric.
        tolerance : float
            The *unadjusted* user tolerance. In relative `mode`, the backend
            converts it into an absolute tolerance itself.
        mode : ErrorBoundMode
            The interpretation of the `tolerance`.
        device : Device
            The device on which to compress.
        original : Buffer
            The data to compress, which is not modified.
        config : BackendConfig
            Backend-specific options.

        Returns
        -------
        payload : CompressedPayload
            The compressed data.

        Raises
        ------
        BackendError
            If the compression fails or the configuration is unsupported.
        """

        pass

    @abstractmethod
    def decompress(
        self,
        shape: Shape,
        precision: Precision,
        device: Device,
        payload: CompressedPayload,
        config: BackendConfig,
    ) -> Buffer:
        """
        Decompress the `payload`.

        Parameters
        ----------
        shape : Shape
            The shape of the original data.
        precision : Precision
            The precision of the original data.
        device : Device
            The device on which to decompress.
        payload : CompressedPayload
            The compressed data produced by
            [`compress`][compression_verification.backends.abc.CompressionBackend.compress].
        config : BackendConfig
            Backend-specific options.

        Returns
        -------
        reconstructed : Buffer
            The reconstructed data with exactly `shape.size` elements.

        Raises
        ------
        BackendError
            If the payload is malformed or does not match the `shape` and
            `precision`.
        """

        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
