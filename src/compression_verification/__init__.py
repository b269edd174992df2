"""
# Verifying error-bounded lossy compression with `compression-verification`

Error-bounded lossy compressors promise that the reconstruction error stays
below a user-provided tolerance. This package checks that promise for a single
run: the [`VerificationPipeline`][compression_verification.VerificationPipeline]
loads (or synthesizes) the data, compresses and decompresses it with a
[`CompressionBackend`][compression_verification.backends.abc.CompressionBackend],
and compares the measured error against the tolerance.

The tolerance is either absolute or relative to the norm of the data, and the
error is measured in the L2 or the L-infinity norm, selected by the
smoothness parameter `s`.
"""

__all__ = [
    "VerificationPipeline",
    "RunConfig",
    "RunResult",
    "BackendConfig",
    "BackendKind",
]

from .backends import BackendKind
from .config import BackendConfig, RunConfig
from .pipeline import RunResult, VerificationPipeline
