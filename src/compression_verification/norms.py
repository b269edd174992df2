"""
Norms, reconstruction errors, and the conversion of relative tolerances.
"""

__all__ = ["norm", "error", "absolute_tolerance"]

import numpy as np

from .config import ErrorBoundMode, NormKind
from .errors import EmptyInputError, LengthMismatchError


def norm(data: np.ndarray, kind: NormKind) -> np.floating:
    """
    Compute the `kind` norm of all elements of the `data`.

    The norm is accumulated in the working precision of the `data`, i.e. a
    single precision array produces a single precision norm.

    Parameters
    ----------
    data : np.ndarray
        The data whose norm is computed.
    kind : NormKind
        The [`NormKind.l2`][compression_verification.config.NormKind.l2] norm
        is the square root of the sum of squares, the
        [`NormKind.linf`][compression_verification.config.NormKind.linf] norm
        is the maximum absolute value.

    Returns
    -------
    norm : np.floating
        The non-negative norm.

    Raises
    ------
    EmptyInputError
        If the `data` is empty.
    """

    data = np.asarray(data).reshape(-1)

    if data.size == 0:
        raise EmptyInputError(f"{kind.value} norm")

    match kind:
        case NormKind.l2:
            return np.sqrt(np.sum(np.square(data), dtype=data.dtype))
        case NormKind.linf:
            return np.max(np.abs(data))


def error(
    original: np.ndarray, reconstructed: np.ndarray, kind: NormKind
) -> np.floating:
    """
    Compute the `kind` error between the `original` and `reconstructed` data.

    The error is the `kind` [`norm`][compression_verification.norms.norm] of
    the element-wise difference.

    Raises
    ------
    LengthMismatchError
        If both arrays have a different number of elements.
    EmptyInputError
        If both arrays are empty.
    """

    original = np.asarray(original).reshape(-1)
    reconstructed = np.asarray(reconstructed).reshape(-1)

    LengthMismatchError.check_or_raise(original.size, reconstructed.size)

    if original.size == 0:
        raise EmptyInputError(f"{kind.value} error")

    return norm(np.subtract(original, reconstructed, dtype=original.dtype), kind)


def absolute_tolerance(mode: ErrorBoundMode, tolerance: float, norm: float) -> float:
    """
    Convert the user `tolerance` into an absolute tolerance.

    The pipeline's acceptance check and the compression backends both use
    this function so that they agree on the conversion arithmetic.

    Parameters
    ----------
    mode : ErrorBoundMode
        [`ErrorBoundMode.rel`][compression_verification.config.ErrorBoundMode.rel]
        scales the `tolerance` by the `norm`,
        [`ErrorBoundMode.abs`][compression_verification.config.ErrorBoundMode.abs]
        returns it unchanged.
    tolerance : float
        The user-provided tolerance.
    norm : float
        The norm of the original data.

    Returns
    -------
    tolerance : float
        The absolute tolerance.
    """

    match mode:
        case ErrorBoundMode.rel:
            return float(tolerance) * float(norm)
        case ErrorBoundMode.abs:
            return float(tolerance)
