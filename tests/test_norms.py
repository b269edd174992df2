import math

import numpy as np
import pytest

from compression_verification.config import ErrorBoundMode, NormKind
from compression_verification.errors import EmptyInputError, LengthMismatchError
from compression_verification.norms import absolute_tolerance, error, norm


def test_norm_small():
    data = np.array([1, -3, 2], dtype=np.float64)

    assert norm(data, NormKind.linf) == 3
    assert norm(data, NormKind.l2) == pytest.approx(math.sqrt(14))


def test_norm_working_precision():
    for dtype in (np.float32, np.float64):
        data = np.linspace(-10, 10, 101, dtype=dtype)

        for kind in NormKind:
            assert norm(data, kind).dtype == dtype


def test_norm_multidimensional():
    data = np.arange(24, dtype=np.float64).reshape(2, 3, 4)

    assert norm(data, NormKind.linf) == 23
    assert norm(data, NormKind.l2) == pytest.approx(np.linalg.norm(data.flatten()))


def test_norm_empty():
    for kind in NormKind:
        with pytest.raises(EmptyInputError, match="norm"):
            norm(np.empty(0), kind)


def test_error_identical():
    rng = np.random.Generator(np.random.PCG64(seed=42))
    data = rng.normal(size=1000)

    for kind in NormKind:
        assert error(data, data.copy(), kind) == 0


def test_error_non_negative():
    rng = np.random.Generator(np.random.PCG64(seed=42))
    a = rng.normal(size=1000)
    b = rng.normal(size=1000)

    for kind in NormKind:
        assert error(a, b, kind) > 0
        assert error(a, b, kind) == error(b, a, kind)


def test_error_values():
    original = np.array([1.0, 2.0, 3.0, 4.0])
    reconstructed = np.array([1.5, 2.0, 1.0, 4.0])

    assert error(original, reconstructed, NormKind.linf) == 2.0
    assert error(original, reconstructed, NormKind.l2) == pytest.approx(
        math.sqrt(0.25 + 4.0)
    )


def test_error_length_mismatch():
    with pytest.raises(LengthMismatchError, match="has 3 elements"):
        error(np.zeros(3), np.zeros(4), NormKind.l2)


def test_error_empty():
    with pytest.raises(EmptyInputError):
        error(np.empty(0), np.empty(0), NormKind.linf)


def test_absolute_tolerance():
    assert absolute_tolerance(ErrorBoundMode.abs, 0.5, 10.0) == 0.5
    assert absolute_tolerance(ErrorBoundMode.rel, 0.5, 10.0) == 5.0
    assert absolute_tolerance(ErrorBoundMode.rel, 0.5, 0.0) == 0.0
