import math
import sys

import numpy as np
import pytest

from compression_verification.backends import BackendKind
from compression_verification.cli import main, parse_config
from compression_verification.config import (
    BackendConfig,
    Device,
    ErrorBoundMode,
    NormKind,
    Precision,
    Shape,
)
from compression_verification.errors import (
    ConfigurationError,
    UnsupportedDimensionalityError,
)

from .backends import OffsetBackend


def test_parse_config():
    config, verbose = parse_config(
        ["random", "s", "3", "4", "5", "6", "rel", "1e-3", "inf", "gpu"]
    )

    assert not verbose
    assert config.input == "random"
    assert config.precision == Precision.single
    assert config.shape == Shape([4, 5, 6])
    assert config.mode == ErrorBoundMode.rel
    assert config.tolerance == 1e-3
    assert config.s == math.inf
    assert config.norm_kind == NormKind.linf
    assert config.device == Device.gpu
    assert not config.enforce_size
    assert config.backend == BackendConfig()


def test_parse_config_options():
    config, verbose = parse_config(
        [
            "--check-size",
            "--huffman-dict-size",
            "64",
            "--huffman-block-size",
            "128",
            "--lz4",
            "--lz4-block-size",
            "256",
            "--no-reduce-memory-footprint",
            "--no-sync",
            "--no-timing",
            "-v",
            "data.bin",
            "d",
            "1",
            "100",
            "abs",
            "0.5",
            "2",
            "cpu",
        ]
    )

    assert verbose
    assert config.input == "data.bin"
    assert config.enforce_size
    assert config.norm_kind == NormKind.l2
    assert config.backend == BackendConfig(
        huffman_dict_size=64,
        huffman_block_size=128,
        enable_lz4=True,
        lz4_block_size=256,
        reduce_memory_footprint=False,
        sync_and_check_kernels=False,
        timing=False,
    )


@pytest.mark.parametrize(
    "argv",
    [
        ["random"],
        ["random", "s", "2", "10", "abs", "5", "0", "cpu"],
        ["random", "s", "1", "10", "abs", "5", "0", "cpu", "extra"],
        ["random", "f", "1", "10", "abs", "5", "0", "cpu"],
        ["random", "s", "two", "10", "10", "abs", "5", "0", "cpu"],
        ["random", "s", "1", "0", "abs", "5", "0", "cpu"],
        ["random", "s", "1", "10", "pw", "5", "0", "cpu"],
        ["random", "s", "1", "10", "abs", "five", "0", "cpu"],
        ["random", "s", "1", "10", "abs", "5", "nan", "cpu"],
        ["random", "s", "1", "10", "abs", "5", "0", "tpu"],
        ["--unknown", "random", "s", "1", "10", "abs", "5", "0", "cpu"],
    ],
)
def test_parse_config_malformed(argv):
    with pytest.raises(ConfigurationError):
        parse_config(argv)


@pytest.mark.parametrize("ndim", ["0", "6"])
def test_parse_config_unsupported_dimensionality(ndim):
    with pytest.raises(UnsupportedDimensionalityError):
        parse_config(["random", "d", ndim, "abs", "5", "0", "cpu"])


def test_main_success(capsys):
    exit_code = main(["random", "s", "2", "10", "10", "abs", "5.0", "0", "cpu"])

    assert exit_code == 0

    out = capsys.readouterr().out
    assert "SUCCESS: Error tolerance met!" in out
    assert "400 bytes" in out


def test_main_tolerance_not_met(capsys, monkeypatch):
    monkeypatch.setattr(
        BackendKind, "for_device", staticmethod(lambda device: OffsetBackend(10.0))
    )

    exit_code = main(["random", "d", "1", "16", "abs", "1.0", "inf", "cpu"])

    assert exit_code == -1
    assert "FAILURE: Error tolerance NOT met!" in capsys.readouterr().out


def test_main_help(capsys):
    assert main(["-h"]) == 0
    assert "usage:" in capsys.readouterr().out


@pytest.mark.parametrize(
    "argv",
    [
        [],
        ["random", "s", "2", "10", "abs", "5", "0", "cpu"],
        ["random", "s", "6", "1", "1", "1", "1", "1", "1", "abs", "5", "0", "cpu"],
    ],
)
def test_main_usage(capsys, argv):
    assert main(argv) == 0

    out = capsys.readouterr().out
    assert "usage:" in out
    assert "SUCCESS" not in out


def test_main_not_found(capsys, tmp_path):
    exit_code = main(
        [str(tmp_path / "missing.bin"), "d", "1", "4", "abs", "1", "0", "cpu"]
    )

    assert exit_code == 1
    assert "DataNotFoundError" in capsys.readouterr().out


def test_main_size_mismatch(tmp_path):
    path = tmp_path / "data.f64"
    np.arange(5, dtype=np.float64).tofile(path)

    assert main(["--check-size", str(path), "d", "1", "4", "abs", "1", "0", "cpu"]) == 2


def test_main_short_read(tmp_path):
    path = tmp_path / "data.f64"
    np.arange(2, dtype=np.float64).tofile(path)

    assert main([str(path), "d", "1", "4", "abs", "1", "0", "cpu"]) == 3


def test_main_read_file(tmp_path):
    path = tmp_path / "data.f32"
    np.linspace(0, 1, 64, dtype=np.float32).tofile(path)

    assert main([str(path), "s", "2", "8", "8", "rel", "1e-2", "0", "cpu"]) == 0


def test_main_backend_error(capsys, monkeypatch):
    monkeypatch.setitem(sys.modules, "cupy", None)

    exit_code = main(["random", "d", "1", "4", "abs", "1", "0", "gpu"])

    assert exit_code == 4
    assert "cupy" in capsys.readouterr().out


def test_main_data_too_large(capsys):
    exit_code = main(
        ["random", "d", "5", "100000", "100000", "100000", "100000", "100000"]
        + ["abs", "1", "0", "cpu"]
    )

    assert exit_code == 6
    assert "InsufficientMemoryError" in capsys.readouterr().out
