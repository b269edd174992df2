import io
import math

import pytest
from rich.console import Console

from compression_verification.buffer import ValueRange
from compression_verification.config import (
    Device,
    ErrorBoundMode,
    NormKind,
    Precision,
    RunConfig,
)
from compression_verification.errors import DataNotFoundError
from compression_verification.pipeline import PhaseTiming, RunResult
from compression_verification.report import (
    FAILURE_BANNER,
    SUCCESS_BANNER,
    ReportingSink,
)


class BrokenFile(io.StringIO):
    def write(self, s):
        raise OSError("no space left on device")


def make_result(**kwargs) -> RunResult:
    result = dict(
        original_size_bytes=400,
        compressed_size_bytes=800,
        measured_error=0.25,
        tolerance_met=True,
        norm_kind=NormKind.l2,
        mode=ErrorBoundMode.abs,
        norm=123.0,
        tolerance=0.5,
        absolute_error=0.25,
        absolute_tolerance=0.5,
        compression=PhaseTiming(seconds=0.5, nbytes=400),
        decompression=PhaseTiming(seconds=0.0, nbytes=400),
        value_range=ValueRange(min=1.0, max=100.0),
    )
    result.update(kwargs)
    return RunResult(**result)


def make_sink() -> tuple[ReportingSink, io.StringIO]:
    file = io.StringIO()
    return ReportingSink(Console(file=file, width=120)), file


def test_print_config():
    sink, file = make_sink()

    sink.print_config(
        RunConfig(
            input="random",
            precision=Precision.single,
            shape=[10, 20],
            mode=ErrorBoundMode.rel,
            tolerance=1e-3,
            s=math.inf,
            device=Device.gpu,
        )
    )

    out = file.getvalue()
    assert "random" in out
    assert "single" in out
    assert "2 ( 10 20 )" in out
    assert "relative" in out
    assert "0.001" in out
    assert "inf" in out
    assert "L^infty" in out
    assert "GPU" in out


def test_print_result_success():
    sink, file = make_sink()

    sink.print_result(make_result())

    out = file.getvalue()
    assert "400 bytes" in out
    assert "800 bytes" in out
    # ratios below one are not truncated
    assert "0.5000x" in out
    assert "inf GB/s" in out
    assert SUCCESS_BANNER in out
    assert FAILURE_BANNER not in out


def test_print_result_failure():
    sink, file = make_sink()

    sink.print_result(
        make_result(
            tolerance_met=False,
            mode=ErrorBoundMode.rel,
            measured_error=2e-3,
            tolerance=1e-3,
        )
    )

    out = file.getvalue()
    assert "Relative error" in out
    assert "2.000000e-03" in out
    assert FAILURE_BANNER in out
    assert SUCCESS_BANNER not in out


def test_print_error():
    sink, file = make_sink()

    sink.print_error(DataNotFoundError("missing.bin"))

    assert "cannot open input file 'missing.bin'" in file.getvalue()


def test_output_errors_are_not_fatal():
    sink = ReportingSink(Console(file=BrokenFile()))

    with pytest.warns(UserWarning, match="failed to write the report"):
        sink.print_result(make_result())

    with pytest.warns(UserWarning, match="failed to write the report"):
        sink.print_outcome(False)
