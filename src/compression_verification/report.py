"""
Console reporting of a verification run.
"""

__all__ = ["ReportingSink", "SUCCESS_BANNER", "FAILURE_BANNER"]

import math
import warnings
from collections.abc import Iterator
from contextlib import contextmanager

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .config import RunConfig
from .pipeline import RunResult

SUCCESS_BANNER = "SUCCESS: Error tolerance met!"
FAILURE_BANNER = "FAILURE: Error tolerance NOT met!"


class ReportingSink:
    """
    Prints the configuration and the result of a run.

    The sink holds no business logic. Failing to write to the console is not
    fatal and only raises a warning.

    Parameters
    ----------
    console : None | Console
        The console to print to, by default a new
        [`Console`][rich.console.Console] on stdout.
    """

    __slots__ = ("_console",)
    _console: Console

    def __init__(self, console: None | Console = None):
        self._console = Console() if console is None else console

    @property
    def console(self) -> Console:
        return self._console

    def print_config(self, config: RunConfig) -> None:
        table = Table(
            title="Configuration",
            border_style="cyan",
            show_header=False,
            padding=(0, 2),
        )
        table.add_column("Option", style="dim")
        table.add_column("Value", style="bold")
        table.add_row("Input", str(config.input))
        table.add_row("Precision", config.precision.name)
        table.add_row("Shape", str(config.shape))
        table.add_row("Error bound mode", config.mode.value)
        table.add_row("Tolerance", f"{config.tolerance:g}")
        table.add_row("s", f"{config.s:g}")
        table.add_row("Norm", config.norm_kind.value)
        table.add_row("Device", config.device.value)

        with self._best_effort():
            self._console.print(table)

    def print_result(self, result: RunResult) -> None:
        """
        Print the value range, sizes, timings, errors and outcome of a run.

        Parameters
        ----------
        result : RunResult
            The result of the run.
        """

        table = Table(
            title="Results", border_style="cyan", show_header=False, padding=(0, 2)
        )
        table.add_column("Metric", style="dim")
        table.add_column("Value", style="bold")

        table.add_row("Min", f"{result.value_range.min:f}")
        table.add_row("Max", f"{result.value_range.max:f}")

        table.add_row("Original size", f"{result.original_size_bytes:,} bytes")
        table.add_row("Compressed size", f"{result.compressed_size_bytes:,} bytes")
        ratio = _format_ratio(result.compression_ratio)
        table.add_row("Compression ratio", f"[green]{ratio}[/green]")
        table.add_row(
            "Compression",
            f"{result.compression.seconds:.6f} s "
            + f"({_format_throughput(result.compression.throughput)})",
        )
        table.add_row(
            "Decompression",
            f"{result.decompression.seconds:.6f} s "
            + f"({_format_throughput(result.decompression.throughput)})",
        )
        table.add_row(f"{result.norm_kind.value} norm", f"{result.norm:.6e}")
        table.add_row(
            f"{result.mode.value.capitalize()} error",
            f"{result.measured_error:.6e}",
        )
        table.add_row(
            f"{result.mode.value.capitalize()} tolerance", f"{result.tolerance:.6e}"
        )

        with self._best_effort():
            self._console.print(table)
            self.print_outcome(result.tolerance_met)

    def print_outcome(self, tolerance_met: bool) -> None:
        if tolerance_met:
            banner = Text(SUCCESS_BANNER, style="bold green")
        else:
            banner = Text(FAILURE_BANNER, style="bold red")

        with self._best_effort():
            self._console.print(
                Panel(banner, border_style="green" if tolerance_met else "red")
            )

    def print_error(self, err: BaseException) -> None:
        with self._best_effort():
            self._console.print(Text(f"{type(err).__name__}: {err}", style="bold red"))

    @contextmanager
    def _best_effort(self) -> Iterator[None]:
        try:
            yield
        except OSError as err:
            warnings.warn(f"failed to write the report: {err}", stacklevel=3)


def _format_ratio(ratio: float) -> str:
    if math.isinf(ratio):
        return "inf"
    if ratio < 1:
        return f"{ratio:.4f}x"
    return f"{ratio:.2f}x"


def _format_throughput(throughput: float) -> str:
    if math.isinf(throughput):
        return "inf GB/s"
    return f"{throughput / 1e9:.3f} GB/s"
