"""
Command-line front end of the verification harness.

```
compression-verification <input> <s|d> <num_dims> <dim1> .. <dimN> \\
    <rel|abs> <tolerance> <s> <cpu|gpu>
```

The process exits with `0` if the tolerance was met and with `-1` if it was
not. Malformed arguments print the usage and exit with `0`. Errors while
loading the data or in the backend exit with the
[`exit_code`][compression_verification.errors.VerificationError.exit_code]
of the error.
"""

__all__ = ["main", "parse_config"]

import argparse
import logging
from collections.abc import Sequence

from rich.console import Console
from rich.logging import RichHandler
from typing_extensions import Never, override  # MSPV 3.12

from .config import (
    BackendConfig,
    Device,
    ErrorBoundMode,
    Precision,
    RunConfig,
    Shape,
)
from .errors import (
    ConfigurationError,
    UnsupportedDimensionalityError,
    VerificationError,
)
from .pipeline import VerificationPipeline
from .report import ReportingSink

logger = logging.getLogger(__name__)

EXIT_TOLERANCE_NOT_MET = -1

_POSITIONAL_USAGE = (
    "<input> <s|d> <num_dims> <dim1> .. <dimN> <rel|abs> <tolerance> <s> <cpu|gpu>"
)


class _UsageParser(argparse.ArgumentParser):
    @override
    def error(self, message: str) -> Never:
        raise ConfigurationError(message)


def _build_parser() -> argparse.ArgumentParser:
    defaults = BackendConfig()

    parser = _UsageParser(
        prog="compression-verification",
        usage=f"%(prog)s [options] {_POSITIONAL_USAGE}",
        description=(
            "Verify that an error-bounded compressor meets its error tolerance"
        ),
        epilog="Use 'random' as the input to generate deterministic synthetic data.",
    )
    parser.add_argument("input", help="raw binary input file or 'random'")
    parser.add_argument("precision", help="s for single, d for double precision")
    parser.add_argument(
        "operands",
        nargs="+",
        metavar="...",
        help="<num_dims> <dim1> .. <dimN> <rel|abs> <tolerance> <s> <cpu|gpu>",
    )

    parser.add_argument(
        "--check-size",
        action="store_true",
        help="require the input file to contain exactly the expected bytes",
    )
    parser.add_argument(
        "--huffman-dict-size", type=int, default=defaults.huffman_dict_size
    )
    parser.add_argument(
        "--huffman-block-size", type=int, default=defaults.huffman_block_size
    )
    parser.add_argument(
        "--lz4", action="store_true", help="apply LZ4 after the entropy coder"
    )
    parser.add_argument("--lz4-block-size", type=int, default=defaults.lz4_block_size)
    parser.add_argument(
        "--no-reduce-memory-footprint",
        dest="reduce_memory_footprint",
        action="store_false",
    )
    parser.add_argument(
        "--no-sync", dest="sync_and_check_kernels", action="store_false"
    )
    parser.add_argument("--no-timing", dest="timing", action="store_false")
    parser.add_argument("-v", "--verbose", action="store_true")

    return parser


def parse_config(argv: None | Sequence[str] = None) -> tuple[RunConfig, bool]:
    """
    Parse the command-line arguments into a run configuration.

    Parameters
    ----------
    argv : None | Sequence[str]
        The arguments without the program name, by default `sys.argv[1:]`.

    Returns
    -------
    config, verbose : tuple[RunConfig, bool]
        The run configuration and whether verbose logging was requested.

    Raises
    ------
    ConfigurationError
        If the arguments are malformed.
    SystemExit
        If the help was requested.
    """

    args = _build_parser().parse_args(argv)

    operands: list[str] = args.operands

    num_dims = _parse_number(int, operands[0], "num_dims")
    UnsupportedDimensionalityError.check_or_raise(num_dims)

    if len(operands) != num_dims + 5:
        raise ConfigurationError(
            f"expected {num_dims} dimensions followed by <rel|abs> <tolerance> "
            + f"<s> <cpu|gpu> but got {' '.join(operands[1:])!r}"
        )

    extents = [
        _parse_number(int, e, f"dimension {i}")
        for i, e in enumerate(operands[1 : num_dims + 1])
    ]
    mode, tolerance, s, device = operands[num_dims + 1 :]

    config = RunConfig(
        input=args.input,
        precision=Precision.from_flag(args.precision),
        shape=Shape(extents),
        mode=ErrorBoundMode.from_name(mode),
        tolerance=_parse_number(float, tolerance, "tolerance"),
        s=_parse_number(float, s, "s"),
        device=Device.from_name(device),
        enforce_size=args.check_size,
        backend=BackendConfig(
            huffman_dict_size=args.huffman_dict_size,
            huffman_block_size=args.huffman_block_size,
            enable_lz4=args.lz4,
            lz4_block_size=args.lz4_block_size,
            reduce_memory_footprint=args.reduce_memory_footprint,
            sync_and_check_kernels=args.sync_and_check_kernels,
            timing=args.timing,
        ),
    )

    return config, args.verbose


def main(argv: None | Sequence[str] = None) -> int:
    """
    Run one verification from the command line.

    Returns
    -------
    exit_code : int
        `0` if the tolerance was met (or the usage was printed), `-1` if it
        was not met, and the error's exit code if the run failed.
    """

    sink = ReportingSink()

    try:
        config, verbose = parse_config(argv)
    except SystemExit as help_exit:
        # the help was printed
        return 0 if help_exit.code is None else int(help_exit.code)
    except ConfigurationError as err:
        sink.print_error(err)
        sink.console.print(
            _build_parser().format_usage(), markup=False, highlight=False
        )
        return err.exit_code

    _configure_logging(verbose)

    sink.print_config(config)

    try:
        result = VerificationPipeline(config).run()
    except VerificationError as err:
        logger.debug("verification failed", exc_info=err)
        sink.print_error(err)
        return err.exit_code

    sink.print_result(result)

    return 0 if result.tolerance_met else EXIT_TOLERANCE_NOT_MET


def _parse_number(ty: type[int] | type[float], value: str, what: str) -> int | float:
    try:
        return ty(value)
    except ValueError as err:
        raise ConfigurationError(
            f"{what} must be {ty.__name__} but is {value!r}"
        ) from err


def _configure_logging(verbose: bool) -> None:
    package_logger = logging.getLogger(__package__)
    package_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        package_logger.addHandler(
            RichHandler(console=Console(stderr=True), show_path=False)
        )
