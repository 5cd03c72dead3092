"""Command-line interface: convert NIMS bin time series to Mini-SEED."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from mt2mseed import __version__
from mt2mseed.config import (
    DEFAULT_RECORD_LENGTH,
    MODE_CONSOLIDATED,
    MODE_PER_CHANNEL,
    MODE_SINGLE,
    ConversionConfig,
)
from mt2mseed.conversion.driver import Converter
from mt2mseed.errors import ConfigError
from mt2mseed.ingest.listfile import expand_inputs

logger = logging.getLogger(__name__)

PACKAGE = "mt2mseed"


# =============================================================================
# Logging setup
# =============================================================================


def setup_logging(verbose: int) -> None:
    """Configure logging based on the number of -v flags."""
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s.%(msecs)03d [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


# =============================================================================
# Argument parsing
# =============================================================================


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that exits with status 1 on usage errors."""

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog=PACKAGE,
        description="Convert MT bin file time series data to Mini-SEED.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Supported Mini-SEED encoding formats:
    3  : 32-bit integers
    10 : Steim 1 compression 32-bit integers
    11 : Steim 2 compression 32-bit integers (default)

Examples:
    %(prog)s -s SITE1 site1.bin                   # one file per start time: EM.SITE1.<time>
    %(prog)s -C -s SITE1 site1.bin                # one file per channel segment
    %(prog)s -o all.mseed -e 10 -r 512 a.bin b.bin
    %(prog)s -o - @files.txt > out.mseed         # list file, output to stdout
        """,
    )

    parser.add_argument("-V", "--version", action="version", version=f"{PACKAGE} version: {__version__}")
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Be more verbose, multiple flags can be used",
    )
    parser.add_argument(
        "-S",
        dest="rate_descriptor",
        action="store_true",
        help="Include SEED blockette 100 for very irrational sample rates",
    )
    parser.add_argument(
        "-C",
        dest="chanfiles",
        action="store_true",
        help="Create a separate output file for each channel segment",
    )
    parser.add_argument("-n", dest="network", metavar="network", default="EM", help="SEED network code (default: EM)")
    parser.add_argument("-s", dest="station", metavar="station", default="", help="SEED station code, default is blank")
    parser.add_argument("-l", dest="location", metavar="location", default="", help="SEED location code, default is blank")
    parser.add_argument(
        "-r",
        dest="record_length",
        metavar="bytes",
        type=int,
        default=DEFAULT_RECORD_LENGTH,
        help=f"Record length in bytes for packing (default: {DEFAULT_RECORD_LENGTH})",
    )
    parser.add_argument(
        "-e",
        dest="encoding",
        metavar="encoding",
        default="11",
        help="SEED encoding format for packing (default: 11, Steim2)",
    )
    parser.add_argument(
        "-b",
        dest="byte_order",
        metavar="byteorder",
        type=int,
        default=1,
        help="Byte order for packing, MSBF: 1 (default), LSBF: 0",
    )
    parser.add_argument(
        "-o",
        dest="outfile",
        metavar="outfile",
        help="Output file ('-' for stdout), default is NET.STA.yyyy-mm-ddTHH:MM:SS",
    )
    parser.add_argument(
        "-d",
        "--output-dir",
        metavar="DIR",
        default=".",
        help="Directory for generated output file names (default: current directory)",
    )
    parser.add_argument(
        "--report",
        metavar="CSV",
        help="Write the packed segment inventory to a CSV file",
    )
    parser.add_argument(
        "files",
        nargs="*",
        metavar="file",
        help="File(s) of input data; a file prefixed with '@' contains a list of data files",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> ConversionConfig:
    """Build and validate the run configuration from parsed arguments."""
    if args.outfile:
        mode = MODE_SINGLE
    elif args.chanfiles:
        mode = MODE_PER_CHANNEL
    else:
        mode = MODE_CONSOLIDATED

    return ConversionConfig.create(
        network=args.network,
        station=args.station,
        location=args.location,
        record_length=args.record_length,
        encoding=args.encoding,
        byte_order=args.byte_order,
        rate_descriptor=args.rate_descriptor,
        output_mode=mode,
        output_path=args.outfile,
        output_dir=args.output_dir,
    )


# =============================================================================
# Main entry point
# =============================================================================


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if not args.files:
        print("No input files were specified\n", file=sys.stderr)
        print(f"{PACKAGE} version {__version__}\n", file=sys.stderr)
        print(f"Try {PACKAGE} -h for usage", file=sys.stderr)
        return 1

    logger.info("%s version: %s", PACKAGE, __version__)

    try:
        config = config_from_args(args)
    except ConfigError as exc:
        print(f"{exc}", file=sys.stderr)
        return 1

    files = expand_inputs(args.files)
    summary = Converter(config).run(files)

    print(
        f"Packed {summary.packed_samples} samples into {summary.packed_records} records",
        file=sys.stderr,
    )
    if args.report:
        summary.write_report(args.report)
        logger.info("Wrote segment inventory to %s", args.report)

    return 0
