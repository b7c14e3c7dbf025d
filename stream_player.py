#!/usr/bin/env python3
"""Replay a recorded byte stream against a server and measure throughput."""

import argparse
import logging
import sys
from pathlib import Path

from replay.runner import ExitCode, RunOptions, run
from session.player import SessionOptions
from session.report import StatsReport
from wire.protocol import (
    DEFAULT_CONNECT_TIMEOUT_S,
    DEFAULT_PORT,
    IDLE_TIMEOUT_MS,
    LOG_LEVEL,
)

logger = logging.getLogger(__name__)

LOG_LEVELS = ["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"]


def _non_negative_int(text: str) -> int:
    value = int(text)
    if value < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return value


def _positive_int(text: str) -> int:
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Replay a recorded session against a server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s session.bin                      Replay against a local discard server
  %(prog)s session.bin cache.local          Replay against cache.local (default port)
  %(prog)s session.bin 10.0.0.5:9000 -i 20 -c 4
                                            20 iterations, 4 connections at a time
""",
    )
    parser.add_argument("file_path", type=Path, help="Recorded source file")
    parser.add_argument(
        "server_address",
        nargs="?",
        default=None,
        help=f"Server as host[:port] (default port: {DEFAULT_PORT}); "
        "omit to measure against a local discard server",
    )
    parser.add_argument(
        "-i",
        "--iterations",
        type=_non_negative_int,
        default=1,
        help="Number of times to send the recorded session (default: 1)",
    )
    parser.add_argument(
        "-c",
        "--max-concurrency",
        type=_positive_int,
        default=1,
        help="Number of concurrent connections to the server (default: 1)",
    )
    parser.add_argument(
        "-d",
        "--debug-protocol",
        action="store_true",
        help="Print protocol stream debugging data to the console",
    )
    parser.add_argument(
        "-q",
        "--no-verbose",
        dest="verbose",
        action="store_false",
        help="Do not show progress and result statistics",
    )
    parser.add_argument(
        "-t",
        "--idle-timeout",
        type=_positive_int,
        default=IDLE_TIMEOUT_MS,
        help=f"Quiet period in ms that ends a session (default: {IDLE_TIMEOUT_MS})",
    )
    parser.add_argument(
        "-p",
        "--default-port",
        type=_positive_int,
        default=DEFAULT_PORT,
        help=f"Port used when the address has none (default: {DEFAULT_PORT})",
    )
    parser.add_argument(
        "--framed",
        action="store_true",
        help="Source already contains protocol frames; send them as recorded",
    )
    parser.add_argument(
        "--connect-timeout",
        type=float,
        default=DEFAULT_CONNECT_TIMEOUT_S,
        help=f"Connection timeout in seconds (default: {DEFAULT_CONNECT_TIMEOUT_S})",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=LOG_LEVEL if LOG_LEVEL in LOG_LEVELS else "INFO",
        help="Logging level (default: INFO, or $STREAM_PLAYER_LOG_LEVEL)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level)

    options = RunOptions(
        iterations=args.iterations,
        max_concurrency=args.max_concurrency,
        verbose=args.verbose,
        default_port=args.default_port,
        session=SessionOptions(
            idle_timeout_s=args.idle_timeout / 1000,
            debug_protocol=args.debug_protocol,
            realign=args.framed,
            connect_timeout_s=args.connect_timeout,
        ),
    )

    try:
        stats = run(args.file_path, args.server_address, options)
    except Exception as e:
        logger.debug("Replay failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.FAILURE

    if args.verbose:
        StatsReport(stats).print()
    return ExitCode.SUCCESS


if __name__ == "__main__":
    sys.exit(main())
