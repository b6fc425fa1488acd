"""Command line entry point for reaper."""

import argparse
import logging

from reaper.app import ReaperApp
from reaper.inspector import ProcessInspector

__version__ = "0.1.0"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from e
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative: {value!r}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="reaper",
        description="List processes holding listening TCP ports and kill them interactively.",
    )
    parser.add_argument("--version", action="version", version=f"reaper {__version__}")
    parser.add_argument(
        "--refresh-interval",
        type=_positive_float,
        default=1.0,
        metavar="SECONDS",
        help="Seconds between automatic refreshes (minimum 0.1, default: %(default)s)",
    )
    parser.add_argument(
        "--kill-grace",
        type=_positive_float,
        default=0.5,
        metavar="SECONDS",
        help="Seconds to wait after a kill before refreshing (default: %(default)s)",
    )
    parser.add_argument(
        "--command-timeout",
        type=_positive_float,
        default=5.0,
        metavar="SECONDS",
        help="Timeout for lsof, ss and kill invocations (default: %(default)s)",
    )
    parser.add_argument(
        "--log-file",
        metavar="PATH",
        help="Write a debug log to PATH; the terminal belongs to the UI",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level for --log-file (default: %(default)s)",
    )
    return parser


def configure_logging(log_file: str | None, level: str) -> None:
    """Send logs to a file, or nowhere when no file is given."""
    root = logging.getLogger("reaper")
    if log_file is None:
        root.addHandler(logging.NullHandler())
        return
    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)


def main(argv: list[str] | None = None) -> None:
    """Entry point for the reaper application."""
    args = build_parser().parse_args(argv)
    configure_logging(args.log_file, args.log_level)
    app = ReaperApp(
        inspector=ProcessInspector(command_timeout=args.command_timeout),
        refresh_interval=args.refresh_interval,
        kill_grace=args.kill_grace,
    )
    app.run()


if __name__ == "__main__":
    main()
