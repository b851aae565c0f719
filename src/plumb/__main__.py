"""Entry point for python -m plumb."""

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

from plumb.app import PlumbApp
from plumb.cli import run_init
from plumb.config import PLUMB_HOME, VERSION, PlumbSettings, load_settings, validate_buffer_size
from plumb.exceptions import ConfigError, InteractiveStdinError, StartupError
from plumb.shell import resolve_shell

LOCAL_SETTINGS = Path("./plumb.yaml")
LOG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"


def _buffer_size(value: str) -> int:
    try:
        return validate_buffer_size(int(value))
    except (ValueError, ConfigError) as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="plumb",
        description="Build a shell pipeline interactively, with live preview of its output.",
        epilog="Example: lshw | plumb",
    )
    parser.add_argument("--version", action="version", version=f"plumb {VERSION}")
    parser.add_argument(
        "--unsafe-full-throttle",
        dest="unsafe_mode",
        action="store_true",
        default=None,
        help="execute the command immediately after any change",
    )
    parser.add_argument(
        "-o",
        "--output-script",
        metavar="FILE",
        help="save the command to FILE when Ctrl-X is pressed (default: plumb<N>.sh)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=None,
        help="write a debug log (default file: plumb.debug)",
    )
    parser.add_argument(
        "--buffer-size",
        type=_buffer_size,
        metavar="BYTES",
        help="capacity of each capture buffer",
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("init", help="Initialize ~/.plumb config directory")

    return parser


def _load_settings() -> PlumbSettings:
    """Load settings from ~/.plumb or ./plumb.yaml, or fall back to defaults."""
    home_settings = PLUMB_HOME.expanduser() / "settings.yaml"

    for path in (home_settings, LOCAL_SETTINGS):
        if path.exists():
            return load_settings(path)

    return PlumbSettings()


def apply_overrides(settings: PlumbSettings, args: argparse.Namespace) -> PlumbSettings:
    """Return settings with any options given on the command line applied."""
    overrides = {
        name: getattr(args, name)
        for name in ("unsafe_mode", "output_script", "debug", "buffer_size")
        if getattr(args, name) is not None
    }
    return dataclasses.replace(settings, **overrides)


def configure_logging(settings: PlumbSettings) -> None:
    """Send plumb's log to the debug file, or nowhere.

    The terminal belongs to the UI, so nothing is ever logged to it.
    """
    logger = logging.getLogger("plumb")
    logger.propagate = False
    if not settings.debug:
        logger.addHandler(logging.NullHandler())
        return

    handler = logging.FileHandler(settings.debug_log, mode="w", encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)


def main() -> int:
    """Run the init subcommand or the interactive UI."""
    parser = _build_parser()
    args = parser.parse_args()

    if args.command == "init":
        run_init()
        return 0

    try:
        settings = apply_overrides(_load_settings(), args)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1

    try:
        configure_logging(settings)
    except OSError as e:
        print(f"error: cannot open debug log: {e}", file=sys.stderr)
        return 1

    try:
        if sys.stdin.isatty():
            raise InteractiveStdinError()
        shell = resolve_shell(settings.shell)
        app = PlumbApp(settings=settings, shell=shell, source=sys.stdin.buffer)
    except StartupError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    return app.run()


if __name__ == "__main__":
    sys.exit(main())
