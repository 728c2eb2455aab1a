"""Logging setup for relflow.

Service wrappers log every git, npm, gpg and gh invocation at DEBUG, so
``relflow -v`` shows exactly which tools a release step ran. ``-vv`` also
adds timestamps and source locations.
"""

import logging
from typing import TextIO

from rich.console import Console
from rich.logging import RichHandler

# Third-party loggers that are chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def _level_for(verbosity: int, quiet: bool) -> int:
    if quiet:
        return logging.WARNING
    if verbosity >= 1:
        return logging.DEBUG
    return logging.INFO


def configure_logging(
    verbosity: int = 0,
    quiet: bool = False,
    no_color: bool = False,
    stream: TextIO | None = None,
) -> Console:
    """Route log records through a Rich console on stderr.

    stdout stays free for ``--json`` results.

    Args:
        verbosity: Count of ``-v`` flags
        quiet: Only warnings and errors; wins over verbosity
        no_color: Plain text output
        stream: Destination for log records and console output; stderr by default

    Returns:
        The console that OutputContext prints human-readable output to
    """
    level = _level_for(verbosity, quiet)
    console = Console(
        file=stream,
        stderr=stream is None,
        force_terminal=not no_color,
        no_color=no_color,
    )
    detailed = verbosity >= 2
    handler = RichHandler(
        console=console,
        show_time=detailed,
        show_path=detailed,
        markup=False,
        rich_tracebacks=detailed,
    )
    logging.basicConfig(level=level, format="%(message)s", handlers=[handler], force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if detailed else max(level, logging.WARNING))
    return console
