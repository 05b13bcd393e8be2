"""
Logging configuration — set up once by the CLI entrypoint.

Every module logs through ``logger = logging.getLogger(__name__)``.
Levels are resolved in precedence order:

    CLI flag  >  JENKINS_PROVISION_LOG_LEVEL  >  WARNING

A second, always-detailed copy can go to a file via
JENKINS_PROVISION_LOG_FILE (level: JENKINS_PROVISION_LOG_FILE_LEVEL).
Provisioning logs are most useful after the fact, when a run aborted
halfway through a cascade.
"""

from __future__ import annotations

import logging
import os
import sys

ENV_LEVEL = "JENKINS_PROVISION_LOG_LEVEL"
ENV_FILE = "JENKINS_PROVISION_LOG_FILE"
ENV_FILE_LEVEL = "JENKINS_PROVISION_LOG_FILE_LEVEL"

# (format, datefmt) for the console, by the most verbose level reached
_CONSOLE_FORMATS: list[tuple[int, str, str | None]] = [
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(message)s", None),
]

_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


def level_from_flags(debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Pick the console level from CLI flags, falling back to the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(ENV_LEVEL, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure the root logger for the whole process.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path of a log file. Defaults to $JENKINS_PROVISION_LOG_FILE.
        log_file_level: Level for the file. Defaults to
            $JENKINS_PROVISION_LOG_FILE_LEVEL, then to ``level``.
    """
    console_level = parse_level(level)
    log_file = log_file or os.environ.get(ENV_FILE)
    log_file_level = log_file_level or os.environ.get(ENV_FILE_LEVEL)

    fmt, datefmt = next((f, d) for lvl, f, d in _CONSOLE_FORMATS if console_level <= lvl)
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    effective = console_level

    if log_file:
        file_level = parse_level(log_file_level) if log_file_level else console_level
        effective = min(effective, file_level)
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(file_level)
        handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
        root.addHandler(handler)

    root.setLevel(effective)
    logging.raiseExceptions = False


def parse_level(level: str | None) -> int:
    """Convert a level name to its numeric value. Unknown names mean WARNING."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
