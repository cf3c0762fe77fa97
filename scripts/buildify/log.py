#!/usr/bin/env python3
"""
Dual-sink logging and the single abort path.

The file sink is append-only and always on; the console sink mirrors every
line to stderr when verbosity is enabled. abort() is the only way a fatal
condition leaves the process.
"""
import logging
import shutil
import sys
from pathlib import Path
from typing import NoReturn, Optional

from . import config

logger = logging.getLogger(config.TOOL_NAME)

FILE_FORMAT = logging.Formatter(
    "%(asctime)s | %(levelname)-8s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
CONSOLE_FORMAT = logging.Formatter(f"{config.TOOL_NAME}: %(levelname)s: %(message)s")

BANNER = "=" * 60

_file_handler: Optional[logging.FileHandler] = None
_console_handler: Optional[logging.StreamHandler] = None
_aborted = False
# Offset in the current log file where this run's lines begin
_run_start = 0


def setup_logging(log_file: Path, verbose: bool = False) -> logging.Logger:
    """Attach the file sink (and the console sink when verbose)."""
    global _file_handler, _aborted, _run_start
    _aborted = False
    teardown_logging()

    log_file.parent.mkdir(parents=True, exist_ok=True)
    _run_start = log_file.stat().st_size if log_file.exists() else 0
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    _file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    _file_handler.setLevel(logging.DEBUG)
    _file_handler.setFormatter(FILE_FORMAT)
    logger.addHandler(_file_handler)

    set_verbose(verbose)
    logger.debug(f"Logging to {log_file}")
    return logger


def set_verbose(verbose: bool) -> None:
    global _console_handler
    if verbose and _console_handler is None:
        _console_handler = logging.StreamHandler(sys.stderr)
        _console_handler.setLevel(logging.DEBUG)
        _console_handler.setFormatter(CONSOLE_FORMAT)
        logger.addHandler(_console_handler)
    elif not verbose and _console_handler is not None:
        logger.removeHandler(_console_handler)
        _console_handler = None


def current_log_file() -> Optional[Path]:
    if _file_handler is None:
        return None
    return Path(_file_handler.baseFilename)


def relocate_log(new_path: Path) -> Path:
    """
    Move the file sink to new_path.

    Lines this run already wrote to the old file are appended to new_path;
    the old file keeps them too, so an append-only global log stays intact.
    """
    global _file_handler, _run_start
    old_path = current_log_file()
    if old_path is not None and old_path == new_path.resolve():
        return new_path

    new_path.parent.mkdir(parents=True, exist_ok=True)
    if _file_handler is not None:
        logger.removeHandler(_file_handler)
        _file_handler.close()
        new_start = new_path.stat().st_size if new_path.exists() else 0
        if old_path is not None and old_path.exists():
            with open(old_path, "rb") as f_old, open(new_path, "ab") as f_new:
                f_old.seek(_run_start)
                shutil.copyfileobj(f_old, f_new)
        _run_start = new_start

    _file_handler = logging.FileHandler(new_path, mode="a", encoding="utf-8")
    _file_handler.setLevel(logging.DEBUG)
    _file_handler.setFormatter(FILE_FORMAT)
    logger.addHandler(_file_handler)
    logger.debug(f"Log relocated from {old_path} to {new_path}")
    return new_path


def teardown_logging() -> None:
    global _file_handler, _console_handler
    for h in (_file_handler, _console_handler):
        if h is not None:
            logger.removeHandler(h)
            h.close()
    _file_handler = None
    _console_handler = None


def abort(message: str, workspace=None) -> NoReturn:
    """
    Report a fatal condition, clean up and exit non-zero.

    Safe to call more than once; only the first call logs the banner.
    """
    global _aborted
    if not _aborted:
        _aborted = True
        set_verbose(True)
        logger.error(message)
        logger.error(BANNER)
        log_path = current_log_file()
        if log_path is not None:
            logger.error(f"{config.TOOL_NAME} ABORTED. Log: {log_path}")
        else:
            logger.error(f"{config.TOOL_NAME} ABORTED.")
        logger.error(BANNER)
    if workspace is not None:
        workspace.cleanup()
    raise SystemExit(1)
