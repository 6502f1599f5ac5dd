"""Application logger.

Messages mark identifiers with `$$'tmdb:603'$$` and records with
`$${tmdb: 603, imdb: tt0133093}$$`. On a colour terminal the markers are
highlighted; everywhere else (log files, pipes) they are reduced to plain
quotes and braces.
"""

import logging
import re
import sys
from functools import lru_cache
from logging.handlers import RotatingFileHandler
from pathlib import Path

import colorama
from colorama import Fore, Style

__all__ = ["Logger", "MarkerFormatter", "configure_logger", "get_logger"]

APP_LOGGER_NAME = "IdBridge"
LOG_FILE_NAME = "idbridge.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

SUCCESS = logging.INFO + 5
logging.addLevelName(SUCCESS, "SUCCESS")

QUOTED_MARKER = re.compile(r"\$\$'((?:[^']|'(?!\$\$))*)'\$\$")
BRACED_MARKER = re.compile(r"\$\$\{(.*?)\}\$\$")

# Frames skipped when looking for the object that emitted a message
_INTERNAL_FILES = frozenset({__file__, logging.__file__})

LEVEL_COLORS = {
    logging.DEBUG: Fore.CYAN,
    logging.INFO: Fore.GREEN,
    SUCCESS: Fore.GREEN + Style.BRIGHT,
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Fore.RED + Style.BRIGHT,
}


class MarkerFormatter(logging.Formatter):
    """Renders the `$$` identifier markers, with or without colour.

    The record is left untouched so that several handlers can format it.
    """

    def __init__(self, fmt: str, *, color: bool = False) -> None:
        super().__init__(fmt, datefmt="%Y-%m-%d %H:%M:%S")
        self.color = color

    def render(self, message: str) -> str:
        """Replace the markers in a single message."""
        if self.color:
            message = QUOTED_MARKER.sub(
                f"{Fore.LIGHTBLUE_EX}'\\1'{Style.RESET_ALL}", message
            )
            return BRACED_MARKER.sub(f"{Style.DIM}{{\\1}}{Style.RESET_ALL}", message)
        return BRACED_MARKER.sub("{\\1}", QUOTED_MARKER.sub("'\\1'", message))

    def format(self, record: logging.LogRecord) -> str:
        copy = logging.makeLogRecord(record.__dict__)
        if isinstance(copy.msg, str):
            copy.msg = self.render(copy.msg)
        if self.color:
            copy.levelname = (
                f"{LEVEL_COLORS.get(record.levelno, '')}{record.levelname}"
                f"{Style.RESET_ALL}"
            )
        return super().format(copy)


class Logger(logging.Logger):
    """Logger with a SUCCESS level that prefixes messages with the caller's class.

    A message logged from a method of `IdCacheStore` reads
    `IdCacheStore: Cache hit for ...`.
    """

    SUCCESS = SUCCESS

    @staticmethod
    def _owner() -> str | None:
        frame = sys._getframe(1)
        while frame is not None and frame.f_code.co_filename in _INTERNAL_FILES:
            frame = frame.f_back
        if frame is None:
            return None
        owner = frame.f_locals.get("self")
        if owner is not None and not isinstance(owner, logging.Logger):
            return type(owner).__name__
        owner = frame.f_locals.get("cls")
        if isinstance(owner, type):
            return owner.__name__
        return None

    def _log(
        self,
        level,
        msg,
        args,
        exc_info=None,
        extra=None,
        stack_info=False,
        stacklevel=1,
    ):
        if isinstance(msg, str) and (owner := self._owner()):
            msg = f"{owner}: {msg}"
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )

    def success(self, msg, *args, **kwargs):
        """Log a message at SUCCESS level."""
        if self.isEnabledFor(SUCCESS):
            kwargs["stacklevel"] = kwargs.get("stacklevel", 1) + 1
            self._log(SUCCESS, msg, args, **kwargs)


logging.setLoggerClass(Logger)


def _terminal_has_color() -> bool:
    from idbridge.utils.terminal import supports_color

    try:
        if not supports_color():
            return False
    except OSError:
        return False
    colorama.just_fix_windows_console()
    return True


def configure_logger(
    logger: Logger, level: str, log_dir: Path | None = None
) -> Logger:
    """Attach a console handler and, if `log_dir` is given, a rotating file.

    Any handlers added by an earlier call are replaced. DEBUG output adds the
    source location to every line.
    """
    level_no = logging.getLevelName(level.upper())
    if not isinstance(level_no, int):
        raise ValueError(f"Unknown log level: {level}")
    logger.setLevel(level_no)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    fmt = "%(asctime)s - %(name)s - %(levelname)s\t%(message)s"
    if level_no <= logging.DEBUG:
        fmt = (
            "%(asctime)s - %(name)s - %(levelname)s\t%(filename)s:%(lineno)d\t"
            "%(message)s"
        )

    console = logging.StreamHandler()
    console.setFormatter(MarkerFormatter(fmt, color=_terminal_has_color()))
    logger.addHandler(console)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / LOG_FILE_NAME,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
        file_handler.setFormatter(MarkerFormatter(fmt))
        logger.addHandler(file_handler)

    return logger


@lru_cache(maxsize=1)
def get_logger() -> Logger:
    """Return the application logger, configured from the settings."""
    from idbridge.config.settings import get_config

    config = get_config()
    logger = logging.getLogger(APP_LOGGER_NAME)
    if not isinstance(logger, Logger):
        logger = Logger(APP_LOGGER_NAME)
    return configure_logger(logger, str(config.log_level), config.data_path / "logs")
