"""
Logging setup for ShiftTrack.
Each component (CLIENT, SYNC, SERVER) gets a `shifttrack.<component>` logger
writing to the console, coloured per level, and to a per-run file under the
data directory.
"""

import logging
import os
import sys
from datetime import datetime
from typing import Optional, TextIO

from termcolor import colored

from shared.utils import get_data_path

LOGGER_PREFIX = "shifttrack"
LOG_FORMAT = '[%(asctime)s] [%(component)s] [%(levelname)s] %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Overrides the level of every component logger when set, e.g. DEBUG
LOG_LEVEL_ENV = 'SHIFTTRACK_LOG_LEVEL'


class ShiftTrackFormatter(logging.Formatter):
    """Tags records with their component; colours whole lines on a TTY"""

    LEVEL_STYLES = {
        'DEBUG': ('cyan', []),
        'INFO': ('green', []),
        'WARNING': ('yellow', []),
        'ERROR': ('red', []),
        'CRITICAL': ('red', ['bold']),
    }

    def __init__(self, component: str, colors: bool = False):
        super().__init__(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
        self.component = component
        self.colors = colors

    def format(self, record: logging.LogRecord) -> str:
        record.component = self.component
        line = super().format(record)
        if not self.colors:
            return line

        color, attrs = self.LEVEL_STYLES.get(record.levelname, ('white', []))
        return colored(line, color, attrs=attrs)


def _console_stream() -> Optional[TextIO]:
    # Windowed builds have no stdout
    return sys.stdout or sys.stderr


def _is_tty(stream: Optional[TextIO]) -> bool:
    try:
        return bool(stream and stream.isatty())
    except (AttributeError, OSError, ValueError):
        return False


def _log_file_path(component: str):
    stamp = datetime.now().strftime('%Y%m%d-%H%M%S')
    return get_data_path('logs') / f"shifttrack_{component.lower()}_{stamp}.log"


def _resolve_level(level: Optional[str]) -> int:
    name = os.getenv(LOG_LEVEL_ENV) or level or "INFO"
    return getattr(logging, name.upper(), logging.INFO)


def setup_logging(component: str, level: Optional[str] = None,
                  log_to_file: bool = True) -> logging.Logger:
    """Configure the logger of one component.

    Calling it again for a configured component returns the same logger
    without adding handlers.
    """
    logger = logging.getLogger(f"{LOGGER_PREFIX}.{component.lower()}")
    if logger.handlers:
        return logger

    logger.setLevel(_resolve_level(level))
    logger.propagate = False

    stream = _console_stream()
    console = logging.StreamHandler(stream)
    console.setFormatter(ShiftTrackFormatter(component, colors=_is_tty(stream)))
    logger.addHandler(console)

    if log_to_file:
        try:
            get_data_path('logs').mkdir(exist_ok=True)
            file_handler = logging.FileHandler(_log_file_path(component), encoding='utf-8')
            file_handler.setFormatter(ShiftTrackFormatter(component))
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"File logging disabled: {e}")

    return logger


def get_logger(component: str) -> logging.Logger:
    """Logger for a component, configured on first use"""
    return setup_logging(component)


def get_client_logger() -> logging.Logger:
    return get_logger("CLIENT")


def get_server_logger() -> logging.Logger:
    return get_logger("SERVER")


def get_sync_logger() -> logging.Logger:
    return get_logger("SYNC")


def set_log_level(level: str):
    """Change the level of every configured ShiftTrack logger and its handlers"""
    level_no = getattr(logging, level.upper(), logging.INFO)
    for name, logger in list(logging.root.manager.loggerDict.items()):
        if not name.startswith(f"{LOGGER_PREFIX}.") or not isinstance(logger, logging.Logger):
            continue
        logger.setLevel(level_no)
        for handler in logger.handlers:
            handler.setLevel(level_no)


def enable_debug_logging():
    """Debug level for configured loggers and for any configured later"""
    os.environ[LOG_LEVEL_ENV] = "DEBUG"
    set_log_level("DEBUG")


def disable_debug_logging():
    os.environ.pop(LOG_LEVEL_ENV, None)
    set_log_level("INFO")
