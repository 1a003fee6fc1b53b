"""
fieldreg Logging Configuration

All fieldreg modules log through children of the "fieldreg" logger:
- Colored console output (plain text when the stream is not a terminal)
- Optional plain-text log file
- Python warnings raised by torch / scipy routed into the same handlers
- Timer context manager for registration and sampling runs

Library code only calls `get_logger`; applications call `setup_logging` once.
"""

import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

LEVEL_COLORS = {
    "DEBUG": "\033[36m",     # Cyan
    "INFO": "\033[32m",      # Green
    "WARNING": "\033[33m",   # Yellow
    "ERROR": "\033[31m",     # Red
    "CRITICAL": "\033[35m",  # Magenta
}
RESET = "\033[0m"

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


class ColorFormatter(logging.Formatter):
    """One-line console format: [HH:MM:SS] L | logger.name: message"""

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"[{timestamp}] {record.levelname[0]} | {record.name}: {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        if not self.use_color:
            return line
        return f"{LEVEL_COLORS.get(record.levelname, RESET)}{line}{RESET}"


def _resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[Path] = None,
    module_name: str = "fieldreg",
    capture_warnings: bool = True,
) -> logging.Logger:
    """
    Configure the fieldreg logger tree

    Args:
        level: Level name (DEBUG, INFO, ...) or logging constant
        log_file: Optional path of a log file, parent directories are created
        module_name: Root of the logger hierarchy
        capture_warnings: Route `warnings.warn` output into logging

    Returns:
        The configured root logger of the hierarchy
    """
    logger = logging.getLogger(module_name)
    logger.setLevel(_resolve_level(level))
    logger.handlers.clear()

    stream = sys.stdout
    console = logging.StreamHandler(stream)
    console.setFormatter(ColorFormatter(use_color=hasattr(stream, "isatty") and stream.isatty()))
    logger.addHandler(console)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="w")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(file_handler)

    if capture_warnings:
        logging.captureWarnings(True)
        warnings_logger = logging.getLogger("py.warnings")
        warnings_logger.handlers = list(logger.handlers)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger `fieldreg.<name>`"""
    return logging.getLogger(f"fieldreg.{name}")


class Timer:
    """
    Context manager that logs the wall time of a block

    Attributes:
        elapsed: Seconds spent inside the block, set on exit
    """

    def __init__(self, name: str, logger: Optional[logging.Logger] = None, level: int = logging.DEBUG):
        self.name = name
        self.logger = logger or get_logger("timer")
        self.level = level
        self.elapsed = 0.0
        self._start = None

    def __enter__(self):
        self._start = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.elapsed = time.perf_counter() - self._start
        self.logger.log(self.level, f"{self.name}: {self.elapsed:.3f}s")
