"""
Logging utilities for the trun toolkit.

Provides unified structured logging:
- pretty console output via Rich
- structured (JSON) file output to `replay.log` when running `trun replay`
"""

import logging
import sys
import json
from pathlib import Path

from rich.logging import RichHandler


class JSONFormatter(logging.Formatter):
    """
    Formatter that serializes log records to JSON.
    """
    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level":     record.levelname,
            "logger":    record.name,
            "message":   record.getMessage(),
        }
        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(log_record)


def get_logger(name: str, level: int | str = logging.INFO) -> logging.Logger:
    """
    Return a configured logger for the given name.

    Attaches:
    - a RichHandler for console output
    - when the command is 'replay', a FileHandler writing JSON logs to {cwd}/replay.log

    Parameters
    ----------
    name
        Logger name (typically __name__).
    level
        Log level (int or string), defaults to INFO.

    Returns
    -------
    logging.Logger
        Configured logger instance.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        # Rich on the console
        console_handler = RichHandler(rich_tracebacks=True)
        console_handler.setLevel(level)
        logger.addHandler(console_handler)

        # `trun replay` also keeps a JSON-lines trace of the replayed run
        if len(sys.argv) > 1 and sys.argv[1] == "replay":
            log_path = Path.cwd() / "replay.log"
            file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
            file_handler.setLevel(level)
            file_handler.setFormatter(JSONFormatter())
            logger.addHandler(file_handler)

    return logger


def set_level(level: int | str) -> None:
    """
    Change the level of every trun logger and its handlers (used by `--verbose`).
    """
    for name, obj in logging.root.manager.loggerDict.items():
        if not name.startswith("trun") or not isinstance(obj, logging.Logger):
            continue
        obj.setLevel(level)
        for handler in obj.handlers:
            handler.setLevel(level)
