"""
Key-value logging for the price watch engine.

    logger.info("price_watch.triggered", ticker="AAPL", move_pct=0.0412)
    -> 10:31:02 [INFO] price_watch.triggered ticker=AAPL move_pct=0.0412

Console output goes to stdout; a daily file under logs/ receives everything
down to DEBUG unless LOG_TO_FILE is 0/false/no.
"""
import logging
import os
import sys
from datetime import datetime
from pathlib import Path


def _render(value) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, float):
        return f"{value:.6g}"
    text = str(value)
    if " " in text:
        return f'"{text}"'
    return text


class StructuredLogger:
    """Thin wrapper turning keyword arguments into key=value pairs"""

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def _format_msg(self, event: str, **fields) -> str:
        if not fields:
            return event
        pairs = " ".join(f"{k}={_render(v)}" for k, v in fields.items())
        return f"{event} {pairs}"

    def debug(self, event, **fields):
        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug(self._format_msg(event, **fields))

    def info(self, event, **fields):
        self._logger.info(self._format_msg(event, **fields))

    def warning(self, event, **fields):
        self._logger.warning(self._format_msg(event, **fields))

    def error(self, event, **fields):
        self._logger.error(self._format_msg(event, **fields))

    def exception(self, event, **fields):
        self._logger.exception(self._format_msg(event, **fields))

    def set_level(self, level: str):
        """Apply a new level to the logger and its console handler (the file keeps DEBUG)"""
        numeric_level = getattr(logging, level.upper(), logging.INFO)
        has_file = False
        for handler in self._logger.handlers:
            if isinstance(handler, logging.FileHandler):
                has_file = True
            else:
                handler.setLevel(numeric_level)
        self._logger.setLevel(logging.DEBUG if has_file else numeric_level)


def setup_logger(level: str = "INFO", log_file: bool = True, log_dir: str = "logs") -> StructuredLogger:
    """
    Configure the "pricewatch" logger.

    Args:
        level: Console log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Also write a daily log file
        log_dir: Directory for the daily file

    Returns:
        StructuredLogger around the configured logger
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    base_logger = logging.getLogger("pricewatch")
    base_logger.setLevel(logging.DEBUG if log_file else numeric_level)
    base_logger.handlers = []
    base_logger.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S"))
    base_logger.addHandler(console_handler)

    if log_file:
        directory = Path(log_dir)
        directory.mkdir(exist_ok=True)
        log_path = directory / f"pricewatch_{datetime.now():%Y%m%d}.log"

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(threadName)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        base_logger.addHandler(file_handler)
        base_logger.debug("logging.file path=%s", log_path)

    return StructuredLogger(base_logger)


_log_level = os.environ.get("LOG_LEVEL", "INFO")
_log_to_file = os.environ.get("LOG_TO_FILE", "1").lower() not in ("0", "false", "no")
logger = setup_logger(level=_log_level, log_file=_log_to_file)
