# -*- coding: utf-8 -*-
"""
Logging configuration.

Routes logs by severity so the hosting platform classifies them correctly:
- DEBUG, INFO, WARNING -> STDOUT
- ERROR, CRITICAL -> STDERR

Records go through QueueHandler + QueueListener so the event loop never blocks
on stdout/stderr writes.
"""

import atexit
import logging
import queue
import sys
from logging.handlers import QueueHandler, QueueListener
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# aiogram logs every handled update at INFO
NOISY_LOGGERS = ("aiogram.event",)


class MaxLevelFilter(logging.Filter):
    """Pass only records up to max_level (inclusive)."""

    def __init__(self, max_level):
        super().__init__()
        self.max_level = max_level

    def filter(self, record):
        return record.levelno <= self.max_level


_log_listener: Optional[QueueListener] = None


def setup_logging(level: int = logging.INFO) -> None:
    """
    Install the queue handler on the root logger and start the listener thread.

    Must be called before any logger is used. Calling it again replaces the
    previous configuration.
    """
    global _log_listener

    _stop_log_listener()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(level)
    stdout_handler.addFilter(MaxLevelFilter(logging.WARNING))
    stdout_handler.setFormatter(formatter)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.ERROR)
    stderr_handler.setFormatter(formatter)

    log_queue = queue.Queue()
    root_logger.addHandler(QueueHandler(log_queue))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    _log_listener = QueueListener(
        log_queue,
        stdout_handler,
        stderr_handler,
        respect_handler_level=True,
    )
    _log_listener.start()
    atexit.register(_stop_log_listener)


def _stop_log_listener():
    """Stop the queue listener (at exit or before reconfiguring)."""
    global _log_listener
    if _log_listener is not None:
        _log_listener.stop()
        _log_listener = None
