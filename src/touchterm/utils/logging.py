"""Logging setup utilities for touchterm.

Configures logging for the whole application based on the logging
configuration settings.
"""

from __future__ import annotations

import logging
import sys

from touchterm.config.settings import LoggingConfig


def setup_logging(config: LoggingConfig | None = None, stream=None) -> None:
    """Configure the 'touchterm' logger.

    Args:
        config: Logging configuration. If None, uses defaults
                (INFO level, stderr output).
        stream: Console stream; defaults to stderr. The console client
                keeps stdout for shell output, so it must stay stderr
                there too.
    """
    if config is None:
        config = LoggingConfig()

    root_logger = logging.getLogger("touchterm")
    # Calling again replaces the handlers of the earlier call
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    formatter = logging.Formatter(config.format)

    # Console handler
    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler (optional)
    if config.file:
        file_handler = logging.FileHandler(config.file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    root_logger.debug("Logging initialized at %s level", config.level)
