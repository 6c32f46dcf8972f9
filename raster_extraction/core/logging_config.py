#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Logging setup for the raster-vector extraction toolbox.

Library modules only ask for a child of the ``raster_extraction`` logger with
:func:`get_module_logger`; handlers are attached once, by the command line
entry point, through :func:`setup_logging`.
"""
import logging
import os
from typing import List, Optional

from raster_extraction.core.config import LOGGING_CONFIG

ROOT_LOGGER_NAME = "raster_extraction"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _resolve_level(level: str) -> int:
    numeric_level = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric_level, int) or str(level).upper() not in LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level}. Use one of {', '.join(LOG_LEVELS)}")
    return numeric_level


def _build_handlers(formatter: logging.Formatter, log_file: Optional[str]) -> List[logging.Handler]:
    """Console handler, plus a file handler when a log file is in effect."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if log_file is None and LOGGING_CONFIG.get("log_to_file", False):
        log_file = LOGGING_CONFIG.get("log_file")
    if log_file:
        log_dir = os.path.dirname(str(log_file))
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(log_level: Optional[str] = None,
                  log_file: Optional[str] = None,
                  module_name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Attach handlers to the package logger and set its level.

    Parameters
    ----------
    log_level : str, optional
        DEBUG, INFO, WARNING, ERROR or CRITICAL; ``LOGGING_CONFIG["level"]``
        if None.
    log_file : str, optional
        Also log to this file. Without it, a file is only written when
        ``LOGGING_CONFIG["log_to_file"]`` is set.
    module_name : str, optional
        Logger to configure, by default the package logger.

    Returns
    -------
    logging.Logger

    Calling it again only changes the level; handlers are added once.
    """
    level = log_level or LOGGING_CONFIG.get("level", "INFO")
    logger = logging.getLogger(module_name)
    logger.setLevel(_resolve_level(level))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        LOGGING_CONFIG.get("log_format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    for handler in _build_handlers(formatter, log_file):
        logger.addHandler(handler)

    logger.debug(f"Logging to {len(logger.handlers)} handler(s) at level {level}")
    return logger


def get_module_logger(module_name: str) -> logging.Logger:
    """Child of the package logger for ``module_name`` (usually ``__name__``)."""
    if module_name == ROOT_LOGGER_NAME or module_name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(module_name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{module_name}")
