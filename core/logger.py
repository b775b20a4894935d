#!/usr/bin/env python3
"""
Service logger setup

Configures a named logger from LoggingConfig: console handler, optional
file handler, shared format. Safe to call more than once per name.
"""
import logging
import sys
from typing import Optional

from .config.logging_config import LoggingConfig


def setup_service_logger(
    service_name: str,
    level: Optional[str] = None,
    config: Optional[LoggingConfig] = None,
) -> logging.Logger:
    """
    Create (or return the already configured) logger for a service

    Args:
        service_name: Logger name, e.g. "quote_calculation_service"
        level: Log level name overriding the configured one
        config: Logging configuration (loaded from environment if omitted)

    Returns:
        Configured logger
    """
    config = config or LoggingConfig.from_env()
    logger = logging.getLogger(service_name)
    logger.setLevel((level or config.log_level).upper())

    if getattr(logger, "_service_configured", False):
        return logger

    formatter = logging.Formatter(config.log_format)

    if config.enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    logger._service_configured = True
    return logger
