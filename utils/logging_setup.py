"""
Logging configuration for batch runs.
"""

import logging
from typing import Optional

from .config_loader import get_config_value

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(config: Optional[dict] = None, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the root logger from the ``logging`` section of the configuration.

    Args:
        config: Configuration dictionary
        log_file: Optional file receiving a copy of every record

    Returns:
        The configured root logger
    """
    config = config or {}
    level_name = str(get_config_value(config, 'logging.level', 'INFO')).upper()
    fmt = get_config_value(config, 'logging.format', DEFAULT_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    formatter = logging.Formatter(fmt)
    # Avoid duplicated output when called more than once
    for handler in list(root_logger.handlers):
        if getattr(handler, '_envelope_handler', False):
            root_logger.removeHandler(handler)

    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler._envelope_handler = True
        root_logger.addHandler(handler)

    return root_logger
