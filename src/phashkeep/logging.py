import logging
import os
from typing import List


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Library modules stay quiet unless asked; the CLI reports progress at INFO.
    # PHASHKEEP_LOG_LEVEL overrides both.
    default_level = logging.WARNING
    if name.endswith('.cli'):
        default_level = logging.INFO

    level_name = os.getenv('PHASHKEEP_LOG_LEVEL', logging.getLevelName(default_level))
    try:
        level = getattr(logging, level_name.upper())
    except AttributeError:
        level = default_level

    logger.setLevel(level)
    return logger


def package_loggers() -> List[logging.Logger]:
    """Every logger created so far under the ``phashkeep`` namespace."""
    return [
        logger
        for name, logger in logging.Logger.manager.loggerDict.items()
        if name.split('.')[0] == 'phashkeep' and isinstance(logger, logging.Logger)
    ]
