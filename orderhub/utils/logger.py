"""
Logging for the order service

Every record carries a msg_id extra: the stream entry being handled, or "-"
outside message handling. Bind it with log.contextualize(msg_id=...).
"""
import os
import sys
from typing import Optional

from loguru import logger

from orderhub.config import Settings, get_settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[msg_id]}</magenta> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DDTHH:mm:ss.SSSZ} {level} [{extra[msg_id]}] {name}:{line} {message}"


def setup_logger(settings: Optional[Settings] = None):
    """Console sink, plus daily files under log_dir when it is set"""
    settings = settings or get_settings()
    logger.remove()
    logger.configure(extra={"msg_id": "-"})

    logger.add(sys.stdout, colorize=True, format=CONSOLE_FORMAT, level=settings.log_level)

    if settings.log_dir:
        logger.add(
            os.path.join(settings.log_dir, "orderhub_{time:YYYY-MM-DD}.log"),
            format=FILE_FORMAT,
            rotation="00:00",
            retention="30 days",
            compression="zip",
            level="INFO",
        )
        # Rejected messages and storage failures
        logger.add(
            os.path.join(settings.log_dir, "errors_{time:YYYY-MM-DD}.log"),
            format=FILE_FORMAT,
            rotation="00:00",
            retention="90 days",
            level="WARNING",
        )

    return logger


log = setup_logger()
