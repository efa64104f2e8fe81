# logging_config.py
# Description: Routes standard-library logging through loguru so the sync library and the web stack share one sink.
#
# Imports
import logging
import sys
#
# 3rd-party Libraries
from loguru import logger
#
########################################################################################################################
#
# Functions:

LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"

# The sync library logs via stdlib logging under these names
LOGGERS_TO_INTERCEPT = ["nuance_sync", "uvicorn", "uvicorn.error", "uvicorn.access"]


# Define a handler class to intercept standard logging messages
class InterceptHandler(logging.Handler):
    def emit(self, record):
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def configure_logging(log_level: str = "INFO", sink=sys.stderr) -> None:
    """Replaces loguru's default sink and intercepts the configured stdlib loggers."""
    logger.remove()
    logger.add(
        sink,
        level=log_level,
        format=LOG_FORMAT,
        colorize=sink in (sys.stderr, sys.stdout),
    )

    for logger_name in LOGGERS_TO_INTERCEPT:
        mod_logger = logging.getLogger(logger_name)
        mod_logger.handlers = [InterceptHandler()]
        mod_logger.setLevel(logging.DEBUG)  # Level filtering happens in the loguru sink
        mod_logger.propagate = False  # Prevent messages from reaching the root logger

    logger.debug(f"Loguru logger configured at level {log_level}")

#
# End of logging_config.py
#######################################################################################################################
