# src/posecanvas/utils/logger.py
import os
import sys
import logging

# --------------------------------------------------------
# One package logger; modules hang child loggers off it
# --------------------------------------------------------
LOGGER_NAME = "posecanvas"
logger = logging.getLogger(LOGGER_NAME)
logger.setLevel(os.environ.get("POSECANVAS_LOG_LEVEL", "INFO").upper())

# Add the stream handler only once (re-imports must not duplicate lines)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)
    formatter = logging.Formatter(
        '[%(asctime)s] [%(levelname)s] %(name)s: %(message)s',
        datefmt='%H:%M:%S'
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

logger.propagate = False  # keep Qt / root handlers from printing twice


def get_logger(name: str) -> logging.Logger:
    # Child of the package logger, e.g. get_logger(__name__) -> "posecanvas.core.loop"
    if name == LOGGER_NAME or name.startswith(LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logger.getChild(name)
